# rideshare-simulator/rideshare/scoring.py
"""
Fitness model for cluster-to-vehicle assignments.

This module implements the objective the genetic algorithm maximizes. A
candidate solution is a list indexed by cluster position whose cells hold a
vehicle index or UNASSIGNED. The fitness rewards:
- Matching as many passengers as possible
- Keeping the per-passenger detour small
- Putting the whole fleet to work

Key Design Principles:
1. Higher fitness = better solution
2. The assignment ratio dominates; detour and utilization break ties
3. Scoring never mutates the clusters or vehicles it is given
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence

from . import config, utils
from .models import Cluster, Coordinate, Vehicle

UNASSIGNED = -1
"""Gene value for a cluster that no vehicle serves."""


@dataclass(frozen=True)
class FitnessWeights:
    """
    Weights of the fitness function.

    fitness = assignment * ratio - detour * normalized_detour
              + utilization * used_fraction - unused_penalty * unused_vehicles
    """
    assignment: float = config.W_ASSIGNMENT
    detour: float = config.W_DETOUR
    utilization: float = config.W_UTILIZATION
    unused_penalty: float = config.UNUSED_VEHICLE_PENALTY


@dataclass(frozen=True)
class FitnessBreakdown:
    """A candidate's fitness together with the terms it was computed from."""
    fitness: float
    assignment_ratio: float
    normalized_detour: float
    vehicle_utilization: float
    assigned_requests: int
    used_vehicles: int


def group_by_vehicle(solution: Sequence[int], clusters: Sequence[Cluster]) -> Dict[int, List[Cluster]]:
    """
    Group the assigned clusters of a solution by vehicle index.

    Returns:
        Mapping vehicle index -> clusters in solution order, keyed in
        ascending vehicle index
    """
    grouped: Dict[int, List[Cluster]] = {}
    for cluster_idx, vehicle_idx in enumerate(solution):
        if vehicle_idx == UNASSIGNED:
            continue
        grouped.setdefault(vehicle_idx, []).append(clusters[cluster_idx])
    return dict(sorted(grouped.items()))


def vehicle_loads(solution: Sequence[int], clusters: Sequence[Cluster], vehicle_count: int) -> List[int]:
    """Seats taken in each vehicle by the solution."""
    loads = [0] * vehicle_count
    for cluster_idx, vehicle_idx in enumerate(solution):
        if vehicle_idx != UNASSIGNED:
            loads[vehicle_idx] += clusters[cluster_idx].size
    return loads


def build_vehicle_route(start: Coordinate, clusters: Sequence[Cluster]) -> List[Coordinate]:
    """
    Waypoints for a vehicle serving the given clusters.

    The vehicle collects every passenger first and then drops everyone off:
    [start, pickups..., dropoffs...], both in cluster/request order.
    """
    requests = [r for cluster in clusters for r in cluster.requests]
    return [start] + [r.pickup_location for r in requests] + [r.dropoff_location for r in requests]


def vehicle_detour(vehicle: Vehicle, clusters: Sequence[Cluster]) -> float:
    """
    Detour of a vehicle serving the given clusters, in km.

    Detour = shared route length - sum of direct distances from the vehicle
    to each passenger's dropoff.
    """
    route_km = utils.route_distance(build_vehicle_route(vehicle.location, clusters))
    direct_km = sum(
        utils.haversine_distance(vehicle.location, r.dropoff_location)
        for cluster in clusters
        for r in cluster.requests
    )
    return route_km - direct_km


def evaluate_solution(
    solution: Sequence[int],
    clusters: Sequence[Cluster],
    vehicles: Sequence[Vehicle],
    max_detour_km: float,
    weights: FitnessWeights = FitnessWeights(),
) -> FitnessBreakdown:
    """
    Score a candidate assignment.

    Args:
        solution: Vehicle index (or UNASSIGNED) per cluster
        clusters: Clusters the solution indexes into
        vehicles: Vehicles the solution indexes into
        max_detour_km: Scale used to normalize the per-passenger detour
        weights: Fitness weights

    Returns:
        FitnessBreakdown with the fitness (higher is better) and its terms
    """
    total_requests = sum(c.size for c in clusters)
    grouped = group_by_vehicle(solution, clusters)

    assigned = sum(c.size for assigned_clusters in grouped.values() for c in assigned_clusters)
    total_detour = sum(vehicle_detour(vehicles[idx], assigned_clusters) for idx, assigned_clusters in grouped.items())

    assignment_ratio = assigned / total_requests if total_requests > 0 else 0.0

    per_passenger_detour = total_detour / (assigned or 1)
    if max_detour_km > 0:
        normalized_detour = min(per_passenger_detour / max_detour_km, 1.0)
    else:
        normalized_detour = 1.0 if per_passenger_detour > 0 else 0.0

    used = len(grouped)
    utilization = used / len(vehicles) if vehicles else 0.0
    unused = len(vehicles) - used

    fitness = (
        weights.assignment * assignment_ratio
        - weights.detour * normalized_detour
        + weights.utilization * utilization
        - weights.unused_penalty * unused
    )

    return FitnessBreakdown(
        fitness=fitness,
        assignment_ratio=assignment_ratio,
        normalized_detour=normalized_detour,
        vehicle_utilization=utilization,
        assigned_requests=assigned,
        used_vehicles=used,
    )


def calculate_fitness(
    solution: Sequence[int],
    clusters: Sequence[Cluster],
    vehicles: Sequence[Vehicle],
    max_detour_km: float,
    weights: FitnessWeights = FitnessWeights(),
) -> float:
    """Fitness of a candidate assignment (higher is better)."""
    return evaluate_solution(solution, clusters, vehicles, max_detour_km, weights).fitness
