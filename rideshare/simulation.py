# rideshare-simulator/rideshare/simulation.py
"""
Simulation orchestration for the Dynamic Ride-Sharing Simulator.

A simulation run is a single pass through the pipeline:
1. Generate ride requests and vehicles near the waiting passengers
2. Cluster the recent requests into shareable groups
3. Match clusters to vehicles
4. Route every assignment through the routing engine
5. Calculate KPIs

KPI baseline: every vehicle could instead serve its passengers one after the
other (pickup, dropoff, next pickup, ...) in request order. The shared route
is compared against that sequential tour.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from . import config, utils
from .clustering import DBSCANClustering, KMeansClustering, summarize_clusters
from .data import RandomDataGenerator
from .exceptions import ConfigurationError
from .interfaces import ClusterStrategy, DataAdapter, EventSink, MatchingStrategy, RoutingEngine
from .matching import GeneticMatcher, GreedyMatcher
from .models import (
    Assignment,
    Bounds,
    ClusterParams,
    Coordinate,
    MatchConstraints,
    RideRequest,
    SimulationMetrics,
    SimulationParams,
    SimulationResult,
)
from .routing import StraightLineRouter

logger = logging.getLogger(__name__)


def sanitize_params(params: SimulationParams) -> SimulationParams:
    """
    Clamp caller-supplied parameters to usable values.

    Negative counts become 0. A non-positive detour limit or time window
    falls back to the configured default.
    """
    passenger_count = max(0, int(params.passenger_count))
    vehicle_count = max(0, int(params.vehicle_count))

    max_detour = params.max_detour_distance_km
    if max_detour <= 0:
        logger.warning(f"Invalid max detour {max_detour} km, using {config.DEFAULT_MAX_DETOUR_KM} km")
        max_detour = config.DEFAULT_MAX_DETOUR_KM

    time_window = params.time_window_minutes
    if time_window <= 0:
        logger.warning(
            f"Invalid time window {time_window} min, using {config.DEFAULT_TIME_WINDOW_MINUTES} min"
        )
        time_window = config.DEFAULT_TIME_WINDOW_MINUTES

    return SimulationParams(
        passenger_count=passenger_count,
        vehicle_count=vehicle_count,
        max_detour_distance_km=max_detour,
        time_window_minutes=time_window,
    )


def sequential_route_distance(
    start: Coordinate,
    requests: Sequence[RideRequest],
    distance_fn: utils.DistanceFn = utils.haversine_distance,
) -> float:
    """
    Length of a tour serving the requests one at a time.

    The tour starts at `start` and visits pickup then dropoff of each
    request, ordered by request timestamp.
    """
    ordered = sorted(requests, key=lambda r: r.timestamp)
    points = [start]
    for request in ordered:
        points.append(request.pickup_location)
        points.append(request.dropoff_location)
    return utils.route_distance(points, distance_fn)


class SimulationService:
    """
    Runs one ride-sharing simulation over pluggable collaborators.

    Attributes:
        data_adapter: Source of requests and vehicles
        clustering_strategy: Groups requests into clusters
        matching_strategy: Assigns clusters to vehicles
        routing_engine: Turns assignment waypoints into routes
        bounds: Map area the data is generated in
        clock: Returns the simulation's 'now' at the start of each run
    """

    def __init__(
        self,
        data_adapter: DataAdapter,
        clustering_strategy: ClusterStrategy,
        matching_strategy: MatchingStrategy,
        routing_engine: RoutingEngine,
        bounds: Optional[Bounds] = None,
        clock: Callable[[], datetime] = datetime.now,
        on_event: Optional[EventSink] = None,
    ) -> None:
        self.data_adapter = data_adapter
        self.clustering_strategy = clustering_strategy
        self.matching_strategy = matching_strategy
        self.routing_engine = routing_engine
        self.bounds = bounds if bounds is not None else Bounds.from_tuple(config.DEFAULT_BOUNDS)
        self.clock = clock
        self.on_event = on_event

    def run(self, params: SimulationParams) -> SimulationResult:
        """
        Run the full pipeline once.

        Args:
            params: Passenger and vehicle counts, detour limit, time window

        Returns:
            SimulationResult with the generated data, clusters, routed
            assignments, unassigned requests and KPIs
        """
        params = sanitize_params(params)
        now = self.clock()

        requests = self.data_adapter.generate_requests(params.passenger_count, self.bounds)
        vehicles = self.data_adapter.generate_vehicles_near(params.vehicle_count, requests, self.bounds)
        logger.info(f"Generated {len(requests)} passengers and {len(vehicles)} vehicles")

        clusters = self.clustering_strategy.cluster(requests, ClusterParams(
            time_window_minutes=params.time_window_minutes,
            max_distance_km=params.max_detour_distance_km,
            reference_time=now,
        ))

        summary = summarize_clusters(clusters)
        logger.info(
            f"Clustering results: {summary['total_clusters']} clusters "
            f"({summary['multi_passenger_clusters']} shared, "
            f"{summary['single_passenger_clusters']} single), "
            f"{summary['passengers_in_shared_clusters']}/{len(requests)} passengers in shared clusters"
        )

        assignments = self.matching_strategy.match(
            clusters, vehicles, MatchConstraints(max_detour_km=params.max_detour_distance_km)
        )
        routed = [
            replace(a, route=self.routing_engine.calculate_route(a.route))
            for a in assignments
        ]

        assigned_ids = utils.flatten_ids(a.request_ids for a in routed)
        unassigned = [r for r in requests if r.id not in assigned_ids]
        metrics = self.calculate_metrics(requests, routed)

        logger.info(
            f"Simulation complete: {metrics.percentage_matched:.1f}% matched, "
            f"{len(routed)} vehicles used, {len(unassigned)} passengers unassigned"
        )
        if self.on_event is not None:
            self.on_event("simulation.completed", {
                "requests": len(requests),
                "vehicles": len(vehicles),
                "clusters": len(clusters),
                "assignments": len(routed),
                "unassigned": len(unassigned),
                "metrics": metrics.to_dict(),
            })

        return SimulationResult(
            requests=requests,
            vehicles=vehicles,
            clusters=clusters,
            assignments=routed,
            unassigned_requests=unassigned,
            metrics=metrics,
        )

    def calculate_metrics(
        self, requests: Sequence[RideRequest], assignments: Sequence[Assignment]
    ) -> SimulationMetrics:
        """
        Calculate the KPIs of a set of assignments.

        - percentage_matched: share of requests served by some vehicle
        - average_detour_distance: extra km per served passenger of the
          shared routes over the sequential tours
        - total_distance_saved: sequential km minus shared km

        Args:
            requests: All requests of the run
            assignments: Routed assignments (route[0] is the vehicle start)

        Returns:
            SimulationMetrics (all zero for no requests)
        """
        if not requests:
            return SimulationMetrics()

        by_id: Dict[str, RideRequest] = {r.id: r for r in requests}
        matched_ids = utils.flatten_ids(a.request_ids for a in assignments) & by_id.keys()
        percentage_matched = len(matched_ids) / len(requests) * 100

        optimized_km = 0.0
        sequential_km = 0.0
        served = 0
        for assignment in assignments:
            if len(assignment.route) < 2:
                continue
            served_requests: List[RideRequest] = [
                by_id[rid] for rid in assignment.request_ids if rid in by_id
            ]
            optimized_km += utils.route_distance(assignment.route, self.routing_engine.distance)
            sequential_km += sequential_route_distance(
                assignment.route[0], served_requests, self.routing_engine.distance
            )
            served += len(served_requests)

        average_detour = (optimized_km - sequential_km) / served if served > 0 else 0.0

        return SimulationMetrics(
            percentage_matched=percentage_matched,
            average_detour_distance=average_detour,
            total_distance_saved=sequential_km - optimized_km,
        )


CLUSTERING_STRATEGIES = ("dbscan", "kmeans")
MATCHING_STRATEGIES = ("genetic", "greedy")


def create_service(
    clustering: str = "dbscan",
    matching: str = "genetic",
    seed: Optional[int] = None,
    now: Optional[datetime] = None,
    hotspot_count: int = 0,
    on_event: Optional[EventSink] = None,
) -> SimulationService:
    """
    Build a SimulationService from strategy names.

    The data generator and the strategies are seeded independently from the
    same seed, and the service clock is pinned to `now`, so two services
    built with the same seed and `now` see identical requests and vehicles.

    Raises:
        ConfigurationError: If a strategy name is unknown
    """
    if clustering not in CLUSTERING_STRATEGIES:
        raise ConfigurationError(
            f"Unknown clustering strategy '{clustering}'. Options: {', '.join(CLUSTERING_STRATEGIES)}"
        )
    if matching not in MATCHING_STRATEGIES:
        raise ConfigurationError(
            f"Unknown matching strategy '{matching}'. Options: {', '.join(MATCHING_STRATEGIES)}"
        )

    now = now if now is not None else datetime.now()

    if clustering == "dbscan":
        clusterer = DBSCANClustering(on_event=on_event)
    else:
        clusterer = KMeansClustering(seed=seed, on_event=on_event)

    if matching == "genetic":
        matcher = GeneticMatcher(seed=seed, on_event=on_event)
    else:
        matcher = GreedyMatcher(on_event=on_event)

    return SimulationService(
        data_adapter=RandomDataGenerator(seed=seed, now=now, hotspot_count=hotspot_count),
        clustering_strategy=clusterer,
        matching_strategy=matcher,
        routing_engine=StraightLineRouter(),
        clock=lambda: now,
        on_event=on_event,
    )
