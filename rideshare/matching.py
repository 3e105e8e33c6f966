# rideshare-simulator/rideshare/matching.py
"""
Matching strategies for the Dynamic Ride-Sharing Simulator.

This module assigns clusters of ride requests to vehicles. Two strategies
are available:

1. **Greedy** (baseline): Largest cluster first, each to the nearest vehicle
   that still has enough seats and is within the detour limit.
   Simple and fast, but early choices can block better ones later.

2. **Genetic**: Evolves a population of complete assignments with tournament
   selection, single-point crossover, mutation and repair, keeping the best
   candidates each generation. Idle vehicles are then offered the clusters
   the search left unassigned, under progressively relaxed detour limits.

Both strategies respect seat capacity and never modify the vehicles they are
given: seat bookkeeping happens in per-candidate ledgers (lists indexed by
vehicle position).
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from . import config, utils
from .exceptions import ConfigurationError
from .interfaces import EventSink
from .models import Assignment, Cluster, MatchConstraints, Vehicle
from .scoring import (
    UNASSIGNED,
    FitnessBreakdown,
    FitnessWeights,
    build_vehicle_route,
    evaluate_solution,
    group_by_vehicle,
    vehicle_loads,
)

logger = logging.getLogger(__name__)

Solution = List[int]


def solution_to_assignments(
    solution: Sequence[int],
    clusters: Sequence[Cluster],
    vehicles: Sequence[Vehicle],
) -> List[Assignment]:
    """
    Convert a solution into one Assignment per vehicle that serves a cluster.

    Request ids are concatenated over the vehicle's clusters and the route
    is [vehicle location, all pickups, all dropoffs].
    """
    assignments: List[Assignment] = []
    for vehicle_idx, assigned in group_by_vehicle(solution, clusters).items():
        vehicle = vehicles[vehicle_idx]
        assignments.append(Assignment(
            vehicle_id=vehicle.id,
            request_ids=[r.id for cluster in assigned for r in cluster.requests],
            route=build_vehicle_route(vehicle.location, assigned),
        ))
    return assignments


class _AssignmentProblem:
    """
    Read-only view of one matching problem plus a fitness cache.

    Clusters and vehicles are addressed by position. Vehicle-to-centroid
    distances are computed once up front.
    """

    def __init__(
        self,
        clusters: Sequence[Cluster],
        vehicles: Sequence[Vehicle],
        max_detour_km: float,
        weights: FitnessWeights,
    ) -> None:
        self.clusters = list(clusters)
        self.vehicles = list(vehicles)
        self.max_detour_km = max_detour_km
        self.weights = weights
        self.sizes = [c.size for c in self.clusters]
        self.seats = [v.available_seats for v in self.vehicles]
        self.distances = [
            [utils.haversine_distance(v.location, c.centroid) for v in self.vehicles]
            for c in self.clusters
        ]
        self._cache: Dict[Tuple[int, ...], FitnessBreakdown] = {}

    @property
    def cluster_count(self) -> int:
        return len(self.clusters)

    @property
    def vehicle_count(self) -> int:
        return len(self.vehicles)

    def within_range(self, cluster_idx: int, vehicle_idx: int, factor: float = 1.0) -> bool:
        return self.distances[cluster_idx][vehicle_idx] <= self.max_detour_km * factor

    def feasible_vehicles(self, cluster_idx: int, remaining: Sequence[int]) -> List[int]:
        """Vehicles with enough free seats in the ledger and within the detour limit."""
        size = self.sizes[cluster_idx]
        return [
            v for v in range(self.vehicle_count)
            if remaining[v] >= size and self.within_range(cluster_idx, v)
        ]

    def remaining_seats(self, solution: Sequence[int]) -> List[int]:
        loads = vehicle_loads(solution, self.clusters, self.vehicle_count)
        return [seats - load for seats, load in zip(self.seats, loads)]

    def evaluate(self, solution: Sequence[int]) -> FitnessBreakdown:
        key = tuple(solution)
        if key not in self._cache:
            self._cache[key] = evaluate_solution(
                solution, self.clusters, self.vehicles, self.max_detour_km, self.weights
            )
        return self._cache[key]

    def fitness(self, solution: Sequence[int]) -> float:
        return self.evaluate(solution).fitness


@dataclass
class EvolutionStats:
    """
    Statistics of the last genetic search.

    Attributes:
        generations: Generations evolved (excluding the initial population)
        best_fitness_history: Incumbent fitness after initialization and
            after each generation
        best_ratio_history: Incumbent assignment ratio, same indexing
        stopped_early: Whether the stagnation limit ended the search
        post_processed_clusters: Clusters assigned by post-processing
        final_fitness: Fitness of the returned solution
        final_assignment_ratio: Assignment ratio of the returned solution
    """
    generations: int = 0
    best_fitness_history: List[float] = field(default_factory=list)
    best_ratio_history: List[float] = field(default_factory=list)
    stopped_early: bool = False
    post_processed_clusters: int = 0
    final_fitness: float = 0.0
    final_assignment_ratio: float = 0.0


class GreedyMatcher:
    """
    Nearest-vehicle greedy matching (baseline strategy).

    Clusters are processed largest first. Each goes to the closest vehicle
    with enough free seats whose distance to the cluster centroid is within
    max_detour_km. Clusters that fit nowhere stay unassigned.
    """

    def __init__(self, on_event: Optional[EventSink] = None) -> None:
        self.on_event = on_event

    def match(
        self,
        clusters: Sequence[Cluster],
        vehicles: Sequence[Vehicle],
        constraints: MatchConstraints,
    ) -> List[Assignment]:
        if not clusters or not vehicles:
            return []

        problem = _AssignmentProblem(clusters, vehicles, constraints.max_detour_km, FitnessWeights())
        solution: Solution = [UNASSIGNED] * problem.cluster_count
        remaining = list(problem.seats)

        order = sorted(range(problem.cluster_count), key=lambda c: problem.sizes[c], reverse=True)
        for cluster_idx in order:
            # Too large for every vehicle that still has seats
            if problem.sizes[cluster_idx] > max(remaining):
                continue

            feasible = problem.feasible_vehicles(cluster_idx, remaining)
            if not feasible:
                continue

            best = min(feasible, key=lambda v: problem.distances[cluster_idx][v])
            solution[cluster_idx] = best
            remaining[best] -= problem.sizes[cluster_idx]

        assignments = solution_to_assignments(solution, problem.clusters, problem.vehicles)
        logger.info(
            f"Greedy matching: {len(assignments)} vehicles used, "
            f"{sum(len(a.request_ids) for a in assignments)} requests assigned"
        )
        if self.on_event is not None:
            self.on_event("matching.completed", {
                "strategy": "greedy",
                "vehicles_used": len(assignments),
                "requests_assigned": sum(len(a.request_ids) for a in assignments),
            })
        return assignments


class GeneticMatcher:
    """
    Genetic algorithm for cluster-to-vehicle assignment.

    A candidate solution holds one gene per cluster: the index of the vehicle
    serving it, or UNASSIGNED. The search:

    1. Seeds a population, part greedy (nearest feasible vehicle) and part
       uniformly random among feasible vehicles.
    2. Each generation keeps the elite unchanged and breeds the rest through
       tournament selection, single-point crossover, per-gene mutation and
       repair.
    3. Stops after max_generations, or earlier when the incumbent has not
       improved for stagnation_limit generations.
    4. Hands still-unassigned clusters to idle vehicles, first within
       max_detour_km and then within the relaxation factors.

    Randomness comes from the injected `rng` (or a `seed`), so runs with the
    same seed and input are identical.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        seed: Optional[int] = None,
        population_size: Optional[int] = None,
        max_generations: Optional[int] = None,
        stagnation_limit: Optional[int] = None,
        mutation_rate: Optional[float] = None,
        crossover_rate: Optional[float] = None,
        elitism_rate: Optional[float] = None,
        tournament_size: Optional[int] = None,
        greedy_seed_fraction: Optional[float] = None,
        weights: Optional[FitnessWeights] = None,
        relaxation_factors: Optional[Sequence[float]] = None,
        post_process: bool = True,
        on_event: Optional[EventSink] = None,
    ) -> None:
        self._rng = rng if rng is not None else random.Random(seed)
        self.population_size = config.POPULATION_SIZE if population_size is None else population_size
        self.max_generations = config.MAX_GENERATIONS if max_generations is None else max_generations
        self.stagnation_limit = config.STAGNATION_LIMIT if stagnation_limit is None else stagnation_limit
        self.mutation_rate = config.MUTATION_RATE if mutation_rate is None else mutation_rate
        self.crossover_rate = config.CROSSOVER_RATE if crossover_rate is None else crossover_rate
        self.elitism_rate = config.ELITISM_RATE if elitism_rate is None else elitism_rate
        self.tournament_size = config.TOURNAMENT_SIZE if tournament_size is None else tournament_size
        self.greedy_seed_fraction = (
            config.GREEDY_SEED_FRACTION if greedy_seed_fraction is None else greedy_seed_fraction
        )
        self.weights = weights if weights is not None else FitnessWeights()
        self.relaxation_factors = tuple(
            config.RELAXATION_FACTORS if relaxation_factors is None else relaxation_factors
        )
        self.post_process = post_process
        self.on_event = on_event
        self.last_stats = EvolutionStats()

        self._validate()

    def _validate(self) -> None:
        if self.population_size < 2:
            raise ConfigurationError(f"population_size must be at least 2, got {self.population_size}")
        if self.max_generations < 0:
            raise ConfigurationError("max_generations must be non-negative")
        if self.stagnation_limit < 1:
            raise ConfigurationError("stagnation_limit must be at least 1")
        if self.tournament_size < 1:
            raise ConfigurationError("tournament_size must be at least 1")
        for name in ("mutation_rate", "crossover_rate", "elitism_rate", "greedy_seed_fraction"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must be within [0, 1], got {value}")
        if any(factor <= 0 for factor in self.relaxation_factors):
            raise ConfigurationError("relaxation_factors must be positive")

    def _emit(self, event: str, **payload) -> None:
        if self.on_event is not None:
            self.on_event(event, payload)

    # -------------------------------------------------------------------------
    # Population
    # -------------------------------------------------------------------------

    def _initial_population(self, problem: _AssignmentProblem) -> List[Solution]:
        """
        Build the initial population.

        The first greedy_seed_fraction of candidates assign each cluster to
        its nearest feasible vehicle; the others pick uniformly among the
        feasible vehicles. Each candidate reserves seats in its own ledger.
        """
        greedy_count = int(self.population_size * self.greedy_seed_fraction)
        population: List[Solution] = []

        for i in range(self.population_size):
            solution: Solution = [UNASSIGNED] * problem.cluster_count
            remaining = list(problem.seats)

            for cluster_idx in range(problem.cluster_count):
                feasible = problem.feasible_vehicles(cluster_idx, remaining)
                if not feasible:
                    continue

                if i < greedy_count:
                    chosen = min(feasible, key=lambda v: problem.distances[cluster_idx][v])
                else:
                    chosen = self._rng.choice(feasible)

                solution[cluster_idx] = chosen
                remaining[chosen] -= problem.sizes[cluster_idx]

            population.append(solution)

        return population

    def _tournament(self, population: List[Solution], problem: _AssignmentProblem) -> Solution:
        """Return a copy of the fittest of tournament_size randomly sampled candidates."""
        contenders = [population[self._rng.randrange(len(population))] for _ in range(self.tournament_size)]
        return list(max(contenders, key=problem.fitness))

    def _crossover(self, parent1: Solution, parent2: Solution) -> Tuple[Solution, Solution]:
        """
        Single-point crossover.

        The split index lies in [1, len - 1], so each child takes genes from
        both parents. Single-gene parents are returned as copies.
        """
        if len(parent1) < 2:
            return list(parent1), list(parent2)
        split = self._rng.randrange(1, len(parent1))
        return parent1[:split] + parent2[split:], parent2[:split] + parent1[split:]

    def _mutate(self, solution: Solution, problem: _AssignmentProblem) -> None:
        """
        Reassign each gene with probability mutation_rate.

        The new value is drawn uniformly from the vehicles that are feasible
        given the candidate's current seat ledger (other than the current one)
        plus UNASSIGNED. Genes with no alternative are left alone.
        """
        remaining = problem.remaining_seats(solution)

        for cluster_idx, current in enumerate(solution):
            if self._rng.random() >= self.mutation_rate:
                continue

            options = [v for v in problem.feasible_vehicles(cluster_idx, remaining) if v != current]
            if current != UNASSIGNED:
                options.append(UNASSIGNED)
            if not options:
                continue

            chosen = self._rng.choice(options)
            size = problem.sizes[cluster_idx]
            if current != UNASSIGNED:
                remaining[current] += size
            if chosen != UNASSIGNED:
                remaining[chosen] -= size
            solution[cluster_idx] = chosen

    def _repair(self, solution: Solution, problem: _AssignmentProblem) -> None:
        """
        Restore feasibility after crossover and mutation.

        Seat usage is recomputed from scratch. Clusters outside the detour
        limit are unassigned, and clusters that would overflow their vehicle
        are unassigned in array order (earlier clusters keep their seats).
        """
        remaining = list(problem.seats)

        for cluster_idx, vehicle_idx in enumerate(solution):
            if vehicle_idx == UNASSIGNED:
                continue

            size = problem.sizes[cluster_idx]
            if not problem.within_range(cluster_idx, vehicle_idx) or remaining[vehicle_idx] < size:
                solution[cluster_idx] = UNASSIGNED
                continue

            remaining[vehicle_idx] -= size

    def _next_generation(self, population: List[Solution], problem: _AssignmentProblem) -> List[Solution]:
        """Elitism plus offspring from selection, crossover, mutation and repair."""
        elite_count = int(self.population_size * self.elitism_rate)
        ranked = sorted(population, key=problem.fitness, reverse=True)
        next_population = [list(s) for s in ranked[:elite_count]]

        while len(next_population) < self.population_size:
            parent1 = self._tournament(population, problem)
            parent2 = self._tournament(population, problem)

            if self._rng.random() < self.crossover_rate:
                child1, child2 = self._crossover(parent1, parent2)
            else:
                child1, child2 = parent1, parent2

            for child in (child1, child2):
                self._mutate(child, problem)
                self._repair(child, problem)

            next_population.append(child1)
            if len(next_population) < self.population_size:
                next_population.append(child2)

        return next_population

    # -------------------------------------------------------------------------
    # Post-processing
    # -------------------------------------------------------------------------

    def _assign_idle_vehicles(self, solution: Solution, problem: _AssignmentProblem) -> int:
        """
        Offer unassigned clusters to vehicles the search left idle.

        For each relaxation factor in turn, unassigned clusters (largest
        first) go to the nearest idle vehicle with enough free seats within
        max_detour_km * factor. Vehicles stay eligible while they have seats.

        Returns:
            Number of clusters assigned
        """
        remaining = problem.remaining_seats(solution)
        idle = [v for v in range(problem.vehicle_count) if remaining[v] == problem.seats[v]]
        assigned = 0

        for factor in self.relaxation_factors:
            unassigned = sorted(
                (c for c, v in enumerate(solution) if v == UNASSIGNED),
                key=lambda c: problem.sizes[c],
                reverse=True,
            )
            if not unassigned or not any(remaining[v] > 0 for v in idle):
                break

            for cluster_idx in unassigned:
                size = problem.sizes[cluster_idx]
                eligible = [
                    v for v in idle
                    if remaining[v] >= size and problem.within_range(cluster_idx, v, factor)
                ]
                if not eligible:
                    continue

                best = min(eligible, key=lambda v: problem.distances[cluster_idx][v])
                solution[cluster_idx] = best
                remaining[best] -= size
                assigned += 1
                logger.debug(
                    f"Post-processing: cluster {problem.clusters[cluster_idx].id} -> "
                    f"vehicle {problem.vehicles[best].id} (factor {factor})"
                )

        return assigned

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    def match(
        self,
        clusters: Sequence[Cluster],
        vehicles: Sequence[Vehicle],
        constraints: MatchConstraints,
    ) -> List[Assignment]:
        """
        Find a cluster-to-vehicle assignment maximizing the fitness.

        Args:
            clusters: Clusters to serve
            vehicles: Available vehicles (not modified)
            constraints: Detour limit between a vehicle and a cluster centroid

        Returns:
            One Assignment per vehicle serving at least one cluster; empty if
            there are no clusters or no vehicles
        """
        self.last_stats = EvolutionStats()
        if not clusters or not vehicles:
            return []

        problem = _AssignmentProblem(clusters, vehicles, constraints.max_detour_km, self.weights)
        stats = self.last_stats

        population = self._initial_population(problem)
        best = list(max(population, key=problem.fitness))
        best_eval = problem.evaluate(best)
        stats.best_fitness_history.append(best_eval.fitness)
        stats.best_ratio_history.append(best_eval.assignment_ratio)
        stale = 0

        for generation in range(1, self.max_generations + 1):
            population = self._next_generation(population, problem)
            stats.generations = generation

            candidate = max(population, key=problem.fitness)
            candidate_eval = problem.evaluate(candidate)

            # The incumbent never trades matched passengers for a better score
            if (candidate_eval.fitness > best_eval.fitness
                    and candidate_eval.assignment_ratio >= best_eval.assignment_ratio):
                best = list(candidate)
                best_eval = candidate_eval
                stale = 0
            else:
                stale += 1

            stats.best_fitness_history.append(best_eval.fitness)
            stats.best_ratio_history.append(best_eval.assignment_ratio)
            self._emit(
                "matching.generation",
                generation=generation,
                best_fitness=best_eval.fitness,
                assignment_ratio=best_eval.assignment_ratio,
            )

            if stale >= self.stagnation_limit:
                stats.stopped_early = True
                break

        logger.debug(
            f"Genetic search: {stats.generations} generations, best fitness {best_eval.fitness:.4f}, "
            f"assignment ratio {best_eval.assignment_ratio:.2f}"
        )

        if self.post_process:
            stats.post_processed_clusters = self._assign_idle_vehicles(best, problem)

        final_eval = problem.evaluate(best)
        stats.final_fitness = final_eval.fitness
        stats.final_assignment_ratio = final_eval.assignment_ratio

        assignments = solution_to_assignments(best, problem.clusters, problem.vehicles)
        logger.info(
            f"Genetic matching: {len(assignments)} vehicles used, "
            f"{final_eval.assigned_requests} requests assigned "
            f"({stats.post_processed_clusters} clusters via post-processing)"
        )
        self._emit(
            "matching.completed",
            strategy="genetic",
            generations=stats.generations,
            stopped_early=stats.stopped_early,
            fitness=final_eval.fitness,
            assignment_ratio=final_eval.assignment_ratio,
            post_processed_clusters=stats.post_processed_clusters,
        )
        return assignments
