"""
Tests for the genetic and greedy matching strategies.
"""
import copy
import random

import pytest

from rideshare import config
from rideshare.clustering import DBSCANClustering
from rideshare.data import RandomDataGenerator
from rideshare.exceptions import ConfigurationError
from rideshare.matching import GeneticMatcher, GreedyMatcher, _AssignmentProblem, solution_to_assignments
from rideshare.models import Bounds, ClusterParams, MatchConstraints
from rideshare.scoring import UNASSIGNED, FitnessWeights
from rideshare.utils import haversine_distance

from conftest import NOW, ORIGIN, make_cluster, make_request, make_vehicle, offset

BOUNDS = Bounds(40.7, 40.8, -74.0, -73.9)
CONSTRAINTS = MatchConstraints(max_detour_km=2.0)


def random_problem(seed, passengers=30, vehicles=5):
    generator = RandomDataGenerator(seed=seed, now=NOW, hotspot_count=3)
    requests = generator.generate_requests(passengers, BOUNDS)
    fleet = generator.generate_vehicles_near(vehicles, requests, BOUNDS)
    clusters = DBSCANClustering().cluster(
        requests, ClusterParams(time_window_minutes=60, max_distance_km=2.0, reference_time=NOW)
    )
    return clusters, fleet


def assert_capacity_respected(assignments, vehicles):
    seats = {v.id: v.available_seats for v in vehicles}
    for a in assignments:
        assert len(a.request_ids) <= seats[a.vehicle_id]


def assert_within_relaxed_detour(assignments, clusters, vehicles, max_detour_km):
    limit = max_detour_km * max(config.RELAXATION_FACTORS)
    cluster_of = {rid: c for c in clusters for rid in c.request_ids}
    location = {v.id: v.location for v in vehicles}
    for a in assignments:
        for rid in a.request_ids:
            assert haversine_distance(location[a.vehicle_id], cluster_of[rid].centroid) <= limit + 1e-9


def test_solution_to_assignments():
    clusters = [
        make_cluster("C1", [make_request("R1"), make_request("R2")]),
        make_cluster("C2", [make_request("R3")]),
        make_cluster("C3", [make_request("R4")]),
    ]
    vehicles = [make_vehicle("V01"), make_vehicle("V02")]

    assignments = solution_to_assignments([1, UNASSIGNED, 1], clusters, vehicles)

    assert len(assignments) == 1
    assert assignments[0].vehicle_id == "V02"
    assert assignments[0].request_ids == ["R1", "R2", "R4"]
    assert len(assignments[0].route) == 1 + 3 + 3


class TestGeneticMatcher:

    def test_single_cluster_single_vehicle(self):
        cluster = make_cluster("C1", [make_request("R1"), make_request("R2")])
        vehicle = make_vehicle("V01", capacity=4)

        assignments = GeneticMatcher(seed=1).match([cluster], [vehicle], CONSTRAINTS)

        assert len(assignments) == 1
        assert assignments[0].vehicle_id == "V01"
        assert sorted(assignments[0].request_ids) == ["R1", "R2"]
        r1, r2 = cluster.requests
        assert assignments[0].route == [
            vehicle.location,
            r1.pickup_location, r2.pickup_location,
            r1.dropoff_location, r2.dropoff_location,
        ]

    def test_capacity_two_serves_one_of_two_pairs(self):
        clusters = [
            make_cluster("C1", [make_request("R1"), make_request("R2")]),
            make_cluster("C2", [make_request("R3", pickup=offset(ORIGIN, east_km=0.5)),
                                make_request("R4", pickup=offset(ORIGIN, east_km=0.5))]),
        ]
        vehicle = make_vehicle("V01", capacity=2)
        matcher = GeneticMatcher(seed=3)

        assignments = matcher.match(clusters, [vehicle], CONSTRAINTS)

        assert len(assignments) == 1
        assert len(assignments[0].request_ids) == 2
        assert matcher.last_stats.final_assignment_ratio == pytest.approx(0.5)

    def test_no_vehicles(self):
        cluster = make_cluster("C1", [make_request("R1")])
        assert GeneticMatcher(seed=1).match([cluster], [], CONSTRAINTS) == []

    def test_no_clusters(self):
        assert GeneticMatcher(seed=1).match([], [make_vehicle("V01")], CONSTRAINTS) == []

    def test_cluster_out_of_range_stays_unassigned(self):
        far = make_cluster("C1", [make_request("R1", pickup=offset(ORIGIN, north_km=10.0))])
        assert GeneticMatcher(seed=1).match([far], [make_vehicle("V01")], CONSTRAINTS) == []

    def test_idle_vehicle_takes_cluster_under_relaxed_limit(self):
        """2.5 km away: outside 2 km but inside 1.5 * 2 km."""
        near = make_cluster("C1", [make_request("R1", pickup=offset(ORIGIN, north_km=2.5))])
        matcher = GeneticMatcher(seed=1)

        assignments = matcher.match([near], [make_vehicle("V01")], CONSTRAINTS)

        assert [a.request_ids for a in assignments] == [["R1"]]
        assert matcher.last_stats.post_processed_clusters == 1

    def test_post_processing_can_be_disabled(self):
        near = make_cluster("C1", [make_request("R1", pickup=offset(ORIGIN, north_km=2.5))])
        matcher = GeneticMatcher(seed=1, post_process=False)
        assert matcher.match([near], [make_vehicle("V01")], CONSTRAINTS) == []

    def test_cluster_larger_than_any_vehicle(self):
        big = make_cluster("C1", [make_request(f"R{i}") for i in range(7)])
        assert GeneticMatcher(seed=1).match([big], [make_vehicle("V01", capacity=6)], CONSTRAINTS) == []

    def test_respects_available_seats(self):
        pair = make_cluster("C1", [make_request("R1"), make_request("R2")])
        vehicle = make_vehicle("V01", capacity=4)
        vehicle.available_seats = 1
        assert GeneticMatcher(seed=1).match([pair], [vehicle], CONSTRAINTS) == []

    @pytest.mark.parametrize("seed", [1, 2, 3, 4])
    def test_capacity_and_detour_invariants(self, seed):
        clusters, vehicles = random_problem(seed)

        assignments = GeneticMatcher(seed=seed).match(clusters, vehicles, CONSTRAINTS)

        assert_capacity_respected(assignments, vehicles)
        assert_within_relaxed_detour(assignments, clusters, vehicles, CONSTRAINTS.max_detour_km)
        served = [rid for a in assignments for rid in a.request_ids]
        assert len(served) == len(set(served))

    @pytest.mark.parametrize("seed", [1, 2, 3])
    def test_incumbent_never_regresses(self, seed):
        clusters, vehicles = random_problem(seed, passengers=40, vehicles=4)
        matcher = GeneticMatcher(seed=seed)

        matcher.match(clusters, vehicles, CONSTRAINTS)

        stats = matcher.last_stats
        assert len(stats.best_fitness_history) == stats.generations + 1
        assert all(b >= a for a, b in zip(stats.best_fitness_history, stats.best_fitness_history[1:]))
        assert all(b >= a for a, b in zip(stats.best_ratio_history, stats.best_ratio_history[1:]))
        assert stats.generations <= config.MAX_GENERATIONS

    def test_stagnation_stops_early(self):
        cluster = make_cluster("C1", [make_request("R1")])
        matcher = GeneticMatcher(seed=1, stagnation_limit=5, max_generations=100)

        matcher.match([cluster], [make_vehicle("V01")], CONSTRAINTS)

        assert matcher.last_stats.stopped_early
        assert matcher.last_stats.generations == 5

    def test_vehicles_not_mutated(self):
        clusters, vehicles = random_problem(5)
        before = copy.deepcopy(vehicles)

        GeneticMatcher(seed=5).match(clusters, vehicles, CONSTRAINTS)

        assert vehicles == before

    def test_same_seed_same_result(self):
        clusters, vehicles = random_problem(6)
        first = GeneticMatcher(seed=9).match(clusters, vehicles, CONSTRAINTS)
        second = GeneticMatcher(rng=random.Random(9)).match(clusters, vehicles, CONSTRAINTS)
        assert first == second

    def test_assignments_ordered_by_vehicle(self):
        clusters, vehicles = random_problem(2)
        order = {v.id: i for i, v in enumerate(vehicles)}
        assignments = GeneticMatcher(seed=2).match(clusters, vehicles, CONSTRAINTS)
        indices = [order[a.vehicle_id] for a in assignments]
        assert indices == sorted(indices)

    def test_emits_events(self, events):
        cluster = make_cluster("C1", [make_request("R1")])
        GeneticMatcher(seed=1, max_generations=3, on_event=events).match(
            [cluster], [make_vehicle("V01")], CONSTRAINTS
        )
        names = [name for name, _ in events.received]
        assert names.count("matching.generation") == 3
        assert names[-1] == "matching.completed"

    @pytest.mark.parametrize("kwargs", [
        {"population_size": 1},
        {"mutation_rate": 1.5},
        {"crossover_rate": -0.1},
        {"elitism_rate": 2.0},
        {"tournament_size": 0},
        {"stagnation_limit": 0},
        {"max_generations": -1},
        {"relaxation_factors": (1.0, 0.0)},
    ])
    def test_invalid_settings(self, kwargs):
        with pytest.raises(ConfigurationError):
            GeneticMatcher(**kwargs)


def build_problem(clusters, vehicles, max_detour_km=2.0):
    return _AssignmentProblem(clusters, vehicles, max_detour_km, FitnessWeights())


def singles(count, pickup=ORIGIN):
    return [make_cluster(f"C{i + 1}", [make_request(f"R{i + 1}", pickup=pickup)]) for i in range(count)]


class TestGeneticOperators:

    def test_initial_population_greedy_share_is_nearest_feasible(self):
        """V02 sits on the pickups but has two seats; the third cluster falls back to V01, 1 km away."""
        vehicles = [make_vehicle("V01", offset(ORIGIN, east_km=1.0)), make_vehicle("V02", capacity=2)]
        problem = build_problem(singles(3), vehicles)
        matcher = GeneticMatcher(rng=random.Random(1), population_size=10, greedy_seed_fraction=0.3)

        population = matcher._initial_population(problem)

        assert len(population) == 10
        assert population[:3] == [[1, 1, 0]] * 3
        for solution in population:
            assert solution.count(1) <= 2
            assert UNASSIGNED not in solution

    def test_repair_unassigns_out_of_range_cluster(self):
        far = make_cluster("C1", [make_request("R1", pickup=offset(ORIGIN, north_km=10.0))])
        near = make_cluster("C2", [make_request("R2")])
        problem = build_problem([far, near], [make_vehicle("V01")])
        solution = [0, 0]

        GeneticMatcher(rng=random.Random(1))._repair(solution, problem)

        assert solution == [UNASSIGNED, 0]

    def test_repair_drops_overflow_in_array_order(self):
        """Three seats, three pairs: the first pair keeps its seats, the later ones are dropped."""
        pairs = [
            make_cluster(f"C{i}", [make_request(f"R{i}a"), make_request(f"R{i}b")])
            for i in range(1, 4)
        ]
        problem = build_problem(pairs, [make_vehicle("V01", capacity=3)])
        solution = [0, 0, 0]

        GeneticMatcher(rng=random.Random(1))._repair(solution, problem)

        assert solution == [0, UNASSIGNED, UNASSIGNED]

    def test_mutate_never_repicks_current_vehicle(self):
        problem = build_problem(singles(3), [make_vehicle("V01"), make_vehicle("V02")])
        seen = set()

        for seed in range(20):
            solution = [0, 0, 0]
            GeneticMatcher(rng=random.Random(seed), mutation_rate=1.0)._mutate(solution, problem)
            assert 0 not in solution
            seen.update(solution)

        assert seen == {1, UNASSIGNED}

    def test_mutate_with_zero_rate_leaves_solution(self):
        problem = build_problem(singles(3), [make_vehicle("V01"), make_vehicle("V02")])
        solution = [0, 1, UNASSIGNED]
        GeneticMatcher(rng=random.Random(1), mutation_rate=0.0)._mutate(solution, problem)
        assert solution == [0, 1, UNASSIGNED]

    @pytest.mark.parametrize("seed", range(10))
    def test_crossover_children_are_complementary(self, seed):
        matcher = GeneticMatcher(rng=random.Random(seed))

        child1, child2 = matcher._crossover([0] * 5, [1] * 5)

        split = child1.index(1)
        assert 1 <= split <= 4
        assert child1 == [0] * split + [1] * (5 - split)
        assert child2 == [1] * split + [0] * (5 - split)

    def test_crossover_of_single_gene_copies_parents(self):
        parent1, parent2 = [0], [1]
        child1, child2 = GeneticMatcher(rng=random.Random(1))._crossover(parent1, parent2)
        assert (child1, child2) == ([0], [1])
        assert child1 is not parent1

    def test_next_generation_keeps_elite(self):
        vehicles = [make_vehicle("V01"), make_vehicle("V02", offset(ORIGIN, east_km=1.5), capacity=2)]
        problem = build_problem(singles(5), vehicles)
        matcher = GeneticMatcher(
            rng=random.Random(3), population_size=10, elitism_rate=0.2,
            greedy_seed_fraction=0.0, mutation_rate=1.0,
        )
        population = matcher._initial_population(problem)
        elite = sorted(population, key=problem.fitness, reverse=True)[:2]

        next_population = matcher._next_generation(population, problem)

        assert len(next_population) == 10
        assert next_population[:2] == elite
        assert all(kept is not original for kept, original in zip(next_population[:2], elite))


class TestGreedyMatcher:

    def test_largest_cluster_first(self):
        """One 3-seat vehicle: the trio wins over the earlier single."""
        single = make_cluster("C1", [make_request("R1")])
        trio = make_cluster("C2", [make_request(f"R{i}") for i in range(2, 5)])

        assignments = GreedyMatcher().match([single, trio], [make_vehicle("V01", capacity=3)], CONSTRAINTS)

        assert [a.request_ids for a in assignments] == [["R2", "R3", "R4"]]

    def test_nearest_vehicle(self):
        cluster = make_cluster("C1", [make_request("R1", pickup=offset(ORIGIN, east_km=1.0))])
        vehicles = [make_vehicle("V01"), make_vehicle("V02", offset(ORIGIN, east_km=0.9))]

        assignments = GreedyMatcher().match([cluster], vehicles, CONSTRAINTS)

        assert [a.vehicle_id for a in assignments] == ["V02"]

    def test_out_of_range(self):
        far = make_cluster("C1", [make_request("R1", pickup=offset(ORIGIN, north_km=2.5))])
        assert GreedyMatcher().match([far], [make_vehicle("V01")], CONSTRAINTS) == []

    @pytest.mark.parametrize("seed", [1, 2])
    def test_capacity_respected(self, seed):
        clusters, vehicles = random_problem(seed)
        assignments = GreedyMatcher().match(clusters, vehicles, CONSTRAINTS)
        assert_capacity_respected(assignments, vehicles)
        assert_within_relaxed_detour(assignments, clusters, vehicles, CONSTRAINTS.max_detour_km)

    def test_degenerate_inputs(self):
        assert GreedyMatcher().match([], [make_vehicle("V01")], CONSTRAINTS) == []
        assert GreedyMatcher().match([make_cluster("C1", [make_request("R1")])], [], CONSTRAINTS) == []
