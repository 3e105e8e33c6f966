"""
Tests for the assignment fitness model.
"""
import pytest

from rideshare.scoring import (
    UNASSIGNED,
    FitnessWeights,
    build_vehicle_route,
    calculate_fitness,
    evaluate_solution,
    group_by_vehicle,
    vehicle_detour,
    vehicle_loads,
)

from conftest import ORIGIN, make_cluster, make_request, make_vehicle, offset


@pytest.fixture
def clusters():
    return [
        make_cluster("C1", [make_request("R1"), make_request("R2")]),
        make_cluster("C2", [make_request("R3", pickup=offset(ORIGIN, east_km=1.0))]),
        make_cluster("C3", [make_request("R4", pickup=offset(ORIGIN, north_km=1.0))]),
    ]


@pytest.fixture
def vehicles():
    return [make_vehicle("V01"), make_vehicle("V02", offset(ORIGIN, east_km=1.0))]


def test_group_by_vehicle_orders_by_vehicle_index(clusters):
    grouped = group_by_vehicle([1, UNASSIGNED, 0], clusters)
    assert list(grouped) == [0, 1]
    assert [c.id for c in grouped[0]] == ["C3"]
    assert [c.id for c in grouped[1]] == ["C1"]


def test_vehicle_loads(clusters):
    assert vehicle_loads([0, 0, UNASSIGNED], clusters, 2) == [3, 0]


def test_build_vehicle_route_pickups_then_dropoffs(clusters):
    route = build_vehicle_route(ORIGIN, clusters[:2])
    requests = [r for c in clusters[:2] for r in c.requests]
    assert route[0] == ORIGIN
    assert route[1:4] == [r.pickup_location for r in requests]
    assert route[4:] == [r.dropoff_location for r in requests]


def test_vehicle_detour_of_single_co_located_passenger():
    """Vehicle at the pickup: the shared route equals the direct trip."""
    cluster = make_cluster("C1", [make_request("R1")])
    assert vehicle_detour(make_vehicle("V01"), [cluster]) == pytest.approx(0.0, abs=1e-9)


class TestEvaluateSolution:

    def test_nothing_assigned(self, clusters, vehicles):
        result = evaluate_solution([UNASSIGNED] * 3, clusters, vehicles, 2.0)
        assert result.assignment_ratio == 0.0
        assert result.used_vehicles == 0
        assert result.fitness == pytest.approx(-0.1 * 2)

    def test_everything_assigned(self, clusters, vehicles):
        result = evaluate_solution([0, 1, 0], clusters, vehicles, 2.0)
        assert result.assignment_ratio == 1.0
        assert result.assigned_requests == 4
        assert result.used_vehicles == 2
        assert result.vehicle_utilization == 1.0
        assert result.normalized_detour <= 1.0
        assert result.fitness == pytest.approx(0.8 - 0.15 * result.normalized_detour + 0.05)

    def test_more_assigned_scores_higher(self, clusters, vehicles):
        partial = calculate_fitness([0, UNASSIGNED, UNASSIGNED], clusters, vehicles, 2.0)
        full = calculate_fitness([0, 1, 0], clusters, vehicles, 2.0)
        assert full > partial

    def test_normalized_detour_capped_at_one(self, vehicles):
        far = make_cluster("C1", [make_request("R1", pickup=offset(ORIGIN, east_km=20.0))])
        result = evaluate_solution([0], [far], vehicles, 2.0)
        assert result.normalized_detour == 1.0

    def test_custom_weights(self, clusters, vehicles):
        weights = FitnessWeights(assignment=1.0, detour=0.0, utilization=0.0, unused_penalty=0.0)
        result = evaluate_solution([0, UNASSIGNED, UNASSIGNED], clusters, vehicles, 2.0, weights)
        assert result.fitness == pytest.approx(0.5)

    def test_non_positive_detour_scale(self, clusters, vehicles):
        result = evaluate_solution([UNASSIGNED] * 3, clusters, vehicles, 0.0)
        assert result.normalized_detour == 0.0
