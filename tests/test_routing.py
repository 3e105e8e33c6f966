"""
Tests for the straight-line routing engine.
"""
import pytest

from rideshare.routing import StraightLineRouter
from rideshare.utils import haversine_distance

from conftest import ORIGIN, offset


def test_calculate_route_returns_copy():
    points = [ORIGIN, offset(ORIGIN, north_km=1.0)]
    route = StraightLineRouter().calculate_route(points)
    assert route == points
    assert route is not points


def test_total_distance():
    route = [ORIGIN, offset(ORIGIN, north_km=1.0), offset(ORIGIN, north_km=3.0)]
    assert StraightLineRouter().total_distance(route) == pytest.approx(3.0, abs=0.01)


@pytest.mark.parametrize("route", [[], [ORIGIN]])
def test_total_distance_of_trivial_route(route):
    assert StraightLineRouter().total_distance(route) == 0.0


def test_distance_is_haversine():
    target = offset(ORIGIN, east_km=2.0)
    assert StraightLineRouter().distance(ORIGIN, target) == haversine_distance(ORIGIN, target)


class TestDetourDistance:

    def test_waypoint_on_the_way(self):
        router = StraightLineRouter()
        detour = router.detour_distance(ORIGIN, offset(ORIGIN, north_km=1.0), offset(ORIGIN, north_km=2.0))
        assert detour == pytest.approx(0.0, abs=1e-3)

    def test_waypoint_off_the_way(self):
        """A waypoint 1 km off the midpoint turns a 2 km trip into two legs of about 1.41 km."""
        router = StraightLineRouter()
        waypoint = offset(ORIGIN, north_km=1.0, east_km=1.0)
        detour = router.detour_distance(ORIGIN, waypoint, offset(ORIGIN, north_km=2.0))
        assert detour == pytest.approx(2 * 2 ** 0.5 - 2.0, abs=0.01)
        assert detour > 0
