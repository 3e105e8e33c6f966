# rideshare-simulator/rideshare/routing.py
"""
Straight-line routing engine.

Routes are the waypoints themselves and distances are great-circle
distances. Road-network routing is deliberately not modeled.
"""

from __future__ import annotations

from typing import List, Sequence

from . import utils
from .models import Coordinate


class StraightLineRouter:
    """Routing engine that drives straight from waypoint to waypoint."""

    def calculate_route(self, points: Sequence[Coordinate]) -> List[Coordinate]:
        """Return the waypoints unchanged, as a new list."""
        return list(points)

    def distance(self, a: Coordinate, b: Coordinate) -> float:
        return utils.haversine_distance(a, b)

    def total_distance(self, route: Sequence[Coordinate]) -> float:
        """Length of a route in km (0 for fewer than two points)."""
        return utils.route_distance(route, self.distance)

    def detour_distance(self, origin: Coordinate, waypoint: Coordinate, destination: Coordinate) -> float:
        """
        Extra distance for going from origin to destination via a waypoint.

        Returns:
            (origin -> waypoint -> destination) - (origin -> destination), in km
        """
        direct = self.distance(origin, destination)
        via = self.distance(origin, waypoint) + self.distance(waypoint, destination)
        return via - direct
