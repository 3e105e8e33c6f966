# rideshare-simulator/rideshare/utils.py
"""
Utility functions for the Dynamic Ride-Sharing Simulator.

Provides geographic calculations (great-circle distance, centroids, route
lengths) and small time helpers shared by the clustering, matching and
simulation modules.
"""

from __future__ import annotations

import logging
import math
import random
from datetime import datetime
from typing import Callable, Iterable, Sequence, Set

from . import config
from .exceptions import InvalidInputError
from .models import Bounds, Coordinate

logger = logging.getLogger(__name__)

DistanceFn = Callable[[Coordinate, Coordinate], float]


def haversine_distance(a: Coordinate, b: Coordinate) -> float:
    """
    Calculate the great-circle distance between two points on Earth.

    Uses the Haversine formula to compute the distance between two GPS coordinates.
    This accounts for Earth's curvature, making it accurate for city-scale distances.

    Args:
        a: First point in decimal degrees
        b: Second point in decimal degrees

    Returns:
        Distance in kilometers between the two points

    Example:
        >>> round(haversine_distance(Coordinate(40.70, -74.00), Coordinate(40.71, -74.00)), 3)
        1.112
    """
    lat1, lng1, lat2, lng2 = map(math.radians, [a.lat, a.lng, b.lat, b.lng])

    dlat = lat2 - lat1
    dlng = lng2 - lng1
    h = math.sin(dlat / 2)**2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2)**2
    # Floating error can push h marginally above 1 for antipodal points
    c = 2 * math.asin(math.sqrt(min(h, 1.0)))

    return c * config.EARTH_RADIUS_KM


def calculate_centroid(points: Sequence[Coordinate]) -> Coordinate:
    """
    Calculate the center point of multiple coordinates.

    Latitude and longitude are averaged independently, which is accurate
    enough for points a few kilometers apart.

    Args:
        points: Coordinates to average

    Returns:
        The mean coordinate

    Raises:
        InvalidInputError: If no points are given
    """
    if not points:
        raise InvalidInputError("Cannot calculate centroid of an empty set of coordinates")

    lat = sum(p.lat for p in points) / len(points)
    lng = sum(p.lng for p in points) / len(points)
    return Coordinate(lat, lng)


def route_distance(points: Sequence[Coordinate], distance_fn: DistanceFn = haversine_distance) -> float:
    """
    Total length of a route visiting the points in order.

    Args:
        points: Waypoints in driving order
        distance_fn: Leg distance function (defaults to haversine)

    Returns:
        Sum of consecutive leg distances in km (0 for fewer than two points)
    """
    return sum(distance_fn(points[i], points[i + 1]) for i in range(len(points) - 1))


def random_location(bounds: Bounds, rng: random.Random) -> Coordinate:
    """Draw a point uniformly inside the bounds."""
    return Coordinate(
        bounds.min_lat + rng.random() * (bounds.max_lat - bounds.min_lat),
        bounds.min_lng + rng.random() * (bounds.max_lng - bounds.min_lng),
    )


def jitter_location(center: Coordinate, max_offset_degrees: float, rng: random.Random) -> Coordinate:
    """Offset a point by up to max_offset_degrees in each axis."""
    return Coordinate(
        center.lat + rng.uniform(-max_offset_degrees, max_offset_degrees),
        center.lng + rng.uniform(-max_offset_degrees, max_offset_degrees),
    )


def clamp_to_bounds(point: Coordinate, bounds: Bounds) -> Coordinate:
    """Move a point onto the nearest position inside the bounds."""
    return Coordinate(
        min(max(point.lat, bounds.min_lat), bounds.max_lat),
        min(max(point.lng, bounds.min_lng), bounds.max_lng),
    )


def minutes_between(a: datetime, b: datetime) -> float:
    """Absolute difference between two timestamps in minutes."""
    return abs((a - b).total_seconds()) / 60


def flatten_ids(groups: Iterable[Iterable[str]]) -> Set[str]:
    """Union of all ids in the given groups."""
    return {item for group in groups for item in group}
