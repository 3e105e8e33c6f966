"""
Shared fixtures for the ride-sharing simulator tests.
"""
import math
import os
import sys
from datetime import datetime, timedelta
from typing import Optional

import pytest

# Make the CLI and benchmark scripts at the repository root importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from rideshare.models import Cluster, Coordinate, RideRequest, Vehicle
from rideshare.utils import calculate_centroid

NOW = datetime(2024, 5, 1, 12, 0, 0)
ORIGIN = Coordinate(40.75, -73.95)

# 0.01 degrees of latitude is about 1.112 km
KM_PER_DEG_LAT = 111.19


def offset(point: Coordinate, north_km: float = 0.0, east_km: float = 0.0) -> Coordinate:
    """Approximate point the given distances north and east of `point`."""
    dlat = north_km / KM_PER_DEG_LAT
    dlng = east_km / (KM_PER_DEG_LAT * math.cos(math.radians(point.lat)))
    return Coordinate(point.lat + dlat, point.lng + dlng)


def make_request(
    request_id: str,
    pickup: Coordinate = ORIGIN,
    dropoff: Optional[Coordinate] = None,
    minutes_ago: float = 0.0,
) -> RideRequest:
    return RideRequest(
        id=request_id,
        pickup_location=pickup,
        dropoff_location=dropoff if dropoff is not None else offset(pickup, north_km=3.0),
        timestamp=NOW - timedelta(minutes=minutes_ago),
    )


def make_cluster(cluster_id: str, requests) -> Cluster:
    requests = tuple(requests)
    return Cluster(
        id=cluster_id,
        centroid=calculate_centroid([r.pickup_location for r in requests]),
        requests=requests,
    )


def make_vehicle(vehicle_id: str, location: Coordinate = ORIGIN, capacity: int = 4) -> Vehicle:
    return Vehicle(id=vehicle_id, location=location, capacity=capacity)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def events():
    """Event sink collecting (name, payload) pairs."""
    received = []

    def sink(name, payload):
        received.append((name, payload))

    sink.received = received
    return sink
