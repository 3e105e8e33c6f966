# rideshare-simulator/rideshare/interfaces.py
"""
Collaborator contracts for the simulation pipeline.

The orchestrator only depends on these protocols, so data sources, clustering
and matching strategies and routing engines can be swapped independently.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Protocol, Sequence

from .models import (
    Assignment,
    Bounds,
    Cluster,
    ClusterParams,
    Coordinate,
    MatchConstraints,
    RideRequest,
    Vehicle,
)

EventSink = Callable[[str, Dict[str, Any]], None]
"""Optional observer receiving (event_name, payload) pairs from the algorithms."""


class DataAdapter(Protocol):
    """Source of ride requests and vehicles."""

    def generate_requests(self, count: int, bounds: Bounds) -> List[RideRequest]:
        ...

    def generate_vehicles(self, count: int, bounds: Bounds) -> List[Vehicle]:
        ...

    def generate_vehicles_near(
        self, count: int, requests: Sequence[RideRequest], bounds: Bounds
    ) -> List[Vehicle]:
        """Vehicles placed close to where passengers are waiting."""
        ...


class ClusterStrategy(Protocol):
    """Groups ride requests that can share a vehicle."""

    def cluster(self, requests: Sequence[RideRequest], params: ClusterParams) -> List[Cluster]:
        ...


class MatchingStrategy(Protocol):
    """Assigns clusters to vehicles."""

    def match(
        self,
        clusters: Sequence[Cluster],
        vehicles: Sequence[Vehicle],
        constraints: MatchConstraints,
    ) -> List[Assignment]:
        ...


class RoutingEngine(Protocol):
    """Turns waypoints into a drivable route and measures distances."""

    def calculate_route(self, points: Sequence[Coordinate]) -> List[Coordinate]:
        ...

    def distance(self, a: Coordinate, b: Coordinate) -> float:
        """Distance in km."""
        ...
