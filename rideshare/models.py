# rideshare-simulator/rideshare/models.py
"""
Core domain models for the Dynamic Ride-Sharing Simulator.

This module defines the fundamental data structures used throughout the simulation:
- Coordinate: An immutable (lat, lng) point
- RideRequest: A passenger's trip from pickup to dropoff
- Vehicle: A car with seat capacity and a starting location
- Cluster: A group of requests that can share one ride
- Assignment: The requests a vehicle serves and the route it drives
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .exceptions import InvalidInputError


@dataclass(frozen=True)
class Coordinate:
    """A geographic point in decimal degrees."""
    lat: float
    lng: float

    def as_tuple(self) -> Tuple[float, float]:
        """Returns the point as a (lat, lng) tuple."""
        return (self.lat, self.lng)

    def __repr__(self) -> str:
        return f"({self.lat:.5f}, {self.lng:.5f})"


@dataclass(frozen=True)
class Bounds:
    """Rectangular map area used for generating synthetic data."""
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    @classmethod
    def from_tuple(cls, values: Tuple[float, float, float, float]) -> "Bounds":
        """Build bounds from a (min_lat, max_lat, min_lng, max_lng) tuple."""
        return cls(*values)

    @property
    def center(self) -> Coordinate:
        return Coordinate((self.min_lat + self.max_lat) / 2, (self.min_lng + self.max_lng) / 2)

    def contains(self, point: Coordinate) -> bool:
        return (self.min_lat <= point.lat <= self.max_lat
                and self.min_lng <= point.lng <= self.max_lng)


@dataclass(frozen=True)
class RideRequest:
    """
    Represents a passenger asking for a ride.

    Attributes:
        id: Unique identifier
        pickup_location: Where the passenger is waiting
        dropoff_location: Where the passenger wants to go
        timestamp: When the request was made
    """
    id: str
    pickup_location: Coordinate
    dropoff_location: Coordinate
    timestamp: datetime

    def __repr__(self) -> str:
        return f"RideRequest({self.id}, {self.timestamp.strftime('%H:%M:%S')})"


@dataclass
class Vehicle:
    """
    Represents a vehicle in the fleet.

    Attributes:
        id: Unique identifier
        location: Current position of the vehicle
        capacity: Total number of passenger seats
        available_seats: Seats not already taken (defaults to capacity)
        current_route: Waypoints the vehicle is currently driving
    """
    id: str
    location: Coordinate
    capacity: int
    available_seats: Optional[int] = None
    current_route: List[Coordinate] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Default the free seats to the capacity and validate the seat counts."""
        if self.capacity <= 0:
            raise InvalidInputError(f"Vehicle {self.id} must have a positive capacity, got {self.capacity}")
        if self.available_seats is None:
            self.available_seats = self.capacity
        if not 0 <= self.available_seats <= self.capacity:
            raise InvalidInputError(
                f"Vehicle {self.id} has {self.available_seats} available seats "
                f"for a capacity of {self.capacity}"
            )

    def __repr__(self) -> str:
        return f"Vehicle({self.id}, seats={self.available_seats}/{self.capacity})"


@dataclass(frozen=True)
class Cluster:
    """
    A group of ride requests that one vehicle can serve together.

    Attributes:
        id: Unique identifier within a simulation run
        centroid: Mean of the member pickup locations
        requests: Member requests, in the order they were discovered
    """
    id: str
    centroid: Coordinate
    requests: Tuple[RideRequest, ...]

    @property
    def size(self) -> int:
        """Number of passengers (seats) the cluster needs."""
        return len(self.requests)

    @property
    def request_ids(self) -> List[str]:
        return [r.id for r in self.requests]

    def __repr__(self) -> str:
        return f"Cluster({self.id}, size={self.size})"


@dataclass
class Assignment:
    """
    The outcome of matching for one vehicle.

    Attributes:
        vehicle_id: The vehicle serving the requests
        request_ids: Requests picked up by the vehicle, in service order
        route: Waypoints: vehicle location, all pickups, then all dropoffs
    """
    vehicle_id: str
    request_ids: List[str]
    route: List[Coordinate]

    def __repr__(self) -> str:
        return f"Assignment({self.vehicle_id}, requests={len(self.request_ids)})"


@dataclass(frozen=True)
class ClusterParams:
    """
    Clustering parameters.

    Attributes:
        time_window_minutes: Only requests this recent are clustered
        max_distance_km: Spatial scale of a shareable group
        reference_time: The 'now' the time window is measured from.
            Defaults to the wall clock at clustering time.
    """
    time_window_minutes: float
    max_distance_km: float
    reference_time: Optional[datetime] = None


@dataclass(frozen=True)
class MatchConstraints:
    """Constraints for the matching strategies."""
    max_detour_km: float


@dataclass
class SimulationParams:
    """Caller-supplied parameters for one simulation run."""
    passenger_count: int
    vehicle_count: int
    max_detour_distance_km: float
    time_window_minutes: float


@dataclass
class SimulationMetrics:
    """
    Aggregate KPIs of a simulation run.

    All distances are in kilometers and are measured against a sequential
    baseline in which each vehicle serves its passengers one at a time.
    """
    percentage_matched: float = 0.0
    average_detour_distance: float = 0.0
    total_distance_saved: float = 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary for display."""
        return {
            "Passengers Matched": f"{self.percentage_matched:.1f}%",
            "Avg Detour / Passenger": f"{self.average_detour_distance:.2f} km",
            "Total Distance Saved": f"{self.total_distance_saved:.2f} km",
        }


@dataclass
class SimulationResult:
    """Everything produced by one simulation run."""
    requests: List[RideRequest]
    vehicles: List[Vehicle]
    clusters: List[Cluster]
    assignments: List[Assignment]
    unassigned_requests: List[RideRequest]
    metrics: SimulationMetrics

    def kpis(self) -> Dict[str, Any]:
        """Flat numeric KPIs, used for tables and CSV output."""
        matched = len(self.requests) - len(self.unassigned_requests)
        return {
            "passengers": len(self.requests),
            "vehicles": len(self.vehicles),
            "clusters": len(self.clusters),
            "shared_clusters": sum(1 for c in self.clusters if c.size > 1),
            "vehicles_used": len(self.assignments),
            "passengers_matched": matched,
            "passengers_unassigned": len(self.unassigned_requests),
            "percentage_matched": round(self.metrics.percentage_matched, 2),
            "average_detour_km": round(self.metrics.average_detour_distance, 3),
            "total_distance_saved_km": round(self.metrics.total_distance_saved, 3),
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for display."""
        return {
            "Passengers": len(self.requests),
            "Clusters": len(self.clusters),
            "Shared Clusters": sum(1 for c in self.clusters if c.size > 1),
            "Vehicles Used": f"{len(self.assignments)}/{len(self.vehicles)}",
            **self.metrics.to_dict(),
        }
