# rideshare-simulator/rideshare/data.py
"""
Synthetic data source for the Dynamic Ride-Sharing Simulator.

Generates random ride requests and vehicles inside a rectangular map area.
All randomness flows through one `random.Random`, so a generator built with
the same seed (and the same `now`) produces identical data.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from . import config, utils
from .models import Bounds, Coordinate, RideRequest, Vehicle

logger = logging.getLogger(__name__)


class RandomDataGenerator:
    """
    Random request and vehicle generator.

    Attributes:
        now: Reference time for request timestamps (wall clock if not given)
        hotspot_count: When positive, pickups concentrate around this many
            random hotspots instead of being uniform over the map
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        seed: Optional[int] = None,
        now: Optional[datetime] = None,
        hotspot_count: int = 0,
    ) -> None:
        self._rng = rng if rng is not None else random.Random(seed)
        self.now = now
        self.hotspot_count = max(0, hotspot_count)

    def _pickup_location(self, bounds: Bounds, hotspots: Sequence[Coordinate]) -> Coordinate:
        if not hotspots:
            return utils.random_location(bounds, self._rng)
        center = self._rng.choice(hotspots)
        return utils.clamp_to_bounds(
            utils.jitter_location(center, config.HOTSPOT_SPREAD_DEGREES, self._rng), bounds
        )

    def generate_requests(self, count: int, bounds: Bounds) -> List[RideRequest]:
        """
        Generate ride requests made within the last hour.

        Args:
            count: Number of requests (non-positive yields none)
            bounds: Map area for pickups and dropoffs

        Returns:
            Requests with ids R001, R002, ...
        """
        now = self.now if self.now is not None else datetime.now()
        hotspots = [utils.random_location(bounds, self._rng) for _ in range(self.hotspot_count)]

        requests: List[RideRequest] = []
        for i in range(max(0, count)):
            pickup = self._pickup_location(bounds, hotspots)
            dropoff = utils.random_location(bounds, self._rng)
            age = self._rng.randint(0, config.REQUEST_MAX_AGE_MINUTES - 1)
            requests.append(RideRequest(
                id=f"R{i + 1:03d}",
                pickup_location=pickup,
                dropoff_location=dropoff,
                timestamp=now - timedelta(minutes=age),
            ))

        logger.debug(f"Generated {len(requests)} ride requests")
        return requests

    def _new_vehicle(self, index: int, location: Coordinate) -> Vehicle:
        capacity = self._rng.randint(config.MIN_VEHICLE_CAPACITY, config.MAX_VEHICLE_CAPACITY)
        return Vehicle(id=f"V{index + 1:02d}", location=location, capacity=capacity)

    def generate_vehicles(self, count: int, bounds: Bounds) -> List[Vehicle]:
        """Generate vehicles placed uniformly inside the bounds."""
        vehicles = [
            self._new_vehicle(i, utils.random_location(bounds, self._rng))
            for i in range(max(0, count))
        ]
        logger.debug(f"Generated {len(vehicles)} vehicles")
        return vehicles

    def generate_vehicles_near(
        self, count: int, requests: Sequence[RideRequest], bounds: Bounds
    ) -> List[Vehicle]:
        """
        Generate vehicles close to where passengers are waiting.

        Each vehicle starts within a small jitter of a randomly chosen
        request's pickup, clamped to the bounds. Without requests the
        vehicles are placed uniformly.
        """
        if not requests:
            return self.generate_vehicles(count, bounds)

        vehicles: List[Vehicle] = []
        for i in range(max(0, count)):
            anchor = self._rng.choice(requests).pickup_location
            location = utils.clamp_to_bounds(
                utils.jitter_location(anchor, config.VEHICLE_JITTER_DEGREES, self._rng), bounds
            )
            vehicles.append(self._new_vehicle(i, location))

        logger.debug(f"Generated {len(vehicles)} vehicles near {len(requests)} requests")
        return vehicles
