# rideshare-simulator/rideshare/clustering.py
"""
Clustering strategies for the Dynamic Ride-Sharing Simulator.

Groups ride requests that can share a vehicle. Two strategies are available:

1. **DBSCAN** (default): Density-based clustering on a combined
   spatio-temporal distance. Finds any number of clusters of any shape and
   leaves isolated requests as single-passenger clusters.

2. **K-Means** (baseline): Partitions requests into ceil(n / 3) groups by
   pickup location only. Every request lands in some group, however far away.

Both strategies only consider requests inside the time window and return a
partition of them: every recent request appears in exactly one cluster.
"""

from __future__ import annotations

import logging
import math
import random
from collections import deque
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from . import config, utils
from .exceptions import ConfigurationError
from .interfaces import EventSink
from .models import Cluster, ClusterParams, RideRequest

logger = logging.getLogger(__name__)

# Point labels used during DBSCAN expansion. Cluster labels are >= 0.
UNCLASSIFIED = -2
NOISE = -1


def filter_recent(requests: Sequence[RideRequest], params: ClusterParams) -> List[RideRequest]:
    """
    Keep only the requests made within the time window.

    Args:
        requests: All ride requests
        params: Clustering parameters (window and reference time)

    Returns:
        Requests with timestamp >= reference_time - window, in input order
    """
    now = params.reference_time or datetime.now()
    cutoff = now - timedelta(minutes=params.time_window_minutes)
    return [r for r in requests if r.timestamp >= cutoff]


def summarize_clusters(clusters: Sequence[Cluster]) -> Dict[str, int]:
    """
    Summarize a clustering result.

    Returns:
        Dictionary with total clusters, multi-passenger clusters,
        single-passenger clusters, passengers in shared clusters and
        total passengers
    """
    shared = [c for c in clusters if c.size > 1]
    return {
        "total_clusters": len(clusters),
        "multi_passenger_clusters": len(shared),
        "single_passenger_clusters": len(clusters) - len(shared),
        "passengers_in_shared_clusters": sum(c.size for c in shared),
        "total_passengers": sum(c.size for c in clusters),
    }


def _single_request_cluster(cluster_id: str, request: RideRequest) -> Cluster:
    return Cluster(id=cluster_id, centroid=request.pickup_location, requests=(request,))


class DBSCANClustering:
    """
    DBSCAN over ride requests using a combined spatio-temporal distance.

    The distance between two requests is a weighted sum of their normalized
    pickup distance and normalized time difference, so it always lies in
    [0, 1]. A request with at least `min_points` other requests within
    `epsilon` is a core point; clusters grow through chains of core points and
    absorb non-core neighbours as border members. Requests reachable from no
    core point are noise and each becomes a single-passenger cluster.

    Attributes:
        min_points: Neighbours (excluding self) needed for a core point
        adaptive_epsilon: Whether epsilon grows with the request count
    """

    def __init__(
        self,
        min_points: Optional[int] = None,
        base_epsilon: Optional[float] = None,
        max_epsilon: Optional[float] = None,
        adaptive_epsilon: Optional[bool] = None,
        fixed_epsilon: Optional[float] = None,
        spatial_weight: Optional[float] = None,
        temporal_weight: Optional[float] = None,
        spatial_cap_km: Optional[float] = None,
        temporal_cap_minutes: Optional[float] = None,
        on_event: Optional[EventSink] = None,
    ) -> None:
        self.min_points = config.MIN_POINTS if min_points is None else min_points
        self.base_epsilon = config.BASE_EPSILON if base_epsilon is None else base_epsilon
        self.max_epsilon = config.MAX_EPSILON if max_epsilon is None else max_epsilon
        self.adaptive_epsilon = config.ADAPTIVE_EPSILON if adaptive_epsilon is None else adaptive_epsilon
        self.fixed_epsilon = config.FIXED_EPSILON if fixed_epsilon is None else fixed_epsilon
        self.spatial_weight = config.SPATIAL_WEIGHT if spatial_weight is None else spatial_weight
        self.temporal_weight = config.TEMPORAL_WEIGHT if temporal_weight is None else temporal_weight
        self.spatial_cap_km = config.SPATIAL_CAP_KM if spatial_cap_km is None else spatial_cap_km
        self.temporal_cap_minutes = (
            config.TEMPORAL_CAP_MINUTES if temporal_cap_minutes is None else temporal_cap_minutes
        )
        self.on_event = on_event

        if self.min_points < 0:
            raise ConfigurationError(f"min_points must be >= 0, got {self.min_points}")
        if self.spatial_cap_km <= 0 or self.temporal_cap_minutes <= 0:
            raise ConfigurationError("Spatial and temporal normalization caps must be positive")
        if self.spatial_weight < 0 or self.temporal_weight < 0:
            raise ConfigurationError("Distance weights must be non-negative")

    def epsilon_for(self, request_count: int) -> float:
        """
        Neighbourhood radius for a given number of requests.

        The adaptive variant widens the radius slightly as demand grows,
        bounded above by max_epsilon.
        """
        if not self.adaptive_epsilon:
            return self.fixed_epsilon
        return min(self.base_epsilon * (1 + request_count / config.EPSILON_GROWTH_REQUESTS), self.max_epsilon)

    def spatio_temporal_distance(self, a: RideRequest, b: RideRequest, max_distance_km: float) -> float:
        """
        Normalized distance combining pickup proximity and request time.

        Returns a value in [0, 1] where 0 means same place at the same time
        and 1 means at least the normalization caps apart in both dimensions.

        Args:
            a: First request
            b: Second request
            max_distance_km: Caller's spatial scale; the spatial cap is
                min(spatial_cap_km, max_distance_km)
        """
        spatial_km = utils.haversine_distance(a.pickup_location, b.pickup_location)
        temporal_min = utils.minutes_between(a.timestamp, b.timestamp)

        spatial_threshold = min(self.spatial_cap_km, max_distance_km)
        if spatial_threshold > 0:
            spatial = min(spatial_km / spatial_threshold, 1.0)
        else:
            spatial = 0.0 if spatial_km == 0 else 1.0
        temporal = min(temporal_min / self.temporal_cap_minutes, 1.0)

        return self.spatial_weight * spatial + self.temporal_weight * temporal

    def _neighbourhoods(
        self, requests: Sequence[RideRequest], epsilon: float, max_distance_km: float
    ) -> List[List[int]]:
        """For every request, the indices of the other requests within epsilon."""
        n = len(requests)
        neighbours: List[List[int]] = [[] for _ in range(n)]
        for i in range(n):
            for j in range(i + 1, n):
                if self.spatio_temporal_distance(requests[i], requests[j], max_distance_km) <= epsilon:
                    neighbours[i].append(j)
                    neighbours[j].append(i)
        return neighbours

    def _expand_cluster(
        self,
        label: int,
        seeds: List[int],
        labels: List[int],
        neighbours: List[List[int]],
        members: List[int],
    ) -> int:
        """
        Grow a cluster from the neighbours of its seed core point.

        Returns:
            Number of previously-noise points absorbed as border members
        """
        queue = deque(seeds)
        queued = set(seeds)
        absorbed = 0

        while queue:
            idx = queue.popleft()

            if labels[idx] == NOISE:
                # Noise is never core, so it joins as a border point only
                labels[idx] = label
                members.append(idx)
                absorbed += 1
                continue

            if labels[idx] != UNCLASSIFIED:
                continue

            labels[idx] = label
            members.append(idx)

            if len(neighbours[idx]) >= self.min_points:
                for other in neighbours[idx]:
                    if other not in queued:
                        queued.add(other)
                        queue.append(other)

        return absorbed

    def cluster(self, requests: Sequence[RideRequest], params: ClusterParams) -> List[Cluster]:
        """
        Cluster ride requests using DBSCAN.

        Args:
            requests: Ride requests to cluster
            params: Time window, spatial scale and reference time

        Returns:
            Multi-passenger clusters in discovery order, followed by one
            single-passenger cluster per noise request
        """
        recent = filter_recent(requests, params)
        if not recent:
            logger.debug("No requests inside the time window; nothing to cluster")
            return []

        epsilon = self.epsilon_for(len(recent))
        logger.debug(
            f"DBSCAN parameters: epsilon={epsilon:.3f}, min_points={self.min_points}, "
            f"requests={len(recent)}"
        )

        neighbours = self._neighbourhoods(recent, epsilon, params.max_distance_km)
        labels = [UNCLASSIFIED] * len(recent)
        groups: List[List[int]] = []
        absorbed_noise = 0

        for i in range(len(recent)):
            if labels[i] != UNCLASSIFIED:
                continue

            if len(neighbours[i]) < self.min_points:
                labels[i] = NOISE
                continue

            label = len(groups)
            labels[i] = label
            members = [i]
            absorbed_noise += self._expand_cluster(label, neighbours[i], labels, neighbours, members)
            groups.append(members)

        clusters: List[Cluster] = []
        for members in groups:
            member_requests = tuple(recent[idx] for idx in members)
            clusters.append(Cluster(
                id=f"C{len(clusters) + 1}",
                centroid=utils.calculate_centroid([r.pickup_location for r in member_requests]),
                requests=member_requests,
            ))

        noise = [idx for idx, label in enumerate(labels) if label == NOISE]
        for idx in noise:
            clusters.append(_single_request_cluster(f"C{len(clusters) + 1}", recent[idx]))

        # Reconcile: every recent request must be in exactly one cluster
        clustered_ids = utils.flatten_ids(c.request_ids for c in clusters)
        unaccounted = [r for r in recent if r.id not in clustered_ids]
        if unaccounted:
            logger.warning(f"{len(unaccounted)} requests were not clustered; adding them as single-passenger clusters")
            for request in unaccounted:
                clusters.append(_single_request_cluster(f"C{len(clusters) + 1}", request))

        logger.info(
            f"DBSCAN: {len(groups)} shared clusters, {len(noise)} single-passenger clusters "
            f"from {len(recent)} requests ({absorbed_noise} noise points absorbed)"
        )
        if self.on_event is not None:
            self.on_event("clustering.completed", {
                "strategy": "dbscan",
                "epsilon": epsilon,
                "requests": len(recent),
                "shared_clusters": len(groups),
                "noise_points": len(noise),
                "absorbed_noise": absorbed_noise,
                "reconciled": len(unaccounted),
            })

        return clusters


class KMeansClustering:
    """
    K-Means over pickup locations (baseline strategy).

    k is chosen so clusters hold about `requests_per_cluster` requests on
    average. Centroids are seeded from random pickups and refined until no
    centroid moves more than a fraction of max_distance_km, or the iteration
    cap is hit. Time only matters through the window filter.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        seed: Optional[int] = None,
        requests_per_cluster: Optional[int] = None,
        max_iterations: Optional[int] = None,
        on_event: Optional[EventSink] = None,
    ) -> None:
        self._rng = rng if rng is not None else random.Random(seed)
        self.requests_per_cluster = (
            config.KMEANS_REQUESTS_PER_CLUSTER if requests_per_cluster is None else requests_per_cluster
        )
        self.max_iterations = config.KMEANS_MAX_ITERATIONS if max_iterations is None else max_iterations
        self.on_event = on_event

        if self.requests_per_cluster < 1:
            raise ConfigurationError("requests_per_cluster must be at least 1")
        if self.max_iterations < 1:
            raise ConfigurationError("max_iterations must be at least 1")

    @staticmethod
    def _nearest(point, centroids) -> int:
        distances = [utils.haversine_distance(point, c) for c in centroids]
        return distances.index(min(distances))

    def cluster(self, requests: Sequence[RideRequest], params: ClusterParams) -> List[Cluster]:
        """
        Cluster ride requests using K-Means.

        Args:
            requests: Ride requests to cluster
            params: Time window, spatial scale and reference time

        Returns:
            Non-empty clusters in centroid order
        """
        recent = filter_recent(requests, params)
        if not recent:
            return []

        k = max(1, math.ceil(len(recent) / self.requests_per_cluster))
        threshold_km = params.max_distance_km * config.KMEANS_CONVERGENCE_FRACTION
        centroids = [r.pickup_location for r in self._rng.sample(list(recent), k)]
        groups: List[List[RideRequest]] = []
        iterations = 0

        for iterations in range(1, self.max_iterations + 1):
            groups = [[] for _ in range(k)]
            for request in recent:
                groups[self._nearest(request.pickup_location, centroids)].append(request)

            new_centroids = [
                utils.calculate_centroid([r.pickup_location for r in group]) if group else centroids[i]
                for i, group in enumerate(groups)
            ]
            moved = any(
                utils.haversine_distance(old, new) > threshold_km
                for old, new in zip(centroids, new_centroids)
            )
            centroids = new_centroids
            if not moved:
                break

        clusters: List[Cluster] = []
        for group in groups:
            if not group:
                continue
            clusters.append(Cluster(
                id=f"C{len(clusters) + 1}",
                centroid=utils.calculate_centroid([r.pickup_location for r in group]),
                requests=tuple(group),
            ))

        logger.info(f"K-Means: {len(clusters)} clusters (k={k}) after {iterations} iterations")
        if self.on_event is not None:
            self.on_event("clustering.completed", {
                "strategy": "kmeans",
                "k": k,
                "iterations": iterations,
                "requests": len(recent),
                "clusters": len(clusters),
            })

        return clusters
