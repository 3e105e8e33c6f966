# rideshare-simulator/rideshare/config.py
"""
Configuration parameters for the Dynamic Ride-Sharing Simulator.

This module centralizes all tunable parameters, making it easy to:
- Adjust simulation defaults and the simulated map area
- Fine-tune the DBSCAN spatio-temporal clustering
- Configure the genetic algorithm and its fitness weights

Algorithm classes read their defaults from here; every value can also be
overridden per instance through constructor keyword arguments.
"""

from typing import Final, Tuple

# =============================================================================
# SIMULATION PARAMETERS
# =============================================================================

DEFAULT_PASSENGERS: int = 20
"""Number of ride requests generated when the caller does not specify one."""

MIN_PASSENGERS: Final[int] = 10
MAX_PASSENGERS: Final[int] = 50
"""Passenger slider range used by the dashboard."""

DEFAULT_VEHICLES: int = 5
"""Number of vehicles generated when the caller does not specify one."""

MIN_VEHICLES: Final[int] = 3
MAX_VEHICLES: Final[int] = 10
"""Vehicle slider range used by the dashboard."""

DEFAULT_TIME_WINDOW_MINUTES: float = 15.0
"""Requests older than this (relative to 'now') are ignored by the clusterer."""

DEFAULT_MAX_DETOUR_KM: float = 2.0
"""Maximum distance between a vehicle and the centroid of a cluster it serves."""

# =============================================================================
# MAP AREA
# =============================================================================
# Roughly 10km x 10km of New York City.

DEFAULT_BOUNDS: Final[Tuple[float, float, float, float]] = (40.7, 40.8, -74.0, -73.9)
"""(min_lat, max_lat, min_lng, max_lng) of the simulated area."""

MAP_CENTER: Final[Tuple[float, float]] = (40.75, -73.95)
"""Initial map center for the dashboard."""

DEFAULT_ZOOM: Final[int] = 12

EARTH_RADIUS_KM: Final[float] = 6371.0
"""Mean Earth radius used by the haversine formula."""

# =============================================================================
# DBSCAN CLUSTERING
# =============================================================================
# Distances between requests are normalized to [0, 1] and combined with
# spatial proximity weighted more heavily than temporal proximity.

SPATIAL_CAP_KM: float = 4.0
"""
Spatial normalization ceiling. The effective cap is
min(SPATIAL_CAP_KM, max_distance_km) so a tighter detour limit also tightens
what counts as 'near'.
"""

TEMPORAL_CAP_MINUTES: float = 12.0
"""Temporal normalization ceiling. Requests further apart count as maximally distant."""

SPATIAL_WEIGHT: float = 0.8
"""Weight of the spatial component in the combined distance (typical 0.7 - 0.8)."""

TEMPORAL_WEIGHT: float = 0.2
"""Weight of the temporal component in the combined distance (typical 0.2 - 0.3)."""

BASE_EPSILON: float = 0.22
"""Neighbourhood radius (in combined-distance units) for small request sets."""

MAX_EPSILON: float = 0.35
"""Upper bound for the adaptive epsilon."""

ADAPTIVE_EPSILON: bool = True
"""
Scale epsilon with the number of requests:
epsilon = min(BASE_EPSILON * (1 + n / EPSILON_GROWTH_REQUESTS), MAX_EPSILON).
When False, FIXED_EPSILON is used.
"""

EPSILON_GROWTH_REQUESTS: float = 100.0
"""Request count at which the adaptive epsilon has doubled (before capping)."""

FIXED_EPSILON: float = 0.3
"""Epsilon used when ADAPTIVE_EPSILON is disabled."""

MIN_POINTS: int = 1
"""
Minimum number of neighbours (excluding the point itself) for a core point.
With 1, any two requests within epsilon can share a ride.
"""

# =============================================================================
# K-MEANS CLUSTERING (baseline)
# =============================================================================

KMEANS_REQUESTS_PER_CLUSTER: int = 3
"""Target average cluster size; k = ceil(n / KMEANS_REQUESTS_PER_CLUSTER)."""

KMEANS_MAX_ITERATIONS: int = 10

KMEANS_CONVERGENCE_FRACTION: float = 0.1
"""Centroids moving less than max_distance_km * this fraction count as converged."""

# =============================================================================
# GENETIC ALGORITHM
# =============================================================================

POPULATION_SIZE: int = 50
"""Number of candidate solutions per generation."""

MAX_GENERATIONS: int = 100
"""Hard cap on the number of generations."""

STAGNATION_LIMIT: int = 20
"""Stop early after this many generations without improving the best fitness."""

MUTATION_RATE: float = 0.2
"""Per-gene probability of reassigning a cluster (typical 0.1 - 0.2)."""

CROSSOVER_RATE: float = 0.7
"""Probability that two parents are recombined instead of copied (typical 0.7 - 0.8)."""

ELITISM_RATE: float = 0.2
"""Fraction of the best candidates carried unchanged into the next generation."""

TOURNAMENT_SIZE: int = 3
"""Number of candidates sampled per tournament."""

GREEDY_SEED_FRACTION: float = 0.3
"""Fraction of the initial population built by nearest-feasible-vehicle assignment."""

# =============================================================================
# FITNESS WEIGHTS
# =============================================================================
# fitness = W_ASSIGNMENT * assignment_ratio
#         - W_DETOUR * normalized_detour
#         + W_UTILIZATION * vehicle_utilization
#         - UNUSED_VEHICLE_PENALTY * unused_vehicles

W_ASSIGNMENT: float = 0.8
"""Weight for the fraction of requests assigned (typical 0.7 - 0.8)."""

W_DETOUR: float = 0.15
"""Weight for the normalized per-passenger detour (typical 0.15 - 0.3)."""

W_UTILIZATION: float = 0.05
"""Weight for the fraction of vehicles that serve at least one cluster."""

UNUSED_VEHICLE_PENALTY: float = 0.1
"""Penalty per vehicle left without any cluster."""

# =============================================================================
# POST-PROCESSING
# =============================================================================

RELAXATION_FACTORS: Tuple[float, ...] = (1.0, 1.5, 2.0)
"""
Multipliers of max_detour_km tried, in order, when handing unassigned clusters
to vehicles that the genetic algorithm left idle.
"""

# =============================================================================
# DATA GENERATION
# =============================================================================

REQUEST_MAX_AGE_MINUTES: int = 60
"""Generated request timestamps fall within this many minutes before 'now'."""

MIN_VEHICLE_CAPACITY: int = 4
MAX_VEHICLE_CAPACITY: int = 6
"""Generated vehicles get a capacity drawn uniformly from this inclusive range."""

VEHICLE_JITTER_DEGREES: float = 0.005
"""Max offset (~500m) of a vehicle placed near a passenger pickup."""

HOTSPOT_SPREAD_DEGREES: float = 0.004
"""Max offset of a pickup from its hotspot center when hotspots are enabled."""
