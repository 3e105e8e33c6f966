# rideshare-simulator/rideshare/__init__.py

from .models import (
    Assignment,
    Bounds,
    Cluster,
    ClusterParams,
    Coordinate,
    MatchConstraints,
    RideRequest,
    SimulationMetrics,
    SimulationParams,
    SimulationResult,
    Vehicle,
)
from .exceptions import ConfigurationError, InvalidInputError, RideShareError
from .utils import calculate_centroid, haversine_distance
from .clustering import DBSCANClustering, KMeansClustering, summarize_clusters
from .matching import EvolutionStats, GeneticMatcher, GreedyMatcher
from .scoring import UNASSIGNED, FitnessWeights, calculate_fitness, evaluate_solution
from .routing import StraightLineRouter
from .data import RandomDataGenerator
from .simulation import SimulationService, create_service, sanitize_params

__version__ = "1.0.0"
__author__ = "Ride-Sharing Simulator Team"

__all__ = [
    # Models
    "Coordinate",
    "Bounds",
    "RideRequest",
    "Vehicle",
    "Cluster",
    "Assignment",
    "ClusterParams",
    "MatchConstraints",
    "SimulationParams",
    "SimulationMetrics",
    "SimulationResult",
    # Errors
    "RideShareError",
    "InvalidInputError",
    "ConfigurationError",
    # Core
    "DBSCANClustering",
    "KMeansClustering",
    "GeneticMatcher",
    "GreedyMatcher",
    "EvolutionStats",
    "StraightLineRouter",
    "RandomDataGenerator",
    "SimulationService",
    # Functions
    "haversine_distance",
    "calculate_centroid",
    "summarize_clusters",
    "evaluate_solution",
    "calculate_fitness",
    "create_service",
    "sanitize_params",
    # Constants
    "UNASSIGNED",
    "FitnessWeights",
]
