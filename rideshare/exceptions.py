# rideshare-simulator/rideshare/exceptions.py
"""
Custom exceptions for the Dynamic Ride-Sharing Simulator.
"""


class RideShareError(Exception):
    """Base exception for the simulator."""
    pass


class InvalidInputError(RideShareError, ValueError):
    """Raised when an operation receives input it cannot work with (e.g. no points for a centroid)."""
    pass


class ConfigurationError(RideShareError):
    """Raised when algorithm settings are invalid."""
    pass
