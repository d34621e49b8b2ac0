"""Adapters for the external services the navigator talks to."""

from .routing import MapboxRoutingProvider, RoutingProvider
from .location import FixedPositionSource, LocationTracker, PositionSource

__all__ = [
    "MapboxRoutingProvider",
    "RoutingProvider",
    "FixedPositionSource",
    "LocationTracker",
    "PositionSource",
]
