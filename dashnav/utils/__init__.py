"""Utility functions for navigation."""

from .geo import haversine_distance, find_current_step

__all__ = [
    "haversine_distance",
    "find_current_step",
]
