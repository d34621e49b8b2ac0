"""Geospatial utility functions.

Coordinates are (longitude, latitude) throughout, matching the routing provider.
"""

from math import atan2, cos, radians, sin, sqrt
from typing import Optional

from dashnav.models import LonLat, Route, RouteStep


EARTH_RADIUS_M = 6371e3


def haversine_distance(a: LonLat, b: LonLat) -> float:
    """
    Calculate the great-circle distance between two points on Earth.

    Args:
        a: First point as (longitude, latitude) in degrees
        b: Second point as (longitude, latitude) in degrees

    Returns:
        Distance in meters
    """
    lon1, lat1 = a
    lon2, lat2 = b

    lat1_rad, lat2_rad = radians(lat1), radians(lat2)
    dlat = radians(lat2 - lat1)
    dlon = radians(lon2 - lon1)

    h = sin(dlat/2)**2 + cos(lat1_rad) * cos(lat2_rad) * sin(dlon/2)**2
    c = 2 * atan2(sqrt(h), sqrt(1-h))

    return EARTH_RADIUS_M * c


def find_current_step(
    route: Route,
    position: Optional[LonLat],
) -> tuple[Optional[RouteStep], float]:
    """
    Find the next maneuver for a position on the route.

    The closest maneuver is taken as the one just passed, so the step after
    it is the one to announce.

    Returns:
        (next step, distance in meters to the closest maneuver). Without a
        position the first step is returned with distance 0.
    """
    if not route.steps:
        return None, 0.0
    if position is None:
        return route.steps[0], 0.0

    distances = [haversine_distance(position, step.maneuver.location) for step in route.steps]
    closest = min(range(len(distances)), key=distances.__getitem__)
    next_index = min(closest + 1, len(route.steps) - 1)

    return route.steps[next_index], distances[closest]
