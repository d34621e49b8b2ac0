"""Data models for dashboard navigation."""

from .route import (
    LonLat,
    Place,
    PlaceSuggestion,
    Maneuver,
    RouteStep,
    RouteGeometry,
    Route,
)
from .request import (
    Profile,
    RoadClass,
    RouteModificationParams,
    RouteContext,
    RouteModificationRequest,
    ParsedIntent,
)
from .navigation import NavigationState, NavigationSession, Notice, NoticeLevel

__all__ = [
    "LonLat",
    "Place",
    "PlaceSuggestion",
    "Maneuver",
    "RouteStep",
    "RouteGeometry",
    "Route",
    "Profile",
    "RoadClass",
    "RouteModificationParams",
    "RouteContext",
    "RouteModificationRequest",
    "ParsedIntent",
    "NavigationState",
    "NavigationSession",
    "Notice",
    "NoticeLevel",
]
