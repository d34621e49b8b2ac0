"""Route modification flow: intent parsing, route comparison and navigation state."""

from .intent_parser import IntentParser, build_intent_parser
from .route_comparator import RouteComparator, deduplicate, is_significantly_different
from .orchestrator import NavigationOrchestrator

__all__ = [
    "IntentParser",
    "build_intent_parser",
    "RouteComparator",
    "deduplicate",
    "is_significantly_different",
    "NavigationOrchestrator",
]
