"""Test doubles shared by the test modules."""

import asyncio
from typing import Optional

from dashnav.models import (
    Maneuver,
    ParsedIntent,
    Place,
    Route,
    RouteContext,
    RouteGeometry,
    RouteModificationParams,
    RouteStep,
)
from dashnav.tools.routing import RoutingProvider


SAN_FRANCISCO = (-122.4194, 37.7749)
GOLDEN_GATE_PARK = (-122.4862, 37.7694)


def make_route(
    distance: float,
    duration: float,
    start=SAN_FRANCISCO,
    end=GOLDEN_GATE_PARK,
    steps=(),
) -> Route:
    return Route(
        geometry=RouteGeometry(coordinates=(start, end)),
        distance=distance,
        duration=duration,
        steps=steps,
    )


def make_step(location, distance=100.0, instruction="Turn left onto Market Street") -> RouteStep:
    return RouteStep(
        distance=distance,
        duration=10.0,
        instruction=instruction,
        maneuver=Maneuver(type="turn", modifier="left", location=location),
    )


def make_place(name="Golden Gate Park", coordinates=GOLDEN_GATE_PARK) -> Place:
    return Place(name=name, coordinates=coordinates, address=f"{name}, San Francisco", id="poi.1")


class FakeRoutingProvider(RoutingProvider):
    """Routing provider returning canned routes and recording every call."""

    def __init__(
        self,
        route: Optional[Route] = None,
        alternatives: Optional[list[Route]] = None,
        route_error: Optional[Exception] = None,
        alternatives_error: Optional[Exception] = None,
        places: Optional[list[Place]] = None,
        configured: bool = True,
    ):
        self.route_result = route
        self.alternatives_result = alternatives or []
        self.route_error = route_error
        self.alternatives_error = alternatives_error
        self.places = places or []
        self.configured = configured
        self.calls: list[tuple] = []
        self.gate: Optional[asyncio.Event] = None

    def is_configured(self) -> bool:
        return self.configured

    async def route(self, origin, destination, options=None) -> Route:
        self.calls.append(("route", origin, destination, options))
        if self.gate is not None:
            await self.gate.wait()
        if self.route_error is not None:
            raise self.route_error
        return self.route_result

    async def alternatives(self, origin, destination, options=None) -> list[Route]:
        self.calls.append(("alternatives", origin, destination, options))
        if self.gate is not None:
            await self.gate.wait()
        if self.alternatives_error is not None:
            raise self.alternatives_error
        return list(self.alternatives_result)

    async def search_places(self, query: str) -> list[Place]:
        self.calls.append(("search_places", query))
        return list(self.places)


class FakeIntentParser:
    """Intent source returning a fixed intent."""

    def __init__(self, params: Optional[RouteModificationParams] = None, explanation="Done."):
        self.intent = ParsedIntent(
            modified_params=params or RouteModificationParams(avoid=("highway",)),
            explanation=explanation,
        )
        self.calls: list[tuple[str, RouteContext]] = []

    async def parse(self, utterance: str, context: RouteContext) -> ParsedIntent:
        self.calls.append((utterance, context))
        return self.intent
