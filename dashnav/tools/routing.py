"""Routing and place search using the Mapbox Directions, Geocoding and Search Box APIs."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from dashnav.errors import ConfigurationError, NoRouteFoundError, ProviderUnavailableError
from dashnav.models import (
    LonLat,
    Maneuver,
    Place,
    PlaceSuggestion,
    Route,
    RouteGeometry,
    RouteModificationParams,
    RouteStep,
)


logger = logging.getLogger(__name__)

MAPBOX_BASE_URL = "https://api.mapbox.com"

# Canonical road classes -> Mapbox "exclude" values
MAPBOX_EXCLUDES = {
    "highway": "motorway",
    "toll": "toll",
    "ferry": "ferry",
}

# Mapbox answers these codes when the request was fine but nothing routes
NO_ROUTE_CODES = {"NoRoute", "NoSegment", "NoMatch"}


class RoutingProvider(ABC):
    """
    Interface every routing backend must provide.

    All coordinates are (longitude, latitude). Failures raise
    ProviderUnavailableError or NoRouteFoundError.
    """

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether the provider has the credentials it needs."""

    @abstractmethod
    async def route(
        self,
        origin: LonLat,
        destination: LonLat,
        options: Optional[RouteModificationParams] = None,
    ) -> Route:
        """Best route between two points."""

    @abstractmethod
    async def alternatives(
        self,
        origin: LonLat,
        destination: LonLat,
        options: Optional[RouteModificationParams] = None,
    ) -> list[Route]:
        """All routes the provider offers between two points, best first."""

    @abstractmethod
    async def search_places(self, query: str) -> list[Place]:
        """Resolve free text to places with coordinates."""


def _format_lon_lat(coordinate: LonLat) -> str:
    lon, lat = coordinate
    return f"{lon},{lat}"


def parse_route(data: dict[str, Any]) -> Route:
    """Convert one entry of a Directions ``routes`` array into a Route."""
    steps = []
    for leg in data.get("legs", []):
        for step in leg.get("steps", []):
            maneuver = step["maneuver"]
            steps.append(RouteStep(
                distance=step.get("distance", 0),
                duration=step.get("duration", 0),
                instruction=maneuver.get("instruction") or "",
                maneuver=Maneuver(
                    type=maneuver.get("type", ""),
                    modifier=maneuver.get("modifier"),
                    location=maneuver["location"],
                ),
            ))

    geometry = data["geometry"]
    return Route(
        geometry=RouteGeometry(
            coordinates=geometry["coordinates"],
            type=geometry.get("type", "LineString"),
        ),
        distance=data["distance"],
        duration=data["duration"],
        steps=steps,
    )


def parse_place(feature: dict[str, Any]) -> Place:
    """Convert a Geocoding v5 feature into a Place."""
    return Place(
        name=feature.get("text") or feature.get("place_name", ""),
        coordinates=feature["center"],
        address=feature.get("place_name"),
        id=str(feature["id"]),
    )


class MapboxRoutingProvider(RoutingProvider):
    """Mapbox adapter. The HTTP client is injected so tests can mock transport."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        token: Optional[str],
        base_url: str = MAPBOX_BASE_URL,
        timeout: float = 30.0,
    ):
        self.client = client
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

        if not token:
            logger.warning("MAPBOX_TOKEN is not set. Route features will not work.")

    def is_configured(self) -> bool:
        return bool(self.token)

    def _require_token(self) -> str:
        if not self.token:
            raise ConfigurationError("Mapbox token is not configured")
        return self.token

    async def _get_json(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        """GET a Mapbox endpoint, translating transport and status failures."""
        params = {**params, "access_token": self._require_token()}

        try:
            response = await self.client.get(url, params=params, timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise ProviderUnavailableError(f"Mapbox request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise ProviderUnavailableError(f"Could not reach Mapbox: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code != 200:
            code = data.get("code") if isinstance(data, dict) else None
            if code in NO_ROUTE_CODES:
                raise NoRouteFoundError(data.get("message") or "No route found")
            raise ProviderUnavailableError(
                f"Mapbox API error: {response.status_code}",
                status_code=response.status_code,
            )

        if not isinstance(data, dict):
            raise ProviderUnavailableError("Mapbox returned a malformed response")
        return data

    def _directions_params(
        self,
        options: RouteModificationParams,
        alternatives: bool,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "geometries": "geojson",
            "steps": "true",
            "overview": "full",
        }
        if alternatives:
            params["alternatives"] = "true"
        if options.avoid:
            params["exclude"] = ",".join(MAPBOX_EXCLUDES.get(tag, tag) for tag in options.avoid)
        return params

    async def _directions(
        self,
        origin: LonLat,
        destination: LonLat,
        options: Optional[RouteModificationParams],
        alternatives: bool,
    ) -> list[Route]:
        options = options or RouteModificationParams()

        # Waypoints sit between origin and destination, in order
        points = [origin, *options.waypoints, destination]
        coordinates = ";".join(_format_lon_lat(p) for p in points)
        url = f"{self.base_url}/directions/v5/mapbox/{options.profile.value}/{coordinates}"

        data = await self._get_json(url, self._directions_params(options, alternatives))

        if data.get("code") in NO_ROUTE_CODES or not data.get("routes"):
            raise NoRouteFoundError("No route found")

        try:
            routes = [parse_route(route) for route in data["routes"]]
        except (KeyError, TypeError, ValidationError) as e:
            raise ProviderUnavailableError(f"Mapbox returned a malformed route: {e}") from e

        logger.debug("Mapbox returned %d route(s) for %s", len(routes), coordinates)
        return routes

    async def route(
        self,
        origin: LonLat,
        destination: LonLat,
        options: Optional[RouteModificationParams] = None,
    ) -> Route:
        routes = await self._directions(origin, destination, options, alternatives=False)
        return routes[0]

    async def alternatives(
        self,
        origin: LonLat,
        destination: LonLat,
        options: Optional[RouteModificationParams] = None,
    ) -> list[Route]:
        return await self._directions(origin, destination, options, alternatives=True)

    async def search_places(self, query: str, limit: int = 5) -> list[Place]:
        """Geocode free text. An empty query returns no places without a request."""
        if not query.strip():
            return []

        url = f"{self.base_url}/geocoding/v5/mapbox.places/{quote(query, safe='')}.json"
        data = await self._get_json(url, {"limit": limit, "types": "place,address,poi"})

        places = []
        for feature in data.get("features", []):
            try:
                places.append(parse_place(feature))
            except (KeyError, ValidationError) as e:
                logger.debug("Skipping unusable feature %s: %s", feature.get("id"), e)
        return places

    async def suggest(self, query: str, session_token: str, limit: int = 5) -> list[PlaceSuggestion]:
        """First half of the Search Box protocol: suggestions without coordinates."""
        if not query.strip():
            return []

        data = await self._get_json(
            f"{self.base_url}/search/searchbox/v1/suggest",
            {"q": query, "session_token": session_token, "limit": limit},
        )

        return [
            PlaceSuggestion(
                name=item.get("name", ""),
                id=item["mapbox_id"],
                address=item.get("full_address") or item.get("place_formatted"),
            )
            for item in data.get("suggestions", [])
            if item.get("mapbox_id")
        ]

    async def retrieve(self, suggestion_id: str, session_token: str) -> Place:
        """Second half of the Search Box protocol: coordinates for a suggestion."""
        data = await self._get_json(
            f"{self.base_url}/search/searchbox/v1/retrieve/{suggestion_id}",
            {"session_token": session_token},
        )

        features = data.get("features") or []
        if not features:
            raise NoRouteFoundError(f"No place found for suggestion {suggestion_id}")

        feature = features[0]
        props = feature.get("properties", {})
        try:
            return Place(
                name=props.get("name", ""),
                coordinates=feature["geometry"]["coordinates"],
                address=props.get("full_address"),
                id=props.get("mapbox_id", suggestion_id),
            )
        except (KeyError, ValidationError) as e:
            raise ProviderUnavailableError(f"Mapbox returned a malformed place: {e}") from e
