"""Route and place models returned by the routing provider."""

import math
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field


def _check_lon_lat(value: tuple[float, float]) -> tuple[float, float]:
    lon, lat = value
    if not (math.isfinite(lon) and math.isfinite(lat)):
        raise ValueError("coordinates must be finite numbers")
    if not -180 <= lon <= 180:
        raise ValueError(f"longitude {lon} out of range [-180, 180]")
    if not -90 <= lat <= 90:
        raise ValueError(f"latitude {lat} out of range [-90, 90]")
    return value


# Always (longitude, latitude)
LonLat = Annotated[tuple[float, float], AfterValidator(_check_lon_lat)]


class Place(BaseModel):
    """A resolved place with coordinates."""

    name: str
    coordinates: LonLat
    address: str | None = None
    id: str

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Golden Gate Park",
                "coordinates": (-122.4862, 37.7694),
                "address": "Golden Gate Park, San Francisco, California, United States",
                "id": "poi.558345748345",
            }
        }
    )


class PlaceSuggestion(BaseModel):
    """A search hit without coordinates; must be retrieved before use."""

    name: str
    id: str
    address: str | None = None


class Maneuver(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    modifier: str | None = None
    location: LonLat


class RouteStep(BaseModel):
    """A single instruction along a route."""

    model_config = ConfigDict(frozen=True)

    distance: float = Field(..., ge=0, description="Step length in meters")
    duration: float = Field(..., ge=0, description="Step duration in seconds")
    instruction: str = ""
    maneuver: Maneuver


class RouteGeometry(BaseModel):
    model_config = ConfigDict(frozen=True)

    coordinates: tuple[LonLat, ...] = Field(..., min_length=1)
    type: str = "LineString"


class Route(BaseModel):
    """
    A route between origin and destination, through any waypoints.

    Routes are immutable: a modified route is always a new instance.
    Distance and duration are route totals as furnished by the provider.
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "geometry": {
                    "coordinates": [(-122.4194, 37.7749), (-122.4862, 37.7694)],
                    "type": "LineString",
                },
                "distance": 6800.0,
                "duration": 840.0,
                "steps": [],
            }
        },
    )

    geometry: RouteGeometry
    distance: float = Field(..., ge=0, description="Meters")
    duration: float = Field(..., ge=0, description="Seconds")
    steps: tuple[RouteStep, ...] = ()
