"""Route modification parameters and the intent endpoint wire models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .route import LonLat


class Profile(str, Enum):
    """Travel modes understood by the routing provider."""
    DRIVING = "driving"
    WALKING = "walking"
    CYCLING = "cycling"
    DRIVING_TRAFFIC = "driving-traffic"


class RoadClass(str, Enum):
    """Canonical road classes a route can avoid."""
    HIGHWAY = "highway"
    TOLL = "toll"
    FERRY = "ferry"


class RouteModificationParams(BaseModel):
    """Structured constraints for a route request."""

    model_config = ConfigDict(frozen=True)

    avoid: tuple[str, ...] = Field(
        default=(),
        description="Road classes to avoid, e.g. 'highway', 'toll', 'ferry'",
    )
    waypoints: tuple[LonLat, ...] = Field(
        default=(),
        description="Intermediate stops as (longitude, latitude), in order",
    )
    profile: Profile = Profile.DRIVING

    @field_validator("avoid")
    @classmethod
    def _unique_avoid(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        # Set semantics, first occurrence keeps its position
        return tuple(dict.fromkeys(tag.strip().lower() for tag in value if tag.strip()))


class RouteContext(BaseModel):
    """The route the user wants to modify."""

    model_config = ConfigDict(populate_by_name=True)

    origin: LonLat
    destination: LonLat
    current_params: RouteModificationParams | None = Field(default=None, alias="currentParams")


class RouteModificationRequest(BaseModel):
    """Body of ``POST /api/route-modification``."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "userRequest": "make it more scenic",
                "currentRoute": {
                    "origin": (-122.4194, 37.7749),
                    "destination": (-122.4862, 37.7694),
                },
            }
        },
    )

    user_request: str = Field(..., min_length=1, alias="userRequest")
    current_route: RouteContext = Field(..., alias="currentRoute")


class ParsedIntent(BaseModel):
    """Parser output, also the response body of the intent endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    modified_params: RouteModificationParams = Field(..., alias="modifiedParams")
    explanation: str
