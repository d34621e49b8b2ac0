"""Navigation session state owned by the orchestrator."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .request import RouteModificationParams
from .route import LonLat, Place, Route


class NavigationState(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    NAVIGATING = "navigating"
    COMPARING_ROUTES = "comparing-routes"


class NoticeLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class Notice(BaseModel):
    """A user-facing banner. Persistent notices stay until the app restarts."""

    model_config = ConfigDict(frozen=True)

    level: NoticeLevel
    message: str
    persistent: bool = False


class NavigationSession(BaseModel):
    """
    Snapshot of what is currently true for one user session.

    Snapshots are frozen; the orchestrator publishes a new one on every
    change, so readers can never mutate shared state.
    """

    model_config = ConfigDict(frozen=True)

    state: NavigationState = NavigationState.IDLE
    destination: Place | None = None
    active_route: Route | None = None
    candidate_routes: tuple[Route, ...] = ()
    selected_candidate_index: int = 0

    current_params: RouteModificationParams = Field(default_factory=RouteModificationParams)
    pending_params: RouteModificationParams | None = None
    explanation: str | None = None
    current_location: LonLat | None = None
    is_calculating_route: bool = False

    @property
    def selected_candidate(self) -> Route | None:
        if not self.candidate_routes:
            return None
        return self.candidate_routes[self.selected_candidate_index]
