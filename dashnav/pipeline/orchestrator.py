"""Navigation state machine.

The orchestrator is the single owner of the NavigationSession. It sequences
the steps of a trip:

1. Destination chosen -> fetch a route (idle -> searching -> navigating)
2. Modification request -> parse intent, fetch alternatives, drop near-duplicates
   (navigating -> searching -> comparing-routes, or back to navigating)
3. Choice confirmed -> single active route again (comparing-routes -> navigating)
4. Start over (navigating -> idle)

Every failure lands in a stable, named state and is reported as a notice.
Display code subscribes to snapshots and never writes to the session.
"""

import logging
from typing import Callable, Optional, Protocol

from dashnav.errors import (
    ConfigurationError,
    DashnavError,
    InvalidTransitionError,
    LocationError,
    RouteRequestInFlightError,
    RoutingError,
)
from dashnav.models import (
    LonLat,
    NavigationSession,
    NavigationState,
    Notice,
    NoticeLevel,
    ParsedIntent,
    Place,
    RouteContext,
    RouteModificationParams,
)
from dashnav.tools.location import LocationTracker
from dashnav.tools.routing import RoutingProvider

from .route_comparator import RouteComparator


logger = logging.getLogger(__name__)

# San Francisco, used whenever no live fix is available
DEFAULT_ORIGIN: LonLat = (-122.4194, 37.7749)

ROUTE_FAILED_MESSAGE = "Failed to calculate route. Please try again or select a different destination."
ALTERNATIVES_FAILED_MESSAGE = "Failed to find alternative routes. Please try again or rephrase your request."
NO_ALTERNATIVE_MESSAGE = (
    "I couldn't find a route that is meaningfully different from your current one, "
    "so I'll keep you on it."
)
ROUTING_DISABLED_MESSAGE = "Route features are disabled: no routing provider token is configured."


class IntentSource(Protocol):
    """Anything that turns an utterance into route parameters without raising."""

    async def parse(self, utterance: str, context: RouteContext) -> ParsedIntent:
        ...


SessionListener = Callable[[NavigationSession], None]
NoticeListener = Callable[[Notice], None]


class NavigationOrchestrator:
    """
    Explicit state machine for one navigation session.

    Only one routing request may be in flight at a time. While a request is
    running the session is ``searching`` with ``is_calculating_route`` set,
    and other transitions raise RouteRequestInFlightError until it resolves
    or is cancelled.
    """

    def __init__(
        self,
        routing: RoutingProvider,
        intent_parser: IntentSource,
        comparator: Optional[RouteComparator] = None,
        location: Optional[LocationTracker] = None,
        default_origin: LonLat = DEFAULT_ORIGIN,
        on_notice: Optional[NoticeListener] = None,
    ):
        self.routing = routing
        self.intent_parser = intent_parser
        self.comparator = comparator or RouteComparator()
        self.location = location
        self.default_origin = default_origin
        self.on_notice = on_notice

        self.notices: list[Notice] = []
        self._session = NavigationSession()
        self._listeners: list[SessionListener] = []
        self._request_id = 0
        self._watch_handle: Optional[int] = None

        if not self.routing_enabled:
            self._notify(NoticeLevel.ERROR, ROUTING_DISABLED_MESSAGE, persistent=True)

    # ------------------------------------------------------------------
    # Snapshot access
    # ------------------------------------------------------------------

    @property
    def session(self) -> NavigationSession:
        return self._session

    @property
    def routing_enabled(self) -> bool:
        return self.routing.is_configured()

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register for new snapshots. Returns a function that unsubscribes."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, **changes) -> NavigationSession:
        self._session = self._session.model_copy(update=changes)
        self._sync_location_watch()
        for listener in list(self._listeners):
            listener(self._session)
        return self._session

    def _notify(self, level: NoticeLevel, message: str, persistent: bool = False) -> None:
        notice = Notice(level=level, message=message, persistent=persistent)
        self.notices.append(notice)
        logger.log(
            logging.ERROR if level is NoticeLevel.ERROR else logging.INFO,
            "Notice (%s): %s", level.value, message,
        )
        if self.on_notice is not None:
            self.on_notice(notice)

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _require_state(self, state: NavigationState, action: str) -> None:
        if self._session.state is NavigationState.SEARCHING and self._session.is_calculating_route:
            raise RouteRequestInFlightError(f"Cannot {action} while a route is being calculated")
        if self._session.state is not state:
            raise InvalidTransitionError(
                f"Cannot {action} while {self._session.state.value}"
            )

    def _begin_request(self) -> int:
        self._request_id += 1
        return self._request_id

    def _is_stale(self, request_id: int) -> bool:
        """A response is stale once a newer request exists or the session left ``searching``."""
        return (
            request_id != self._request_id
            or self._session.state is not NavigationState.SEARCHING
        )

    # ------------------------------------------------------------------
    # Location
    # ------------------------------------------------------------------

    def _sync_location_watch(self) -> None:
        """Track continuously only while navigating."""
        if self.location is None:
            return

        navigating = self._session.state is NavigationState.NAVIGATING
        if navigating and self._watch_handle is None:
            self._watch_handle = self.location.watch(self._on_location, self._on_location_error)
        elif not navigating and self._watch_handle is not None:
            self.location.unwatch(self._watch_handle)
            self._watch_handle = None

    def _on_location(self, position: LonLat) -> None:
        # Position updates never change the navigation state
        self._commit(current_location=position)

    def _on_location_error(self, error: LocationError) -> None:
        self._notify(NoticeLevel.WARNING, f"GPS signal lost: {error.message}")

    async def _resolve_origin(self) -> LonLat:
        """Live fix if there is one, otherwise the default origin."""
        if self._session.current_location is not None:
            return self._session.current_location

        if self.location is not None:
            try:
                position = await self.location.get_once()
            except LocationError as e:
                self._notify(NoticeLevel.WARNING, f"Using default start point: {e.message}")
            else:
                self._commit(current_location=position)
                return position

        return self.default_origin

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def search_destinations(self, query: str) -> list[Place]:
        """Look up places for the destination search box. Failures become notices."""
        if not self.routing_enabled:
            return []
        try:
            return await self.routing.search_places(query)
        except (RoutingError, ConfigurationError) as e:
            logger.warning("Place search failed: %s", e)
            self._notify(NoticeLevel.ERROR, "Place search failed. Please try again.")
            return []

    async def select_destination(self, place: Place) -> NavigationSession:
        """idle -> searching -> navigating (or back to idle on failure)."""
        self._require_state(NavigationState.IDLE, "select a destination")

        if not self.routing_enabled:
            logger.warning("Ignoring destination %s: routing is disabled", place.name)
            return self._session

        request_id = self._begin_request()
        params = RouteModificationParams()
        self._commit(
            state=NavigationState.SEARCHING,
            destination=place,
            is_calculating_route=True,
        )

        try:
            origin = await self._resolve_origin()
            route = await self.routing.route(origin, place.coordinates, params)
        except DashnavError as e:
            if self._is_stale(request_id):
                return self._session
            logger.warning("Route to %s failed: %s", place.name, e)
            self._commit(
                state=NavigationState.IDLE,
                destination=None,
                active_route=None,
                is_calculating_route=False,
            )
            self._notify(NoticeLevel.ERROR, ROUTE_FAILED_MESSAGE)
            return self._session
        except BaseException:
            self._settle(request_id, NavigationState.IDLE)
            raise

        if self._is_stale(request_id):
            logger.debug("Dropping stale route response %d", request_id)
            return self._session

        logger.info(
            "Route to %s: %.0f m, %.0f s", place.name, route.distance, route.duration
        )
        return self._commit(
            state=NavigationState.NAVIGATING,
            active_route=route,
            current_params=params,
            pending_params=None,
            explanation=None,
            is_calculating_route=False,
        )

    async def request_modification(self, utterance: str) -> NavigationSession:
        """
        navigating -> searching -> comparing-routes.

        Falls back to navigating, with the active route untouched, when no
        meaningfully different alternative exists or anything fails.
        """
        self._require_state(NavigationState.NAVIGATING, "modify the route")

        if not utterance.strip():
            self._notify(NoticeLevel.INFO, "Describe how you'd like to change your route.")
            return self._session

        request_id = self._begin_request()
        reference = self._session.active_route
        destination = self._session.destination
        self._commit(state=NavigationState.SEARCHING, is_calculating_route=True)

        try:
            origin = await self._resolve_origin()
            context = RouteContext(
                origin=origin,
                destination=destination.coordinates,
                current_params=self._session.current_params,
            )
            intent = await self.intent_parser.parse(utterance, context)
            if self._is_stale(request_id):
                return self._session

            candidates = await self.routing.alternatives(
                origin, destination.coordinates, intent.modified_params
            )
        except DashnavError as e:
            if self._is_stale(request_id):
                return self._session
            logger.warning("Route modification %r failed: %s", utterance, e)
            self._commit(state=NavigationState.NAVIGATING, is_calculating_route=False)
            self._notify(NoticeLevel.ERROR, ALTERNATIVES_FAILED_MESSAGE)
            return self._session
        except BaseException:
            self._settle(request_id, NavigationState.NAVIGATING)
            raise

        if self._is_stale(request_id):
            logger.debug("Dropping stale alternatives response %d", request_id)
            return self._session

        routes = self.comparator.deduplicate(candidates, reference)
        logger.info(
            "Modification %r: %d candidate(s), %d after deduplication",
            utterance, len(candidates), len(routes),
        )

        if not self.comparator.has_alternatives(routes):
            self._commit(
                state=NavigationState.NAVIGATING,
                explanation=intent.explanation,
                is_calculating_route=False,
            )
            self._notify(NoticeLevel.INFO, NO_ALTERNATIVE_MESSAGE)
            return self._session

        self._commit(
            state=NavigationState.COMPARING_ROUTES,
            candidate_routes=tuple(routes),
            selected_candidate_index=0,
            pending_params=intent.modified_params,
            explanation=intent.explanation,
            is_calculating_route=False,
        )
        count = len(routes) - 1
        self._notify(
            NoticeLevel.INFO,
            f"{intent.explanation} Found {count} alternative{'s' if count != 1 else ''}.",
        )
        return self._session

    def select_candidate(self, index: int) -> NavigationSession:
        """Preview a candidate while comparing. Does not confirm it."""
        self._require_state(NavigationState.COMPARING_ROUTES, "select a candidate")
        if not 0 <= index < len(self._session.candidate_routes):
            raise IndexError(f"No candidate route at index {index}")
        return self._commit(selected_candidate_index=index)

    def confirm_route(self, index: Optional[int] = None) -> NavigationSession:
        """
        comparing-routes -> navigating.

        ``index`` picks a candidate to become the active route; None (or 0,
        the current route) keeps the current route.
        """
        self._require_state(NavigationState.COMPARING_ROUTES, "confirm a route")
        session = self._session

        changes = {}
        if index is not None:
            if not 0 <= index < len(session.candidate_routes):
                raise IndexError(f"No candidate route at index {index}")
            if index != 0:
                changes["active_route"] = session.candidate_routes[index]
                changes["current_params"] = session.pending_params or session.current_params

        return self._commit(
            state=NavigationState.NAVIGATING,
            candidate_routes=(),
            selected_candidate_index=0,
            pending_params=None,
            **changes,
        )

    def reset(self) -> NavigationSession:
        """navigating -> idle. Forgets destination, route and candidates."""
        self._require_state(NavigationState.NAVIGATING, "start over")
        return self._commit(
            state=NavigationState.IDLE,
            destination=None,
            active_route=None,
            candidate_routes=(),
            selected_candidate_index=0,
            current_params=RouteModificationParams(),
            pending_params=None,
            explanation=None,
        )

    def cancel(self) -> NavigationSession:
        """Abandon the in-flight request; its response will be ignored."""
        if self._session.state is not NavigationState.SEARCHING:
            return self._session

        self._request_id += 1
        if self._session.active_route is not None:
            return self._commit(state=NavigationState.NAVIGATING, is_calculating_route=False)
        return self._commit(
            state=NavigationState.IDLE,
            destination=None,
            is_calculating_route=False,
        )

    def _settle(self, request_id: int, fallback: NavigationState) -> None:
        """Return to a stable state when an unexpected error escapes a request."""
        if request_id == self._request_id and self._session.state is NavigationState.SEARCHING:
            if fallback is NavigationState.IDLE:
                self._commit(state=fallback, destination=None, active_route=None, is_calculating_route=False)
            else:
                self._commit(state=fallback, is_calculating_route=False)

    def close(self) -> None:
        """Stop location tracking."""
        if self.location is not None and self._watch_handle is not None:
            self.location.unwatch(self._watch_handle)
            self._watch_handle = None
