"""Exception hierarchy shared by the provider adapters and the orchestrator."""


class DashnavError(Exception):
    """Base class for all application errors."""


class ConfigurationError(DashnavError):
    """A required credential or setting is missing."""


class RoutingError(DashnavError):
    """Base class for routing provider failures."""


class ProviderUnavailableError(RoutingError):
    """The provider could not be reached or answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class NoRouteFoundError(RoutingError):
    """The provider answered, but had no route or place for the request."""


class IntentParseError(DashnavError):
    """An intent strategy could not produce usable parameters."""


class LocationError(DashnavError):
    """A position fix could not be obtained."""

    UNSUPPORTED = -1
    PERMISSION_DENIED = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT = 3

    def __init__(self, code: int, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class NavigationError(DashnavError):
    """Base class for orchestrator misuse."""


class InvalidTransitionError(NavigationError):
    """The requested operation is not allowed from the current state."""


class TranscriptionError(DashnavError):
    """Recorded audio could not be turned into text."""


class RouteRequestInFlightError(NavigationError):
    """A routing request is already running for this session."""
