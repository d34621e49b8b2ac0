"""HTTP endpoint that parses route modification requests for the front end."""

import logging
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from dashnav import __version__
from dashnav.models import ParsedIntent, RouteModificationRequest
from dashnav.pipeline.intent_parser import IntentParser


logger = logging.getLogger(__name__)

MISSING_FIELDS_MESSAGE = "Missing required fields: userRequest and currentRoute"
MISSING_ENDPOINTS_MESSAGE = "Missing origin or destination in currentRoute"
INVALID_REQUEST_MESSAGE = "Invalid route modification request"
INTERNAL_ERROR_MESSAGE = "Failed to process route modification request"


class AppException(HTTPException):
    def __init__(self, status_code: int, message: str, details: Optional[Any] = None):
        super().__init__(status_code=status_code, detail={
            "error": message,
            "details": details,
        })


class ValidationError(AppException):
    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(status_code=400, message=message, details=details)


def _validation_message(errors: list[dict]) -> str:
    """Pick the client-facing message for a failed body validation."""
    for error in errors:
        loc = [part for part in error.get("loc", ()) if part != "body"]
        if not loc or (loc[0] in ("userRequest", "currentRoute") and len(loc) == 1):
            return MISSING_FIELDS_MESSAGE
        if loc[0] == "currentRoute" and len(loc) > 1 and loc[1] in ("origin", "destination") and error.get("type") == "missing":
            return MISSING_ENDPOINTS_MESSAGE
    return INVALID_REQUEST_MESSAGE


def create_app(parser: Optional[IntentParser] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        parser: Intent parser to serve. Defaults to the rule-based chain only,
            so the endpoint works without any provider keys.
    """
    app = FastAPI(
        title="dashnav",
        description="Route modification intent parsing",
        version=__version__,
    )
    app.state.parser = parser or IntentParser()

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        return JSONResponse(status_code=exc.status_code, content=exc.detail)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        message = _validation_message(exc.errors())
        logger.info("Rejected %s: %s", request.url.path, message)
        return JSONResponse(status_code=400, content={"error": message})

    @app.get("/health")
    async def health():
        return {
            "status": "healthy",
            "service": "route-modification",
            "providers": app.state.parser.provider_names,
        }

    @app.post("/api/route-modification")
    async def route_modification(body: RouteModificationRequest):
        if not body.user_request.strip():
            raise ValidationError(MISSING_FIELDS_MESSAGE)

        try:
            intent: ParsedIntent = await app.state.parser.parse(body.user_request, body.current_route)
        except Exception:
            # Logged server-side only; the client never sees provider details
            logger.exception("Error processing route modification")
            return JSONResponse(status_code=500, content={"error": INTERNAL_ERROR_MESSAGE})

        return intent.model_dump(mode="json", by_alias=True)

    return app
