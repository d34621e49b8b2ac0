"""Client for a running route-modification endpoint.

Implements the same ``parse`` contract as the in-process IntentParser, so the
orchestrator does not care whether parsing happens locally or on a server.
"""

import logging

import httpx
from pydantic import ValidationError

from dashnav.models import ParsedIntent, RouteContext, RouteModificationRequest
from dashnav.pipeline.intent_parser import RuleBasedIntentStrategy


logger = logging.getLogger(__name__)

ROUTE_MODIFICATION_PATH = "/api/route-modification"


class RemoteIntentParser:
    """
    Parse route requests through ``POST /api/route-modification``.

    If the endpoint cannot be reached or answers with an error, the request is
    parsed locally with the rule-based matcher instead.
    """

    def __init__(self, client: httpx.AsyncClient, base_url: str, timeout: float = 30.0):
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._fallback = RuleBasedIntentStrategy()

    async def parse(self, utterance: str, context: RouteContext) -> ParsedIntent:
        try:
            body = RouteModificationRequest(user_request=utterance, current_route=context)
            response = await self.client.post(
                f"{self.base_url}{ROUTE_MODIFICATION_PATH}",
                json=body.model_dump(mode="json", by_alias=True, exclude_none=True),
                timeout=self.timeout,
            )
            response.raise_for_status()
            return ParsedIntent.model_validate(response.json())
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            logger.warning("Intent endpoint failed, parsing locally: %s", e)
            return self._fallback.match(utterance, context)
