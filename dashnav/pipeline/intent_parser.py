"""Intent parser for route modification requests.

Turns a free-text request ("make it more scenic") plus the current route into
structured routing parameters. LLM providers are tried first when they are
configured; the rule-based matcher is always last in the chain, so the
feature keeps working with no API keys at all.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Optional, Sequence

import httpx
from openai import AsyncOpenAI, OpenAIError
from pydantic import TypeAdapter, ValidationError

from dashnav.config import Settings
from dashnav.errors import IntentParseError
from dashnav.models import (
    LonLat,
    ParsedIntent,
    Profile,
    RoadClass,
    RouteContext,
    RouteModificationParams,
)


logger = logging.getLogger(__name__)


DEFAULT_EXPLANATION = "Route modified as requested."
GENERIC_EXPLANATION = "I'll modify your route based on your request."

# Provider and colloquial spellings folded onto the canonical vocabulary
AVOID_SYNONYMS = {
    "highway": RoadClass.HIGHWAY.value,
    "highways": RoadClass.HIGHWAY.value,
    "motorway": RoadClass.HIGHWAY.value,
    "motorways": RoadClass.HIGHWAY.value,
    "freeway": RoadClass.HIGHWAY.value,
    "toll": RoadClass.TOLL.value,
    "tolls": RoadClass.TOLL.value,
    "toll road": RoadClass.TOLL.value,
    "toll roads": RoadClass.TOLL.value,
    "ferry": RoadClass.FERRY.value,
    "ferries": RoadClass.FERRY.value,
}

# (phrases, parameter changes, explanation) - first match wins
KEYWORD_RULES: list[tuple[tuple[str, ...], dict, str]] = [
    (
        ("scenic", "scenery"),
        {"avoid": (RoadClass.HIGHWAY.value,)},
        "I'll route you through scenic backroads, avoiding highways.",
    ),
    (
        ("avoid highway", "no highway"),
        {"avoid": (RoadClass.HIGHWAY.value,)},
        "I'll find a route that avoids highways.",
    ),
    (
        ("avoid toll",),
        {"avoid": (RoadClass.TOLL.value,)},
        "I'll find a route that avoids toll roads.",
    ),
    (
        ("fastest", "quickest"),
        {"profile": Profile.DRIVING_TRAFFIC},
        "I'll find the fastest route considering traffic.",
    ),
    (
        ("shortest",),
        {"profile": Profile.DRIVING},
        "I'll find the shortest route.",
    ),
    (
        ("alternative", "different"),
        {},
        "I'll find an alternative route for you.",
    ),
]


OPENAI_SYSTEM_PROMPT = """You are a navigation assistant. Parse user requests for route modifications and return structured parameters.

User's current route: from [{origin_lon}, {origin_lat}] to [{dest_lon}, {dest_lat}]
Current parameters: {current_params}

Return JSON with:
- avoid: array of road types to avoid - MUST use these values: "highway" (highways/motorways), "toll" (toll roads), "ferry" (ferries)
- waypoints: array of [lng, lat] coordinates for intermediate stops (optional)
- profile: "driving", "walking", "cycling", or "driving-traffic"
- explanation: human-readable explanation of the route change

Examples:
- "make it more scenic" -> avoid: ["highway"], explanation: "I'll route you through scenic backroads, avoiding highways."
- "avoid highways" -> avoid: ["highway"], explanation: "I'll find a route that avoids highways."
- "avoid tolls" -> avoid: ["toll"], explanation: "I'll find a route that avoids toll roads."
- "go through downtown" -> waypoints: [downtown_coords], explanation: "I'll route you through downtown."
- "find the fastest route" -> profile: "driving-traffic", explanation: "I'll find the fastest route considering traffic."
"""

ANTHROPIC_SYSTEM_PROMPT = """You are a navigation assistant. Parse user requests for route modifications and return structured JSON.

Return JSON with:
- avoid: array of road types to avoid - MUST use: "highway", "toll", "ferry"
- waypoints: array of [lng, lat] coordinates (optional)
- profile: "driving", "walking", "cycling", or "driving-traffic"
- explanation: human-readable explanation

Examples: "avoid highways" -> {"avoid": ["highway"]}, "avoid tolls" -> {"avoid": ["toll"]}"""

ANTHROPIC_USER_PROMPT = (
    "Current route: from [{origin_lon}, {origin_lat}] to [{dest_lon}, {dest_lat}]. "
    "Current parameters: {current_params}. "
    "User request: {user_request}. Return JSON only."
)

_waypoint_adapter = TypeAdapter(LonLat)

# Errors a strategy may raise at runtime; any of them moves on to the next strategy
STRATEGY_ERRORS = (
    IntentParseError,
    httpx.HTTPError,
    OpenAIError,
    ValueError,
    KeyError,
    TypeError,
    IndexError,
)


def _base_params(context: RouteContext) -> RouteModificationParams:
    return context.current_params or RouteModificationParams()


def _prompt_values(context: RouteContext) -> dict:
    return {
        "origin_lon": context.origin[0],
        "origin_lat": context.origin[1],
        "dest_lon": context.destination[0],
        "dest_lat": context.destination[1],
        "current_params": _base_params(context).model_dump_json(),
    }


def extract_json(text: str) -> dict:
    """Pull the first JSON object out of a model reply."""
    json_match = re.search(r"\{.*\}", text, re.DOTALL)
    if not json_match:
        raise IntentParseError("No JSON object in model reply")

    data = json.loads(json_match.group())
    if not isinstance(data, dict):
        raise IntentParseError("Model reply is not a JSON object")
    return data


def normalize_avoid(tags: Sequence[str]) -> tuple[str, ...]:
    normalized = []
    for tag in tags:
        if not isinstance(tag, str):
            continue
        key = tag.strip().lower()
        if key:
            normalized.append(AVOID_SYNONYMS.get(key, key))
    return tuple(normalized)


def coerce_intent(data: dict, context: RouteContext) -> ParsedIntent:
    """
    Build a structurally valid intent from loosely-typed model output.

    Missing fields keep their current value, an unknown profile keeps the
    current profile and malformed waypoints are dropped.
    """
    base = _base_params(context)

    avoid = base.avoid
    if "avoid" in data:
        raw_avoid = data["avoid"] or []
        if isinstance(raw_avoid, str):
            raw_avoid = [raw_avoid]
        avoid = normalize_avoid(raw_avoid)

    waypoints = base.waypoints
    if "waypoints" in data:
        waypoints = []
        for raw in data["waypoints"] or []:
            try:
                waypoints.append(_waypoint_adapter.validate_python(raw))
            except ValidationError:
                logger.debug("Dropping malformed waypoint %r", raw)
        waypoints = tuple(waypoints)

    profile = base.profile
    if data.get("profile"):
        try:
            profile = Profile(str(data["profile"]).strip().lower())
        except ValueError:
            logger.debug("Ignoring unknown profile %r", data["profile"])

    explanation = data.get("explanation")
    if not isinstance(explanation, str) or not explanation.strip():
        explanation = DEFAULT_EXPLANATION

    return ParsedIntent(
        modified_params=RouteModificationParams(avoid=avoid, waypoints=waypoints, profile=profile),
        explanation=explanation.strip(),
    )


class IntentStrategy(ABC):
    """One way of turning an utterance into route parameters."""

    name: str = "strategy"

    @abstractmethod
    async def parse(self, utterance: str, context: RouteContext) -> ParsedIntent:
        """Parse the utterance. May raise; the parser chain handles failures."""


class OpenAIIntentStrategy(IntentStrategy):
    """OpenAI-compatible chat completions with a JSON response format."""

    name = "openai"

    def __init__(self, client: AsyncOpenAI, model: str = "gpt-4o-mini"):
        self.client = client
        self.model = model

    async def parse(self, utterance: str, context: RouteContext) -> ParsedIntent:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": OPENAI_SYSTEM_PROMPT.format(**_prompt_values(context))},
                {"role": "user", "content": utterance},
            ],
            response_format={"type": "json_object"},
            temperature=0.3,  # Low temp for consistent extraction
        )
        content = response.choices[0].message.content or ""
        return coerce_intent(extract_json(content), context)


class AnthropicIntentStrategy(IntentStrategy):
    """Anthropic Messages API over plain HTTP."""

    name = "anthropic"

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        model: str = "claude-3-5-haiku-20241022",
        base_url: str = "https://api.anthropic.com",
        timeout: float = 30.0,
    ):
        self.client = client
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def parse(self, utterance: str, context: RouteContext) -> ParsedIntent:
        response = await self.client.post(
            f"{self.base_url}/v1/messages",
            headers={
                "x-api-key": self.api_key,
                "anthropic-version": "2023-06-01",
                "Content-Type": "application/json",
            },
            json={
                "model": self.model,
                "max_tokens": 1024,
                "system": ANTHROPIC_SYSTEM_PROMPT,
                "messages": [
                    {
                        "role": "user",
                        "content": ANTHROPIC_USER_PROMPT.format(
                            user_request=utterance, **_prompt_values(context)
                        ),
                    }
                ],
            },
            timeout=self.timeout,
        )

        if response.status_code != 200:
            raise IntentParseError(f"Anthropic API error: {response.status_code}")

        data = response.json()
        blocks = data.get("content") if isinstance(data, dict) else None
        if not isinstance(blocks, list):
            raise IntentParseError("Anthropic reply has no content blocks")

        text = "".join(
            str(block.get("text", ""))
            for block in blocks
            if isinstance(block, dict) and block.get("type") == "text"
        )
        return coerce_intent(extract_json(text), context)


class RuleBasedIntentStrategy(IntentStrategy):
    """Keyword matcher with no external dependency. Never raises."""

    name = "rules"

    def match(self, utterance: str, context: RouteContext) -> ParsedIntent:
        text = utterance.lower()
        base = _base_params(context)

        for phrases, changes, explanation in KEYWORD_RULES:
            if any(phrase in text for phrase in phrases):
                return ParsedIntent(
                    modified_params=base.model_copy(update=changes),
                    explanation=explanation,
                )

        return ParsedIntent(modified_params=base, explanation=GENERIC_EXPLANATION)

    async def parse(self, utterance: str, context: RouteContext) -> ParsedIntent:
        return self.match(utterance, context)


class IntentParser:
    """
    Run a fixed chain of strategies until one succeeds.

    The chain is chosen once at construction. A failure only affects the
    current request; the next request starts again from the first strategy.
    """

    def __init__(self, strategies: Optional[Sequence[IntentStrategy]] = None):
        self.strategies: list[IntentStrategy] = list(strategies or [])
        self._fallback = next(
            (s for s in self.strategies if isinstance(s, RuleBasedIntentStrategy)),
            None,
        )
        if self._fallback is None:
            self._fallback = RuleBasedIntentStrategy()
            self.strategies.append(self._fallback)

    @property
    def provider_names(self) -> list[str]:
        return [strategy.name for strategy in self.strategies]

    async def parse(self, utterance: str, context: RouteContext) -> ParsedIntent:
        """Parse an utterance. Always returns a valid intent."""
        for strategy in self.strategies:
            try:
                intent = await strategy.parse(utterance, context)
                logger.info("Parsed route request with %s: %s", strategy.name, intent.explanation)
                return intent
            except STRATEGY_ERRORS as e:
                logger.warning("Intent strategy %s failed, falling back: %s", strategy.name, e)

        return ParsedIntent(modified_params=_base_params(context), explanation=GENERIC_EXPLANATION)


def build_intent_parser(
    settings: Settings,
    http_client: Optional[httpx.AsyncClient] = None,
    openai_client: Optional[AsyncOpenAI] = None,
) -> IntentParser:
    """
    Select the strategy chain from configuration.

    OpenAI first, then Anthropic, each only when its key is configured.
    The rule-based matcher is always appended.
    """
    strategies: list[IntentStrategy] = []

    if settings.openai_api_key:
        client = openai_client or AsyncOpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            timeout=settings.http_timeout,
        )
        strategies.append(OpenAIIntentStrategy(client, model=settings.openai_model))

    if settings.anthropic_api_key:
        if http_client is None:
            http_client = httpx.AsyncClient(timeout=settings.http_timeout)
        strategies.append(
            AnthropicIntentStrategy(
                http_client,
                api_key=settings.anthropic_api_key,
                model=settings.anthropic_model,
                base_url=settings.anthropic_base_url,
                timeout=settings.http_timeout,
            )
        )

    strategies.append(RuleBasedIntentStrategy())

    parser = IntentParser(strategies)
    logger.info("Intent providers: %s", ", ".join(parser.provider_names))
    return parser
