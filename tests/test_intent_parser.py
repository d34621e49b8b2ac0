"""Tests for the intent parser and its provider chain."""

import json
from types import SimpleNamespace

import httpx
import pytest

from dashnav.config import Settings
from dashnav.errors import IntentParseError
from dashnav.models import Profile, RouteContext, RouteModificationParams
from dashnav.pipeline.intent_parser import (
    GENERIC_EXPLANATION,
    AnthropicIntentStrategy,
    IntentParser,
    IntentStrategy,
    OpenAIIntentStrategy,
    RuleBasedIntentStrategy,
    build_intent_parser,
    coerce_intent,
    extract_json,
)

from fakes import GOLDEN_GATE_PARK, SAN_FRANCISCO


def make_context(current_params=None) -> RouteContext:
    return RouteContext(origin=SAN_FRANCISCO, destination=GOLDEN_GATE_PARK, current_params=current_params)


class TestRuleBasedParsing:
    """Test the keyword matcher that works without any API key."""

    def setup_method(self):
        self.rules = RuleBasedIntentStrategy()

    def test_avoid_highways(self):
        intent = self.rules.match("avoid highways please", make_context())

        assert list(intent.modified_params.avoid) == ["highway"]
        assert intent.explanation

    def test_no_match_changes_nothing(self):
        intent = self.rules.match("asdkjasd", make_context())

        assert intent.modified_params == RouteModificationParams()
        assert intent.explanation == GENERIC_EXPLANATION

    def test_scenic(self):
        intent = self.rules.match("Make it more SCENIC", make_context())

        assert intent.modified_params.avoid == ("highway",)
        assert "scenic backroads" in intent.explanation

    def test_avoid_tolls(self):
        intent = self.rules.match("can we avoid tolls", make_context())
        assert intent.modified_params.avoid == ("toll",)

    def test_fastest(self):
        intent = self.rules.match("what's the quickest way", make_context())
        assert intent.modified_params.profile is Profile.DRIVING_TRAFFIC

    def test_shortest(self):
        current = RouteModificationParams(profile=Profile.DRIVING_TRAFFIC)
        intent = self.rules.match("shortest please", make_context(current))
        assert intent.modified_params.profile is Profile.DRIVING

    def test_alternative_keeps_current_params(self):
        current = RouteModificationParams(avoid=("toll",), profile=Profile.CYCLING)
        intent = self.rules.match("show me something different", make_context(current))

        assert intent.modified_params == current
        assert "alternative" in intent.explanation

    def test_first_match_wins(self):
        intent = self.rules.match("scenic, and avoid tolls", make_context())
        assert intent.modified_params.avoid == ("highway",)

    def test_matched_rule_keeps_other_fields(self):
        current = RouteModificationParams(waypoints=((-122.45, 37.77),), profile=Profile.DRIVING_TRAFFIC)
        intent = self.rules.match("avoid toll roads", make_context(current))

        assert intent.modified_params.avoid == ("toll",)
        assert intent.modified_params.waypoints == ((-122.45, 37.77),)
        assert intent.modified_params.profile is Profile.DRIVING_TRAFFIC


class TestModelOutputHandling:
    """Test JSON extraction and normalisation of LLM replies."""

    def test_extract_json_from_prose(self):
        data = extract_json('Here you go:\n{"avoid": ["toll"], "explanation": "ok"}\nEnjoy!')
        assert data == {"avoid": ["toll"], "explanation": "ok"}

    def test_extract_json_without_object(self):
        with pytest.raises(IntentParseError):
            extract_json("I cannot help with that.")

    def test_synonyms_fold_onto_canonical_vocabulary(self):
        intent = coerce_intent({"avoid": ["Motorway", "tolls", "ferry", "motorway"]}, make_context())
        assert intent.modified_params.avoid == ("highway", "toll", "ferry")

    def test_missing_fields_keep_current_values(self):
        current = RouteModificationParams(avoid=("ferry",), profile=Profile.WALKING)
        intent = coerce_intent({"explanation": "Walking it is."}, make_context(current))

        assert intent.modified_params == current
        assert intent.explanation == "Walking it is."

    def test_unknown_profile_and_bad_waypoints(self):
        intent = coerce_intent(
            {"profile": "teleport", "waypoints": [[-122.4, 37.7], [500, 95], "downtown"]},
            make_context(),
        )

        assert intent.modified_params.profile is Profile.DRIVING
        assert intent.modified_params.waypoints == ((-122.4, 37.7),)
        assert intent.explanation


class FailingStrategy(IntentStrategy):
    name = "failing"

    def __init__(self):
        self.calls = 0

    async def parse(self, utterance, context):
        self.calls += 1
        raise IntentParseError("provider down")


def fake_openai_client(content: str, captured: dict):
    async def create(**kwargs):
        captured.update(kwargs)
        message = SimpleNamespace(content=content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


@pytest.mark.asyncio
class TestProviderChain:
    """Test fall-through between strategies."""

    async def test_falls_back_to_rules(self):
        failing = FailingStrategy()
        parser = IntentParser([failing])

        intent = await parser.parse("avoid highways please", make_context())

        assert failing.calls == 1
        assert intent.modified_params.avoid == ("highway",)

    async def test_failure_only_affects_one_request(self):
        failing = FailingStrategy()
        parser = IntentParser([failing, RuleBasedIntentStrategy()])

        await parser.parse("scenic", make_context())
        await parser.parse("scenic", make_context())

        assert failing.calls == 2

    async def test_never_raises(self):
        parser = IntentParser([FailingStrategy(), FailingStrategy()])
        intent = await parser.parse("asdkjasd", make_context())
        assert intent.explanation == GENERIC_EXPLANATION

    async def test_openai_strategy(self):
        captured = {}
        client = fake_openai_client(
            json.dumps({"avoid": ["motorway"], "profile": "driving-traffic", "explanation": "Fast and no highways."}),
            captured,
        )
        parser = IntentParser([OpenAIIntentStrategy(client, model="gpt-4o-mini")])

        intent = await parser.parse("fast but no highways", make_context())

        assert intent.modified_params.avoid == ("highway",)
        assert intent.modified_params.profile is Profile.DRIVING_TRAFFIC
        assert intent.explanation == "Fast and no highways."
        assert captured["model"] == "gpt-4o-mini"
        assert captured["response_format"] == {"type": "json_object"}
        assert captured["messages"][1] == {"role": "user", "content": "fast but no highways"}
        assert "-122.4194" in captured["messages"][0]["content"]

    async def test_openai_malformed_reply_falls_through(self):
        client = fake_openai_client("not json at all", {})
        parser = IntentParser([OpenAIIntentStrategy(client), RuleBasedIntentStrategy()])

        intent = await parser.parse("avoid toll", make_context())

        assert intent.modified_params.avoid == ("toll",)

    async def test_anthropic_strategy(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["api_key"] = request.headers["x-api-key"]
            seen["body"] = json.loads(request.content)
            text = 'Sure! {"avoid": ["tolls"], "explanation": "No tolls on this one."}'
            return httpx.Response(200, json={"content": [{"type": "text", "text": text}]})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            strategy = AnthropicIntentStrategy(client, api_key="test-key")
            intent = await IntentParser([strategy]).parse("no tolls", make_context())

        assert intent.modified_params.avoid == ("toll",)
        assert intent.explanation == "No tolls on this one."
        assert seen["url"] == "https://api.anthropic.com/v1/messages"
        assert seen["api_key"] == "test-key"
        assert "no tolls" in seen["body"]["messages"][0]["content"]

    async def test_anthropic_error_status_falls_through(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(529, json={"error": {"type": "overloaded_error"}})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            parser = IntentParser([AnthropicIntentStrategy(client, api_key="test-key")])
            intent = await parser.parse("make it scenic", make_context())

        assert intent.modified_params.avoid == ("highway",)

    @pytest.mark.parametrize(
        "body",
        [
            ["not", "an", "object"],
            {"content": ['{"avoid": ["highway"]}']},
            {"content": "avoid highways"},
        ],
    )
    async def test_anthropic_unexpected_body_falls_through(self, body):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=body)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            parser = IntentParser([AnthropicIntentStrategy(client, api_key="test-key")])
            intent = await parser.parse("avoid tolls", make_context())

        assert intent.modified_params.avoid == ("toll",)


class TestBuildIntentParser:
    """Test strategy selection from configuration."""

    def test_rules_only_without_keys(self):
        parser = build_intent_parser(Settings(openai_api_key=None, anthropic_api_key=None))
        assert parser.provider_names == ["rules"]

    def test_order_with_all_keys(self):
        parser = build_intent_parser(
            Settings(openai_api_key="sk-test", anthropic_api_key="anthropic-test"),
            http_client=httpx.AsyncClient(),
        )
        assert parser.provider_names == ["openai", "anthropic", "rules"]

    def test_rules_appended_when_missing(self):
        parser = IntentParser([FailingStrategy()])
        assert parser.provider_names == ["failing", "rules"]
