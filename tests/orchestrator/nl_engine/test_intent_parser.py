"""Tests for intent extraction from free text."""

import pytest

from src.errors import ExtractionError
from src.orchestrator.nl_engine.intent_parser import IntentParser, parse_intent_payload
from tests.helpers import ScriptedGenerator, intent_json


# ============================================================================
# Payload parsing
# ============================================================================


class TestParseIntentPayload:
    """Tests for validating generator output."""

    def test_valid_payload(self):
        """A well-formed object becomes an Intent."""
        intent = parse_intent_payload(intent_json(), "email me the report")
        assert intent.trigger == "schedule"
        assert [s.action for s in intent.steps] == ["fetch", "notify"]
        assert intent.version == 1

    def test_code_fences_are_stripped(self):
        """Markdown fences around the JSON are tolerated."""
        raw = f"```json\n{intent_json()}\n```"
        assert parse_intent_payload(raw, "x").goal == "Email the daily sales report"

    def test_version_in_payload_is_ignored(self):
        """The model cannot choose the intent version."""
        intent = parse_intent_payload(intent_json(version=7), "x")
        assert intent.version == 1

    @pytest.mark.parametrize("raw", ["", "   ", "not json", "[1, 2]", '{"goal": "x"}'])
    def test_unusable_output(self, raw):
        """Empty, non-JSON, non-object or incomplete output is E-1002."""
        with pytest.raises(ExtractionError) as exc_info:
            parse_intent_payload(raw, "do something")
        assert exc_info.value.code == "E-1002"
        assert exc_info.value.original_text == "do something"

    def test_invalid_trigger(self):
        """An unknown trigger type names the field."""
        with pytest.raises(ExtractionError) as exc_info:
            parse_intent_payload(intent_json(trigger="hourly"), "x")
        assert "trigger" in exc_info.value.message

    def test_clarification_request(self):
        """An ambiguous request surfaces the model's question."""
        raw = '{"needs_clarification": true, "question": "Which report?"}'
        with pytest.raises(ExtractionError) as exc_info:
            parse_intent_payload(raw, "send the report")
        assert exc_info.value.code == "E-1001"
        assert exc_info.value.message == "Which report?"

    def test_clarification_without_question(self):
        """A generic question is used when the model gives none."""
        with pytest.raises(ExtractionError) as exc_info:
            parse_intent_payload('{"needs_clarification": true}', "x")
        assert exc_info.value.message.startswith("Could you describe")


# ============================================================================
# IntentParser
# ============================================================================


class TestIntentParser:
    """Tests for the generator-backed parser."""

    @pytest.mark.asyncio
    async def test_parse(self):
        """The latest text is sent with the extraction system prompt."""
        generator = ScriptedGenerator(intent_json())
        intent = await IntentParser(generator, timeout=5).parse("Email the report daily")
        assert intent.goal == "Email the daily sales report"
        assert generator.prompts == ["Email the report daily"]
        assert '"needs_clarification"' in generator.contexts[0]
        assert "KNOWN ACTIONS" in generator.contexts[0]

    @pytest.mark.asyncio
    async def test_history_is_included(self):
        """Only the last five earlier messages are sent."""
        generator = ScriptedGenerator(intent_json())
        history = [f"message {i}" for i in range(8)]
        await IntentParser(generator, timeout=5).parse("latest", history=history)
        prompt = generator.prompts[0]
        assert prompt.startswith("Earlier messages:")
        assert "message 2" not in prompt
        assert "- message 7" in prompt
        assert prompt.endswith("Latest request:\nlatest")

    @pytest.mark.asyncio
    async def test_empty_text(self):
        """Blank input never reaches the generator."""
        generator = ScriptedGenerator()
        with pytest.raises(ExtractionError) as exc_info:
            await IntentParser(generator, timeout=5).parse("   ")
        assert exc_info.value.code == "E-1001"
        assert generator.prompts == []

    @pytest.mark.asyncio
    async def test_timeout(self):
        """A slow generator is cut off with E-1003."""
        generator = ScriptedGenerator(intent_json(), delay=1.0)
        with pytest.raises(ExtractionError) as exc_info:
            await IntentParser(generator, timeout=0.05).parse("anything")
        assert exc_info.value.code == "E-1003"

    @pytest.mark.asyncio
    async def test_generator_failure(self):
        """A generator exception becomes E-1003."""
        generator = ScriptedGenerator(RuntimeError("connection reset"))
        with pytest.raises(ExtractionError) as exc_info:
            await IntentParser(generator, timeout=5).parse("anything")
        assert exc_info.value.code == "E-1003"
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_timeout_from_environment(self, monkeypatch):
        """Without an explicit timeout the environment value applies."""
        monkeypatch.setenv("AUTOFLOW_GENERATION_TIMEOUT", "12.5")
        assert IntentParser(ScriptedGenerator()).timeout == 12.5
