"""Intent parser for natural language automation requests.

This module turns a user's free-text request into a structured Intent by
asking a text generator for a JSON object and validating it with Pydantic.

Extraction never guesses:
- Empty or malformed generator output is a recoverable ExtractionError
- A request the model marks as ambiguous comes back as an ExtractionError
  carrying the clarifying question
- A generator that does not answer within the timeout is an ExtractionError
"""

import asyncio
import json
import logging
import re
from typing import TYPE_CHECKING, Any, Optional

from pydantic import ValidationError

from src.errors import ExtractionError
from src.orchestrator.models.intent import Intent
from src.orchestrator.nl_engine.config import get_generation_timeout
from src.orchestrator.nl_engine.node_catalog import ACTION_ALIASES

if TYPE_CHECKING:
    from src.services.text_generation_client import TextGenerator

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)


def _build_system_prompt() -> str:
    actions = ", ".join(sorted(set(ACTION_ALIASES)))
    return f"""You extract automation requests into a JSON object.

Return ONLY one JSON object with these fields:
- "goal": one sentence describing what the automation achieves
- "trigger": one of "manual", "schedule", "webhook", "event"
- "steps": ordered list of {{"action": str, "parameters": object}}
- "constraints": {{"max_nodes": int or null, "allowed_integrations": list or null}}

KNOWN ACTIONS: {actions}

RULES:
1. Use "schedule" for anything time-based (every hour, daily at 9)
2. Use "webhook" when another system calls in, "manual" when unspecified
3. Put concrete values (URLs, email addresses, cron rules) in parameters
4. If the request is too ambiguous to build, return
   {{"needs_clarification": true, "question": "..."}} instead
"""


def _strip_fences(text: str) -> str:
    return _FENCE_RE.sub("", text.strip()).strip()


def parse_intent_payload(raw: str, original_text: str) -> Intent:
    """Validate generator output into an Intent.

    Args:
        raw: Generator output, expected to be one JSON object.
        original_text: The user's request, for error context.

    Returns:
        Validated Intent with version 1.

    Raises:
        ExtractionError: If the output is empty, not JSON, asks for
            clarification, or does not fit the Intent schema.
    """
    if not raw or not raw.strip():
        raise ExtractionError(
            "the language service returned nothing",
            original_text=original_text,
            code="E-1002",
        )

    try:
        payload: Any = json.loads(_strip_fences(raw))
    except json.JSONDecodeError as e:
        raise ExtractionError(
            f"output was not valid JSON ({e.msg})",
            original_text=original_text,
            code="E-1002",
        ) from e

    if not isinstance(payload, dict):
        raise ExtractionError(
            "output was not a JSON object",
            original_text=original_text,
            code="E-1002",
        )

    if payload.get("needs_clarification"):
        question = payload.get("question") or "Could you describe the automation in more detail?"
        raise ExtractionError(str(question), original_text=original_text, code="E-1001")

    payload.pop("version", None)
    try:
        return Intent.model_validate(payload)
    except ValidationError as e:
        fields = ", ".join(
            ".".join(str(part) for part in err["loc"]) for err in e.errors()[:3]
        )
        raise ExtractionError(
            f"fields missing or invalid: {fields}",
            original_text=original_text,
            code="E-1002",
        ) from e


class IntentParser:
    """Extracts Intents through a TextGenerator with a bounded wait.

    Attributes:
        generator: Text generation backend.
        timeout: Seconds to wait for one generation call.
    """

    def __init__(self, generator: "TextGenerator", timeout: Optional[float] = None) -> None:
        self.generator = generator
        self.timeout = timeout if timeout is not None else get_generation_timeout()
        self._system_prompt = _build_system_prompt()

    async def parse(self, text: str, history: Optional[list[str]] = None) -> Intent:
        """Extract an Intent from the user's request.

        Args:
            text: Latest user message.
            history: Earlier user messages in this session, oldest first.

        Returns:
            Validated Intent.

        Raises:
            ExtractionError: On empty input, timeout, generator failure, or
                unusable output.
        """
        if not text or not text.strip():
            raise ExtractionError("the request is empty", original_text=text)

        prompt = text.strip()
        if history:
            earlier = "\n".join(f"- {h}" for h in history[-5:])
            prompt = f"Earlier messages:\n{earlier}\n\nLatest request:\n{prompt}"

        try:
            raw = await asyncio.wait_for(
                self.generator.generate(prompt, self._system_prompt),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning("Intent extraction timed out after %.1fs", self.timeout)
            raise ExtractionError(
                "generation timed out", original_text=text, code="E-1003"
            ) from e
        except Exception as e:
            logger.warning("Intent extraction call failed: %s", e)
            raise ExtractionError(
                "generation call failed", original_text=text, code="E-1003"
            ) from e

        intent = parse_intent_payload(raw, text)
        logger.info(
            "Extracted intent: trigger=%s steps=%d", intent.trigger, len(intent.steps)
        )
        return intent
