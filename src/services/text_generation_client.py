"""Text generation client backed by the Anthropic Messages API.

The orchestration core treats text generation as a black box with one
operation, ``generate(prompt, context) -> str``. This module provides the
protocol and the production implementation. Timeouts are applied by the
caller so every generator is bounded the same way.
"""

import logging
from typing import Optional, Protocol

from anthropic import AsyncAnthropic

from src.orchestrator.nl_engine.config import get_model

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    """Single request/response text generation."""

    async def generate(self, prompt: str, context: str) -> str:
        """Return generated text for the prompt with the given system context."""
        ...


class AnthropicTextGenerator:
    """TextGenerator using AsyncAnthropic.

    Attributes:
        model: Claude model identifier.
        max_tokens: Response token cap.
    """

    def __init__(
        self,
        client: Optional[AsyncAnthropic] = None,
        model: Optional[str] = None,
        max_tokens: int = 1024,
    ) -> None:
        self._client = client
        self.model = model or get_model()
        self.max_tokens = max_tokens

    @property
    def client(self) -> AsyncAnthropic:
        """The AsyncAnthropic client, created on first use."""
        if self._client is None:
            self._client = AsyncAnthropic()
        return self._client

    async def generate(self, prompt: str, context: str) -> str:
        """Send one message and return the concatenated text blocks.

        Args:
            prompt: User-turn content.
            context: System prompt.

        Returns:
            Generated text, possibly empty.
        """
        response = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system=context,
            messages=[{"role": "user", "content": prompt}],
        )
        parts = [
            block.text
            for block in response.content
            if getattr(block, "type", None) == "text"
        ]
        text = "".join(parts)
        logger.debug("Generated %d characters with %s", len(text), self.model)
        return text
