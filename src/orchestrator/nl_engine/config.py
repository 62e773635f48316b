"""Configuration for the NL Engine.

This module provides configuration settings for the natural language
processing components, including LLM model selection and call timeouts.

Environment Variables:
    ANTHROPIC_MODEL: Claude model to use for intent extraction.
        Defaults to "claude-sonnet-4-20250514".
        Options:
          - claude-sonnet-4-20250514 (default, best quality)
          - claude-haiku-4-5-20251001 (faster, cheaper)
    AUTOFLOW_GENERATION_TIMEOUT: Seconds to wait for a generation call.
        Defaults to 45.
"""

import os

# Default model - can be overridden via ANTHROPIC_MODEL env var
DEFAULT_MODEL = "claude-sonnet-4-20250514"

# Upper bound for a single generation call, in seconds
DEFAULT_GENERATION_TIMEOUT = 45.0


def get_model() -> str:
    """Get the Claude model to use for intent extraction.

    Reads from ANTHROPIC_MODEL environment variable, falling back to
    the default Sonnet model if not set.

    Returns:
        Claude model identifier string.

    Example:
        >>> import os
        >>> os.environ["ANTHROPIC_MODEL"] = "claude-haiku-4-5-20251001"
        >>> get_model()
        'claude-haiku-4-5-20251001'
    """
    return os.environ.get("ANTHROPIC_MODEL", DEFAULT_MODEL)


def get_generation_timeout() -> float:
    """Get the generation call timeout in seconds.

    Invalid or non-positive values fall back to the default.

    Returns:
        Timeout in seconds.
    """
    raw = os.environ.get("AUTOFLOW_GENERATION_TIMEOUT")
    if not raw:
        return DEFAULT_GENERATION_TIMEOUT
    try:
        value = float(raw)
    except ValueError:
        return DEFAULT_GENERATION_TIMEOUT
    return value if value > 0 else DEFAULT_GENERATION_TIMEOUT
