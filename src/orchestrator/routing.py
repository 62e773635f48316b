"""Classification of user messages into conversation commands.

Routing is driven by the session phase; this module only answers whether a
message is one of the few explicit commands a phase reacts to. Matching is
on whole normalized phrases, so "yes, but use a different URL" is free text,
not a confirmation.
"""

import re
from enum import Enum


class MessageKind(str, Enum):
    """What a user message asks for."""

    CONFIRM = "confirm"
    CANCEL = "cancel"
    STATUS = "status"
    TEARDOWN = "teardown"
    DONE = "done"
    FREE_TEXT = "free_text"


_PHRASES: dict[MessageKind, frozenset[str]] = {
    MessageKind.CONFIRM: frozenset(
        {
            "yes",
            "y",
            "yes build it",
            "build it",
            "yes please",
            "confirm",
            "confirmed",
            "go ahead",
            "do it",
            "ok",
            "okay",
            "sounds good",
            "lgtm",
            "deploy",
            "deploy it",
            "retry",
            "try again",
        }
    ),
    MessageKind.CANCEL: frozenset(
        {"cancel", "abandon", "abort", "stop", "never mind", "nevermind", "forget it"}
    ),
    MessageKind.STATUS: frozenset(
        {"status", "health", "check", "check status", "check health", "how is it doing"}
    ),
    MessageKind.TEARDOWN: frozenset(
        {
            "teardown",
            "tear down",
            "tear it down",
            "roll back",
            "rollback",
            "undeploy",
            "remove it",
            "turn it off",
        }
    ),
    MessageKind.DONE: frozenset(
        {"done", "finish", "finished", "complete", "thanks", "thank you", "thats all"}
    ),
}

_NON_WORD = re.compile(r"[^a-z0-9 ]+")
_SPACES = re.compile(r"\s+")


def normalize(text: str) -> str:
    """Lower-case, drop punctuation and collapse whitespace."""
    spaced = _SPACES.sub(" ", text.lower())
    return _SPACES.sub(" ", _NON_WORD.sub("", spaced)).strip()


def classify_message(text: str) -> MessageKind:
    """Classify a user message.

    Args:
        text: Raw user message.

    Returns:
        The matching command kind, or FREE_TEXT.

    Example:
        >>> classify_message("Yes, build it!")
        <MessageKind.CONFIRM: 'confirm'>
    """
    normalized = normalize(text)
    for kind, phrases in _PHRASES.items():
        if normalized in phrases:
            return kind
    return MessageKind.FREE_TEXT
