"""Tests for message classification."""

import pytest

from src.orchestrator.routing import MessageKind, classify_message, normalize


def test_normalize():
    """Punctuation goes, case folds and whitespace collapses."""
    assert normalize("  Yes,   Build IT! ") == "yes build it"


def test_normalize_line_breaks_separate_words():
    """Newlines and tabs split words like spaces do."""
    assert normalize("yes\nbuild it") == "yes build it"
    assert normalize("tear\tit\r\ndown") == "tear it down"
    assert classify_message("yes\nbuild it") == MessageKind.CONFIRM


@pytest.mark.parametrize(
    "text,kind",
    [
        ("yes", MessageKind.CONFIRM),
        ("Yes, build it!", MessageKind.CONFIRM),
        ("LGTM", MessageKind.CONFIRM),
        ("try again", MessageKind.CONFIRM),
        ("Cancel", MessageKind.CANCEL),
        ("never mind.", MessageKind.CANCEL),
        ("status?", MessageKind.STATUS),
        ("check health", MessageKind.STATUS),
        ("tear it down", MessageKind.TEARDOWN),
        ("Rollback", MessageKind.TEARDOWN),
        ("thanks!", MessageKind.DONE),
        ("That's all", MessageKind.DONE),
    ],
)
def test_commands(text, kind):
    """Known phrases map to their command."""
    assert classify_message(text) == kind


@pytest.mark.parametrize(
    "text",
    [
        "yes, but use a different URL",
        "Email me the sales report every morning",
        "don't cancel",
        "",
    ],
)
def test_free_text(text):
    """Anything other than a whole phrase is free text."""
    assert classify_message(text) == MessageKind.FREE_TEXT
