"""Test helper utilities for orchestration tests."""

from tests.helpers.fake_engine import EngineCall, FakeEngine
from tests.helpers.fake_generator import DEFAULT_STEPS, ScriptedGenerator, intent_json

__all__ = [
    "DEFAULT_STEPS",
    "EngineCall",
    "FakeEngine",
    "ScriptedGenerator",
    "intent_json",
]
