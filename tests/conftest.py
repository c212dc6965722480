"""Pytest configuration and shared fixtures for MCQ service tests."""

import json
from typing import Dict, List, Sequence, Union

import pytest

from mcq_service.metrics import reset_fallback_metrics
from mcq_service.providers.base import BaseLLMProvider, ContentPart

Outcome = Union[str, Exception]


class FakeProvider(BaseLLMProvider):
    """Provider that replays scripted outcomes per model.

    Each call pops the next outcome for the requested model: a string is
    returned as the model output, an exception is raised. Models without a
    script (or with an exhausted one) return ``default``.
    """

    def __init__(self, script: Dict[str, List[Outcome]] = None, default: Outcome = "[]"):
        super().__init__(api_key="test-key")
        self.script = {model: list(outcomes) for model, outcomes in (script or {}).items()}
        self.default = default
        self.calls: List[Dict[str, object]] = []

    async def generate_content_async(
        self,
        model: str,
        system_instruction: str,
        parts: Sequence[ContentPart],
    ) -> str:
        self.calls.append(
            {"model": model, "system_instruction": system_instruction, "parts": list(parts)}
        )
        outcomes = self.script.get(model)
        outcome = outcomes.pop(0) if outcomes else self.default
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def calls_for(self, model: str) -> int:
        return sum(1 for call in self.calls if call["model"] == model)


class RecordingSleep:
    """Awaitable stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def make_mcq_dict(index: int = 1, answer: str = "B") -> dict:
    """A well-formed raw record as the model returns it."""
    return {
        "question": f"Question {index}?",
        "options": {
            "A": f"Option A{index}",
            "B": f"Option B{index}",
            "C": f"Option C{index}",
            "D": f"Option D{index}",
        },
        "correctAnswer": answer,
        "explanation": f"Because of fact {index}.",
    }


def make_mcq_json(count: int, start: int = 1) -> str:
    """Raw model output holding ``count`` records."""
    return json.dumps([make_mcq_dict(start + i) for i in range(count)])


@pytest.fixture(autouse=True)
def fresh_metrics():
    """Isolate the process-wide fallback counters between tests."""
    reset_fallback_metrics()
    yield
    reset_fallback_metrics()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def sample_mcq_dict() -> dict:
    """Fixture providing one well-formed raw MCQ record."""
    return make_mcq_dict()


@pytest.fixture
def sample_study_material() -> str:
    """Fixture providing a short study text."""
    return (
        "Photosynthesis converts light energy into chemical energy. "
        "It takes place in the chloroplasts of plant cells."
    )
