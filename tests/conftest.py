# tests/conftest.py
import os
import sys

import pytest

# Ensure repository root is on PYTHONPATH for tests
repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if repo_root not in sys.path:
    sys.path.insert(0, repo_root)

# Ensure placeholder secrets do not trigger validators during tests
os.environ.setdefault("OPENROUTER_API_KEY", "test-key")


def make_event(text: str = "Caesar crosses the Rubicon with his legion", **overrides):
    from models import CandidateEvent

    data = {
        "canonical_title": "Rubicon crossing",
        "event_text": text,
        "geo": "Italy",
        "difficulty_guess": 3,
        "confidence": 0.9,
        "metadata": {
            "difficulty": 3,
            "category": ["war", "politics"],
            "era": "ancient",
            "fame_level": 4,
            "tags": ["rome", "civil war"],
        },
    }
    data.update(overrides)
    return CandidateEvent.model_validate(data)


@pytest.fixture
def event_factory():
    return make_event


@pytest.fixture
def no_sleep():
    delays: list[float] = []

    async def _sleep(delay: float) -> None:
        delays.append(delay)

    _sleep.delays = delays
    return _sleep
