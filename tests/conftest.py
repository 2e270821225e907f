"""
Pytest configuration for the tutor test suite.

Configures:
- environment for `tutorbot.database.config.config.settings` (set before any import)
- an in-memory SQLite database recreated for every test
- oracle doubles so no test talks to a real model
"""
import os

os.environ.setdefault("FRONTEND_URL", "http://localhost:5173")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ACCESS_TOKEN_EXPIRE_MINUTES", "30")
os.environ.setdefault("API_KEY", "sk-test")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("ALGORITHM", "HS256")
os.environ.setdefault("OPEN_AI_MODEL", "gpt-4o-mini")
os.environ.setdefault("EXCHANGE_TIMEOUT_SECONDS", "0")

import pytest

from tutorbot.database.config.connection_engine import connection_engine, metadata
from tutorbot.database.core import funcs  # noqa: F401  registers the entities on `metadata`
from tutorbot.database.core.turn_store import TurnStore


class FakeOracle:
    """In-memory oracle double recording every call."""

    def __init__(self, label="1. No AI", deltas=("Hel", "lo wo", "rld"), feedback="Try outlining it yourself first."):
        self.label = label
        self.deltas = list(deltas)
        self.feedback = feedback
        self.fail_classify = False
        self.fail_stream_after = None
        self.fail_feedback = False
        self.stream_delay = 0.0
        self.classify_calls = []
        self.stream_calls = []
        self.feedback_calls = []

    async def classify(self, rubric_prompt, text):
        self.classify_calls.append(text)
        if self.fail_classify:
            raise RuntimeError("classifier unavailable")
        return self.label

    async def complete_streaming(self, system_prompt, transcript):
        import asyncio

        self.stream_calls.append(list(transcript))
        for index, delta in enumerate(self.deltas):
            if self.fail_stream_after is not None and index >= self.fail_stream_after:
                raise RuntimeError("stream dropped")
            if self.stream_delay:
                await asyncio.sleep(self.stream_delay)
            yield delta

    async def short_feedback(self, prompt, text):
        self.feedback_calls.append((prompt, text))
        if self.fail_feedback:
            raise RuntimeError("feedback unavailable")
        return self.feedback


class FrameSink:
    """Collects frames sent to a `ChannelSession`."""

    def __init__(self):
        self.frames = []

    async def __call__(self, frame):
        self.frames.append(frame)

    def kinds(self):
        return [frame["kind"] for frame in self.frames]

    def of_kind(self, kind):
        return [frame for frame in self.frames if frame["kind"] == kind]


@pytest.fixture(autouse=True)
def database():
    metadata.create_all(connection_engine)
    yield
    metadata.drop_all(connection_engine)


@pytest.fixture
def store():
    return TurnStore()


@pytest.fixture
def oracle():
    return FakeOracle()


@pytest.fixture
def sink():
    return FrameSink()
