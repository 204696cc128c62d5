"""Shared fixtures for speakout tests."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from speakout.model import Segment


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's TTS settings out of the tests."""
    for name in ("OPENAI_TTS_VOICE", "OPENAI_TTS_MODEL", "OPENAI_TTS_FORMAT", "SPEAKOUT_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


def make_fake_client(delays=None, failures=None, payload=lambda text: text.encode("utf-8")):
    """
    Build a stand-in for AsyncOpenAI.

    delays maps segment text to seconds to sleep before answering, failures
    maps segment text to an exception to raise. The returned audio is the
    segment text encoded, so tests can tell chunks apart.
    """
    delays = delays or {}
    failures = failures or {}
    client = MagicMock()
    client.completed = []

    async def create(**params):
        text = params["input"]
        await asyncio.sleep(delays.get(text, 0))
        if text in failures:
            raise failures[text]
        client.completed.append(text)
        return MagicMock(content=payload(text))

    client.audio.speech.create = AsyncMock(side_effect=create)
    client.close = AsyncMock()
    return client


@pytest.fixture
def fake_client():
    return make_fake_client()


@pytest.fixture
def sample_segments():
    """Pre-built segments for client and sink tests."""
    return [
        Segment(index=0, text="First part."),
        Segment(index=1, text="Second part."),
        Segment(index=2, text="Third part."),
        Segment(index=3, text="Fourth part."),
    ]
