from __future__ import annotations

import pytest

from grammar_quiz.core import ai
from grammar_quiz.core.ai import load_client


class RecordingOpenAI:
    instances: list = []

    def __init__(self, **kwargs):
        self.init_kwargs = kwargs
        RecordingOpenAI.instances.append(self)


@pytest.fixture
def recording_openai(monkeypatch: pytest.MonkeyPatch):
    RecordingOpenAI.instances = []
    monkeypatch.setattr(ai, "OpenAI", RecordingOpenAI)
    return RecordingOpenAI


def test_load_client_passes_api_key(recording_openai) -> None:
    client = load_client("test-key")
    assert client is recording_openai.instances[-1]
    assert client.init_kwargs == {"api_key": "test-key"}


def test_load_client_forwards_timeout(recording_openai) -> None:
    client = load_client("test-key", timeout=12.5)
    assert client.init_kwargs["timeout"] == 12.5


def test_load_client_requires_key(recording_openai) -> None:
    with pytest.raises(ValueError):
        load_client("")
    assert recording_openai.instances == []
