"""Shared testing fixtures for the grammar_quiz test suite."""

from .openai import FakeChatClient, FakeClientFactory  # noqa: F401
from .questions import make_question, make_records  # noqa: F401

__all__ = [
    "FakeChatClient",
    "FakeClientFactory",
    "make_question",
    "make_records",
]
