from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Callable, Iterator

import pytest

TESTS_DIR = Path(__file__).resolve().parent
if str(TESTS_DIR) not in sys.path:
    sys.path.insert(0, str(TESTS_DIR))

ROOT = TESTS_DIR.parent
if str(ROOT / "src") not in sys.path:
    sys.path.insert(0, str(ROOT / "src"))

from fixtures import FakeChatClient, FakeClientFactory, make_records  # noqa: E402
from grammar_quiz.core.credentials import (  # noqa: E402
    DOTENV_NAMES,
    ENV_NAMES,
    DotenvSource,
    EnvironmentSource,
    UrlParameterSource,
)
from grammar_quiz.quiz.provider import QuestionProvider  # noqa: E402


@pytest.fixture(autouse=True)
def _isolate_environment(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> Iterator[None]:
    """Keep real API keys, .env files and the user's workspace out of tests."""

    for name in {*ENV_NAMES, *DOTENV_NAMES, "GRAMMAR_QUIZ_CONFIG"}:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GRAMMAR_QUIZ_HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)
    yield


@pytest.fixture
def fake_client() -> FakeChatClient:
    return FakeChatClient()


@pytest.fixture
def client_factory(fake_client: FakeChatClient) -> FakeClientFactory:
    return FakeClientFactory(fake_client)


@pytest.fixture
def keyed_sources() -> list:
    return [EnvironmentSource(env={"OPENAI_API_KEY": "sk-test"})]


@pytest.fixture
def empty_sources(tmp_path: Path) -> list:
    return [
        EnvironmentSource(env={}),
        DotenvSource(path=tmp_path / "missing.env"),
        UrlParameterSource(url=None),
    ]


@pytest.fixture
def make_provider(
    client_factory: FakeClientFactory, keyed_sources: list
) -> Callable[..., QuestionProvider]:
    def _make(**kwargs: object) -> QuestionProvider:
        kwargs.setdefault("sources", keyed_sources)
        kwargs.setdefault("client_factory", client_factory)
        return QuestionProvider(**kwargs)  # type: ignore[arg-type]

    return _make


@pytest.fixture
def batch_json() -> Callable[[int], str]:
    def _dump(count: int) -> str:
        return json.dumps({"questions": make_records(count)}, ensure_ascii=False)

    return _dump
