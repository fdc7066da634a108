"""Ordered API-key lookup across environment, ``.env`` files and launch URLs."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Protocol, Sequence
from urllib.parse import parse_qs, urlsplit

from dotenv import dotenv_values, find_dotenv

__all__ = [
    "DOTENV_NAMES",
    "ENV_NAMES",
    "URL_PARAMS",
    "CredentialSource",
    "DotenvSource",
    "EnvironmentSource",
    "ResolvedCredential",
    "UrlParameterSource",
    "default_sources",
    "resolve_credential",
]

ENV_NAMES: tuple[str, ...] = ("GRAMMAR_QUIZ_API_KEY", "OPENAI_API_KEY", "API_KEY")
DOTENV_NAMES: tuple[str, ...] = ("OPENAI_API_KEY", "API_KEY")
URL_PARAMS: tuple[str, ...] = ("key", "apiKey")


class CredentialSource(Protocol):
    label: str

    def lookup(self) -> Optional[str]:
        ...


@dataclass(frozen=True)
class ResolvedCredential:
    value: str
    source: str

    def __repr__(self) -> str:
        return f"ResolvedCredential(source={self.source!r}, value='***')"


def _first_non_empty(
    values: Mapping[str, Optional[str]], names: Sequence[str]
) -> Optional[str]:
    for name in names:
        candidate = (values.get(name) or "").strip()
        if candidate:
            return candidate
    return None


@dataclass
class EnvironmentSource:
    """Variables already exported in the process environment."""

    names: Sequence[str] = ENV_NAMES
    env: Optional[Mapping[str, str]] = None
    label: str = "environment"

    def lookup(self) -> Optional[str]:
        env = os.environ if self.env is None else self.env
        return _first_non_empty(env, self.names)


@dataclass
class DotenvSource:
    """Values written to a ``.env`` file next to the project.

    The file is read without touching ``os.environ`` so an exported variable
    always keeps its priority over the file.
    """

    names: Sequence[str] = DOTENV_NAMES
    path: Optional[Path] = None
    label: str = ".env"

    def lookup(self) -> Optional[str]:
        target = self.path
        if target is None:
            found = find_dotenv(usecwd=True)
            if not found:
                return None
            target = Path(found)
        if not target.exists():
            return None
        return _first_non_empty(dotenv_values(target), self.names)


@dataclass
class UrlParameterSource:
    """``?key=`` or ``?apiKey=`` on the URL the quiz was launched from."""

    url: Optional[str] = None
    params: Sequence[str] = field(default=URL_PARAMS)
    label: str = "url"

    def lookup(self) -> Optional[str]:
        if not self.url:
            return None
        query = parse_qs(urlsplit(self.url).query)
        for name in self.params:
            for value in query.get(name, []):
                if value.strip():
                    return value.strip()
        return None


def default_sources(
    *,
    url: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    dotenv_path: Optional[Path] = None,
) -> list[CredentialSource]:
    return [
        EnvironmentSource(env=env),
        DotenvSource(path=dotenv_path),
        UrlParameterSource(url=url),
    ]


def resolve_credential(
    sources: Sequence[CredentialSource],
) -> Optional[ResolvedCredential]:
    """Return the first non-empty value from ``sources``, in order."""

    for source in sources:
        value = source.lookup()
        if value:
            return ResolvedCredential(value=value, source=source.label)
    return None
