"""Workspace directory helpers for grammar-quiz config and logs."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, MutableMapping


WORKSPACE_ENV = "GRAMMAR_QUIZ_HOME"
DEFAULT_WORKSPACE = Path.home() / ".grammar-quiz"

_SUBDIRS = {
    "config": "config",
    "logs": "logs",
}


class WorkspaceError(RuntimeError):
    """Raised when the workspace layout cannot be prepared."""


@dataclass(frozen=True)
class WorkspaceLayout:
    """Resolved workspace paths."""

    home: Path
    directories: Mapping[str, Path]

    def path_for(self, key: str) -> Path:
        try:
            return self.directories[key]
        except KeyError as exc:
            raise KeyError(f"Unknown workspace directory '{key}'.") from exc


def ensure_workspace(
    *,
    env: Mapping[str, str] | None = None,
    path: Path | None = None,
    create: bool = True,
) -> WorkspaceLayout:
    """Resolve the workspace and optionally create its directories.

    ``path`` wins over ``$GRAMMAR_QUIZ_HOME`` which wins over the default
    ``~/.grammar-quiz``. When the default location is not writable a
    directory under the system temp dir is used instead.
    """

    env_map = os.environ if env is None else env
    base, has_override = _resolve_base(env_map, override=path)

    candidates: list[Path] = [base]
    if create and not has_override:
        fallback = Path(tempfile.gettempdir()) / "grammar-quiz"
        if fallback != base:
            candidates.append(fallback)

    last_error: Exception | None = None
    for candidate in candidates:
        try:
            return _materialize_layout(base=candidate, create=create)
        except PermissionError as exc:
            last_error = exc
            continue

    raise WorkspaceError(
        "Unable to prepare workspace at {0}".format(base)
    ) from last_error


def _resolve_base(
    env: Mapping[str, str], *, override: Path | None
) -> tuple[Path, bool]:
    if override is not None:
        return override.expanduser().absolute(), True
    custom = (env.get(WORKSPACE_ENV) or "").strip()
    if custom:
        return Path(custom).expanduser().absolute(), True
    return DEFAULT_WORKSPACE, False


def _materialize_layout(*, base: Path, create: bool) -> WorkspaceLayout:
    if base.exists() and not base.is_dir():
        raise WorkspaceError(
            f"Configured workspace exists and is not a directory: {base}"
        )
    directories: MutableMapping[str, Path] = {}
    for key, relative in _SUBDIRS.items():
        candidate = base / relative
        if create:
            candidate.mkdir(parents=True, exist_ok=True)
            try:
                candidate.chmod(0o700)
            except (PermissionError, NotImplementedError):
                pass
        elif candidate.exists() and not candidate.is_dir():
            raise WorkspaceError(
                "Expected workspace directory for '{0}' but found a file: "
                "{1}".format(key, candidate)
            )
        directories[key] = candidate
    return WorkspaceLayout(
        home=base, directories=MappingProxyType(dict(directories))
    )
