"""TOML configuration for grammar-quiz.

Defaults live in ``_DEFAULTS``; a user TOML file may override any known key
and unknown keys are rejected so typos surface early. The merged mapping is
validated into frozen dataclasses consumed by the CLI and provider.
"""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Optional

import tomllib

from grammar_quiz.quiz.models import UsageType

from . import workspace as workspace_mod

__all__ = [
    "AIConfig",
    "AppConfig",
    "CONFIG_FILENAME",
    "CONFIG_PATH_ENV",
    "ConfigError",
    "LoggingConfig",
    "QuizConfig",
    "find_config_path",
    "load_config",
    "load_toml",
    "merge_defaults",
    "write_config_template",
]

CONFIG_FILENAME = "grammar_quiz.toml"
CONFIG_PATH_ENV = "GRAMMAR_QUIZ_CONFIG"

_DEFAULTS: Dict[str, Any] = {
    "ai": {
        "model": "gpt-4o-mini",
        "temperature": 0.7,
        "max_tokens": 4096,
        "request_timeout_seconds": 0,
    },
    "quiz": {
        "question_count": 5,
        "default_usage": "mixed",
        "strict_validation": False,
        "show_translation": True,
    },
    "logging": {
        "level": "INFO",
        "verbose": False,
    },
}


class ConfigError(RuntimeError):
    """Raised when configuration IO, parsing or validation fails."""


@dataclass(frozen=True)
class AIConfig:
    model: str
    temperature: float
    max_tokens: int
    # ``None`` leaves the wait bounded only by the OpenAI client default.
    request_timeout_seconds: Optional[float]


@dataclass(frozen=True)
class QuizConfig:
    question_count: int
    default_usage: UsageType
    strict_validation: bool
    show_translation: bool


@dataclass(frozen=True)
class LoggingConfig:
    level: str
    verbose: bool


@dataclass(frozen=True)
class AppConfig:
    ai: AIConfig
    quiz: QuizConfig
    logging: LoggingConfig
    source: Optional[Path] = None


def load_toml(path: Path) -> Mapping[str, Any]:
    """Load a TOML document, translating IO and syntax errors."""

    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found: {path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Failed to parse config TOML: {exc}") from exc


def merge_defaults(
    base: MutableMapping[str, Any],
    override: Mapping[str, Any],
    *,
    path: str = "",
) -> None:
    """Recursively merge ``override`` into ``base`` enforcing known keys."""

    for key, value in override.items():
        dotted = f"{path}{key}"
        if key not in base:
            raise ConfigError(f"Unknown configuration key '{dotted}'.")
        base_value = base[key]
        if isinstance(base_value, MutableMapping):
            if not isinstance(value, Mapping):
                raise ConfigError(
                    "Expected table for '{0}', found {1}.".format(
                        dotted, type(value).__name__
                    )
                )
            merge_defaults(base_value, value, path=f"{dotted}.")
            continue
        base[key] = value


def find_config_path(
    explicit: Optional[Path] = None,
    *,
    env: Optional[Mapping[str, str]] = None,
    workspace_path: Optional[Path] = None,
) -> Optional[Path]:
    """Locate the config file, or ``None`` when defaults should be used.

    Priority: explicit path, ``$GRAMMAR_QUIZ_CONFIG``, the workspace config
    directory, then ``./grammar_quiz.toml``.
    """

    env_map = os.environ if env is None else env
    if explicit is not None:
        path = Path(explicit).expanduser()
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        return path.resolve()

    from_env = (env_map.get(CONFIG_PATH_ENV) or "").strip()
    if from_env:
        path = Path(from_env).expanduser()
        if not path.exists():
            raise ConfigError(
                f"{CONFIG_PATH_ENV} points to a missing file: {path}"
            )
        return path.resolve()

    try:
        layout = workspace_mod.ensure_workspace(
            env=env_map, path=workspace_path, create=False
        )
    except workspace_mod.WorkspaceError as exc:
        raise ConfigError(str(exc)) from exc
    candidate = layout.path_for("config") / CONFIG_FILENAME
    if candidate.exists():
        return candidate.resolve()

    cwd_candidate = Path.cwd() / CONFIG_FILENAME
    if cwd_candidate.exists():
        return cwd_candidate.resolve()
    return None


def load_config(
    path: Optional[Path] = None,
    *,
    env: Optional[Mapping[str, str]] = None,
    workspace_path: Optional[Path] = None,
) -> AppConfig:
    """Resolve, merge and validate the application configuration."""

    source = find_config_path(path, env=env, workspace_path=workspace_path)
    data = copy.deepcopy(_DEFAULTS)
    if source is not None:
        merge_defaults(data, load_toml(source))
    return _build_config(data, source)


def write_config_template(path: Path, *, overwrite: bool = False) -> Path:
    """Write the packaged config template to ``path``."""

    if path.exists() and not overwrite:
        raise ConfigError(f"Config already exists: {path}")
    template = (
        resources.files("grammar_quiz")
        .joinpath(CONFIG_FILENAME)
        .read_text(encoding="utf-8")
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(template, encoding="utf-8")
    try:
        path.chmod(0o600)
    except PermissionError:  # pragma: no cover - depends on filesystem
        pass
    return path


def _build_config(data: Mapping[str, Any], source: Optional[Path]) -> AppConfig:
    ai = data["ai"]
    quiz = data["quiz"]
    log = data["logging"]

    timeout = _require_non_negative_number(
        ai["request_timeout_seconds"], field="ai.request_timeout_seconds"
    )
    try:
        default_usage = UsageType.parse(
            _require_string(quiz["default_usage"], field="quiz.default_usage")
        )
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc

    return AppConfig(
        ai=AIConfig(
            model=_require_string(ai["model"], field="ai.model"),
            temperature=_require_float_range(
                ai["temperature"],
                field="ai.temperature",
                min_value=0.0,
                max_value=2.0,
            ),
            max_tokens=_require_positive_int(
                ai["max_tokens"], field="ai.max_tokens"
            ),
            request_timeout_seconds=timeout or None,
        ),
        quiz=QuizConfig(
            question_count=_require_positive_int(
                quiz["question_count"], field="quiz.question_count"
            ),
            default_usage=default_usage,
            strict_validation=_require_bool(
                quiz["strict_validation"], field="quiz.strict_validation"
            ),
            show_translation=_require_bool(
                quiz["show_translation"], field="quiz.show_translation"
            ),
        ),
        logging=LoggingConfig(
            level=_require_string(log["level"], field="logging.level").upper(),
            verbose=_require_bool(log["verbose"], field="logging.verbose"),
        ),
        source=source,
    )


def _require_positive_int(value: Any, *, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"'{field}' must be a positive integer.")
    return value


def _require_non_negative_number(value: Any, *, field: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"'{field}' must be a number.")
    if value < 0:
        raise ConfigError(f"'{field}' must be zero or greater.")
    return float(value)


def _require_bool(value: Any, *, field: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"'{field}' must be a boolean.")
    return value


def _require_float_range(
    value: Any, *, field: str, min_value: float, max_value: float
) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"'{field}' must be a number.")
    number = float(value)
    if not (min_value <= number <= max_value):
        raise ConfigError(
            f"'{field}' must be between {min_value} and {max_value}."
        )
    return number


def _require_string(value: Any, *, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"'{field}' must be a non-empty string.")
    return value.strip()
