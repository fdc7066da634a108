"""Shared helpers: configuration, credentials, logging and the AI client."""

from __future__ import annotations

from .ai import load_client
from .config import (
    AppConfig,
    ConfigError,
    find_config_path,
    load_config,
    write_config_template,
)
from .credentials import (
    ResolvedCredential,
    default_sources,
    resolve_credential,
)
from .logging import JsonLogFormatter, configure_logger
from .workspace import (
    WORKSPACE_ENV,
    WorkspaceError,
    WorkspaceLayout,
    ensure_workspace,
)

__all__ = [
    "load_client",
    "AppConfig",
    "ConfigError",
    "find_config_path",
    "load_config",
    "write_config_template",
    "ResolvedCredential",
    "default_sources",
    "resolve_credential",
    "JsonLogFormatter",
    "configure_logger",
    "WORKSPACE_ENV",
    "WorkspaceError",
    "WorkspaceLayout",
    "ensure_workspace",
]
