"""OpenAI client construction."""

from __future__ import annotations

from typing import Any, Optional

from openai import OpenAI

__all__ = ["load_client"]


def load_client(api_key: str, *, timeout: Optional[float] = None) -> Any:
    """Initialize an OpenAI client for an already-resolved API key."""
    if not api_key:
        raise ValueError("api_key must be a non-empty string")
    if timeout is not None:
        return OpenAI(api_key=api_key, timeout=timeout)
    return OpenAI(api_key=api_key)
