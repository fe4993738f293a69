from __future__ import annotations

import os
from dataclasses import dataclass


def _get_env(key: str, default: str | None = None) -> str | None:
    value = os.getenv(key)
    if value is None or value == "":
        return default
    return value


def _get_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    environment: str = "dev"
    project_id: str | None = None
    location: str = "us-central1"
    model_name: str = "gemini-2.5-pro"
    max_parallel: int = 4
    max_retries: int = 3
    retry_base_delay: float = 1.0
    request_timeout: float = 120.0

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            environment=_get_env("ENVIRONMENT", "dev") or "dev",
            project_id=_get_env("PROJECT_ID"),
            location=_get_env("VERTEX_LOCATION", "us-central1") or "us-central1",
            model_name=_get_env("GEMINI_MODEL", "gemini-2.5-pro") or "gemini-2.5-pro",
            max_parallel=max(1, _get_int("MAX_PARALLEL", 4)),
            max_retries=max(0, _get_int("MAX_RETRIES", 3)),
            retry_base_delay=max(0.0, _get_float("RETRY_BASE_DELAY", 1.0)),
            request_timeout=_get_float("REQUEST_TIMEOUT", 120.0),
        )


__all__ = ["Settings"]
