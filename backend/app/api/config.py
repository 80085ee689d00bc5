from __future__ import annotations

import os

DEFAULT_WEEKLY_CAP = 104
DEFAULT_PERIOD_CAP = 24


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from exc
    if value < 1:
        raise RuntimeError(f"{name} must be >= 1, got {value}")
    return value


def weekly_iteration_cap() -> int:
    return _int_env("SCHEDULE_WEEKLY_CAP", DEFAULT_WEEKLY_CAP)


def period_iteration_cap() -> int:
    """Cap for monthly and annual obligations."""
    return _int_env("SCHEDULE_PERIOD_CAP", DEFAULT_PERIOD_CAP)
