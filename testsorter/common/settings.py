"""Environment-driven defaults for optimizer runs."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional


_TRUTHY = {"1", "true", "yes", "on"}


@lru_cache(maxsize=None)
def get_log_verbosity() -> str:
    """Return the configured log verbosity (``debug``/``info``/``warning``/...)."""

    return os.getenv("TESTSORTER_LOG_VERBOSITY", "info").lower()


@lru_cache(maxsize=None)
def get_default_seed() -> Optional[int]:
    """Return the master RNG seed from ``TESTSORTER_SEED``, or ``None`` when unset.

    A value that is not an integer raises ``ValueError`` so a typo does not
    silently produce an unseeded run.
    """

    raw = os.getenv("TESTSORTER_SEED")
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"TESTSORTER_SEED must be an integer, got {raw!r}") from exc


@lru_cache(maxsize=None)
def parallel_tournaments_enabled() -> bool:
    return os.getenv("TESTSORTER_PARALLEL_TOURNAMENTS", "0").lower() in _TRUTHY


__all__ = [
    "get_log_verbosity",
    "get_default_seed",
    "parallel_tournaments_enabled",
]
