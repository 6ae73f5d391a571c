"""Timestamp-based artifact names shared by the scratch and output directories."""

from __future__ import annotations

import secrets
import time
from collections.abc import Callable

Clock = Callable[[], int]
TokenFactory = Callable[[], str]


def epoch_ms() -> int:
    return time.time_ns() // 1_000_000


def random_token() -> str:
    return secrets.token_hex(4)


def artifact_stamp(
    clock: Clock = epoch_ms,
    token_factory: TokenFactory = random_token,
    collision_guard: bool = True,
) -> tuple[int, str]:
    """Return ``(epoch_ms, stamp)`` where stamp is ``<ms>`` or ``<ms>-<token>``.

    Without the guard two calls in the same millisecond produce the same
    stamp, and whichever run writes last owns the file.
    """
    now = clock()
    if not collision_guard:
        return now, str(now)
    return now, f"{now}-{token_factory()}"
