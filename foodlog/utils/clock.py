"""Millisecond timestamps for every persisted row."""

from __future__ import annotations

import threading
import time

_lock = threading.Lock()
_last_ms = 0


def now_ms() -> int:
    """
    Return milliseconds since epoch, strictly increasing within the process.

    Rows written one after another must order by created_at in write order,
    so two calls inside the same millisecond get consecutive values.
    """
    global _last_ms
    with _lock:
        current = time.time_ns() // 1_000_000
        _last_ms = max(current, _last_ms + 1)
        return _last_ms
