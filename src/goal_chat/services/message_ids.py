"""Sortable identifier generation for stored messages."""

from __future__ import annotations

import secrets
import threading
import time

_ID_LOCK = threading.Lock()
_last_millis = 0
_sequence = 0


def next_message_id() -> str:
    """Return a new opaque, lexically sortable message id.

    Returns:
        24 lowercase hex characters: a 48-bit millisecond timestamp, a 16-bit
        per-millisecond sequence and 32 random bits.

    Notes:
        Ids are strictly increasing within one process. Across processes they
        are ordered by millisecond only.
    """
    global _last_millis, _sequence

    with _ID_LOCK:
        millis = time.time_ns() // 1_000_000
        if millis <= _last_millis:
            millis = _last_millis
            _sequence += 1
            if _sequence > 0xFFFF:
                millis += 1
                _sequence = 0
        else:
            _sequence = 0
        _last_millis = millis
        sequence = _sequence

    return f"{millis:012x}{sequence:04x}{secrets.token_hex(4)}"
