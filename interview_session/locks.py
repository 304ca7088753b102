from __future__ import annotations  # Per-session mutual exclusion

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class _Entry:  # Lock plus the number of threads holding or waiting on it
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.users = 0


_SESSION_LOCKS: Dict[str, _Entry] = {}
_SESSION_LOCKS_GUARD = threading.Lock()


def _checkout(key: str) -> _Entry:
    with _SESSION_LOCKS_GUARD:
        entry = _SESSION_LOCKS.get(key)
        if entry is None:
            entry = _SESSION_LOCKS[key] = _Entry()
        entry.users += 1
    return entry


def _release(key: str, entry: _Entry) -> None:
    with _SESSION_LOCKS_GUARD:
        entry.users -= 1
        if entry.users == 0 and _SESSION_LOCKS.get(key) is entry:
            del _SESSION_LOCKS[key]


@contextmanager
def session_lock(key: str) -> Iterator[None]:
    """Serialise state transitions sharing ``key``.

    Re-entrant, so a transition may trigger another on the same session from
    the same thread. The registry entry is dropped once no thread holds or
    waits on the key.
    """

    entry = _checkout(key)
    try:
        with entry.lock:
            yield
    finally:
        _release(key, entry)


__all__ = ["session_lock"]
