"""Generation counter for discarding superseded loads."""

from __future__ import annotations

import threading


class RequestSequencer:
    """Issues monotonically increasing request numbers.

    Only the most recently issued number is current; a response tagged with
    an older number must be dropped even if it arrives last.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._latest = 0

    def issue(self) -> int:
        with self._lock:
            self._latest += 1
            return self._latest

    def is_current(self, token: int) -> bool:
        with self._lock:
            return token == self._latest

    @property
    def latest(self) -> int:
        with self._lock:
            return self._latest
