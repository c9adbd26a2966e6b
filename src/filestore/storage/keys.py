import os
import threading
import time
from typing import Callable


class KeyGenerator:
    """
    Builds object keys as ``<stem>-<epoch millis><ext>``, e.g.
    ``cat.png`` -> ``cat-1718000000000.png``.

    Timestamps are handed out strictly increasing: when the clock has not
    moved past the last issued millisecond, the next one is used instead.
    Two uploads of the same file name from one process therefore never
    share a key. Separate processes can still collide within a millisecond.
    """

    def __init__(self, clock: Callable[[], int] = time.time_ns):
        self._clock = clock
        self._lock = threading.Lock()
        self._last_ms = 0

    def _next_millis(self) -> int:
        now_ms = self._clock() // 1_000_000
        with self._lock:
            self._last_ms = max(now_ms, self._last_ms + 1)
            return self._last_ms

    def generate_key(self, original_file_name: str) -> str:
        stem, ext = os.path.splitext(os.path.basename(original_file_name))
        return f"{stem}-{self._next_millis()}{ext}"


def stream_key(name: str, ext: str) -> str:
    """Key for streaming uploads; uniqueness is up to the caller."""
    return f"{name}.{ext}"
