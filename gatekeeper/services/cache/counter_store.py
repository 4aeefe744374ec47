import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable

from loguru import logger

from gatekeeper.core.exceptions.rate_limiter import RateLimitConfigurationError


@dataclass(slots=True)
class RateCounterEntry:
    """Requests counted for one key and the instant the entry stops being live."""

    count: int
    window_expires_at: float


class ExpiringCounterStore:
    """
    In-process key -> counter cache with an absolute expiry per entry.

    Every increment pushes the entry's deadline to `now + window` (sliding
    window). Once `now >= window_expires_at` the entry is treated as absent
    and replaced on the next increment; nothing is swept in the background.

    The read-modify-write of `increment_and_get` runs under one lock, so
    concurrent callers for the same key observe counts 1, 2, 3, ... with no
    duplicates or gaps. The critical section never performs I/O.

    With `max_entries` set, inserting a key beyond the bound evicts the least
    recently touched entry. Without it the store grows with the number of
    distinct keys seen.

    Example:
        ```python
        store = ExpiringCounterStore()

        store.increment_and_get("ratelimit:ip:203.0.113.5", window=60)  # 1
        store.increment_and_get("ratelimit:ip:203.0.113.5", window=60)  # 2
        ```
    """

    def __init__(
        self,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries is not None and max_entries <= 0:
            raise RateLimitConfigurationError(
                f"Counter store size bound must be positive, got {max_entries}"
            )

        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, RateCounterEntry] = OrderedDict()
        self._lock = threading.Lock()

    def increment_and_get(self, key: str, window: float | timedelta) -> int:
        """
        Count one request for a key and return the count in its current window

        Args:
            key: Rate limit key (e.g. "ratelimit:ip:192.168.1.1")
            window: Window length in seconds (or a timedelta)

        Returns:
            The count including this request; 1 when the key was absent or expired

        Raises:
            RateLimitConfigurationError: If the window is not positive
        """
        window_seconds = window.total_seconds() if isinstance(window, timedelta) else float(window)
        if window_seconds <= 0:
            raise RateLimitConfigurationError(
                f"Rate limit window must be positive, got {window_seconds}"
            )

        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)

            if entry is None or now >= entry.window_expires_at:
                entry = RateCounterEntry(count=1, window_expires_at=now + window_seconds)
                self._entries[key] = entry
                self._entries.move_to_end(key)
                self._evict_overflow()
            else:
                entry.count += 1
                entry.window_expires_at = now + window_seconds
                self._entries.move_to_end(key)

            return entry.count

    def _evict_overflow(self):
        if self.max_entries is None:
            return

        while len(self._entries) > self.max_entries:
            evicted_key, _ = self._entries.popitem(last=False)
            logger.debug(f"Counter store full, evicted least recently used key {evicted_key}")

    def peek(self, key: str) -> int:
        """Current count for a key without counting a request; 0 if absent or expired"""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or self._clock() >= entry.window_expires_at:
                return 0

            return entry.count

    def reset(self, key: str) -> bool:
        """
        Forget a key's counter (manual unblock).

        Returns:
            bool: True if a live or expired entry was removed
        """
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
