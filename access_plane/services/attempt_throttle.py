from __future__ import annotations

from collections import deque
from threading import Lock
from time import monotonic


class FailedAttemptThrottle:
    """Sliding-window counter of failed attempts per client key."""

    def __init__(self, *, window_seconds: float, max_failures: int) -> None:
        self.window_seconds = window_seconds
        self.max_failures = max_failures
        self._attempts: dict[str, deque[float]] = {}
        self._lock = Lock()

    @staticmethod
    def _key(client_key: str | None) -> str:
        return client_key or "unknown"

    def _prune(self, attempts: deque[float], *, now: float) -> None:
        cutoff = now - self.window_seconds
        while attempts and attempts[0] < cutoff:
            attempts.popleft()

    def is_limited(self, client_key: str | None) -> bool:
        key = self._key(client_key)
        now = monotonic()
        with self._lock:
            attempts = self._attempts.get(key)
            if attempts is None:
                return False
            self._prune(attempts, now=now)
            if not attempts:
                self._attempts.pop(key, None)
                return False
            return len(attempts) >= self.max_failures

    def record_failure(self, client_key: str | None) -> None:
        key = self._key(client_key)
        now = monotonic()
        with self._lock:
            attempts = self._attempts.setdefault(key, deque())
            self._prune(attempts, now=now)
            attempts.append(now)

    def clear(self, client_key: str | None = None) -> None:
        with self._lock:
            if client_key is None:
                self._attempts.clear()
            else:
                self._attempts.pop(self._key(client_key), None)
