"""In-memory login lockout keyed by (email, client ip)."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Tuple

Key = Tuple[str, str]


@dataclass
class FailureWindow:
    """Failures counted since `first_failure`, plus the lockout end if one is active."""
    failures: int
    first_failure: float
    locked_until: float = 0.0

    def locked(self, now: float) -> bool:
        return self.locked_until > now

    def expired(self, now: float, window: float) -> bool:
        # A lapsed lockout or a failure streak older than the window no longer counts
        if self.locked_until:
            return self.locked_until <= now
        return now - self.first_failure >= window


class AccountGuard:
    """Lock an (email, ip) pair after `max_attempts` failures within `lockout_seconds`.

    Keys are built from the submitted email whether or not an account exists,
    so a lockout never tells the visitor that an address is registered.
    Stale windows are dropped on lookup and swept on every failure, so
    attempts against made-up addresses do not pile up.
    """

    def __init__(self, max_attempts: int = 5, lockout_seconds: int = 15 * 60,
                 clock: Callable[[], float] = time.monotonic):
        self.max_attempts = max_attempts
        self.lockout_seconds = lockout_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: Dict[Key, FailureWindow] = {}

    def configure(self, max_attempts: int, lockout_seconds: int) -> None:
        with self._lock:
            self.max_attempts = max_attempts
            self.lockout_seconds = lockout_seconds
            self._windows.clear()

    @staticmethod
    def _key(email: str, ip_address: str) -> Key:
        return (email.lower().strip(), ip_address or 'unknown')

    def _live_window(self, key: Key, now: float):
        window = self._windows.get(key)
        if window is not None and window.expired(now, self.lockout_seconds):
            del self._windows[key]
            return None
        return window

    def _sweep(self, now: float) -> None:
        stale = [key for key, window in self._windows.items() if window.expired(now, self.lockout_seconds)]
        for key in stale:
            del self._windows[key]

    def is_locked(self, email: str, ip_address: str) -> Tuple[bool, float]:
        """Return (locked, seconds remaining)."""
        now = self._clock()
        with self._lock:
            window = self._live_window(self._key(email, ip_address), now)
            if window is None or not window.locked(now):
                return False, 0.0
            return True, window.locked_until - now

    def register_failure(self, email: str, ip_address: str) -> Tuple[int, float]:
        """Count a failed login. Returns (failures, lockout seconds or 0)."""
        now = self._clock()
        key = self._key(email, ip_address)
        with self._lock:
            self._sweep(now)
            window = self._windows.get(key)
            if window is None:
                window = self._windows[key] = FailureWindow(failures=0, first_failure=now)
            elif window.locked(now):
                return window.failures, window.locked_until - now

            window.failures += 1
            if window.failures >= self.max_attempts:
                window.locked_until = now + self.lockout_seconds
                return window.failures, float(self.lockout_seconds)
            return window.failures, 0.0

    def reset(self, email: str, ip_address: str) -> None:
        with self._lock:
            self._windows.pop(self._key(email, ip_address), None)

    def tracked(self) -> int:
        """Number of (email, ip) pairs currently remembered."""
        with self._lock:
            return len(self._windows)


# Shared instance configured by create_app
account_guard = AccountGuard()
