from __future__ import annotations

import threading
import time
from typing import Callable, Generic, Optional, Tuple, TypeVar

T = TypeVar("T")


class AnalyticsCache(Generic[T]):
    """Single-slot result cache with a TTL measured on an injected clock."""

    def __init__(self, ttl_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._value: Optional[T] = None
        self._stored_at: Optional[float] = None

    def get(self) -> Optional[Tuple[T, int]]:
        """The cached value and its age in whole seconds, or None when empty or expired."""
        with self._lock:
            if self._value is None or self._stored_at is None:
                return None
            age = self._clock() - self._stored_at
            if age >= self.ttl_seconds:
                return None
            return self._value, int(age)

    def set(self, value: T) -> None:
        with self._lock:
            self._value = value
            self._stored_at = self._clock()

    def invalidate(self) -> None:
        with self._lock:
            self._value = None
            self._stored_at = None
