"""Time-boxed cache for the translated models list."""

import time
import threading
from typing import Any, Callable, Dict, Optional


class ModelsCache:
    """Holds one models-list payload for `ttl_seconds`."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._data: Optional[Dict[str, Any]] = None
        self._stored_at = 0.0
        self._lock = threading.Lock()

    def get(self) -> Optional[Dict[str, Any]]:
        """Return the cached payload, or None when empty or expired."""
        with self._lock:
            if self._data is None:
                return None
            if self._clock() - self._stored_at >= self.ttl_seconds:
                return None
            return self._data

    def set(self, data: Dict[str, Any]):
        with self._lock:
            self._data = data
            self._stored_at = self._clock()

    def clear(self):
        with self._lock:
            self._data = None
            self._stored_at = 0.0
