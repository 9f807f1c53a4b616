"""Command invocation counters."""

import threading
from typing import Dict


class UsageCounter:
    """Monotonic per-command invocation counts (in memory only)."""

    def __init__(self):
        self._uses: Dict[str, int] = {}
        self._lock = threading.Lock()

    def increment(self, name: str) -> int:
        """Count one invocation of ``name`` and return the new total."""
        with self._lock:
            count = self._uses.get(name, 0) + 1
            self._uses[name] = count
            return count

    def get(self, name: str) -> int:
        with self._lock:
            return self._uses.get(name, 0)

    def snapshot(self) -> Dict[str, int]:
        """Copy of all counters."""
        with self._lock:
            return dict(self._uses)
