"""Per-key command cooldown tracking for chatdispatch.

Stores an absolute expiry timestamp per cooldown key. Entries are
evicted lazily when read after expiry, or in batch by sweep().
Enforcement is left to the command (see Command.run); this module only
records and reports.
"""

import math
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

import structlog

logger = structlog.get_logger("chatdispatch.dispatch")


class CooldownTracker:
    """Thread-safe map of cooldown key -> expiry (Unix timestamp).

    Args:
        clock: Time source returning Unix seconds. Tests inject a
            fake clock here.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._expiries: Dict[str, float] = {}
        self._lock = threading.Lock()

    def apply(self, key: str, seconds: float) -> None:
        """Start (or restart) the cooldown for ``key``."""
        with self._lock:
            self._expiries[key] = self._clock() + seconds
        logger.debug("cooldown_applied", key=key, seconds=seconds)

    def remaining(self, key: str) -> int:
        """Whole seconds left on ``key``, rounded up.

        Returns 0 for unknown keys. An expired entry is removed as a
        side effect of reading it.
        """
        with self._lock:
            expires_at = self._expiries.get(key)
            if expires_at is None:
                return 0
            left = expires_at - self._clock()
            if left <= 0:
                del self._expiries[key]
                return 0
            return math.ceil(left)

    def get_expiry(self, key: str) -> Optional[datetime]:
        """Expiry instant for ``key`` (UTC), without evicting."""
        with self._lock:
            expires_at = self._expiries.get(key)
        if expires_at is None:
            return None
        return datetime.fromtimestamp(expires_at, tz=timezone.utc)

    def clear(self, key: str) -> bool:
        """Drop the cooldown for ``key``. Returns True if one existed."""
        with self._lock:
            return self._expiries.pop(key, None) is not None

    def sweep(self) -> int:
        """Remove every entry whose expiry is at or before now.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            now = self._clock()
            expired = [k for k, exp in self._expiries.items() if exp <= now]
            for key in expired:
                del self._expiries[key]
        if expired:
            logger.debug("cooldowns_swept", removed=len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._expiries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._expiries
