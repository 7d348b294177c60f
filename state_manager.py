# state_manager.py
"""
Centralized in-memory state for the shopper dashboard.

Holds the things that do not belong in the database:
- failed PIN attempts and lockouts per (role, client)
- the date of the last daily check-in reset
- a TTL cache for expensive read-only computations (stats, counts)

Thread-safe singleton; tests call ``StateManager.reset_instance()``.
"""

import time as time_module
from datetime import date, datetime, timedelta, timezone
from threading import Lock, RLock
from typing import Any, Dict, Optional, Tuple


class TTLCache:
    """Simple TTL cache for expensive calculations."""

    def __init__(self, ttl_seconds: float = 60.0):
        self.ttl = ttl_seconds
        self._cache: Dict[str, tuple] = {}  # key -> (value, timestamp)
        self._lock = Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            if key in self._cache:
                value, timestamp = self._cache[key]
                if time_module.time() - timestamp < self.ttl:
                    return value
                del self._cache[key]
            return None

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._cache[key] = (value, time_module.time())

    def invalidate(self, key: Optional[str] = None) -> None:
        """Invalidate specific key or all keys if key is None."""
        with self._lock:
            if key is None:
                self._cache.clear()
            else:
                self._cache.pop(key, None)


class StateManager:
    """
    Singleton holding login attempt counters and scheduler markers.

    Usage:
        state = StateManager.get_instance()
        locked_until = state.register_failure('ADMIN', '10.0.0.1', 5, 5)
    """

    _instance: Optional['StateManager'] = None
    _instance_lock = Lock()

    def __init__(self):
        self._lock = RLock()
        self.stats_cache = TTLCache(ttl_seconds=30.0)
        # (role, client) -> {'failures': int, 'locked_until': datetime | None}
        self._attempts: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.last_check_in_reset: Optional[date] = None

    @classmethod
    def get_instance(cls) -> 'StateManager':
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset the singleton instance. Useful for testing."""
        with cls._instance_lock:
            cls._instance = None

    @property
    def lock(self) -> RLock:
        return self._lock

    # -----------------------------------------------------------
    # Login attempts
    # -----------------------------------------------------------
    def locked_until(self, role: str, client: str, now: Optional[datetime] = None) -> Optional[datetime]:
        """End of the active lockout, or None. Expired lockouts are cleared."""
        now = now or datetime.now(timezone.utc)
        with self._lock:
            entry = self._attempts.get((role, client))
            if not entry or entry['locked_until'] is None:
                return None
            if entry['locked_until'] <= now:
                del self._attempts[(role, client)]
                return None
            return entry['locked_until']

    def register_failure(self, role: str, client: str, max_attempts: int, lockout_minutes: int,
                         now: Optional[datetime] = None) -> Optional[datetime]:
        """Count a failed attempt. Returns the lockout end once the limit is reached."""
        now = now or datetime.now(timezone.utc)
        with self._lock:
            entry = self._attempts.setdefault((role, client), {'failures': 0, 'locked_until': None})
            entry['failures'] += 1
            if entry['failures'] >= max_attempts:
                entry['locked_until'] = now + timedelta(minutes=lockout_minutes)
                entry['failures'] = 0
            return entry['locked_until']

    def register_success(self, role: str, client: str) -> None:
        with self._lock:
            self._attempts.pop((role, client), None)

    def failure_count(self, role: str, client: str) -> int:
        with self._lock:
            entry = self._attempts.get((role, client))
            return entry['failures'] if entry else 0
