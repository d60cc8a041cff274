from __future__ import annotations

import logging
import threading
import time

from app.config import settings

logger = logging.getLogger(__name__)


class PermissionCache:
    """Effective access per (principal, module), expired after ``ttl`` seconds.

    Entries are invalidated explicitly on token issue, on permission edits and
    on group membership or group module access changes.
    """

    def __init__(self, ttl: float = 60, clock=time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[tuple[str, str], tuple[float, object]] = {}
        self._lock = threading.Lock()

    def get(self, principal_id, module_name: str):
        key = (str(principal_id), module_name)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            cached_at, value = entry
            if self._clock() - cached_at > self.ttl:
                del self._entries[key]
                return None
            return value

    def set(self, principal_id, module_name: str, value) -> None:
        with self._lock:
            self._entries[(str(principal_id), module_name)] = (self._clock(), value)

    def invalidate_principal(self, principal_id) -> None:
        principal_key = str(principal_id)
        with self._lock:
            keys = [k for k in self._entries if k[0] == principal_key]
            for key in keys:
                self._entries.pop(key, None)
        logger.debug("Invalidated permission cache for %s", principal_key)

    def invalidate_principals(self, principal_ids) -> None:
        for principal_id in principal_ids:
            self.invalidate_principal(principal_id)

    def invalidate_module(self, module_name: str) -> None:
        with self._lock:
            keys = [k for k in self._entries if k[1] == module_name]
            for key in keys:
                self._entries.pop(key, None)
        logger.debug("Invalidated permission cache for module %s", module_name)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._entries)


permission_cache = PermissionCache(ttl=settings.permission_cache_ttl_seconds)


def get_permission_cache() -> PermissionCache:
    return permission_cache
