"""
Session store capability used by the session-handoff transport.

The dispatcher only needs get/set/delete by key, so it can be tested without
a real session backend.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol

from cachetools import TTLCache  # type: ignore[import-untyped]

if TYPE_CHECKING:
    from starlette.requests import Request

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    """Key/value storage scoped to one user session."""

    def get(self, key: str, default: Any = None) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class InMemorySessionStore:
    """Process-local store with per-entry expiry.

    Entries expire after ``ttl`` seconds so abandoned handoffs do not pile up.
    A new ``set`` for a key overwrites any unread value (last write wins).
    """

    def __init__(
        self, ttl: int = 600, maxsize: int = 10000, timer: Callable[[], float] = time.monotonic
    ) -> None:
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl, timer=timer)
        # TTLCache is not thread-safe
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._cache.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            if key in self._cache:
                logger.debug(f"Overwriting unread session entry {key}")
            self._cache[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._cache

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)


class RequestSessionStore:
    """Adapter over a Starlette ``request.session`` (requires SessionMiddleware)."""

    def __init__(self, request: Request) -> None:
        self.request = request

    def get(self, key: str, default: Any = None) -> Any:
        return self.request.session.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.request.session[key] = value

    def delete(self, key: str) -> None:
        self.request.session.pop(key, None)
