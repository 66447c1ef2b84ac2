"""Storage of users' conversational contexts."""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Optional

ContextualFunc = Callable[..., Any]


@dataclass
class CacheConfig:
    """Settings for the in-memory user context storage."""

    expires_in: timedelta = field(default_factory=lambda: timedelta(minutes=3))
    cleanup_interval: timedelta = field(default_factory=lambda: timedelta(minutes=10))


@dataclass
class SerializableArgument:
    """A user context in a form that can be stored externally."""

    func_identifier: str
    argument: Any = None


@dataclass
class UserContext:
    """A user's conversational context: what to run on the user's next input."""

    next: Optional[ContextualFunc] = None
    serializable: Optional[SerializableArgument] = None


class UserContextStorage(ABC):
    """Interface for storing users' conversational contexts."""

    @abstractmethod
    def get(self, key: str) -> Optional[ContextualFunc]:
        """Return the stored function for the user, or None."""

    @abstractmethod
    def set(self, key: str, user_context: UserContext) -> None:
        """Store the context for the user."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the user's context; do nothing if none is stored."""

    @abstractmethod
    def flush(self) -> None:
        """Remove every stored context."""


class DefaultUserContextStorage(UserContextStorage):
    """In-memory storage whose entries expire after a configured time.

    A non-positive expiry means entries never expire; a non-positive cleanup
    interval means expired entries are only dropped when they are looked up.
    """

    def __init__(self, config: CacheConfig) -> None:
        self._expires_in = config.expires_in.total_seconds()
        self._cleanup_interval = config.cleanup_interval.total_seconds()
        self._items: dict[str, tuple[Any, Optional[float]]] = {}
        self._lock = threading.Lock()
        now = time.monotonic()
        self._next_cleanup = now + self._cleanup_interval if self._cleanup_interval > 0 else None

    @staticmethod
    def _expired(deadline: Optional[float], now: float) -> bool:
        return deadline is not None and now > deadline

    def _cleanup_if_due(self, now: float) -> None:
        if self._next_cleanup is None or now < self._next_cleanup:
            return
        self._items = {
            key: entry for key, entry in self._items.items() if not self._expired(entry[1], now)
        }
        self._next_cleanup = now + self._cleanup_interval

    def get(self, key: str) -> Optional[ContextualFunc]:
        with self._lock:
            now = time.monotonic()
            self._cleanup_if_due(now)
            entry = self._items.get(key)
            if entry is None or self._expired(entry[1], now):
                return None
            value = entry[0]
        if value is None:
            return None
        if not isinstance(value, UserContext):
            raise TypeError(f"cached value has illegal type of {type(value).__name__}")
        return value.next

    def set(self, key: str, user_context: UserContext) -> None:
        if not isinstance(user_context, UserContext):
            raise TypeError(f"expected UserContext, got {type(user_context).__name__}")
        if user_context.next is None:
            raise ValueError(
                "required UserContext.next is not set; "
                "DefaultUserContextStorage only supports in-memory functions"
            )
        with self._lock:
            now = time.monotonic()
            self._cleanup_if_due(now)
            deadline = now + self._expires_in if self._expires_in > 0 else None
            self._items[key] = (user_context, deadline)

    def delete(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def flush(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            now = time.monotonic()
            return sum(1 for _, deadline in self._items.values() if not self._expired(deadline, now))


def new_user_context_storage(config: CacheConfig) -> UserContextStorage:
    """Create the default in-memory user context storage."""
    return DefaultUserContextStorage(config)