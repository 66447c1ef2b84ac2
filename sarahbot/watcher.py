"""Interface for watching configuration changes of commands and tasks."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable


class ConfigNotFoundError(LookupError):
    """Raised when no configuration exists for the given bot type and id."""

    def __init__(self, bot_type: str, id: str) -> None:
        self.bot_type = bot_type
        self.id = id
        super().__init__(f"no configuration found for {bot_type}:{id}")


class WatcherNotRunningError(RuntimeError):
    """Raised when unwatching after the watcher has already stopped."""

    def __init__(self) -> None:
        super().__init__("watcher is already stopped")


class AlreadySubscribingError(RuntimeError):
    """Raised when the same configuration is watched twice."""

    def __init__(self) -> None:
        super().__init__("already subscribing")


class ConfigWatcher(ABC):
    """Subscribes to configuration changes and applies them on request."""

    @abstractmethod
    def read(self, bot_type: str, id: str, config: Any) -> None:
        """Apply the latest configuration value to config in place."""

    @abstractmethod
    def watch(self, bot_type: str, id: str, callback: Callable[[], None]) -> None:
        """Call callback whenever the configuration for id changes."""

    @abstractmethod
    def unwatch(self, bot_type: str) -> None:
        """Stop every subscription belonging to bot_type."""


class NullConfigWatcher(ConfigWatcher):
    """A watcher that has no configuration source and never notifies."""

    def read(self, bot_type: str, id: str, config: Any) -> None:
        return None

    def watch(self, bot_type: str, id: str, callback: Callable[[], None]) -> None:
        return None

    def unwatch(self, bot_type: str) -> None:
        return None