"""A configuration watcher that reads and watches files on the local filesystem."""

from __future__ import annotations

import enum
import json
import logging
import os
import threading
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

import yaml
from watchdog.events import FileSystemEvent, FileSystemEventHandler

from sarahbot.watcher import (
    AlreadySubscribingError,
    ConfigNotFoundError,
    ConfigWatcher,
    WatcherNotRunningError,
)

logger = logging.getLogger(__name__)


class FileType(enum.Enum):
    """Format of a configuration file."""

    YAML = 1
    JSON = 2


_CANDIDATES: tuple[tuple[str, FileType], ...] = (
    (".yaml", FileType.YAML),
    (".yml", FileType.YAML),
    (".json", FileType.JSON),
)


class UnableToDetermineConfigFileFormatError(ValueError):
    """Raised when a path has no extension to tell its format by."""

    def __init__(self, path: str) -> None:
        super().__init__(f"can not determine file format: {path}")


class UnsupportedConfigFileFormatError(ValueError):
    """Raised when a path's extension is not a supported configuration format."""

    def __init__(self, path: str) -> None:
        super().__init__(f"unsupported file format: {path}")


@dataclass(frozen=True)
class PluginConfigFile:
    """A configuration file of one command or task."""

    id: str
    abs_path: str
    abs_dir: str
    file_type: FileType


def find_plugin_config_file(config_dir: str, id: str) -> Optional[PluginConfigFile]:
    """Return the first existing config file for id in config_dir, trying .yaml, .yml, then .json."""
    for ext, file_type in _CANDIDATES:
        abs_path = os.path.abspath(os.path.join(config_dir, f"{id}{ext}"))
        if os.path.exists(abs_path):
            return PluginConfigFile(
                id=id,
                abs_path=abs_path,
                abs_dir=os.path.dirname(abs_path),
                file_type=file_type,
            )
    return None


def _extension(filename: str) -> str:
    index = filename.rfind(".")
    return filename[index:] if index >= 0 else ""


def plain_path_to_file(path: str) -> PluginConfigFile:
    """Describe the config file at path, telling its format by the extension."""
    abs_path = os.path.abspath(path)
    abs_dir, filename = os.path.split(abs_path)
    ext = _extension(filename)
    if not ext:
        raise UnableToDetermineConfigFileFormatError(path)
    for candidate_ext, file_type in _CANDIDATES:
        if ext == candidate_ext:
            return PluginConfigFile(
                id=filename[: -len(ext)],
                abs_path=abs_path,
                abs_dir=abs_dir,
                file_type=file_type,
            )
    raise UnsupportedConfigFileFormatError(path)


def _apply(config: Any, data: Any, path: str) -> None:
    if data is None:
        raise ValueError(f"configuration file is empty: {path}")
    if not isinstance(data, Mapping):
        raise ValueError(f"configuration file does not hold a mapping: {path}")
    if isinstance(config, MutableMapping):
        config.update(data)
        return
    # Keys without a matching attribute are ignored, as unknown fields are.
    for key, value in data.items():
        if isinstance(key, str) and hasattr(config, key):
            setattr(config, key, value)


class _Observer(Protocol):
    def schedule(self, event_handler: Any, path: str, recursive: bool = ...) -> Any: ...

    def unschedule(self, watch: Any) -> None: ...

    def stop(self) -> None: ...


@dataclass(frozen=True)
class _Subscription:
    bot_type: str
    id: str
    abs_dir: str
    callback: Callable[[], None]


class _EventHandler(FileSystemEventHandler):
    def __init__(self, watcher: FileWatcher) -> None:
        super().__init__()
        self._watcher = watcher

    def _changed(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._watcher.handle_path_change(os.fsdecode(event.src_path))

    def on_created(self, event: FileSystemEvent) -> None:
        self._changed(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._changed(event)


class FileWatcher(ConfigWatcher):
    """Reads configuration files under base_dir/<bot type>/ and reports their changes."""

    def __init__(self, base_dir: str, observer: _Observer) -> None:
        self.base_dir = base_dir
        self._observer = observer
        self._handler = _EventHandler(self)
        self._subscriptions: dict[str, list[_Subscription]] = {}
        self._watches: dict[str, Any] = {}
        self._lock = threading.Lock()
        self._closed = False

    def read(self, bot_type: str, id: str, config: Any) -> None:
        config_dir = os.path.join(self.base_dir, bot_type.lower())
        found = find_plugin_config_file(config_dir, id)
        if found is None:
            raise ConfigNotFoundError(bot_type, id)

        with open(found.abs_path, encoding="utf-8") as stream:
            if found.file_type is FileType.YAML:
                data = yaml.safe_load(stream)
            else:
                data = json.load(stream)
        _apply(config, data, found.abs_path)

    def watch(self, bot_type: str, id: str, callback: Callable[[], None]) -> None:
        abs_dir = os.path.abspath(os.path.join(self.base_dir, bot_type))
        subscription = _Subscription(bot_type=bot_type, id=id, abs_dir=abs_dir, callback=callback)
        with self._lock:
            if self._closed:
                raise WatcherNotRunningError()
            logger.info("Start subscribing to %s", abs_dir)
            existing = self._subscriptions.get(abs_dir, [])
            if any(s.id == id for s in existing):
                raise AlreadySubscribingError()
            if abs_dir not in self._watches:
                self._watches[abs_dir] = self._observer.schedule(
                    self._handler, abs_dir, recursive=False
                )
            self._subscriptions[abs_dir] = [*existing, subscription]

    def unwatch(self, bot_type: str) -> None:
        with self._lock:
            if self._closed:
                raise WatcherNotRunningError()
            logger.info("Stop subscribing config files for %s", bot_type)
            for abs_dir, subscriptions in list(self._subscriptions.items()):
                remains = [s for s in subscriptions if s.bot_type != bot_type]
                if remains:
                    self._subscriptions[abs_dir] = remains
                    continue
                del self._subscriptions[abs_dir]
                watch = self._watches.pop(abs_dir, None)
                if watch is not None:
                    try:
                        self._observer.unschedule(watch)
                    except Exception as exc:  # removal failures are not fatal
                        logger.debug("Failed to stop watching %s: %s", abs_dir, exc)

    def handle_path_change(self, path: str) -> None:
        """Call the callbacks subscribed to the config file written or created at path."""
        logger.info("Received change event for %s.", path)
        try:
            changed = plain_path_to_file(path)
        except (UnableToDetermineConfigFileFormatError, UnsupportedConfigFileFormatError):
            return
        with self._lock:
            callbacks = [
                s.callback
                for s in self._subscriptions.get(changed.abs_dir, [])
                if s.id == changed.id
            ]
        for callback in callbacks:
            callback()

    def close(self) -> None:
        """Stop watching the filesystem; further watch and unwatch calls fail."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._subscriptions.clear()
            self._watches.clear()
        try:
            self._observer.stop()
            if isinstance(self._observer, threading.Thread) and self._observer.is_alive():
                self._observer.join()
        except Exception as exc:
            logger.warning("Error on subscription cancellation: %s", exc)
        else:
            logger.info("Stop subscribing to file system events.")

    def __enter__(self) -> FileWatcher:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def new_file_watcher(base_dir: str) -> FileWatcher:
    """Create a FileWatcher backed by a running filesystem observer."""
    from watchdog.observers import Observer

    observer = Observer()
    watcher = FileWatcher(base_dir, observer)
    observer.start()
    return watcher