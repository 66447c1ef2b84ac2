"""Scheduled tasks and the builder that prepares their properties."""

from __future__ import annotations

import dataclasses
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol, runtime_checkable

from sarahbot.watcher import ConfigNotFoundError, ConfigWatcher, NullConfigWatcher


class TaskInsufficientArgumentError(ValueError):
    """Raised when bot type, identifier or function is missing."""

    def __init__(self) -> None:
        super().__init__(
            "one or more of required fields -- bot_type, identifier and func -- are empty"
        )


class TaskScheduleNotGivenError(ValueError):
    """Raised when no schedule is given by the builder or by the config."""

    def __init__(self) -> None:
        super().__init__("task schedule is not set or given from config")


@dataclass
class ScheduledTaskResult:
    """One payload produced by a task run, with an optional destination."""

    content: Any
    destination: Any = None


@runtime_checkable
class ScheduledConfig(Protocol):
    """A task configuration that carries its own execution schedule."""

    def schedule(self) -> str: ...


@runtime_checkable
class DestinatedConfig(Protocol):
    """A task configuration that carries its own default destination."""

    def default_destination(self) -> Any: ...


class _ConfigLocks:
    """Hands out one lock per (bot type, identifier) pair."""

    def __init__(self) -> None:
        self._locks: dict[tuple[str, str], threading.RLock] = {}
        self._guard = threading.Lock()

    def get(self, bot_type: str, identifier: str) -> threading.RLock:
        with self._guard:
            return self._locks.setdefault((bot_type, identifier), threading.RLock())


_config_locks = _ConfigLocks()

TaskFunc = Callable[..., Any]


@dataclass
class ScheduledTask:
    """A task that runs on a schedule and sends its results somewhere."""

    identifier: str
    task_func: TaskFunc
    schedule: str
    default_destination: Any = None
    config: Any = None
    _lock: Any = field(default_factory=threading.RLock, repr=False, compare=False)

    def execute(self) -> Any:
        """Run the task and return its list of ScheduledTaskResult."""
        if self.config is None:
            return self.task_func()
        # The config may be updated by a watcher at the same time.
        with self._lock:
            return self.task_func(self.config)


@dataclass
class ScheduledTaskProps:
    """Everything needed to build a ScheduledTask."""

    bot_type: str = ""
    identifier: str = ""
    task_func: Optional[TaskFunc] = None
    schedule: str = ""
    default_destination: Any = None
    config: Any = None


def build_scheduled_task(
    props: ScheduledTaskProps, watcher: Optional[ConfigWatcher] = None
) -> ScheduledTask:
    """Build a ScheduledTask, reading its latest configuration through watcher."""
    if props.config is None:
        if not props.schedule:
            raise TaskScheduleNotGivenError()
        return ScheduledTask(
            identifier=props.identifier,
            task_func=props.task_func,
            schedule=props.schedule,
            default_destination=props.default_destination,
        )

    if watcher is None:
        watcher = NullConfigWatcher()

    lock = _config_locks.get(props.bot_type, props.identifier)
    cfg = props.config
    with lock:
        try:
            watcher.read(props.bot_type, props.identifier, cfg)
        except ConfigNotFoundError:
            pass
        except Exception as exc:
            raise RuntimeError(
                f"failed to read config for {props.bot_type}:{props.identifier}: {exc}"
            ) from exc

    schedule = props.schedule
    if isinstance(cfg, ScheduledConfig):
        configured = cfg.schedule()
        if configured:
            schedule = configured
    if not schedule:
        raise TaskScheduleNotGivenError()

    destination = props.default_destination
    if isinstance(cfg, DestinatedConfig):
        configured_dest = cfg.default_destination()
        if configured_dest is not None:
            destination = configured_dest

    return ScheduledTask(
        identifier=props.identifier,
        task_func=props.task_func,
        schedule=schedule,
        default_destination=destination,
        config=cfg,
        _lock=lock,
    )


class ScheduledTaskPropsBuilder:
    """Fluent builder for ScheduledTaskProps; validation runs on build."""

    def __init__(self) -> None:
        self._props = ScheduledTaskProps()

    def bot_type(self, bot_type: str) -> ScheduledTaskPropsBuilder:
        self._props.bot_type = bot_type
        return self

    def identifier(self, identifier: str) -> ScheduledTaskPropsBuilder:
        self._props.identifier = identifier
        return self

    def func(self, fn: Callable[[], Any]) -> ScheduledTaskPropsBuilder:
        """Set a function that takes no configuration."""
        self._props.config = None

        def task(*_configs: Any) -> Any:
            return fn()

        self._props.task_func = task
        return self

    def schedule(self, schedule: str) -> ScheduledTaskPropsBuilder:
        self._props.schedule = schedule
        return self

    def default_destination(self, destination: Any) -> ScheduledTaskPropsBuilder:
        self._props.default_destination = destination
        return self

    def configurable_func(
        self, config: Any, fn: Callable[[Any], Any]
    ) -> ScheduledTaskPropsBuilder:
        """Set a function that receives the given, watchable configuration."""
        self._props.config = config

        def task(*configs: Any) -> Any:
            return fn(configs[0])

        self._props.task_func = task
        return self

    def build(self) -> ScheduledTaskProps:
        props = self._props
        if not props.bot_type or not props.identifier or props.task_func is None:
            raise TaskInsufficientArgumentError()
        if props.config is None and not props.schedule:
            raise TaskScheduleNotGivenError()
        if (
            props.config is not None
            and not isinstance(props.config, ScheduledConfig)
            and not props.schedule
        ):
            raise TaskScheduleNotGivenError()
        return dataclasses.replace(props)

    def must_build(self) -> ScheduledTaskProps:
        """Like build, but wraps any validation failure in a RuntimeError."""
        try:
            return self.build()
        except (TaskInsufficientArgumentError, TaskScheduleNotGivenError) as exc:
            raise RuntimeError(f"error on building ScheduledTaskProps: {exc}") from exc