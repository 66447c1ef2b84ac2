"""Running state of the bot runner and of each registered bot."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)


class RunnerAlreadyRunningError(RuntimeError):
    """Raised when the runner is started a second time."""

    def __init__(self) -> None:
        super().__init__("the bot runner is already running")


class _Bot(Protocol):
    bot_type: str


@dataclass(frozen=True)
class BotStatus:
    """Point-in-time status of one bot."""

    type: str
    running: bool


@dataclass(frozen=True)
class Status:
    """Point-in-time status of the runner and all registered bots."""

    running: bool
    bots: tuple[BotStatus, ...] = ()


class BotState:
    """Mutable running state of a single bot; once stopped it stays stopped."""

    def __init__(self, bot_type: str) -> None:
        self.bot_type = bot_type
        self._finished = threading.Event()
        self._lock = threading.Lock()

    def running(self) -> bool:
        return not self._finished.is_set()

    def stop(self) -> None:
        with self._lock:
            if self._finished.is_set():
                logger.warning("Multiple BotState.stop() calls for %s occurred.", self.bot_type)
                return
            self._finished.set()


class RunnerState:
    """Mutable running state of the runner and the bots it supervises."""

    def __init__(self) -> None:
        self.bots: list[BotState] = []
        self._finished: threading.Event | None = None
        self._lock = threading.RLock()

    def running(self) -> bool:
        with self._lock:
            finished = self._finished
            if finished is None:
                # Created, but start() has not been called yet.
                return False
            return not finished.is_set()

    def start(self) -> None:
        with self._lock:
            if self._finished is not None:
                raise RunnerAlreadyRunningError()
            self._finished = threading.Event()

    def add_bot(self, bot: _Bot) -> None:
        with self._lock:
            self.bots.append(BotState(bot.bot_type))

    def stop_bot(self, bot: _Bot) -> None:
        with self._lock:
            for state in self.bots:
                if state.bot_type == bot.bot_type:
                    state.stop()

    def snapshot(self) -> Status:
        with self._lock:
            bots = tuple(BotStatus(type=state.bot_type, running=state.running()) for state in self.bots)
            return Status(running=self.running(), bots=bots)

    def stop(self) -> None:
        with self._lock:
            finished = self._finished
            if finished is None or finished.is_set():
                logger.warning("Multiple RunnerState.stop() calls occurred.")
                return
            finished.set()


runner_status = RunnerState()


def current_status() -> Status:
    """Return a snapshot of the current runner status; safe to call before start."""
    return runner_status.snapshot()