"""Settings for the Slack adapter."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Mapping

_UNIT_NANOSECONDS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def _parse_duration_string(text: str) -> timedelta:
    raw = text.strip()
    sign = 1
    if raw[:1] in "+-" and raw:
        sign = -1 if raw[0] == "-" else 1
        raw = raw[1:]
    if raw == "0":
        return timedelta(0)
    if not raw:
        raise ValueError(f"invalid duration: {text!r}")
    position = 0
    total_ns = 0.0
    for match in _DURATION_PART.finditer(raw):
        if match.start() != position:
            raise ValueError(f"invalid duration: {text!r}")
        total_ns += float(match.group(1)) * _UNIT_NANOSECONDS[match.group(2)]
        position = match.end()
    if position != len(raw):
        raise ValueError(f"invalid duration: {text!r}")
    return timedelta(microseconds=sign * total_ns / 1_000)


def _to_duration(value: Any, name: str) -> timedelta:
    """Accept a timedelta, a nanosecond count, or a duration string like '3s'."""
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise TypeError(f"{name} must be a duration, got bool")
    if isinstance(value, (int, float)):
        return timedelta(microseconds=value / 1_000)
    if isinstance(value, str):
        return _parse_duration_string(value)
    raise TypeError(f"{name} must be a duration, got {type(value).__name__}")


@dataclass
class RetryPolicy:
    """How many times an API call is tried and how long to wait in between."""

    trial: int = 10
    interval: timedelta = field(default_factory=lambda: timedelta(milliseconds=500))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> RetryPolicy:
        policy = cls()
        if "trial" in data:
            policy.trial = int(data["trial"])
        if "interval" in data:
            policy.interval = _to_duration(data["interval"], "interval")
        return policy


@dataclass
class Config:
    """Slack adapter settings; token and app_secret have no usable default."""

    token: str = ""
    app_secret: str = ""
    listen_port: int = 8080
    help_command: str = ".help"
    abort_command: str = ".abort"
    sending_queue_size: int = 100
    request_timeout: timedelta = field(default_factory=lambda: timedelta(seconds=3))
    ping_interval: timedelta = field(default_factory=lambda: timedelta(seconds=30))
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Config:
        """Build a Config from decoded JSON or YAML, keeping defaults for absent keys."""
        config = cls()
        for key in ("token", "app_secret", "help_command", "abort_command"):
            if key in data:
                setattr(config, key, str(data[key]))
        if "listen_port" in data:
            config.listen_port = int(data["listen_port"])
        if "sending_queue_size" in data:
            size = int(data["sending_queue_size"])
            if size < 0:
                raise ValueError("sending_queue_size must not be negative")
            config.sending_queue_size = size
        for key in ("request_timeout", "ping_interval"):
            if key in data:
                setattr(config, key, _to_duration(data[key], key))
        if "retry_policy" in data:
            policy = data["retry_policy"]
            config.retry_policy = policy if isinstance(policy, RetryPolicy) else RetryPolicy.from_mapping(policy)
        return config