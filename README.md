# sarahbot

Building blocks for chat bots:

- **Runner status** (`sarahbot.status`): whether the bot runner and each
  registered bot are running.
- **User conversation contexts** (`sarahbot.storage`): keep a user's next step
  between messages in memory. Entries expire.
- **Scheduled task definitions** (`sarahbot.task`): describe periodic jobs with
  a builder. The schedule and the default destination can come from a
  configuration object.
- **Configuration watching** (`sarahbot.watcher`, `sarahbot.watchers.filewatcher`):
  read per-task configuration from YAML or JSON files, and get a callback when
  those files change.
- **Slack settings** (`sarahbot.slack.config`): a settings object with defaults,
  which can be built from decoded JSON or YAML.

## Installation

```
pip install .
```

To install the test dependencies as well:

```
pip install ".[test]"
```

## Runner status

```python
from sarahbot.status import current_status

status = current_status()
print(status.running)
for bot in status.bots:
    print(bot.type, bot.running)
```

`current_status()` returns a frozen `Status` snapshot. Its `bots` field is a
tuple of `BotStatus`. It can be called at any time. Before the runner state
has been started, it reports not running.

The mutable state lives in `RunnerState`, and there is one `BotState` per bot:

- `RunnerState.start()` marks the runner as running. A second call raises
  `RunnerAlreadyRunningError`.
- `add_bot(bot)` and `stop_bot(bot)` take any object that has a `bot_type`
  attribute.
- `stop()` marks the runner as finished. Stopping a second time only logs a
  warning.

## User conversation contexts

```python
from sarahbot.storage import CacheConfig, UserContext, new_user_context_storage

storage = new_user_context_storage(CacheConfig())
storage.set("channel|user", UserContext(next=lambda *args: None))
next_step = storage.get("channel|user")
```

`DefaultUserContextStorage` keeps each `UserContext` in process memory, keyed
by the sender:

- `get` returns the stored `next` callable, or `None` when nothing is stored or
  the entry has expired. It raises `TypeError` if the stored value is not a
  `UserContext`.
- `set` raises `ValueError` for a context that has no `next` callable. A
  context that holds only a `SerializableArgument` cannot be stored here.
- `delete` removes one entry and `flush` removes them all.
- `len(storage)` counts the entries that have not expired.

By default an entry expires after three minutes, and expired entries are swept
every ten minutes. An expiry that is zero or negative means entries never
expire.

## Scheduled tasks

```python
from sarahbot.task import ScheduledTaskPropsBuilder, ScheduledTaskResult, build_scheduled_task
from sarahbot.watcher import NullConfigWatcher


def greet():
    return [ScheduledTaskResult(content="Good morning")]


props = (
    ScheduledTaskPropsBuilder()
    .bot_type("slack")
    .identifier("morning_greeting")
    .func(greet)
    .schedule("0 0 9 * * *")
    .default_destination("general")
    .build()
)

task = build_scheduled_task(props, NullConfigWatcher())
results = task.execute()
```

`build()` raises `TaskInsufficientArgumentError` when the bot type, the
identifier or the function is missing. It raises `TaskScheduleNotGivenError`
when no schedule is set and the configuration cannot supply one.
`must_build()` wraps either error in a `RuntimeError`.

A configuration object passed to `configurable_func(config, fn)` is handed to
`fn` on every `execute()`. If the object has a `schedule()` method
(`ScheduledConfig`) or a `default_destination()` method (`DestinatedConfig`),
the non-empty value it returns overrides the one set on the builder.

`build_scheduled_task` first lets the watcher update the configuration in
place:

- A `ConfigNotFoundError` from the watcher is ignored.
- Any other error from the watcher is re-raised as a `RuntimeError`.

Schedule strings are stored as given and are not parsed.

## Watching configuration files

```python
from sarahbot.watchers.filewatcher import new_file_watcher

with new_file_watcher("config") as watcher:
    watcher.read("slack", "morning_greeting", config)
    watcher.watch("slack", "morning_greeting", on_change)
    ...
    watcher.unwatch("slack")
```

`read` looks for the files below, in this order, and applies the first one
that exists:

1. `config/slack/morning_greeting.yaml`
2. `config/slack/morning_greeting.yml`
3. `config/slack/morning_greeting.json`

The bot type is lower-cased for this lookup. The file's top-level keys are
applied to `config` in place: a mapping is updated, and any other object gets
the attributes it already has set. If none of the files exists,
`ConfigNotFoundError` is raised.

`watch` subscribes to the directory `config/<bot type>`. That path uses the bot
type as given, without lower-casing. When a matching file there is created or
modified, the callback runs. Subscribing twice to the same identifier in the
same directory raises `AlreadySubscribingError`.

After `close()`, `watch` and `unwatch` raise `WatcherNotRunningError`.

`FileWatcher` can also be built directly with any observer object that has
`schedule`, `unschedule` and `stop`. `handle_path_change(path)` runs the
callbacks for a changed path by hand.

`find_plugin_config_file` and `plain_path_to_file` turn an identifier or a path
into a `PluginConfigFile`. `plain_path_to_file` raises one of two errors:

- `UnableToDetermineConfigFileFormatError` for a path without an extension.
- `UnsupportedConfigFileFormatError` for an extension other than `.yaml`,
  `.yml` or `.json`.

## Slack configuration

```python
from sarahbot.slack.config import Config

config = Config.from_mapping({"token": "token", "request_timeout": "5s"})
```

Settings that are left out keep their defaults:

| Setting | Default |
| --- | --- |
| Listen port | 8080 |
| Help command | `.help` |
| Abort command | `.abort` |
| Sending queue size | 100 |
| Request timeout | 3 s |
| Ping interval | 30 s |
| `RetryPolicy` | 10 trials, 500 ms apart |

A duration can be given in any of these forms:

- a `timedelta`;
- a number of nanoseconds;
- a string such as `"1m30s"` or `"500ms"`.

A negative `sending_queue_size` raises `ValueError`.

## What this package does not do

This package supplies the parts around a bot, not the bot itself:

- It has no runner that starts bots or dispatches messages.
- It does not connect to Slack or any other chat service. `Config` only holds
  settings.
- It has no cron scheduler that runs `ScheduledTask` objects at their
  schedule.

Wiring these parts into a running bot is left to the application.

## Running the tests

```
pytest
```