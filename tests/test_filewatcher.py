import json
import os
import threading
from dataclasses import dataclass

import pytest

from sarahbot.watcher import (
    AlreadySubscribingError,
    ConfigNotFoundError,
    WatcherNotRunningError,
)
from sarahbot.watchers.filewatcher import (
    FileType,
    FileWatcher,
    UnableToDetermineConfigFileFormatError,
    UnsupportedConfigFileFormatError,
    find_plugin_config_file,
    new_file_watcher,
    plain_path_to_file,
)


class FakeObserver:
    def __init__(self, schedule_error=None, stop_error=None):
        self.schedule_error = schedule_error
        self.stop_error = stop_error
        self.scheduled = []
        self.unscheduled = []
        self.stopped = 0

    def schedule(self, event_handler, path, recursive=False):
        if self.schedule_error is not None:
            raise self.schedule_error
        watch = ("watch", path)
        self.scheduled.append(path)
        return watch

    def unschedule(self, watch):
        self.unscheduled.append(watch)

    def stop(self):
        self.stopped += 1
        if self.stop_error is not None:
            raise self.stop_error


@dataclass
class HelloConfig:
    text: str = ""


@pytest.fixture
def config_dir(tmp_path):
    dummy = tmp_path / "dummy"
    dummy.mkdir()
    (dummy / "jsonHello.json").write_text(json.dumps({"text": "HELLO"}))
    (dummy / "yamlHello.yaml").write_text("text: HELLO\n")
    (dummy / "broken.json").write_text("{not json")
    return tmp_path


@pytest.mark.parametrize(
    "path, file_type",
    [
        ("/path/to/json/file.json", FileType.JSON),
        ("/path/to/yaml/file.yml", FileType.YAML),
        ("/path/to/yaml/file.yaml", FileType.YAML),
    ],
)
def test_plain_path_to_file_supported(path, file_type):
    found = plain_path_to_file(path)
    assert found.file_type is file_type
    assert found.id == "file"
    assert found.abs_dir == os.path.dirname(os.path.abspath(path))


def test_plain_path_to_file_without_extension():
    with pytest.raises(UnableToDetermineConfigFileFormatError):
        plain_path_to_file("/extension/is/empty")


def test_plain_path_to_file_unsupported_extension():
    with pytest.raises(UnsupportedConfigFileFormatError):
        plain_path_to_file("/path/to/yaml/file.html")


def test_find_plugin_config_file(config_dir):
    found = find_plugin_config_file(str(config_dir / "dummy"), "yamlHello")
    assert found.file_type is FileType.YAML
    assert found.abs_dir == str((config_dir / "dummy").resolve())
    assert find_plugin_config_file(str(config_dir / "dummy"), "missing") is None


def test_find_plugin_config_file_prefers_yaml(tmp_path):
    (tmp_path / "x.json").write_text("{}")
    (tmp_path / "x.yaml").write_text("{}")
    assert find_plugin_config_file(str(tmp_path), "x").file_type is FileType.YAML


@pytest.mark.parametrize("config_id", ["jsonHello", "yamlHello"])
def test_read_into_object(config_dir, config_id):
    watcher = FileWatcher(str(config_dir), FakeObserver())
    config = HelloConfig()
    watcher.read("Dummy", config_id, config)
    assert config.text == "HELLO"


def test_read_into_dict(config_dir):
    watcher = FileWatcher(str(config_dir), FakeObserver())
    config = {"other": 1}
    watcher.read("dummy", "jsonHello", config)
    assert config == {"other": 1, "text": "HELLO"}


def test_read_missing_config(config_dir):
    watcher = FileWatcher(str(config_dir), FakeObserver())
    with pytest.raises(ConfigNotFoundError) as info:
        watcher.read("dummy", "invalid", HelloConfig())
    assert info.value.id == "invalid"


def test_read_malformed_config(config_dir):
    watcher = FileWatcher(str(config_dir), FakeObserver())
    with pytest.raises(ValueError):
        watcher.read("dummy", "broken", HelloConfig())


def test_watch_schedule_error_propagates(tmp_path):
    watcher = FileWatcher(str(tmp_path), FakeObserver(schedule_error=OSError("err")))
    with pytest.raises(OSError):
        watcher.watch("dummy", "hello", lambda: None)


def test_watch_schedules_directory_once_and_rejects_duplicates(tmp_path):
    observer = FakeObserver()
    watcher = FileWatcher(str(tmp_path), observer)
    watcher.watch("dummy", "hello", lambda: None)
    watcher.watch("dummy", "other", lambda: None)
    assert observer.scheduled == [os.path.abspath(str(tmp_path / "dummy"))]
    with pytest.raises(AlreadySubscribingError):
        watcher.watch("dummy", "hello", lambda: None)


def test_handle_path_change_notifies_matching_subscribers(tmp_path):
    watcher = FileWatcher(str(tmp_path), FakeObserver())
    calls = []
    watcher.watch("dummy", "hello", lambda: calls.append("hello"))
    watcher.watch("dummy", "invalid", lambda: calls.append("invalid"))
    directory = tmp_path / "dummy"

    watcher.handle_path_change(str(directory / "hello.json"))
    assert calls == ["hello"]

    watcher.handle_path_change(str(directory / "noExtension"))
    watcher.handle_path_change(str(directory / "noSubscribingDir" / "invalid.json"))
    watcher.handle_path_change(str(directory / "hello.html"))
    assert calls == ["hello"]


def test_unwatch_removes_subscriptions(tmp_path):
    observer = FakeObserver()
    watcher = FileWatcher(str(tmp_path), observer)
    calls = []
    watcher.watch("dummyBotType", "hello", lambda: calls.append("hello"))

    watcher.unwatch("invalidBotType")
    assert observer.unscheduled == []

    watcher.unwatch("dummyBotType")
    abs_dir = os.path.abspath(str(tmp_path / "dummyBotType"))
    assert observer.unscheduled == [("watch", abs_dir)]
    watcher.handle_path_change(os.path.join(abs_dir, "hello.json"))
    assert calls == []


def test_unwatch_after_close_raises(tmp_path):
    watcher = FileWatcher(str(tmp_path), FakeObserver())
    watcher.close()
    with pytest.raises(WatcherNotRunningError):
        watcher.unwatch("dummy")
    with pytest.raises(WatcherNotRunningError):
        watcher.watch("dummy", "hello", lambda: None)


@pytest.mark.parametrize("stop_error", [RuntimeError(""), None])
def test_close_stops_observer_once(tmp_path, stop_error):
    observer = FakeObserver(stop_error=stop_error)
    with FileWatcher(str(tmp_path), observer) as watcher:
        pass
    watcher.close()
    assert observer.stopped == 1


def test_new_file_watcher_reports_written_file(tmp_path):
    (tmp_path / "dummy").mkdir()
    changed = threading.Event()
    watcher = new_file_watcher(str(tmp_path))
    try:
        watcher.watch("dummy", "hello", changed.set)
        (tmp_path / "dummy" / "hello.yaml").write_text("text: HELLO\n")
        assert changed.wait(5.0)
        config = HelloConfig()
        watcher.read("dummy", "hello", config)
        assert config.text == "HELLO"
    finally:
        watcher.close()