"""Tests for virt.server.reload: change detection, atomic state swaps and the watcher."""
from __future__ import annotations

import os
import time
from pathlib import Path
from unittest.mock import MagicMock

from watchdog.events import DirModifiedEvent, FileClosedEvent, FileModifiedEvent, FileMovedEvent

from virt.errors import VirtualApiError
from virt.server.loader import VirtualState
from virt.server.reload import (
    ResourceWatcher,
    StateHolder,
    YamlChangeHandler,
    changed_yaml_files,
    take_snapshot,
)


def _touch(path: Path, mtime: float) -> None:
    os.utime(path, (mtime, mtime))


def _holder(root: Path) -> tuple[StateHolder, MagicMock]:
    loader = MagicMock(side_effect=lambda path: VirtualState(root=path))
    return StateHolder(root, loader=loader), loader


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


# ===========================================================================
# Change detection
# ===========================================================================


class TestChangedYamlFiles:
    def test_modified_yaml_reported(self, tmp_path: Path) -> None:
        config = tmp_path / "config.yaml"
        config.write_text("{}", encoding="utf-8")
        notes = tmp_path / "notes.txt"
        notes.write_text("x", encoding="utf-8")
        _touch(config, 1_000_000)
        _touch(notes, 1_000_000)
        before = take_snapshot(tmp_path)

        _touch(config, 1_000_100)
        _touch(notes, 1_000_100)

        assert changed_yaml_files(before, tmp_path) == [str(config)]

    def test_new_nested_file_reported(self, tmp_path: Path) -> None:
        before = take_snapshot(tmp_path)
        (tmp_path / "apis" / "a").mkdir(parents=True)
        (tmp_path / "apis" / "a" / "handlers.yml").write_text("{}", encoding="utf-8")
        assert changed_yaml_files(before, tmp_path) == [str(tmp_path / "apis" / "a" / "handlers.yml")]

    def test_unchanged_tree(self, tmp_path: Path) -> None:
        (tmp_path / "config.yaml").write_text("{}", encoding="utf-8")
        assert changed_yaml_files(take_snapshot(tmp_path), tmp_path) == []

    def test_missing_root(self, tmp_path: Path) -> None:
        missing = tmp_path / "missing"
        assert take_snapshot(missing) is None
        assert changed_yaml_files(None, missing) == []


class TestYamlChangeHandler:
    def test_yaml_file_events_fire(self, tmp_path: Path) -> None:
        on_change = MagicMock()
        handler = YamlChangeHandler(on_change)
        handler.on_any_event(FileModifiedEvent(str(tmp_path / "openapi.yaml")))
        handler.on_any_event(FileMovedEvent(str(tmp_path / "tmp123"), str(tmp_path / "handlers.yml")))
        assert on_change.call_count == 2

    def test_other_events_ignored(self, tmp_path: Path) -> None:
        on_change = MagicMock()
        handler = YamlChangeHandler(on_change)
        handler.on_any_event(FileModifiedEvent(str(tmp_path / "notes.txt")))
        handler.on_any_event(DirModifiedEvent(str(tmp_path / "apis.yaml")))
        handler.on_any_event(FileClosedEvent(str(tmp_path / "config.yaml")))
        on_change.assert_not_called()


# ===========================================================================
# StateHolder
# ===========================================================================


class TestStateHolder:
    def test_reload_swaps_state(self, tmp_path: Path) -> None:
        first, second = VirtualState(root=tmp_path), VirtualState(root=tmp_path, resources={"a": 1})
        loader = MagicMock(side_effect=[first, second])
        holder = StateHolder(tmp_path, loader=loader)
        assert holder.state is first
        assert holder.reload() is True
        assert holder.state is second

    def test_failed_reload_keeps_previous_state(self, tmp_path: Path) -> None:
        first = VirtualState(root=tmp_path)
        loader = MagicMock(side_effect=[first, VirtualApiError("broken handlers.yaml")])
        holder = StateHolder(tmp_path, loader=loader)
        assert holder.reload() is False
        assert holder.state is first

    def test_pending_changes_since_load(self, tmp_path: Path) -> None:
        config = tmp_path / "config.yaml"
        config.write_text("{}", encoding="utf-8")
        _touch(config, 1_000_000)
        holder, _ = _holder(tmp_path)
        assert holder.pending_changes() == []

        _touch(config, 1_000_100)
        assert holder.pending_changes() == [str(config)]
        assert holder.reload() is True
        assert holder.pending_changes() == []


# ===========================================================================
# ResourceWatcher
# ===========================================================================


class TestResourceWatcher:
    def test_edit_before_start_is_reloaded(self, tmp_path: Path) -> None:
        config = tmp_path / "config.yaml"
        config.write_text("{}", encoding="utf-8")
        _touch(config, 1_000_000)
        holder, loader = _holder(tmp_path)
        _touch(config, 1_000_100)

        watcher = ResourceWatcher(holder, interval_ms=50)
        watcher.start()
        try:
            assert loader.call_count == 2
        finally:
            watcher.stop()

    def test_new_file_triggers_reload(self, tmp_path: Path) -> None:
        holder, loader = _holder(tmp_path)
        watcher = ResourceWatcher(holder, interval_ms=50)
        watcher.start()
        try:
            (tmp_path / "config.yaml").write_text("{}", encoding="utf-8")
            assert _wait_for(lambda: loader.call_count >= 2)
        finally:
            watcher.stop()

    def test_start_and_stop(self, tmp_path: Path) -> None:
        holder, loader = _holder(tmp_path)
        watcher = ResourceWatcher(holder, interval_ms=50)
        watcher.start()
        assert watcher.running
        watcher.stop()
        watcher.stop()
        assert not watcher.running
        assert loader.call_count == 1

    def test_missing_root_disables_watching(self, tmp_path: Path) -> None:
        holder, _ = _holder(tmp_path / "missing")
        watcher = ResourceWatcher(holder, interval_ms=50)
        watcher.start()
        assert not watcher.running
