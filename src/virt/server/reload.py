"""Hot reload: watch the resources tree and swap in a freshly loaded state.

Watching uses watchdog's polling observer, which compares directory
snapshots (mtimes and sizes) every ``reload_interval_ms``.  The snapshot
taken when a state is loaded is kept with it, so edits made between
loading and the first poll are still picked up.
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from pathlib import Path

import yaml
from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers.polling import PollingObserver
from watchdog.utils.dirsnapshot import DirectorySnapshot, DirectorySnapshotDiff

from virt.errors import VirtError
from virt.server.loader import VirtualState, load_state

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")
RELOAD_EVENTS = frozenset({EVENT_TYPE_CREATED, EVENT_TYPE_DELETED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED})


def is_yaml_path(path: str | bytes) -> bool:
    if isinstance(path, bytes):
        path = path.decode("utf-8", "replace")
    return bool(path) and Path(path).suffix.lower() in YAML_SUFFIXES


def take_snapshot(root: Path) -> DirectorySnapshot | None:
    """Snapshot ``root`` recursively; ``None`` when it does not exist."""
    if not root.is_dir():
        return None
    return DirectorySnapshot(str(root), recursive=True)


def changed_yaml_files(before: DirectorySnapshot | None, root: Path) -> list[str]:
    """YAML files created, deleted, modified or moved under ``root`` since ``before``."""
    after = take_snapshot(root)
    if before is None or after is None:
        return [] if before is after else [str(root)]
    diff = DirectorySnapshotDiff(before, after)
    paths = [*diff.files_created, *diff.files_deleted, *diff.files_modified]
    for src, dest in diff.files_moved:
        paths.extend((src, dest))
    return sorted({str(path) for path in paths if is_yaml_path(path)})


class StateHolder:
    """Holds the current :class:`VirtualState`; readers never see a partial reload."""

    def __init__(self, root: Path, loader: Callable[[Path], VirtualState] = load_state) -> None:
        self.root = root
        self._loader = loader
        self._lock = threading.Lock()
        self.snapshot = take_snapshot(root)
        self._state = loader(root)

    @property
    def state(self) -> VirtualState:
        return self._state

    def pending_changes(self) -> list[str]:
        """YAML files changed since the current state was loaded."""
        return changed_yaml_files(self.snapshot, self.root)

    def reload(self) -> bool:
        """Reload from disk; on failure keep the previous state and return ``False``."""
        with self._lock:
            snapshot = take_snapshot(self.root)
            try:
                fresh = self._loader(self.root)
            except (VirtError, yaml.YAMLError, OSError, ValueError):
                logger.exception("Reload of %s failed; keeping previous configuration", self.root)
                return False
            self._state = fresh
            self.snapshot = snapshot
        logger.info("Reloaded %d API(s) from %s", len(fresh.apis), self.root)
        return True


class YamlChangeHandler(FileSystemEventHandler):
    """Calls ``on_change`` for file events that touch a YAML file."""

    def __init__(self, on_change: Callable[[], object]) -> None:
        super().__init__()
        self._on_change = on_change

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in RELOAD_EVENTS:
            return
        if not (is_yaml_path(event.src_path) or is_yaml_path(getattr(event, "dest_path", ""))):
            return
        logger.debug("%s %s", event.event_type, event.src_path)
        self._on_change()


class ResourceWatcher:
    """Reload ``holder`` whenever a YAML file under its root changes.

    Parameters
    ----------
    holder:
        State to reload; its root is watched recursively.
    interval_ms:
        Poll interval of the observer.
    """

    def __init__(self, holder: StateHolder, interval_ms: int = 1000) -> None:
        self.holder = holder
        self.interval_ms = interval_ms
        self._observer: PollingObserver | None = None

    @property
    def running(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        if self._observer is not None:
            return
        root = self.holder.root
        if not root.is_dir():
            logger.warning("Resources directory %s does not exist; hot reload disabled", root)
            return
        observer = PollingObserver(timeout=self.interval_ms / 1000.0)
        observer.schedule(YamlChangeHandler(self.holder.reload), str(root), recursive=True)
        observer.start()
        self._observer = observer
        logger.info("Watching %s for changes every %d ms", root, self.interval_ms)

        # The observer's first snapshot is taken on start; catch up on edits since the load.
        pending = self.holder.pending_changes()
        if pending:
            logger.debug("Changed before watching started: %s", ", ".join(pending))
            self.holder.reload()

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=self.interval_ms / 1000.0 + 1)
        self._observer = None
