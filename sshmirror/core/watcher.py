"""
Recursive local directory watch, normalized into a WatchEvent stream
"""
import enum
import os
import queue
from dataclasses import dataclass
from typing import Optional

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from ..config import SyncConfig
from ..errors import WatchError
from ..utils.ignore_patterns import is_excluded
from ..utils.logging import log, vlog, warn


class EventKind(enum.Enum):
    CREATE = "create"
    WRITE = "write"
    REMOVE = "remove"
    RENAME = "rename"


@dataclass(frozen=True)
class WatchEvent:
    kind: EventKind
    local_path: str
    # Only set for RENAME: where the file used to be
    old_path: Optional[str] = None


class QueueingHandler(FileSystemEventHandler):
    """
    Translates watchdog callbacks into WatchEvents on *events*.

    Directory events are dropped, as is anything hidden or ignored.  A move
    that crosses the visibility boundary is reported as the half that is
    visible: visible→hidden is a REMOVE of the old path, hidden→visible (an
    editor renaming its temp file into place) is a CREATE of the new one.
    """

    def __init__(self, root: str, events: queue.Queue, patterns: list):
        self.root = root
        self.events = events
        self.patterns = patterns

    def _visible(self, path: str) -> bool:
        rel = os.path.relpath(path, self.root)
        if rel == os.curdir or rel == os.pardir or rel.startswith(os.pardir + os.sep):
            return False
        return not is_excluded(rel, self.patterns)

    def _emit(self, kind: EventKind, path: str, old_path: Optional[str] = None):
        # Blocks while the queue is full: back-pressure on the observer thread.
        self.events.put(WatchEvent(kind, path, old_path))

    def dispatch(self, event):
        try:
            super().dispatch(event)
        except Exception as exc:
            warn(f"[watch] dropped {event.event_type} event for {event.src_path}: {exc}")

    def on_created(self, event):
        path = os.fsdecode(event.src_path)
        if not event.is_directory and self._visible(path):
            self._emit(EventKind.CREATE, path)

    def on_modified(self, event):
        path = os.fsdecode(event.src_path)
        if not event.is_directory and self._visible(path):
            self._emit(EventKind.WRITE, path)

    def on_deleted(self, event):
        path = os.fsdecode(event.src_path)
        if not event.is_directory and self._visible(path):
            self._emit(EventKind.REMOVE, path)

    def on_moved(self, event):
        if event.is_directory:
            return
        old = os.fsdecode(event.src_path)
        new = os.fsdecode(event.dest_path)
        old_visible, new_visible = self._visible(old), self._visible(new)
        if old_visible and new_visible:
            self._emit(EventKind.RENAME, new, old)
        elif old_visible:
            self._emit(EventKind.REMOVE, old)
        elif new_visible:
            self._emit(EventKind.CREATE, new)


class DirectoryWatcher:
    """Owns the watchdog observer for one local root."""

    def __init__(self, config: SyncConfig, events: Optional[queue.Queue] = None,
                 patterns: Optional[list] = None, observer_factory=Observer):
        self.config = config
        self.events: queue.Queue = events if events is not None else queue.Queue(config.queue_size)
        self.handler = QueueingHandler(str(config.local_root), self.events, patterns or [])
        self._observer_factory = observer_factory
        self._observer = None

    def start(self):
        root = self.config.local_root
        if not root.is_dir():
            raise WatchError(f"cannot watch {root}: not a directory")
        observer = self._observer_factory()
        try:
            observer.schedule(self.handler, str(root), recursive=True)
            observer.start()
        except OSError as exc:
            raise WatchError(f"cannot watch {root}: {exc}") from exc
        self._observer = observer
        log(f"[watch] watching {root}")

    def stop(self):
        """Stop the observer and wake the consumer with a None sentinel."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=10)
            self._observer = None
            vlog("[watch] stopped")
        try:
            self.events.put(None, timeout=1)
        except queue.Full:
            # Consumer is gone or wedged; its stop event ends the loop.
            pass
