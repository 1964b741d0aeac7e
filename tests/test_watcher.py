"""
Tests for the directory watcher.

Tests:
  - watchdog events are translated into WatchEvents
  - directory, hidden and ignored events are filtered
  - moves across the hidden boundary decompose into REMOVE / CREATE
  - the live observer reports a new file; a missing root is a WatchError
"""
import os
import queue
import tempfile
import time
import unittest
from pathlib import Path

from watchdog.events import (
    DirCreatedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from sshmirror.config import build_config
from sshmirror.core.watcher import DirectoryWatcher, EventKind, QueueingHandler, WatchEvent
from sshmirror.errors import WatchError
from sshmirror.utils.ignore_patterns import _compile_pattern


class TestQueueingHandler(unittest.TestCase):

    def setUp(self):
        self.root = os.path.join(tempfile.gettempdir(), "proj")
        self.events: queue.Queue = queue.Queue()
        self.handler = QueueingHandler(self.root, self.events, [_compile_pattern("*.log")])

    def p(self, rel: str) -> str:
        return os.path.join(self.root, rel)

    def drain(self) -> list:
        out = []
        while not self.events.empty():
            out.append(self.events.get_nowait())
        return out

    def test_basic_translation(self):
        self.handler.dispatch(FileCreatedEvent(self.p("a.txt")))
        self.handler.dispatch(FileModifiedEvent(self.p("a.txt")))
        self.handler.dispatch(FileDeletedEvent(self.p("a.txt")))
        self.assertEqual(self.drain(), [
            WatchEvent(EventKind.CREATE, self.p("a.txt")),
            WatchEvent(EventKind.WRITE, self.p("a.txt")),
            WatchEvent(EventKind.REMOVE, self.p("a.txt")),
        ])

    def test_rename_is_one_event(self):
        self.handler.dispatch(FileMovedEvent(self.p("old.txt"), self.p("new.txt")))
        self.assertEqual(self.drain(),
                         [WatchEvent(EventKind.RENAME, self.p("new.txt"), self.p("old.txt"))])

    def test_directory_events_are_dropped(self):
        self.handler.dispatch(DirCreatedEvent(self.p("sub")))
        self.handler.dispatch(DirMovedEvent(self.p("sub"), self.p("sub2")))
        self.assertEqual(self.drain(), [])

    def test_hidden_and_ignored_are_dropped(self):
        self.handler.dispatch(FileCreatedEvent(self.p(".env")))
        self.handler.dispatch(FileModifiedEvent(self.p(".git/index")))
        self.handler.dispatch(FileCreatedEvent(self.p("build/out.log")))
        self.assertEqual(self.drain(), [])

    def test_move_into_hidden_is_remove(self):
        self.handler.dispatch(FileMovedEvent(self.p("a.txt"), self.p(".trash/a.txt")))
        self.assertEqual(self.drain(), [WatchEvent(EventKind.REMOVE, self.p("a.txt"))])

    def test_move_out_of_hidden_is_create(self):
        """Editors that save via a hidden temp file produce a CREATE."""
        self.handler.dispatch(FileMovedEvent(self.p(".a.txt.swp"), self.p("a.txt")))
        self.assertEqual(self.drain(), [WatchEvent(EventKind.CREATE, self.p("a.txt"))])

    def test_move_out_of_root_is_remove(self):
        outside = os.path.join(tempfile.gettempdir(), "elsewhere", "a.txt")
        self.handler.dispatch(FileMovedEvent(self.p("a.txt"), outside))
        self.assertEqual(self.drain(), [WatchEvent(EventKind.REMOVE, self.p("a.txt"))])

    def test_handler_errors_are_contained(self):
        class Boom(queue.Queue):
            def put(self, *a, **kw):
                raise RuntimeError("boom")

        handler = QueueingHandler(self.root, Boom(), [])
        handler.dispatch(FileCreatedEvent(self.p("a.txt")))  # must not raise


class TestDirectoryWatcher(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.root = Path(self.tmpdir.name)
        self.config = build_config({"server": "h", "user": "u", "local_root": str(self.root),
                                    "remote_root": "/srv/app"})

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_missing_root_is_watch_error(self):
        cfg = build_config({"server": "h", "user": "u",
                            "local_root": str(self.root / "nope")})
        with self.assertRaises(WatchError):
            DirectoryWatcher(cfg).start()

    def test_live_observer_reports_new_file(self):
        watcher = DirectoryWatcher(self.config)
        watcher.start()
        try:
            target = self.root / "new.txt"
            target.write_text("hello", encoding="utf-8")

            deadline = time.monotonic() + 10
            seen = []
            while time.monotonic() < deadline:
                try:
                    ev = watcher.events.get(timeout=0.5)
                except queue.Empty:
                    continue
                seen.append(ev)
                if ev.local_path == str(target):
                    break
            self.assertIn(str(target), [e.local_path for e in seen])
            self.assertTrue(all(e.kind in (EventKind.CREATE, EventKind.WRITE) for e in seen))
        finally:
            watcher.stop()

    def test_stop_enqueues_sentinel(self):
        watcher = DirectoryWatcher(self.config)
        watcher.start()
        watcher.stop()
        items = []
        while not watcher.events.empty():
            items.append(watcher.events.get_nowait())
        self.assertEqual(items[-1], None)


if __name__ == "__main__":
    unittest.main()
