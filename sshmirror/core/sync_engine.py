"""
Main sync engine - path mapping, initial sync and the event consumer loop
"""
import os
import queue
import stat
import threading
from collections import Counter
from dataclasses import dataclass
from pathlib import Path, PurePath, PurePosixPath
from typing import Callable, Optional

from ..config import SyncConfig
from ..errors import ConfigError, ConnectError, SSHMirrorError, SyncError
from .shell import InteractiveShell
from .transport import SSHTransport
from .watcher import DirectoryWatcher, EventKind, WatchEvent
from ..operations.remote import ensure_remote_directory, remove_remote_file
from ..operations.scanner import walk_local_tree
from ..operations.scp import push
from ..utils.ignore_patterns import load_ignore_patterns
from ..utils.logging import log, vlog, warn

# Seconds the consumer waits for an event before re-checking the stop flag
POLL_INTERVAL = 0.5


@dataclass(frozen=True)
class SyncRoot:
    local: str
    remote: PurePosixPath

    def remote_path(self, local_path: str) -> PurePosixPath:
        """
        remote + relative(local_path, local).  Purely lexical: symlinks are
        not resolved and nothing is looked up on disk.  ValueError for paths
        outside the root and for names that are not valid UTF-8.
        """
        rel = os.path.relpath(os.path.abspath(local_path), self.local)
        if rel == os.curdir or rel == os.pardir or rel.startswith(os.pardir + os.sep):
            raise ValueError(f"{local_path} is not under {self.local}")
        remote = self.remote.joinpath(*PurePath(rel).parts)
        # Remote commands travel as UTF-8; undecodable local names cannot.
        str(remote).encode("utf-8")
        return remote


class SyncEngine:
    """
    Single consumer of local changes.  Everything runs on the caller's thread,
    so actions apply strictly in the order they were queued.
    """

    def __init__(self, config: SyncConfig, transport, patterns: Optional[list] = None):
        if config.remote_root is None or not config.remote_root.is_absolute():
            raise ConfigError(f"remote root must be absolute, got {config.remote_root}")
        self.config = config
        self.root = SyncRoot(str(config.local_root), config.remote_root)
        self._transport = transport
        self._patterns = (patterns if patterns is not None
                          else load_ignore_patterns(config.local_root, config.ignore_file))
        self.stats: Counter = Counter()

    # ── path mapping ───────────────────────────────────────────────────────

    def remote_path(self, local_path: str) -> str:
        try:
            return str(self.root.remote_path(local_path))
        except ValueError as exc:
            raise SyncError(local_path, None, exc) from None

    # ── actions ────────────────────────────────────────────────────────────

    def sync_file(self, local_path: str) -> bool:
        """
        Push one local file to its mapped remote path.  Returns False when the
        file is gone or is not a regular file (a later event covers it).
        """
        remote = self.remote_path(local_path)
        try:
            with open(local_path, "rb") as src:
                st = os.fstat(src.fileno())
                if not stat.S_ISREG(st.st_mode):
                    vlog(f"[skip] {local_path}: not a regular file")
                    return False
                log(f"Sync file: {local_path} --> {remote}")
                ensure_remote_directory(self._transport, PurePosixPath(remote).parent)
                # Size snapshot: a concurrent truncate/extend is not detected.
                push(self._transport, src, remote, st.st_size,
                     mode=self.config.file_mode, scp_command=self.config.scp_command)
        except (FileNotFoundError, IsADirectoryError):
            vlog(f"[skip] {local_path} is gone or became a directory")
            return False
        except (OSError, SSHMirrorError) as exc:
            raise SyncError(local_path, remote, exc) from exc
        self.stats["pushed"] += 1
        return True

    def remove_file(self, local_path: str):
        remote = self.remote_path(local_path)
        try:
            remove_remote_file(self._transport, remote)
        except SSHMirrorError as exc:
            raise SyncError(local_path, remote, exc) from exc
        self.stats["removed"] += 1

    def _guarded(self, action: Callable[[str], object], local_path: str):
        """Run one action; a failure is reported and the loop moves on."""
        try:
            action(local_path)
        except SyncError as exc:
            self.stats["failed"] += 1
            warn(f"[sync] {exc}")
            if not self._transport.is_active():
                raise ConnectError("connection to remote host lost") from exc

    # ── phases ─────────────────────────────────────────────────────────────

    def initial_sync(self, stop: Optional[threading.Event] = None):
        log(f"[init] syncing {self.root.local} → {self.root.remote} …")
        for path in walk_local_tree(Path(self.root.local), self._patterns):
            if stop is not None and stop.is_set():
                log("[init] stopped before the walk finished")
                return
            self._guarded(self.sync_file, str(path))
        log(f"[init] done: pushed={self.stats['pushed']} failed={self.stats['failed']}")

    def handle_event(self, event: WatchEvent):
        path = event.local_path
        if event.kind is EventKind.CREATE:
            log(f"create :: {path}")
            self._guarded(self.sync_file, path)
        elif event.kind is EventKind.WRITE:
            log(f"write  :: {path}")
            self._guarded(self.sync_file, path)
        elif event.kind is EventKind.REMOVE:
            log(f"remove :: {path}")
            self._guarded(self.remove_file, path)
        elif event.kind is EventKind.RENAME:
            log(f"rename :: {event.old_path} -> {path}")
            if event.old_path is not None:
                self._guarded(self.remove_file, event.old_path)
            self._guarded(self.sync_file, path)
        else:
            warn(f"unknown ({event.kind}) :: {path}")

    def run(self, events: queue.Queue, stop: Optional[threading.Event] = None):
        """
        Initial sync (unless skipped), then consume *events* until a None
        sentinel arrives or *stop* is set.
        """
        stop = stop or threading.Event()
        if self.config.skip_initial_sync:
            log("[init] initial sync skipped")
        else:
            self.initial_sync(stop)
        while not stop.is_set():
            try:
                event = events.get(timeout=POLL_INTERVAL)
            except queue.Empty:
                continue
            if event is None:
                break
            self.handle_event(event)

    def summary(self):
        print(f"{'─' * 64}")
        print(" SUMMARY")
        print(f"  Pushed  : {self.stats['pushed']}")
        print(f"  Removed : {self.stats['removed']}")
        print(f"  Failed  : {self.stats['failed']}")
        print(f"{'─' * 64}")


def run_mirror(config: SyncConfig, connect=SSHTransport.connect) -> int:
    """
    Connect, start the watch, open the shell and run the engine until the
    shell exits or the user interrupts.  Returns the process exit code;
    connection, auth, session and watch failures propagate after cleanup.
    """
    print(f"{'═' * 64}")
    print(f"  sshmirror  {config.user}@{config.host}:{config.port}")
    print(f"  Local  : {config.local_root}")
    print(f"{'═' * 64}")

    transport = connect(config)
    stop = threading.Event()
    watcher: Optional[DirectoryWatcher] = None
    shell: Optional[InteractiveShell] = None
    engine: Optional[SyncEngine] = None
    try:
        config = config.with_remote_root(transport.resolve_path(config.remote_root))
        log(f"[sync] remote root {config.remote_root}")
        patterns = load_ignore_patterns(config.local_root, config.ignore_file)
        if patterns:
            log(f"[ignore] {len(patterns)} pattern(s) loaded from {config.ignore_file}")

        # Watch first, so nothing changed during the initial walk is missed.
        watcher = DirectoryWatcher(config, patterns=patterns)
        watcher.start()
        engine = SyncEngine(config, transport, patterns)

        if config.shell:
            shell = InteractiveShell(config, transport, on_exit=stop.set)
            shell.start()

        try:
            engine.run(watcher.events, stop)
        except KeyboardInterrupt:
            warn("Interrupted by user.")
            return 130
        return 0
    finally:
        if watcher is not None:
            watcher.stop()
        if shell is not None:
            shell.close()
        transport.close()
        if engine is not None:
            engine.summary()
