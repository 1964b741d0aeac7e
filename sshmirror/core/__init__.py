"""Core functionality"""
from .transport import SSHTransport, RemoteSession
from .watcher import DirectoryWatcher, WatchEvent, EventKind
from .shell import InteractiveShell
from .sync_engine import SyncEngine, SyncRoot, run_mirror

__all__ = [
    "SSHTransport", "RemoteSession",
    "DirectoryWatcher", "WatchEvent", "EventKind",
    "InteractiveShell",
    "SyncEngine", "SyncRoot", "run_mirror",
]
