"""
Interactive remote shell sharing the sync transport

Three forwarding threads (stdin → session, session stdout → stdout, session
stderr → stderr) run until the remote shell exits, close() is called or the
transport goes away.
"""
import os
import select
import shutil
import socket
import sys
import threading
from typing import BinaryIO, Callable, Optional

try:
    import termios
    import tty
    _HAS_TERMIOS = True
except ImportError:
    _HAS_TERMIOS = False

from ..config import SyncConfig
from ..errors import SSHMirrorError
from ..utils.logging import set_raw_terminal, vlog, warn

BUFFER_SIZE = 32 * 1024

# Seconds between cancellation checks in the forwarders
POLL_INTERVAL = 0.2


def _enter_raw_mode(fd: int):
    """Put the terminal on *fd* into raw mode; return the state to restore."""
    if not _HAS_TERMIOS or not os.isatty(fd):
        return None
    old = termios.tcgetattr(fd)
    tty.setraw(fd)
    return old


def _restore_mode(fd: int, state):
    if state is not None:
        termios.tcsetattr(fd, termios.TCSADRAIN, state)


class InteractiveShell:
    def __init__(self, config: SyncConfig, transport,
                 stdin: Optional[BinaryIO] = None,
                 stdout: Optional[BinaryIO] = None,
                 stderr: Optional[BinaryIO] = None,
                 on_exit: Optional[Callable[[], None]] = None):
        self.config = config
        self._transport = transport
        self._stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout.buffer
        self._stderr = stderr or sys.stderr.buffer
        self._on_exit = on_exit
        self._session = None
        self._threads: list[threading.Thread] = []
        self._cancel = threading.Event()
        self._exited = threading.Event()
        self._exit_lock = threading.Lock()
        self._raw_state = None
        self._closed = False

    @property
    def exited(self) -> threading.Event:
        return self._exited

    def _cancelled(self) -> bool:
        return self._cancel.is_set() or self._transport.closed.is_set()

    def start(self):
        session = self._transport.open_session()
        # Size is negotiated once; live resize is not forwarded.
        width, height = shutil.get_terminal_size(fallback=(80, 24))
        try:
            session.request_pty(self.config.term, width, height)
            session.start_shell()
        except Exception:
            session.close()
            raise
        session.settimeout(POLL_INTERVAL)
        self._session = session

        self._raw_state = _enter_raw_mode(self._stdin.fileno())
        set_raw_terminal(self._raw_state is not None)

        self._threads = [
            threading.Thread(target=self._forward_input, name="shell-stdin", daemon=True),
            threading.Thread(target=self._forward_output, name="shell-stdout", daemon=True,
                             args=(session.recv, self._stdout, True)),
            threading.Thread(target=self._forward_output, name="shell-stderr", daemon=True,
                             args=(session.recv_stderr, self._stderr, False)),
        ]
        for t in self._threads:
            t.start()
        vlog(f"[shell] started ({self.config.term} {width}x{height})")

    # ── forwarders ─────────────────────────────────────────────────────────

    def _forward_input(self):
        fd = self._stdin.fileno()
        while not self._cancelled():
            ready, _, _ = select.select([fd], [], [], POLL_INTERVAL)
            if not ready:
                continue
            data = os.read(fd, BUFFER_SIZE)
            try:
                if not data:
                    self._session.close_input()
                    return
                self._session.write(data)
            except (OSError, EOFError, SSHMirrorError) as exc:
                vlog(f"[shell] input forwarding stopped: {exc}")
                return

    def _forward_output(self, recv: Callable[[int], bytes], sink: BinaryIO, primary: bool):
        while not self._cancelled():
            try:
                data = recv(BUFFER_SIZE)
            except socket.timeout:
                continue
            except (OSError, EOFError) as exc:
                vlog(f"[shell] output forwarding stopped: {exc}")
                break
            if not data:
                break
            sink.write(data)
            sink.flush()
        if primary and not self._cancelled():
            # stdout EOF: the remote shell is gone.
            self._finish()

    def _finish(self):
        with self._exit_lock:
            if self._exited.is_set():
                return
            self._exited.set()
        self._cancel.set()
        if self._on_exit is not None:
            self._on_exit()

    # ── lifecycle ──────────────────────────────────────────────────────────

    def close(self):
        """Cancel and join all forwarders, restore the terminal.  Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._cancel.set()
        current = threading.current_thread()
        for t in self._threads:
            if t is not current:
                t.join(timeout=2)
                if t.is_alive():
                    warn(f"[shell] {t.name} did not stop")
        if self._session is not None:
            self._session.close()
        if self._raw_state is not None:
            _restore_mode(self._stdin.fileno(), self._raw_state)
            self._raw_state = None
        set_raw_terminal(False)
