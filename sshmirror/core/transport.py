"""
SSH transport: one authenticated paramiko connection, many short-lived sessions
"""
import getpass
import sys
import threading
from pathlib import Path, PurePosixPath
from typing import Optional

import paramiko

from ..config import SyncConfig
from ..errors import AuthError, ConnectError, SessionError
from ..utils.logging import log, vlog
from ..utils.retry import retried

BUFFER_SIZE = 32 * 1024

# Key files looked up before falling back to a password prompt
DEFAULT_KEY_NAMES = ("id_rsa", "id_dsa", "id_ecdsa", "id_ed25519")


class RemoteSession:
    """
    One logical channel bound to one remote command (or shell) for its
    lifetime.  Never reused: open a new session for every action.
    """

    def __init__(self, channel: paramiko.Channel, closed: threading.Event):
        self._channel = channel
        self._transport_closed = closed
        self.command: Optional[str] = None

    def __enter__(self) -> "RemoteSession":
        return self

    def __exit__(self, *exc_info):
        self.close()

    # ── command / shell ────────────────────────────────────────────────────

    def exec(self, command: str):
        self.command = command
        try:
            self._channel.exec_command(command)
        except (paramiko.SSHException, UnicodeEncodeError) as exc:
            raise SessionError(f"cannot run {command!r}: {exc}") from exc

    def request_pty(self, term: str, width: int, height: int):
        try:
            self._channel.get_pty(term=term, width=width, height=height)
        except (paramiko.SSHException, OSError) as exc:
            raise SessionError(f"pty request refused: {exc}") from exc

    def start_shell(self):
        try:
            self._channel.invoke_shell()
        except (paramiko.SSHException, OSError) as exc:
            raise SessionError(f"cannot start remote shell: {exc}") from exc

    # ── streams ────────────────────────────────────────────────────────────

    def write(self, data: bytes):
        if self._transport_closed.is_set():
            raise SessionError("transport closed")
        self._channel.sendall(data)

    def close_input(self):
        """Send EOF on stdin; the remote command sees end of input."""
        self._channel.shutdown_write()

    def recv(self, n: int = BUFFER_SIZE) -> bytes:
        return self._channel.recv(n)

    def recv_stderr(self, n: int = BUFFER_SIZE) -> bytes:
        return self._channel.recv_stderr(n)

    def settimeout(self, timeout: Optional[float]):
        self._channel.settimeout(timeout)

    def read_output(self) -> bytes:
        """Drain whatever stdout is already buffered (diagnostics only)."""
        chunks = []
        while self._channel.recv_ready():
            chunk = self._channel.recv(BUFFER_SIZE)
            if not chunk:
                break
            chunks.append(chunk)
        return b"".join(chunks)

    def read_errors(self) -> bytes:
        """Drain whatever stderr is already buffered (diagnostics only)."""
        chunks = []
        while self._channel.recv_stderr_ready():
            chunk = self._channel.recv_stderr(BUFFER_SIZE)
            if not chunk:
                break
            chunks.append(chunk)
        return b"".join(chunks)

    # ── lifecycle ──────────────────────────────────────────────────────────

    def wait(self) -> int:
        """Block until the remote command exits; return its exit status."""
        status = self._channel.recv_exit_status()
        if status == -1 and self._transport_closed.is_set():
            raise SessionError(f"transport closed while waiting for {self.command!r}")
        return status

    def close(self):
        self._channel.close()


def _has_default_keys() -> bool:
    base = Path.home() / ".ssh"
    if any((base / name).is_file() for name in DEFAULT_KEY_NAMES):
        return True
    try:
        return bool(paramiko.Agent().get_keys())
    except paramiko.SSHException:
        return False


class SSHTransport:
    """
    Owns the paramiko SSHClient.  Callers only ever open sessions and close
    the transport; the client itself is never handed out.
    """

    def __init__(self, config: SyncConfig, client: paramiko.SSHClient):
        self.config = config
        self._client = client
        self._close_lock = threading.Lock()
        # Shared cancellation token: set once, when the transport goes away
        self.closed = threading.Event()

    # ── connection ─────────────────────────────────────────────────────────

    @classmethod
    def connect(cls, config: SyncConfig) -> "SSHTransport":
        log(f"[SSH] connecting to {config.user}@{config.host}:{config.port} …")
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        kw: dict = dict(hostname=config.host, port=config.port, username=config.user,
                        timeout=config.connect_timeout, banner_timeout=30, auth_timeout=30)
        password = config.password
        if config.key_path:
            kw["key_filename"] = config.key_path
        elif password is None and sys.stdin.isatty() and not _has_default_keys():
            password = getpass.getpass(f"{config.user}@{config.host}'s password: ")
        if password:
            kw["password"] = password

        try:
            client.connect(**kw)
        except paramiko.AuthenticationException as exc:
            client.close()
            raise AuthError(f"authentication failed for {config.user}@{config.host}: {exc}") from exc
        except (paramiko.SSHException, OSError) as exc:
            client.close()
            raise ConnectError(f"cannot connect to {config.host}:{config.port}: {exc}") from exc

        client.get_transport().set_keepalive(config.keepalive)
        log("[SSH] connected ✓")
        return cls(config, client)

    def is_active(self) -> bool:
        if self.closed.is_set():
            return False
        transport = self._client.get_transport()
        return transport is not None and transport.is_active()

    def close(self):
        """Idempotent; pending session I/O fails once this returns."""
        with self._close_lock:
            if self.closed.is_set():
                return
            self.closed.set()
        self._client.close()
        log("[SSH] disconnected.")

    # ── sessions ───────────────────────────────────────────────────────────

    @retried(paramiko.ChannelException)
    def _open_channel(self) -> paramiko.Channel:
        if not self.is_active():
            raise SessionError("transport is closed")
        return self._client.get_transport().open_session(timeout=self.config.connect_timeout)

    def open_session(self) -> RemoteSession:
        try:
            channel = self._open_channel()
        except (paramiko.SSHException, OSError, EOFError) as exc:
            raise SessionError(f"cannot open session: {exc}") from exc
        return RemoteSession(channel, self.closed)

    # ── paths ──────────────────────────────────────────────────────────────

    def home_directory(self) -> PurePosixPath:
        """Login directory, as printed by `pwd` in a fresh session."""
        output = bytearray()
        with self.open_session() as session:
            session.exec("pwd")
            session.close_input()
            while True:
                chunk = session.recv()
                if not chunk:
                    break
                output += chunk
            rc = session.wait()
        lines = output.decode("utf-8", errors="replace").splitlines()
        home = lines[-1].strip() if lines else ""
        if rc != 0 or not home.startswith("/"):
            raise SessionError(f"cannot determine remote home directory "
                               f"(pwd exited {rc}, printed {home!r})")
        return PurePosixPath(home)

    def resolve_path(self, path: Optional[PurePosixPath]) -> PurePosixPath:
        """Anchor a missing or relative remote path at the login directory."""
        if path is not None and path.is_absolute():
            return path
        if path is not None and path.parts[:1] == ("~",):
            path = PurePosixPath(*path.parts[1:])
        home = self.home_directory()
        vlog(f"[SSH] remote home is {home}")
        return home if path is None else home / path
