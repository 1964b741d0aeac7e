"""
Error types for sshmirror

Fatal errors (address/config/connect/auth/watch) are raised to the CLI and end
the process.  SyncError is recoverable: the engine logs it and keeps going.
"""
from typing import Optional


class SSHMirrorError(Exception):
    """Base class for every error raised by sshmirror."""


class AddressError(SSHMirrorError):
    """Malformed `user[:password]@host[:port][:path]` string."""

    def __init__(self, address: str, fragment: str, reason: str):
        self.address = address
        self.fragment = fragment
        super().__init__(f"malformed SSH address {address!r}: {reason} ({fragment!r})")


class ConfigError(SSHMirrorError):
    """Invalid or incomplete configuration."""


class ConnectError(SSHMirrorError):
    """The SSH connection could not be established."""


class AuthError(SSHMirrorError):
    """The server rejected every authentication method we offered."""


class SessionError(SSHMirrorError):
    """A logical session could not be opened or its transport went away."""


class WatchError(SSHMirrorError):
    """The local directory watch could not be established."""


class TransferError(SSHMirrorError):
    """A single-file push failed."""

    def __init__(self, remote_path: str, reason: str, status: Optional[int] = None):
        self.remote_path = remote_path
        self.status = status
        self.reason = reason
        detail = reason if status is None else f"{reason} (exit status {status})"
        super().__init__(f"push to {remote_path} failed: {detail}")


class SyncError(SSHMirrorError):
    """Syncing one local file (or removing its remote copy) failed."""

    def __init__(self, local_path: str, remote_path: Optional[str], cause: BaseException):
        self.local_path = local_path
        self.remote_path = remote_path
        self.cause = cause
        target = remote_path or "?"
        super().__init__(f"{local_path} --> {target}: {cause}")


class RemoteCommandError(SSHMirrorError):
    """A one-shot remote command exited non-zero."""

    def __init__(self, command: str, status: int):
        self.command = command
        self.status = status
        super().__init__(f"remote command exited {status}: {command!r}")
