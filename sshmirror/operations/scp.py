"""
Single-file push over the scp sink protocol

    C<mode> <size> <name>\n   header
    <size bytes>              body
    \0                        terminator

The session runs `scp -qt <dir>` so the remote receiver writes <name> into
<dir>.  The body is streamed from a writer thread while the calling thread
waits for the receiver's exit status.
"""
import shlex
import threading
from pathlib import PurePosixPath
from typing import BinaryIO, Optional

from ..config import DEFAULT_FILE_MODE, DEFAULT_SCP_COMMAND
from ..errors import SSHMirrorError, TransferError
from ..utils.logging import vlog

CHUNK_SIZE = 32 * 1024

# How long the writer may lag behind the receiver's exit before we cut the channel
WRITER_GRACE = 5.0


def transfer_header(file_name: str, size: int, mode: int = DEFAULT_FILE_MODE) -> bytes:
    """Render the `C` control line; *file_name* must be a bare base name."""
    if not file_name or file_name in (".", "..") or "/" in file_name or "\n" in file_name:
        raise ValueError(f"not a plain file name: {file_name!r}")
    if size < 0:
        raise ValueError(f"negative size: {size}")
    return f"C{mode & 0o7777:04o} {size} {file_name}\n".encode("utf-8")


def _stream_body(session, src: BinaryIO, header: bytes, size: int, failure: list):
    """Writer side: header, exactly *size* bytes, terminator, EOF."""
    try:
        session.write(header)
        remaining = size
        while remaining > 0:
            chunk = src.read(min(CHUNK_SIZE, remaining))
            if not chunk:
                raise EOFError(f"source ended {remaining} byte(s) short of the declared {size}")
            session.write(chunk)
            remaining -= len(chunk)
        session.write(b"\x00")
    except Exception as exc:
        failure.append(exc)
    finally:
        try:
            session.close_input()
        except Exception as exc:  # channel already gone; the waiter reports it
            vlog(f"[scp] closing input: {exc}")


def _receiver_message(session) -> str:
    """scp sink errors arrive as \\x01/\\x02-prefixed lines on stdout (or on stderr)."""
    raw = session.read_output() + session.read_errors()
    return raw.replace(b"\x00", b"").lstrip(b"\x01\x02").decode("utf-8", errors="replace").strip()


def push(transport, src: BinaryIO, remote_path: str, size: int,
         mode: int = DEFAULT_FILE_MODE, scp_command: str = DEFAULT_SCP_COMMAND):
    """
    Push *size* bytes read from *src* to *remote_path*.  The containing
    directory must already exist.  Raises TransferError on any failure.
    """
    target = PurePosixPath(remote_path)
    try:
        header = transfer_header(target.name, size, mode)
    except ValueError as exc:
        raise TransferError(remote_path, str(exc)) from None

    failure: list = []
    status: Optional[int] = None
    try:
        with transport.open_session() as session:
            session.exec(f"{scp_command} {shlex.quote(str(target.parent))}")
            writer = threading.Thread(target=_stream_body, name=f"scp-push:{target.name}",
                                      args=(session, src, header, size, failure), daemon=True)
            writer.start()
            status = session.wait()
            writer.join(WRITER_GRACE)
            if writer.is_alive():
                # Receiver is gone but the writer is stuck on a full window.
                session.close()
                writer.join()
            message = _receiver_message(session) if status else ""
    except SSHMirrorError as exc:
        raise TransferError(remote_path, str(exc)) from exc

    if failure:
        raise TransferError(remote_path, str(failure[0]), status or None) from failure[0]
    if status != 0:
        raise TransferError(remote_path, message or "remote receiver failed", status)
