"""
One-shot remote commands (directory creation, removal)
"""
import shlex
from pathlib import PurePosixPath
from typing import Union

from ..errors import RemoteCommandError
from ..utils.logging import vlog

RemotePath = Union[str, PurePosixPath]


def run_command(transport, cmd: str):
    """Run *cmd* in its own session; a non-zero exit status raises RemoteCommandError."""
    vlog(f"[remote] $ {cmd}")
    with transport.open_session() as session:
        session.exec(cmd)
        session.close_input()
        rc = session.wait()
    if rc != 0:
        raise RemoteCommandError(cmd, rc)


def ensure_remote_directory(transport, remote_dir: RemotePath):
    """`mkdir -p`: idempotent, safe to repeat."""
    run_command(transport, f"mkdir -p {shlex.quote(str(remote_dir))}")


def remove_remote_file(transport, remote_path: RemotePath):
    """`rm -f`: removing a file that is already gone succeeds."""
    run_command(transport, f"rm -f {shlex.quote(str(remote_path))}")
