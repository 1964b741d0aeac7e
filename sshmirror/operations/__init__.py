"""Operations (scan, push, remote commands)"""
from .scanner import walk_local_tree
from .scp import push, transfer_header
from .remote import run_command, ensure_remote_directory, remove_remote_file

__all__ = [
    "walk_local_tree",
    "push", "transfer_header",
    "run_command", "ensure_remote_directory", "remove_remote_file",
]
