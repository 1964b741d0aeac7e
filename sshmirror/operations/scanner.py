"""
Local tree walk for the initial sync
"""
import os
from pathlib import Path
from typing import Iterator

from ..utils.ignore_patterns import is_excluded
from ..utils.logging import warn


def walk_local_tree(root: Path, patterns: list) -> Iterator[Path]:
    """
    Yield every regular file under *root*, depth-first in name order.
    Hidden and ignored entries are pruned (a hidden directory is never
    entered); symlinks are neither followed nor yielded.
    """
    def _walk(directory: Path) -> Iterator[Path]:
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as exc:
            warn(f"[scan] cannot list {directory}: {exc}")
            return
        for entry in entries:
            path = Path(entry.path)
            rel = path.relative_to(root).as_posix()
            if is_excluded(rel, patterns):
                continue
            if entry.is_dir(follow_symlinks=False):
                yield from _walk(path)
            elif entry.is_file(follow_symlinks=False):
                yield path

    yield from _walk(root)

