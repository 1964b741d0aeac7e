"""
Path filters: hidden entries and .stignore-style ignore patterns
"""
import re
from pathlib import Path, PurePosixPath


def _compile_pattern(raw: str):
    """Compile an ignore-file pattern into a regex"""
    p = raw.strip()
    if not p or p.startswith("#"):
        return None
    escaped = re.escape(p)
    escaped = escaped.replace(r"\*\*", "§DS§")
    escaped = escaped.replace(r"\*", "[^/]*")
    escaped = escaped.replace(r"\?", "[^/]")
    escaped = escaped.replace("§DS§", ".*")
    if escaped.startswith("/"):
        escaped = "^" + escaped[1:]
    else:
        escaped = r"(^|.*\/)" + escaped
    try:
        return re.compile(escaped + r"(/.*)?$")
    except re.error:
        return None


def load_ignore_patterns(root: Path, ignore_file: str) -> list:
    """Load ignore patterns from *ignore_file* under *root* (missing file → no patterns)"""
    f = root / ignore_file
    if not f.is_file():
        return []
    patterns = []
    for line in f.read_text(encoding="utf-8", errors="replace").splitlines():
        c = _compile_pattern(line)
        if c:
            patterns.append(c)
    return patterns


def is_hidden(rel_path: str) -> bool:
    """True if any component of the root-relative path starts with a dot."""
    return any(part.startswith(".") for part in PurePosixPath(rel_path.replace("\\", "/")).parts)


def is_ignored(rel_path: str, patterns: list) -> bool:
    """Check if a path matches any ignore pattern"""
    norm = rel_path.replace("\\", "/")
    return any(p.search(norm) for p in patterns)


def is_excluded(rel_path: str, patterns: list) -> bool:
    """Hidden or ignored: never synced, never watched."""
    return is_hidden(rel_path) or is_ignored(rel_path, patterns)
