"""
Logging utilities for sshmirror
"""
import sys
from datetime import datetime

_verbose = False
_raw_terminal = False


def set_verbose(verbose: bool):
    """Set the verbose flag"""
    global _verbose
    _verbose = verbose


def set_raw_terminal(raw: bool):
    """Switch line endings while the interactive shell owns the terminal."""
    global _raw_terminal
    _raw_terminal = raw


def _printable(msg: str) -> str:
    """Escape what the console cannot encode (e.g. undecodable file names)."""
    encoding = getattr(sys.stdout, "encoding", None) or "utf-8"
    return msg.encode(encoding, "backslashreplace").decode(encoding)


def log(msg: str):
    """Log a message with timestamp"""
    msg = _printable(msg)
    ts = datetime.now().strftime("%H:%M:%S")
    if _raw_terminal:
        # No output post-processing in raw mode: return the carriage ourselves.
        sys.stdout.write(f"\r[{ts}] {msg}\r\n")
        sys.stdout.flush()
    else:
        print(f"[{ts}] {msg}", flush=True)


def vlog(msg: str):
    """Log a verbose message (only if verbose mode is enabled)"""
    if _verbose:
        log(msg)


def warn(msg: str):
    """Log a warning message"""
    log(f"⚠  {msg}")
