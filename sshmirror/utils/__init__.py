"""Utilities (logging, retry, path filters)"""
from .logging import log, vlog, warn, set_verbose, set_raw_terminal
from .retry import retried
from .ignore_patterns import load_ignore_patterns, is_hidden, is_ignored, is_excluded

__all__ = [
    "log", "vlog", "warn", "set_verbose", "set_raw_terminal",
    "retried",
    "load_ignore_patterns", "is_hidden", "is_ignored", "is_excluded",
]
