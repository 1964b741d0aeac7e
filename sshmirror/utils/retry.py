"""
Retry decorator for remote operations
"""
import functools
import time
from .logging import log, warn


def retried(*retry_on):
    """
    Decorator for methods of objects carrying a ``config`` (SyncConfig):
    retry up to config.retry_max times with exponential back-off, but only
    for the exception types listed in *retry_on*.  Anything else propagates
    on the first failure.
    """
    retry_on = retry_on or (Exception,)

    def decorate(fn):
        @functools.wraps(fn)
        def wrapper(self, *args, **kwargs):
            attempts = max(1, self.config.retry_max)
            delay = self.config.retry_base_delay
            for attempt in range(1, attempts + 1):
                try:
                    return fn(self, *args, **kwargs)
                except retry_on as exc:
                    if attempt == attempts:
                        raise
                    warn(f"{fn.__name__} failed (attempt {attempt}/{attempts}): {exc}")
                    log(f"  retrying in {delay:.0f}s …")
                    time.sleep(delay)
                    delay = min(delay * 2, 30)

        return wrapper

    return decorate
