"""
Time oracle.

Callers use it to build "now"-relative windows; nothing else in the engine
reads the wall clock.
"""

import time


def current_unix_time() -> int:
    """Return the current time as whole seconds since the Unix epoch."""
    return int(round(time.time()))
