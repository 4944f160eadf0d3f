# tempchat/core/clock.py
import time
from typing import Callable

Clock = Callable[[], int]

HOUR_MS = 60 * 60 * 1000


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)
