"""
Clock and sleep seams shared by the rate controllers, workers and tests
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


def utcnow() -> datetime:
    """Timezone-aware UTC timestamp, the format every table stores"""
    return datetime.now(timezone.utc)


def monotonic() -> float:
    return time.monotonic()


async def sleep(seconds: float) -> None:
    if seconds <= 0:
        return
    await asyncio.sleep(seconds)
