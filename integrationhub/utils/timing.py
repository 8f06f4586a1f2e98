from __future__ import annotations

import asyncio
from typing import Optional


def stopped(stop: Optional[asyncio.Event]) -> bool:
    return stop is not None and stop.is_set()


async def pause(seconds: float, stop: Optional[asyncio.Event] = None) -> bool:
    """Sleep for ``seconds`` or until ``stop`` is set.

    Returns:
        True if the pause was cut short by ``stop``.
    """
    if stop is None:
        await asyncio.sleep(seconds)
        return False
    try:
        await asyncio.wait_for(stop.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        return False
    return True
