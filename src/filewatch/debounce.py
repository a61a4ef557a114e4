"""Debounce bursts of filtered events into a single trigger."""

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


async def debounce_then(events: asyncio.Queue, window: float, callback: Callable[[], Any]) -> Any:
    """Wait for a burst of events to settle, then invoke callback once.

    Blocks until the first event arrives. Every further event within
    ``window`` seconds restarts the wait. A window of zero fires right after
    the first event.

    Args:
        events: Queue of filtered events
        window: Quiet period in seconds
        callback: Called once per burst; may be a coroutine function

    Returns:
        Whatever the callback returned
    """
    event = await events.get()
    logger.debug(f"event: {event}, wait for next")

    if window > 0:
        while True:
            try:
                event = await asyncio.wait_for(events.get(), timeout=window)
            except asyncio.TimeoutError:
                break
            logger.debug(f"event: {event}, wait for next")

    result = callback()
    if inspect.isawaitable(result):
        result = await result
    return result
