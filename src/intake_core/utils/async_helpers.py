"""Async helpers for Celery tasks.

Celery tasks run in a synchronous context; the maintenance services are async.
"""

import asyncio
import logging
import threading
from typing import Any, Coroutine

logger = logging.getLogger(__name__)


def run_async(coro: Coroutine[Any, Any, Any]) -> Any:
    """
    Run an async coroutine from synchronous code.

    Uses a fresh event loop. When called while a loop is already running in this
    thread, the coroutine runs on a new loop in a helper thread.

    Args:
        coro: The coroutine to run

    Returns:
        The result of the coroutine
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    logger.warning("Event loop is already running, running coroutine in a new thread")
    result = None
    exception = None

    def run_in_thread():
        nonlocal result, exception
        try:
            result = asyncio.run(coro)
        except Exception as e:
            exception = e

    thread = threading.Thread(target=run_in_thread)
    thread.start()
    thread.join()

    if exception:
        raise exception
    return result
