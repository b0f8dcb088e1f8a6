"""Task helpers shared by the synchronizer and the poll scheduler."""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Coroutine
from typing import Any, TypeVar

_T = TypeVar("_T")

logger = logging.getLogger(__name__)

# asyncio.Task grew eager_start in Python 3.12
_EAGER_TASKS = sys.version_info >= (3, 12)


def create_task(
    coro: Coroutine[Any, Any, _T],
    *,
    name: str | None = None,
    eager_start: bool = True,
) -> asyncio.Task[_T]:
    """Schedule coro on the running loop, eagerly where the interpreter allows.

    An eager task runs up to its first suspension before this returns, so a
    native command is already issued when the caller gets control back. Pass
    ``eager_start=False`` for tasks that must not run inside the caller's frame.
    """
    loop = asyncio.get_running_loop()
    if eager_start and _EAGER_TASKS:
        return asyncio.Task(coro, loop=loop, name=name, eager_start=True)
    return loop.create_task(coro, name=name)


def log_task_exception(task: asyncio.Task[Any]) -> None:
    """Done callback that logs an unhandled task exception instead of losing it."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Task %s failed", task.get_name(), exc_info=exc)
