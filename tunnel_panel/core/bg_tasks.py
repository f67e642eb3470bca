from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Awaitable, List, Set

logger = logging.getLogger(__name__)

_PENDING: Set["asyncio.Future[Any]"] = set()
_PENDING_LOCK = threading.Lock()


def spawn_background_task(coro: Awaitable[Any], *, label: str = "background") -> "asyncio.Future[Any]":
    """Schedule ``coro`` on the running loop and keep a reference until it ends.

    Fire-and-forget I/O (order persistence) goes through here so the task is
    not garbage collected mid-flight and a crash ends up in the log.
    """
    task = asyncio.ensure_future(coro)
    with _PENDING_LOCK:
        _PENDING.add(task)

    def _on_done(t: "asyncio.Future[Any]") -> None:
        with _PENDING_LOCK:
            _PENDING.discard(t)
        if t.cancelled():
            return
        exc = t.exception()
        if exc is not None:
            logger.error("%s task crashed", str(label or "background"), exc_info=exc)

    task.add_done_callback(_on_done)
    return task


def pending_background_tasks() -> int:
    with _PENDING_LOCK:
        return len(_PENDING)


async def drain_background_tasks(timeout: float = 5.0) -> None:
    """Wait for every retained task; used on shutdown."""
    with _PENDING_LOCK:
        tasks: List["asyncio.Future[Any]"] = list(_PENDING)
    if not tasks:
        return
    _done, pending = await asyncio.wait(tasks, timeout=timeout)
    if pending:
        logger.warning("background drain timed out pending=%d", len(pending))
