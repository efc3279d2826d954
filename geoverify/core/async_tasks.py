"""Tracking for best-effort background work (webhook fan-out, sweeps)."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """Owns fire-and-forget tasks spawned on behalf of one application.

    Failures are logged and never propagate to the request that scheduled
    the work. ``drain`` lets shutdown and tests wait for in-flight tasks.
    """

    def __init__(self) -> None:
        self._pending: set[asyncio.Task[Any]] = set()

    def __len__(self) -> int:
        return len(self._pending)

    def fire_and_forget(
        self, coro: Coroutine[Any, Any, Any], *, task_name: str | None = None
    ) -> asyncio.Task[Any] | None:
        try:
            task = asyncio.create_task(coro, name=task_name)
        except RuntimeError:
            # No running loop (e.g. during shutdown); drop best-effort work.
            coro.close()
            return None
        self._pending.add(task)

        def _on_done(done_task: asyncio.Task[Any]) -> None:
            self._pending.discard(done_task)
            try:
                done_task.result()
            except asyncio.CancelledError:
                return
            except Exception:
                logger.exception("Background task failed: %s", task_name or "unnamed task")

        task.add_done_callback(_on_done)
        return task

    async def drain(self, timeout_seconds: float = 1.0) -> None:
        """Wait for in-flight tasks, cancelling any still running after the timeout."""
        pending = {task for task in self._pending if not task.done()}
        if not pending:
            return

        _, still_pending = await asyncio.wait(pending, timeout=timeout_seconds)
        for task in still_pending:
            task.cancel()

        if still_pending:
            await asyncio.gather(*still_pending, return_exceptions=True)
