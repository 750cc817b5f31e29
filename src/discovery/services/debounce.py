from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional, Tuple, Union

from loguru import logger


Callback = Callable[..., Union[None, Awaitable[None]]]


class Debouncer:
    """Trailing-edge debounce: only the last trigger inside the window fires.

    Must be used from a running event loop.
    """

    def __init__(self, callback: Callback, delay: float = 0.3) -> None:
        self.callback = callback
        self.delay = delay
        self._task: Optional[asyncio.Task] = None
        self._args: Tuple[Any, ...] = ()

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def trigger(self, *args: Any) -> asyncio.Task:
        self.cancel()
        self._args = args
        self._task = asyncio.get_running_loop().create_task(self._run_later())
        return self._task

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def flush(self) -> None:
        """Fire the pending call immediately, if any."""
        if not self.pending:
            return
        self.cancel()
        await self._invoke()

    async def _run_later(self) -> None:
        await asyncio.sleep(self.delay)
        # once firing, a new trigger schedules a fresh call instead of aborting this one
        if self._task is asyncio.current_task():
            self._task = None
        await self._invoke()

    async def _invoke(self) -> None:
        args, self._args = self._args, ()
        try:
            result = self.callback(*args)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("debounced callback failed: {}", exc)
