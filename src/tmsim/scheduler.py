import asyncio
import contextlib
import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

DEFAULT_DELAY = 250
DEFAULT_DEBOUNCE = 500


class Scheduler:
    """Calls `tick` every `delay` milliseconds until it returns False or the loop is paused.

    There's at most one loop at any time, starting a new one cancels the old one first.
    """

    def __init__(
        self,
        tick: Callable[[], bool],
        on_halt: Callable[[], None] | None = None,
        delay: int = DEFAULT_DELAY,
    ) -> None:
        self.tick = tick
        self.on_halt = on_halt
        self._delay = delay
        self._task: asyncio.Task[None] | None = None
        self._remaining: int | None = None

    @property
    def running(self) -> bool:
        return self._task is not None

    @property
    def delay(self) -> int:
        return self._delay

    @delay.setter
    def delay(self, delay: int) -> None:
        if delay < 0:
            raise ValueError(f"invalid delay {delay}")
        self._delay = delay
        if self.running:
            self._restart()

    def start(self, delay: int | None = None, limit: int | None = None) -> None:
        """Starts a fresh loop, optionally ending it quietly after `limit` ticks."""
        if delay is not None and delay < 0:
            raise ValueError(f"invalid delay {delay}")
        if delay is not None:
            self._delay = delay
        self._remaining = limit
        self._restart()

    def _restart(self) -> None:
        self.pause()
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.debug("Started run loop with a delay of %dms", self._delay)

    def pause(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        self._task = None
        logger.debug("Paused run loop")

    async def join(self) -> None:
        if self._task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._task

    async def _loop(self) -> None:
        task = asyncio.current_task()
        halted = False
        # the tick budget outlives restarts caused by delay changes
        while self._remaining is None or self._remaining > 0:
            await asyncio.sleep(self._delay / 1000)
            if not self.tick():
                halted = True
                break
            if self._remaining is not None:
                self._remaining -= 1
        if self._task is task:
            self._task = None
        if halted and self.on_halt is not None:
            self.on_halt()


class Debouncer:
    """Coalesces bursts of calls into a single call `delay` milliseconds after the last one."""

    def __init__(self, callback: Callable[..., object], delay: int = DEFAULT_DEBOUNCE) -> None:
        self.callback = callback
        self.delay = delay
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def submit(self, *args: object) -> None:
        self.cancel()
        self._handle = asyncio.get_running_loop().call_later(self.delay / 1000, self._fire, args)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, args: tuple[object, ...]) -> None:
        self._handle = None
        self.callback(*args)
