import asyncio
import logging
from typing import Callable, Optional

from core.config import TIMER_TICK_SEC

logger = logging.getLogger("app.interview.timers")


class Countdown:
    """
    Whole-second countdown driven by an asyncio task.

    ``on_expire`` is a plain callable invoked once when the count reaches
    zero; long work belongs in a task it schedules, not in the callback.
    Once cancelled the countdown never ticks again.
    """

    def __init__(
        self,
        name: str,
        seconds: int,
        on_expire: Callable[[], None],
        interval: float = TIMER_TICK_SEC,
    ):
        self.name = name
        self.remaining = max(0, int(seconds))
        self.interval = max(0.01, float(interval))
        self.expired = False
        self.cancelled = False
        self._on_expire = on_expire
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.cancelled or self.running:
            return
        self._task = asyncio.create_task(self._run(), name=f"countdown:{self.name}")

    async def _run(self) -> None:
        while not self.cancelled and not self.expired:
            await asyncio.sleep(self.interval)
            self.tick()

    def tick(self) -> None:
        if self.cancelled or self.expired:
            return
        self.remaining = max(0, self.remaining - 1)
        if self.remaining > 0:
            return
        self.expired = True
        try:
            self._on_expire()
        except Exception as exc:
            logger.warning("countdown expiry callback failed | timer=%s err=%s", self.name, exc)

    def reset(self, seconds: int) -> None:
        if self.cancelled:
            return
        self.remaining = max(0, int(seconds))
        self.expired = False
        if self._task is not None and not self.running:
            self.start()

    def cancel(self) -> None:
        self.cancelled = True
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        # expiry callbacks run inside the countdown task; the loop exits on the flag
        if task is not current:
            task.cancel()
