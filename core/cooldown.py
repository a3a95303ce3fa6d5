"""
Resend cooldown shared by the OTP forms.

``tick()`` is the unit of time. With ``auto_tick`` a background asyncio task
calls it once per second; tests turn that off and call ``tick()`` directly.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional

from config.settings import config

logger = logging.getLogger(__name__)


class ResendCooldown:
    def __init__(
        self,
        seconds: Optional[int] = None,
        *,
        auto_tick: bool = True,
        interval: float = 1.0,
    ) -> None:
        self.seconds = seconds if seconds is not None else config.otp_cooldown_seconds
        self.auto_tick = auto_tick
        self.interval = interval
        self.remaining = 0
        self._task: Optional[asyncio.Task] = None
        self._listeners: List[Callable[[int], None]] = []

    @property
    def active(self) -> bool:
        return self.remaining > 0

    def on_change(self, listener: Callable[[int], None]) -> None:
        self._listeners.append(listener)

    def _set(self, value: int) -> None:
        self.remaining = value
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception:
                logger.exception("Cooldown listener failed at %d", value)

    def start(self) -> None:
        """(Re)start at the full duration, replacing any running ticker."""
        self._cancel_task()
        self._set(self.seconds)
        if self.auto_tick:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                logger.debug("No running loop; cooldown will only move on tick()")
                return
            self._task = loop.create_task(self._run())

    def tick(self) -> int:
        if self.remaining > 0:
            self._set(self.remaining - 1)
        return self.remaining

    def cancel(self) -> None:
        self._cancel_task()
        self._set(0)

    async def _run(self) -> None:
        while self.remaining > 0:
            await asyncio.sleep(self.interval)
            self.tick()
        logger.debug("Resend cooldown finished")

    def _cancel_task(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
