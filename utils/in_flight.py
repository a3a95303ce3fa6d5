"""
Per-kind in-flight guard.

A second invocation of an operation kind while the first is still awaiting
the network is rejected instead of reaching the backend twice.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Set

from client.errors import RequestInFlightError

logger = logging.getLogger(__name__)


class InFlightGuard:
    def __init__(self) -> None:
        self._active: Set[str] = set()

    def is_busy(self, kind: str) -> bool:
        return kind in self._active

    @property
    def busy(self) -> bool:
        return bool(self._active)

    @asynccontextmanager
    async def hold(self, kind: str) -> AsyncIterator[None]:
        if kind in self._active:
            logger.debug("Ignoring duplicate '%s' while one is in flight", kind)
            raise RequestInFlightError(kind)
        self._active.add(kind)
        try:
            yield
        finally:
            self._active.discard(kind)
