import logging
import time
from typing import Awaitable, Callable

from .state import CONNECTION, Notifier, SyncState

log = logging.getLogger(__name__)


class Connectivity:
    """Tracks online/offline status through the backend liveness endpoint."""

    def __init__(self, probe: Callable[[], Awaitable[bool]], state: SyncState, notifier: Notifier):
        self._probe = probe
        self.state = state
        self.notifier = notifier
        self.last_checked: float = 0.0

    async def check(self) -> bool:
        try:
            online = bool(await self._probe())
        except Exception:
            log.exception("Liveness probe raised")
            online = False
        self.last_checked = time.monotonic()

        if online != self.state.online:
            log.info("Connection status: %s", "online" if online else "offline")
            self.state.online = online
            self.notifier.emit(CONNECTION, online=online)
        return online

    def due(self, interval: float) -> bool:
        return time.monotonic() - self.last_checked >= interval
