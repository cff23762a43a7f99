import asyncio
import enum
import logging
from typing import Any, Dict, List, Optional

from .changes import has_changed
from .connectivity import Connectivity
from .local_cache import LocalCache
from .remote import RemoteClient, RemoteError
from .state import DATA_UPDATED, RENDER, Notifier, SyncState
from .store import RecordStore

log = logging.getLogger(__name__)


class PollState(str, enum.Enum):
    IDLE = "idle"
    POLLING = "polling"
    SUPPRESSED = "suppressed"


class ChangeFeed:
    """Source of remote snapshots. Polling today; a push stream can replace it."""

    async def next_snapshot(self) -> List[Dict[str, Any]]:
        raise NotImplementedError


class PollingFeed(ChangeFeed):
    def __init__(self, remote: RemoteClient):
        self.remote = remote

    async def next_snapshot(self) -> List[Dict[str, Any]]:
        return await self.remote.list_cotacoes()


class PollLoop:
    def __init__(
        self,
        store: RecordStore,
        feed: ChangeFeed,
        cache: LocalCache,
        connectivity: Connectivity,
        notifier: Notifier,
        state: SyncState,
        interval: float = 3.0,
        probe_interval: float = 15.0,
    ):
        self.store = store
        self.feed = feed
        self.cache = cache
        self.connectivity = connectivity
        self.notifier = notifier
        self.state = state
        self.interval = interval
        self.probe_interval = probe_interval
        self.status = PollState.IDLE
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self) -> bool:
        """Run one cycle. Returns True when the store was replaced."""
        if not self.state.online:
            self.status = PollState.SUPPRESSED
            if self.connectivity.due(self.probe_interval):
                await self.connectivity.check()
            return False
        if self.state.busy:
            self.status = PollState.SUPPRESSED
            return False

        self.status = PollState.POLLING
        generation = self.state.mutations
        try:
            snapshot = await self.feed.next_snapshot()
        except RemoteError as exc:
            log.info("Poll skipped: %s", exc)
            return False
        finally:
            self.status = PollState.IDLE

        # Any mutation started while fetching, finished or not, wins over this snapshot
        if self.state.busy or self.state.mutations != generation:
            log.debug("Discarding snapshot fetched across a local mutation")
            return False
        if not has_changed(self.store.get_all(), snapshot):
            return False

        self.store.replace_all(snapshot)
        self.cache.save(self.store.get_all())
        self.notifier.emit(RENDER, records=self.store.get_all())
        self.notifier.emit(DATA_UPDATED, count=len(snapshot))
        self.notifier.message("Dados atualizados", "info")
        return True

    async def run(self):
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                log.exception("Poll cycle failed")
                self.status = PollState.IDLE

    def start(self):
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self.run())

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
