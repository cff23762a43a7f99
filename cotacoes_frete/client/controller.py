import logging
from typing import Any, Callable, Dict, List, Optional

import httpx
from pydantic import ValidationError

from ..core.config import ClientSettings
from .connectivity import Connectivity
from .local_cache import LocalCache
from .mutator import OptimisticMutator
from .poller import ChangeFeed, PollingFeed, PollLoop
from .remote import RemoteClient, RemoteError
from .state import RENDER, Listener, Notifier, SyncState
from .store import Record, RecordNotFound, RecordStore

log = logging.getLogger(__name__)


class CotacoesController:
    """Owns the sync state for one session and wires the components together.

    Created at application start, torn down with :meth:`stop`. A front end
    calls the operations below and renders from ``render`` notifications.
    """

    def __init__(
        self,
        remote: RemoteClient,
        cache: LocalCache,
        poll_interval: float = 3.0,
        probe_interval: float = 15.0,
        feed: Optional[ChangeFeed] = None,
        new_temp_id: Optional[Callable[[], str]] = None,
    ):
        self.state = SyncState()
        self.notifier = Notifier()
        self.store = RecordStore()
        self.remote = remote
        self.cache = cache
        self.connectivity = Connectivity(remote.health, self.state, self.notifier)
        self.mutator = OptimisticMutator(
            self.store,
            remote,
            cache,
            self.connectivity,
            self.notifier,
            self.state,
            new_temp_id=new_temp_id,
        )
        self.poller = PollLoop(
            self.store,
            feed or PollingFeed(remote),
            cache,
            self.connectivity,
            self.notifier,
            self.state,
            interval=poll_interval,
            probe_interval=probe_interval,
        )

    @classmethod
    def from_settings(
        cls, settings: Optional[ClientSettings] = None, transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "CotacoesController":
        settings = settings or ClientSettings()
        return cls(
            RemoteClient.from_settings(settings, transport=transport),
            LocalCache(settings.local_cache_path),
            poll_interval=settings.poll_interval,
            probe_interval=settings.probe_interval,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self.notifier.subscribe(listener)

    @property
    def cotacoes(self) -> List[Record]:
        return self.store.get_all()

    def _render(self):
        self.notifier.emit(RENDER, records=self.store.get_all())

    async def load(self) -> List[Record]:
        """Rehydrate the store from the backend, or from the local cache when offline."""
        if await self.connectivity.check():
            try:
                records = await self.remote.list_cotacoes()
            except RemoteError as exc:
                log.warning("Initial load failed, using local cache: %s", exc)
            else:
                self.store.replace_all(records)
                self.cache.save(self.store.get_all())
                self._render()
                return self.store.get_all()

        self.store.replace_all(self.cache.load())
        self._render()
        self.notifier.message("Modo offline ativo", "info")
        return self.store.get_all()

    async def submit(self, form_fields: Dict[str, Any], edit_id: Optional[str] = None) -> Optional[Record]:
        """Create or update from the quote form. Overlapping submits are ignored."""
        if self.state.submitting:
            log.debug("Submit ignored, another one is in flight")
            return None

        self.state.submitting = True
        self.state.mutations += 1
        try:
            if edit_id:
                return await self.mutator.update(edit_id, form_fields)
            return await self.mutator.create(form_fields)
        except RecordNotFound:
            self.notifier.message("Cotação não encontrada", "error")
            return None
        except ValidationError as exc:
            log.info("Rejected quote form: %s", exc)
            self.notifier.message("Dados da cotação inválidos", "error")
            return None
        finally:
            self.state.submitting = False

    async def toggle_closed(self, record_id: str) -> Optional[bool]:
        try:
            return await self.mutator.toggle_closed(record_id)
        except RecordNotFound:
            self.notifier.message("Cotação não encontrada", "error")
            return None

    async def delete(self, record_id: str) -> bool:
        try:
            return await self.mutator.delete(record_id)
        except RecordNotFound:
            self.notifier.message("Cotação não encontrada", "error")
            return False

    async def start(self) -> List[Record]:
        records = await self.load()
        self.poller.start()
        return records

    async def stop(self):
        await self.poller.stop()
        await self.remote.aclose()
