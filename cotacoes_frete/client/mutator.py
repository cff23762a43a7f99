import copy
import logging
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from ..models.cotacao import CotacaoFields, CotacaoUpdate
from .connectivity import Connectivity
from .local_cache import LocalCache
from .remote import RemoteClient, RemoteError
from .state import RENDER, Notifier, SyncState
from .store import Record, RecordStore

log = logging.getLogger(__name__)

TEMP_PREFIX = "temp_"


def is_temporary(record_id: Any) -> bool:
    return isinstance(record_id, str) and record_id.startswith(TEMP_PREFIX)


class TempIdGenerator:
    """``temp_<ns>`` ids from the wall clock, strictly increasing within a process."""

    def __init__(self, clock: Callable[[], int] = time.time_ns):
        self._clock = clock
        self._last = 0

    def __call__(self) -> str:
        self._last = max(self._clock(), self._last + 1)
        return f"{TEMP_PREFIX}{self._last}"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class OptimisticMutator:
    """Applies quote mutations locally first, then reconciles with the backend.

    Every operation follows the same order: mutate the store, persist the
    local cache, notify listeners, and only then talk to the remote. A
    remote failure of any kind rolls the local change back; nothing is
    retried.
    """

    def __init__(
        self,
        store: RecordStore,
        remote: RemoteClient,
        cache: LocalCache,
        connectivity: Connectivity,
        notifier: Notifier,
        state: SyncState,
        new_temp_id: Optional[Callable[[], str]] = None,
        now: Callable[[], str] = utc_now_iso,
    ):
        self.store = store
        self.remote = remote
        self.cache = cache
        self.connectivity = connectivity
        self.notifier = notifier
        self.state = state
        self.new_temp_id = new_temp_id or TempIdGenerator()
        self.now = now

    @contextmanager
    def _in_flight(self):
        self.state.pending += 1
        self.state.mutations += 1
        try:
            yield
        finally:
            self.state.pending -= 1

    def _commit_local(self):
        self.cache.save(self.store.get_all())
        self.notifier.emit(RENDER, records=self.store.get_all())

    async def _should_sync(self, record_id: str) -> bool:
        if is_temporary(record_id):
            return False
        return await self.connectivity.check()

    async def create(self, form_fields: Dict[str, Any]) -> Optional[Record]:
        fields = CotacaoFields.model_validate(form_fields).model_dump()
        temp_id = self.new_temp_id()
        record = {**fields, "id": temp_id, "timestamp": self.now()}

        with self._in_flight():
            self.store.insert(record, 0)
            self._commit_local()
            self.notifier.message("Cotação registrada!", "success")

            if not await self.connectivity.check():
                self.notifier.message("Salvo localmente", "info")
                return record

            try:
                committed = await self.remote.create_cotacao(fields)
            except RemoteError as exc:
                log.warning("Create failed, dropping %s: %s", temp_id, exc)
                self.store.remove(temp_id)
                self._commit_local()
                self.notifier.message("Erro ao salvar cotação. Registro removido.", "error")
                return None

            self.store.replace_id(temp_id, committed)
            self._commit_local()
            return committed

    async def update(self, record_id: str, form_fields: Dict[str, Any]) -> Record:
        current = self.store.find_by_id(record_id)
        snapshot = copy.deepcopy(current)
        changes = CotacaoUpdate.model_validate(form_fields).changes()
        merged = {**current, **changes, "id": record_id, "timestamp": current.get("timestamp")}

        with self._in_flight():
            self.store.upsert(merged)
            self._commit_local()
            self.notifier.message("Cotação atualizada!", "success")

            if not await self._should_sync(record_id):
                return merged

            try:
                saved = await self.remote.update_cotacao(record_id, changes)
            except RemoteError as exc:
                log.warning("Update of %s failed, restoring snapshot: %s", record_id, exc)
                if record_id in self.store:
                    self.store.upsert(snapshot)
                    self._commit_local()
                self.notifier.message("Erro ao atualizar. Alterações revertidas.", "error")
                return snapshot

            if record_id in self.store:
                self.store.upsert(saved)
                self._commit_local()
            return saved

    async def toggle_closed(self, record_id: str) -> bool:
        current = self.store.find_by_id(record_id)
        previous = bool(current.get("negocioFechado"))
        closed = not previous

        with self._in_flight():
            self.store.upsert({**current, "negocioFechado": closed})
            self._commit_local()
            self.notifier.message("Negócio fechado!" if closed else "Marcação removida!", "success")

            if not await self._should_sync(record_id):
                return closed

            try:
                saved = await self.remote.update_cotacao(record_id, {"negocioFechado": closed})
            except RemoteError as exc:
                log.warning("Toggle of %s failed, reverting: %s", record_id, exc)
                if record_id in self.store:
                    latest = self.store.find_by_id(record_id)
                    self.store.upsert({**latest, "negocioFechado": previous})
                    self._commit_local()
                self.notifier.message("Erro ao atualizar. Status revertido.", "error")
                return previous

            if record_id in self.store:
                self.store.upsert(saved)
                self._commit_local()
            return bool(saved.get("negocioFechado"))

    async def delete(self, record_id: str) -> bool:
        position = self.store.index_of(record_id)
        snapshot = self.store.find_by_id(record_id)

        with self._in_flight():
            self.store.remove(record_id)
            self._commit_local()
            self.notifier.message("Cotação excluída!", "success")

            if not await self._should_sync(record_id):
                return True

            try:
                await self.remote.delete_cotacao(record_id)
            except RemoteError as exc:
                log.warning("Delete of %s failed, restoring: %s", record_id, exc)
                if record_id not in self.store:
                    self.store.insert(snapshot, position)
                    self._commit_local()
                self.notifier.message("Erro ao excluir. Registro restaurado.", "error")
                return False
            return True
