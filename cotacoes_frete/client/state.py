import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List

log = logging.getLogger(__name__)

# Events delivered to listeners
RENDER = "render"
MESSAGE = "message"
DATA_UPDATED = "data-updated"
CONNECTION = "connection"

Listener = Callable[[str, dict], Any]


@dataclass
class SyncState:
    """Flags shared by the mutator, the poll loop and the controller."""

    online: bool = False
    submitting: bool = False
    pending: int = 0
    # Bumped whenever a mutation starts; a snapshot fetched across a bump is stale
    mutations: int = 0

    @property
    def busy(self) -> bool:
        return self.submitting or self.pending > 0


@dataclass
class Notifier:
    listeners: List[Listener] = field(default_factory=list)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self.listeners.append(listener)

        def unsubscribe():
            if listener in self.listeners:
                self.listeners.remove(listener)

        return unsubscribe

    def emit(self, event: str, **payload):
        for listener in list(self.listeners):
            try:
                listener(event, payload)
            except Exception:
                # Listener errors never reach the state layer
                log.exception("Listener failed on %s", event)

    def message(self, text: str, kind: str = "info"):
        self.emit(MESSAGE, text=text, kind=kind)
