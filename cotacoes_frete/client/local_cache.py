import json
import logging
from pathlib import Path
from typing import Any, Dict, List

from pydantic import ValidationError

from ..models.cotacao import Cotacao

log = logging.getLogger(__name__)

STORAGE_KEY = "cotacoes_frete"


class LocalCache:
    """A JSON file used as a key-value store holding the serialized collection.

    Failures never propagate: a failed write returns False, a failed read
    yields an empty collection.
    """

    def __init__(self, path: Path, key: str = STORAGE_KEY):
        self.path = Path(path)
        self.key = key

    def _read_all(self) -> Dict[str, Any]:
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError:
            return {}
        return data if isinstance(data, dict) else {}

    def save(self, records: List[Dict[str, Any]]) -> bool:
        try:
            data = self._read_all()
        except (OSError, ValueError):
            log.warning("Local cache at %s is unreadable, rewriting it", self.path)
            data = {}
        data[self.key] = records

        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as fh:
                json.dump(data, fh, ensure_ascii=False)
            tmp_path.replace(self.path)
            return True
        except (OSError, TypeError, ValueError):
            log.exception("Failed to write local cache %s", self.path)
            return False

    def load(self) -> List[Dict[str, Any]]:
        try:
            stored = self._read_all().get(self.key)
        except (OSError, ValueError):
            log.exception("Failed to read local cache %s", self.path)
            return []
        if not isinstance(stored, list):
            return []

        records = []
        for item in stored:
            try:
                records.append(Cotacao.model_validate(item).model_dump())
            except ValidationError:
                log.warning("Skipping invalid cached cotacao: %r", item)
        return records
