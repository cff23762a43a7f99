from typing import Any, Dict, Iterable, List, Optional

Record = Dict[str, Any]


class RecordNotFound(LookupError):
    pass


class RecordStore:
    """Ordered in-memory collection of quote records keyed by ``id``.

    Order is insertion order; display order is computed by the caller.
    """

    def __init__(self, records: Optional[Iterable[Record]] = None):
        self._records: List[Record] = []
        if records:
            self.replace_all(records)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        return any(r.get("id") == record_id for r in self._records)

    def get_all(self) -> List[Record]:
        return list(self._records)

    def index_of(self, record_id: str) -> int:
        for i, record in enumerate(self._records):
            if record.get("id") == record_id:
                return i
        raise RecordNotFound(record_id)

    def find_by_id(self, record_id: str) -> Record:
        return self._records[self.index_of(record_id)]

    def upsert(self, record: Record) -> Record:
        try:
            self._records[self.index_of(record["id"])] = record
        except RecordNotFound:
            self._records.append(record)
        return record

    def insert(self, record: Record, position: int = 0) -> Record:
        self.remove(record["id"])
        position = max(0, min(position, len(self._records)))
        self._records.insert(position, record)
        return record

    def replace_id(self, old_id: str, new_record: Record) -> Record:
        """Swap the record at ``old_id`` for ``new_record`` without moving it."""
        try:
            position = self.index_of(old_id)
        except RecordNotFound:
            return self.upsert(new_record)

        new_id = new_record["id"]
        if new_id != old_id:
            # A poll may have delivered the committed record already
            self._records = [
                r for i, r in enumerate(self._records) if i == position or r.get("id") != new_id
            ]
            position = self.index_of(old_id)
        self._records[position] = new_record
        return new_record

    def remove(self, record_id: str) -> Optional[Record]:
        try:
            return self._records.pop(self.index_of(record_id))
        except RecordNotFound:
            return None

    def replace_all(self, records: Iterable[Record]):
        by_id: Dict[Any, Record] = {}
        for record in records:
            by_id.pop(record.get("id"), None)
            by_id[record.get("id")] = record
        self._records = list(by_id.values())
