from typing import Any, Dict, Iterable, Mapping


def has_changed(local: Iterable[Mapping[str, Any]], remote: Iterable[Mapping[str, Any]]) -> bool:
    """Return True when ``remote`` diverges from ``local``.

    Records are matched by ``id`` and compared field by field, so element
    order on either side never matters.
    """
    local = list(local)
    remote = list(remote)
    if len(local) != len(remote):
        return True

    local_by_id: Dict[Any, Mapping[str, Any]] = {r.get("id"): r for r in local}
    remote_by_id: Dict[Any, Mapping[str, Any]] = {r.get("id"): r for r in remote}
    if local_by_id.keys() != remote_by_id.keys():
        return True

    for record_id, remote_record in remote_by_id.items():
        if dict(local_by_id[record_id]) != dict(remote_record):
            return True
    return False
