from datetime import date, datetime, timezone
from typing import Any, Iterable, List, Optional, Tuple

from .store import Record

SEARCH_FIELDS = (
    "transportadora",
    "numeroCotacao",
    "vendedor",
    "numeroDocumento",
    "codigoColeta",
    "responsavelTransportadora",
    "destino",
)

STATUS_FECHADO = "fechado"
STATUS_ABERTO = "aberto"

MESES = [
    "Janeiro", "Fevereiro", "Março", "Abril", "Maio", "Junho",
    "Julho", "Agosto", "Setembro", "Outubro", "Novembro", "Dezembro",
]


def _parse_instant(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def sort_key(record: Record) -> datetime:
    return (
        _parse_instant(record.get("timestamp"))
        or _parse_instant(record.get("dataCotacao"))
        or datetime.min
    )


def display_order(records: Iterable[Record]) -> List[Record]:
    """Newest first by timestamp, falling back to the quote date."""
    return sorted(records, key=sort_key, reverse=True)


def _quote_date(record: Record) -> Optional[date]:
    parsed = _parse_instant(record.get("dataCotacao"))
    return parsed.date() if parsed else None


def _in_month(record: Record, month: int, year: int) -> bool:
    quoted = _quote_date(record)
    return quoted is not None and quoted.month - 1 == month and quoted.year == year


def shift_month(month: int, year: int, direction: int) -> Tuple[int, int]:
    """Move a zero-based (month, year) pair by ``direction`` months."""
    total = year * 12 + month + direction
    return total % 12, total // 12


def month_label(month: int, year: int) -> str:
    return f"{MESES[month]} {year}"


def filter_cotacoes(
    records: Iterable[Record],
    month: Optional[int] = None,
    year: Optional[int] = None,
    search: str = "",
    responsavel: str = "",
    transportadora: str = "",
    status: str = "",
) -> List[Record]:
    """Apply the list filters and return the result in display order.

    ``month`` is zero-based; pass ``None`` for month and year to skip the
    month filter.
    """
    filtered = list(records)

    if month is not None and year is not None:
        filtered = [r for r in filtered if _in_month(r, month, year)]

    term = (search or "").strip().lower()
    if term:
        filtered = [
            r for r in filtered
            if any(term in str(r.get(f) or "").lower() for f in SEARCH_FIELDS)
        ]

    if responsavel:
        filtered = [r for r in filtered if r.get("responsavelCotacao") == responsavel]
    if transportadora:
        filtered = [r for r in filtered if r.get("transportadora") == transportadora]

    if status == STATUS_FECHADO:
        filtered = [r for r in filtered if r.get("negocioFechado")]
    elif status == STATUS_ABERTO:
        filtered = [r for r in filtered if not r.get("negocioFechado")]

    return display_order(filtered)


def distinct_values(records: Iterable[Record], field: str) -> List[str]:
    """Sorted non-empty values of ``field``, for the filter dropdowns."""
    return sorted({str(r.get(field)) for r in records if r.get(field)})
