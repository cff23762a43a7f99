import logging
import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from ..core import cache
from ..core.database import execute, fetch, fetchrow
from ..models.cotacao import Cotacao, CotacaoFields

log = logging.getLogger(__name__)

COLLECTION_CACHE_KEY = "cotacoes:all"

# API field -> column
FIELD_COLUMNS: Dict[str, str] = {
    "responsavelCotacao": "responsavel_cotacao",
    "transportadora": "transportadora",
    "destino": "destino",
    "numeroCotacao": "numero_cotacao",
    "valorFrete": "valor_frete",
    "vendedor": "vendedor",
    "numeroDocumento": "numero_documento",
    "previsaoEntrega": "previsao_entrega",
    "canalComunicacao": "canal_comunicacao",
    "codigoColeta": "codigo_coleta",
    "responsavelTransportadora": "responsavel_transportadora",
    "dataCotacao": "data_cotacao",
    "observacoes": "observacoes",
    "negocioFechado": "negocio_fechado",
}

cotacoes_table_ready = False


class CotacaoNotFound(LookupError):
    pass


async def _ensure_table():
    global cotacoes_table_ready
    if cotacoes_table_ready:
        return
    await execute(
        """
        CREATE EXTENSION IF NOT EXISTS "pgcrypto";
        CREATE TABLE IF NOT EXISTS cotacoes (
          id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
          responsavel_cotacao TEXT NOT NULL DEFAULT '',
          transportadora TEXT NOT NULL DEFAULT '',
          destino TEXT NOT NULL DEFAULT '',
          numero_cotacao TEXT NOT NULL DEFAULT 'Não Informado',
          valor_frete DOUBLE PRECISION NOT NULL DEFAULT 0,
          vendedor TEXT NOT NULL DEFAULT 'Não Informado',
          numero_documento TEXT NOT NULL DEFAULT 'Não Informado',
          previsao_entrega TEXT NOT NULL DEFAULT 'Não Informado',
          canal_comunicacao TEXT NOT NULL DEFAULT 'Não Informado',
          codigo_coleta TEXT NOT NULL DEFAULT 'Não Informado',
          responsavel_transportadora TEXT NOT NULL DEFAULT 'Não Informado',
          data_cotacao TEXT NOT NULL DEFAULT '',
          observacoes TEXT NOT NULL DEFAULT '',
          negocio_fechado BOOLEAN NOT NULL DEFAULT false,
          created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
          updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
          created_by TEXT,
          updated_by TEXT
        );
        CREATE INDEX IF NOT EXISTS cotacoes_created_at_idx ON cotacoes(created_at DESC);
        """
    )
    cotacoes_table_ready = True


def _iso_or_none(value: Optional[object]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def _row_to_cotacao(row: dict) -> Cotacao:
    data: Dict[str, Any] = {field: row.get(column) for field, column in FIELD_COLUMNS.items()}
    if data.get("valorFrete") is not None:
        data["valorFrete"] = float(data["valorFrete"])
    data["id"] = str(row["id"])
    data["timestamp"] = _iso_or_none(row.get("created_at"))
    return Cotacao.model_validate(data)


def _fields_to_params(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {FIELD_COLUMNS[name]: value for name, value in fields.items() if name in FIELD_COLUMNS}


def _parse_id(cotacao_id: str) -> uuid.UUID:
    # Temporary client ids never reach the table
    try:
        return uuid.UUID(str(cotacao_id))
    except ValueError as exc:
        raise CotacaoNotFound(cotacao_id) from exc


async def list_cotacoes() -> List[Cotacao]:
    cached = await cache.get_json(COLLECTION_CACHE_KEY)
    if isinstance(cached, list):
        return [Cotacao.model_validate(item) for item in cached]

    # Read before the query so a write landing mid-read keeps its invalidation
    generation = await cache.get_generation(COLLECTION_CACHE_KEY)
    await _ensure_table()
    rows = await fetch("SELECT * FROM cotacoes ORDER BY created_at DESC")
    cotacoes = [_row_to_cotacao(r) for r in rows]
    await cache.set_json(
        COLLECTION_CACHE_KEY, [c.model_dump(mode="json") for c in cotacoes], generation=generation
    )
    return cotacoes


async def get_cotacao(cotacao_id: str) -> Cotacao:
    await _ensure_table()
    row = await fetchrow("SELECT * FROM cotacoes WHERE id = %s", [_parse_id(cotacao_id)])
    if not row:
        raise CotacaoNotFound(cotacao_id)
    return _row_to_cotacao(row)


async def create_cotacao(fields: CotacaoFields, actor: Optional[str]) -> Cotacao:
    await _ensure_table()
    params = _fields_to_params(fields.model_dump())
    columns = list(params.keys())
    placeholders = ", ".join(f"%({c})s" for c in columns)
    params["created_by"] = actor
    params["updated_by"] = actor

    row = await fetchrow(
        f"""
        INSERT INTO cotacoes ({", ".join(columns)}, created_by, updated_by)
        VALUES ({placeholders}, %(created_by)s, %(updated_by)s)
        RETURNING *
        """,
        params,
    )
    await cache.invalidate(COLLECTION_CACHE_KEY)
    log.info("Cotacao %s created by %s", row["id"], actor)
    return _row_to_cotacao(row)


async def update_cotacao(cotacao_id: str, changes: Dict[str, Any], actor: Optional[str]) -> Cotacao:
    """Apply only the fields present in ``changes``; untouched columns keep their value."""
    parsed_id = _parse_id(cotacao_id)
    params = _fields_to_params(changes)
    if not params:
        return await get_cotacao(cotacao_id)

    await _ensure_table()
    assignments = ", ".join(f"{column} = %({column})s" for column in params)
    params["id"] = parsed_id
    params["updated_by"] = actor

    row = await fetchrow(
        f"""
        UPDATE cotacoes
        SET {assignments}, updated_at = now(), updated_by = %(updated_by)s
        WHERE id = %(id)s
        RETURNING *
        """,
        params,
    )
    if not row:
        raise CotacaoNotFound(cotacao_id)
    await cache.invalidate(COLLECTION_CACHE_KEY)
    return _row_to_cotacao(row)


async def delete_cotacao(cotacao_id: str):
    parsed_id = _parse_id(cotacao_id)
    await _ensure_table()
    deleted = await execute("DELETE FROM cotacoes WHERE id = %s", [parsed_id])
    if not deleted:
        raise CotacaoNotFound(cotacao_id)
    await cache.invalidate(COLLECTION_CACHE_KEY)
