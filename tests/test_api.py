import pytest
from fastapi.testclient import TestClient

from cotacoes_frete import main
from cotacoes_frete.core.config import settings
from cotacoes_frete.models.cotacao import Cotacao
from cotacoes_frete.routers import cotacoes as cotacoes_router
from cotacoes_frete.services.cotacoes_service import CotacaoNotFound

SAVED = Cotacao(
    id="6f1c2b1e-8d4a-4b7e-9a51-2f3c4d5e6f70",
    timestamp="2024-03-01T12:00:00+00:00",
    transportadora="ACME",
    valorFrete=120.5,
    dataCotacao="2024-03-01",
)


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(settings, "auth_required", False)
    return TestClient(main.app)


def test_list_cotacoes(client, monkeypatch):
    async def fake_list():
        return [SAVED]

    monkeypatch.setattr(cotacoes_router, "list_cotacoes", fake_list)
    response = client.get("/api/cotacoes")
    assert response.status_code == 200
    assert response.json() == [SAVED.model_dump()]


def test_list_storage_outage_maps_to_503(client, monkeypatch):
    async def broken():
        raise RuntimeError("pool exhausted")

    monkeypatch.setattr(cotacoes_router, "list_cotacoes", broken)
    response = client.get("/api/cotacoes")
    assert response.status_code == 503


def test_create_returns_201_with_committed_record(client, monkeypatch):
    received = {}

    async def fake_create(fields, actor):
        received["fields"] = fields
        received["actor"] = actor
        return SAVED

    monkeypatch.setattr(cotacoes_router, "create_cotacao", fake_create)
    response = client.post(
        "/api/cotacoes",
        json={"transportadora": "ACME", "valorFrete": 120.5, "dataCotacao": "2024-03-01", "vendedor": ""},
    )
    assert response.status_code == 201
    assert response.json()["id"] == SAVED.id
    assert received["fields"].vendedor == "Não Informado"
    assert received["actor"] == "anonymous"


def test_update_passes_only_sent_fields(client, monkeypatch):
    received = {}

    async def fake_update(cotacao_id, changes, actor):
        received.update(cotacao_id=cotacao_id, changes=changes)
        return SAVED.model_copy(update={"negocioFechado": True})

    monkeypatch.setattr(cotacoes_router, "update_cotacao", fake_update)
    response = client.put(f"/api/cotacoes/{SAVED.id}", json={"negocioFechado": True})
    assert response.status_code == 200
    assert response.json()["negocioFechado"] is True
    assert received == {"cotacao_id": SAVED.id, "changes": {"negocioFechado": True}}


def test_update_missing_returns_404(client, monkeypatch):
    async def fake_update(cotacao_id, changes, actor):
        raise CotacaoNotFound(cotacao_id)

    monkeypatch.setattr(cotacoes_router, "update_cotacao", fake_update)
    response = client.put("/api/cotacoes/temp_123", json={"destino": "Natal"})
    assert response.status_code == 404


def test_delete_returns_204_or_404(client, monkeypatch):
    deleted = []

    async def fake_delete(cotacao_id):
        if cotacao_id != SAVED.id:
            raise CotacaoNotFound(cotacao_id)
        deleted.append(cotacao_id)

    monkeypatch.setattr(cotacoes_router, "delete_cotacao", fake_delete)
    assert client.delete(f"/api/cotacoes/{SAVED.id}").status_code == 204
    assert client.delete("/api/cotacoes/other").status_code == 404
    assert deleted == [SAVED.id]


def test_auth_required_rejects_missing_token(monkeypatch):
    monkeypatch.setattr(settings, "auth_required", True)
    response = TestClient(main.app).get("/api/cotacoes")
    assert response.status_code == 401


def test_health_ok(client, monkeypatch):
    async def ping():
        return True

    monkeypatch.setattr(main.database, "ping", ping)
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "database": "ok", "cache": "disabled"}


def test_health_reports_unreachable_database(client, monkeypatch):
    async def ping():
        raise OSError("connection refused")

    monkeypatch.setattr(main.database, "ping", ping)
    response = client.get("/health")
    assert response.status_code == 503
    assert response.json()["database"] == "unavailable"


def test_health_reports_unreachable_cache(client, monkeypatch):
    async def db_ping():
        return True

    async def cache_ping():
        return False

    monkeypatch.setattr(settings, "redis_url", "redis://cache.test:6379/0")
    monkeypatch.setattr(main.database, "ping", db_ping)
    monkeypatch.setattr(main.cache, "ping", cache_ping)
    response = client.get("/health")
    assert response.status_code == 503
    assert response.json()["cache"] == "unavailable"
