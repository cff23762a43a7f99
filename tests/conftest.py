import itertools
import json

import httpx
import pytest
from redis.exceptions import WatchError

from cotacoes_frete.client.controller import CotacoesController
from cotacoes_frete.client.local_cache import LocalCache
from cotacoes_frete.client.remote import RemoteClient
from cotacoes_frete.core import cache
from cotacoes_frete.core.config import settings
from cotacoes_frete.models.cotacao import Cotacao

API_URL = "http://backend.test/api/cotacoes"
HEALTH_URL = "http://backend.test/health"


class FakeBackend:
    """In-memory stand-in for the REST backend behind an httpx.MockTransport."""

    def __init__(self):
        self.records = {}
        self.online = True
        self.fail_methods = set()
        self.malformed_methods = set()
        self.calls = []
        self._ids = itertools.count(1)

    def seed(self, **fields):
        record_id = fields.pop("id", None) or f"srv-{next(self._ids)}"
        record = Cotacao.model_validate({"timestamp": "2024-03-01T10:00:00+00:00", **fields, "id": record_id})
        self.records[record_id] = record.model_dump()
        return self.records[record_id]

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append((request.method, path))

        if path == "/health":
            return httpx.Response(200 if self.online else 503, json={"status": "ok"})
        if not self.online:
            raise httpx.ConnectError("backend unreachable", request=request)
        if request.method in self.fail_methods:
            return httpx.Response(500, json={"detail": "boom"})
        if request.method in self.malformed_methods:
            return httpx.Response(200, content=b"<html>not json</html>")

        if path == "/api/cotacoes":
            if request.method == "GET":
                return httpx.Response(200, json=list(self.records.values()))
            if request.method == "POST":
                body = json.loads(request.content)
                record_id = f"srv-{next(self._ids)}"
                record = Cotacao.model_validate(
                    {**body, "id": record_id, "timestamp": "2024-03-01T12:00:00+00:00"}
                ).model_dump()
                self.records[record_id] = record
                return httpx.Response(201, json=record)

        record_id = path.rsplit("/", 1)[-1]
        if record_id not in self.records:
            return httpx.Response(404, json={"detail": "Cotação não encontrada"})
        if request.method == "PUT":
            body = json.loads(request.content)
            self.records[record_id] = {**self.records[record_id], **body, "id": record_id}
            return httpx.Response(200, json=self.records[record_id])
        if request.method == "DELETE":
            del self.records[record_id]
            return httpx.Response(204)
        return httpx.Response(405)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self) -> RemoteClient:
        return RemoteClient(API_URL, HEALTH_URL, transport=self.transport())


class Recorder:
    def __init__(self):
        self.events = []

    def __call__(self, event, payload):
        self.events.append((event, payload))

    def names(self):
        return [e for e, _ in self.events]

    def messages(self, kind=None):
        return [p["text"] for e, p in self.events if e == "message" and (kind is None or p["kind"] == kind)]


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def local_cache(tmp_path):
    return LocalCache(tmp_path / "cotacoes.json")


@pytest.fixture
def make_controller(backend, local_cache):
    def _make(**kwargs):
        ids = itertools.count(1)
        kwargs.setdefault("new_temp_id", lambda: f"temp_{next(ids)}")
        return CotacoesController(backend.client(), local_cache, **kwargs)

    return _make


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def form():
    return {
        "responsavelCotacao": "Ana",
        "transportadora": "ACME",
        "destino": "Curitiba",
        "numeroCotacao": "",
        "valorFrete": 120.5,
        "vendedor": "",
        "numeroDocumento": "NF-1",
        "previsaoEntrega": "",
        "canalComunicacao": "WhatsApp",
        "codigoColeta": "",
        "responsavelTransportadora": "",
        "dataCotacao": "2024-03-01",
        "observacoes": "",
    }


class FakePipeline:
    """Just enough of a redis.asyncio pipeline for WATCH / MULTI / EXEC."""

    def __init__(self, redis):
        self.redis = redis
        self.watched = {}
        self.queued = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def watch(self, *keys):
        self.watched = {k: self.redis.versions.get(k, 0) for k in keys}

    async def unwatch(self):
        self.watched = {}

    async def get(self, key):
        return await self.redis.get(key)

    def multi(self):
        self.queued = []

    def set(self, key, value, ex=None):
        self.queued.append((key, value, ex))

    async def execute(self):
        if any(self.redis.versions.get(k, 0) != v for k, v in self.watched.items()):
            raise WatchError("watched key changed")
        for key, value, ex in self.queued:
            await self.redis.set(key, value, ex=ex)
        return [True] * len(self.queued)


class FakeRedis:
    def __init__(self):
        self.data = {}
        self.ttls = {}
        self.versions = {}

    def _touch(self, key):
        self.versions[key] = self.versions.get(key, 0) + 1

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value
        self.ttls[key] = ex
        self._touch(key)
        return True

    async def incr(self, key):
        self.data[key] = str(int(self.data.get(key) or 0) + 1)
        self._touch(key)
        return int(self.data[key])

    async def delete(self, key):
        self._touch(key)
        return 1 if self.data.pop(key, None) is not None else 0

    async def ping(self):
        return True

    def pipeline(self):
        return FakePipeline(self)


@pytest.fixture
def fake_redis(monkeypatch):
    redis = FakeRedis()
    monkeypatch.setattr(settings, "redis_url", "redis://cache.test:6379/0")
    monkeypatch.setattr(cache, "client", redis)
    return redis
