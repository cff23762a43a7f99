import json

from cotacoes_frete.client.local_cache import STORAGE_KEY, LocalCache
from cotacoes_frete.models.cotacao import NAO_INFORMADO, Cotacao


def _full(**fields):
    return Cotacao.model_validate(fields).model_dump()


def test_round_trip_under_single_key(tmp_path):
    path = tmp_path / "nested" / "cache.json"
    cache = LocalCache(path)
    record = _full(id="1", destino="São Paulo")
    assert cache.save([record]) is True
    assert cache.load() == [record]
    assert list(json.loads(path.read_text(encoding="utf-8"))) == [STORAGE_KEY]


def test_other_keys_are_preserved(tmp_path):
    path = tmp_path / "cache.json"
    path.write_text(json.dumps({"theme": "dark"}), encoding="utf-8")
    LocalCache(path).save([])
    assert json.loads(path.read_text(encoding="utf-8")) == {"theme": "dark", STORAGE_KEY: []}


def test_missing_file_loads_empty(tmp_path):
    assert LocalCache(tmp_path / "absent.json").load() == []


def test_corrupt_file_loads_empty_and_is_rewritten(tmp_path):
    path = tmp_path / "cache.json"
    path.write_text("{not json", encoding="utf-8")
    cache = LocalCache(path)
    assert cache.load() == []
    assert cache.save([_full(id="1")]) is True
    assert [r["id"] for r in cache.load()] == ["1"]


def test_wrong_shapes_are_ignored(tmp_path):
    path = tmp_path / "cache.json"
    path.write_text(json.dumps({STORAGE_KEY: [{"id": "1"}, "junk", 3, {"transportadora": "sem id"}]}), encoding="utf-8")
    assert [r["id"] for r in LocalCache(path).load()] == ["1"]
    path.write_text(json.dumps({STORAGE_KEY: "nope"}), encoding="utf-8")
    assert LocalCache(path).load() == []


def test_old_records_get_missing_fields_filled(tmp_path):
    path = tmp_path / "cache.json"
    legacy = {"id": "srv-7", "transportadora": "ACME", "valorFrete": "120,50", "vendedor": ""}
    path.write_text(json.dumps({STORAGE_KEY: [legacy]}), encoding="utf-8")

    [record] = LocalCache(path).load()

    assert set(record) == set(Cotacao.model_fields)
    assert record["valorFrete"] == 120.5
    assert record["vendedor"] == NAO_INFORMADO
    assert record["codigoColeta"] == NAO_INFORMADO
    assert record["observacoes"] == ""
    assert record["negocioFechado"] is False


def test_write_failure_returns_false(tmp_path):
    cache = LocalCache(tmp_path)  # a directory cannot be written as a file
    assert cache.save([_full(id="1")]) is False
    assert cache.load() == []
