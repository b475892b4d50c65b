import pytest

from hibalogique.services.storage import InMemoryKeyValueStore, LocalKeyValueStore


def test_in_memory_store():
    kv = InMemoryKeyValueStore()
    assert kv.get("a") is None
    kv.set("a", "1")
    assert kv.get("a") == "1"
    assert kv.delete("a") is True
    assert kv.delete("a") is False


def test_local_store_roundtrip(tmp_path):
    kv = LocalKeyValueStore(str(tmp_path / "kv"))
    assert kv.get("hiba_quote_history") is None

    kv.set("hiba_quote_history", '[{"id": "é"}]')
    assert kv.get("hiba_quote_history") == '[{"id": "é"}]'

    kv.set("hiba_quote_history", "[]")
    assert kv.get("hiba_quote_history") == "[]"
    # no temp files left behind
    assert [p.name for p in (tmp_path / "kv").iterdir()] == ["hiba_quote_history.json"]

    assert kv.delete("hiba_quote_history") is True
    assert kv.get("hiba_quote_history") is None


def test_local_store_rejects_path_keys(tmp_path):
    kv = LocalKeyValueStore(str(tmp_path))
    with pytest.raises(ValueError):
        kv.set("../escape", "x")
