"""Tests for the in-memory and SQLite machine stores."""

import pytest
from provisio.domain.errors import NotFound
from provisio.infrastructure.repositories.memory_store import InMemoryMachineStore
from provisio.infrastructure.repositories.sqlite_store import SQLiteMachineStore

RECORD = {
    "name": "web1",
    "chef_environment": "_default",
    "normal": {
        "owner": "ops",
        "provisioning": {
            "driver_url": "testdrv:acct1",
            "provider_state": {"instance_id": "i-1", "tags": ["a", "b"]},
        },
    },
}


@pytest.fixture(params=["memory", "sqlite"])
def machine_store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryMachineStore()
        return
    s = SQLiteMachineStore(str(tmp_path / "machines.db"))
    s.connect()
    yield s
    s.close()


class TestMachineStore:
    def test_save_and_load(self, machine_store):
        machine_store.save(RECORD)
        assert machine_store.load("web1") == RECORD

    def test_load_missing(self, machine_store):
        with pytest.raises(NotFound):
            machine_store.load("ghost")

    def test_overwrite(self, machine_store):
        machine_store.save(RECORD)
        machine_store.save({"name": "web1", "normal": {}})
        assert machine_store.load("web1") == {"name": "web1", "normal": {}}

    def test_loaded_copy_is_independent(self, machine_store):
        machine_store.save(RECORD)
        loaded = machine_store.load("web1")
        loaded["normal"]["owner"] = "someone else"
        assert machine_store.load("web1")["normal"]["owner"] == "ops"

    def test_scopes_are_separate(self, machine_store):
        machine_store.save(RECORD, "prod")
        assert machine_store.exists("web1", "prod")
        assert not machine_store.exists("web1")
        assert machine_store.list_names("prod") == ["web1"]
        assert machine_store.list_names() == []

    def test_delete(self, machine_store):
        machine_store.save(RECORD)
        assert machine_store.delete("web1") is True
        assert machine_store.delete("web1") is False
        assert not machine_store.exists("web1")

    def test_list_names_sorted(self, machine_store):
        for name in ("db1", "web2", "app1"):
            machine_store.save({"name": name})
        assert machine_store.list_names() == ["app1", "db1", "web2"]


class TestSQLiteMachineStore:
    def test_persists_across_connections(self, tmp_path):
        path = str(tmp_path / "machines.db")
        first = SQLiteMachineStore(path)
        first.connect()
        first.save(RECORD)
        first.close()

        second = SQLiteMachineStore(path)
        second.connect()
        assert second.load("web1") == RECORD
        assert second.updated_at("web1") is not None
        assert second.updated_at("ghost") is None
        second.close()


class TestInMemoryMachineStore:
    def test_save_count(self):
        store = InMemoryMachineStore()
        store.save(RECORD)
        store.save(RECORD)
        assert store.save_count == 2
