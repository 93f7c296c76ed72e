"""
Unit tests for the SQLite inventory.
"""
import pytest

from mqdockerup.MANAGERS.inventory import InventoryRow, InventoryStore


@pytest.fixture
def store():
    inventory = InventoryStore(":memory:")
    yield inventory
    inventory.close()


class TestInventoryStore:
    """Tests for InventoryStore."""

    def test_upsert_and_get(self, store):
        store.upsert("c1", "web", "nginx", "1.25")
        assert store.exists("c1")
        assert store.get("c1") == InventoryRow("c1", "web", "nginx", "1.25")

    def test_upsert_replaces(self, store):
        store.upsert("c1", "web", "nginx", "1.25")
        store.upsert("c1", "web", "nginx", "1.26")
        assert store.get("c1").tag == "1.26"
        assert len(store.list_all()) == 1

    def test_missing(self, store):
        assert not store.exists("nope")
        assert store.get("nope") is None

    def test_list_all_sorted_by_name(self, store):
        store.upsert("c2", "zeta", "redis", "7")
        store.upsert("c1", "alpha", "nginx", "latest")
        assert [row.name for row in store.list_all()] == ["alpha", "zeta"]

    def test_topics_deduplicated_and_ordered(self, store):
        store.upsert("c1", "web", "nginx", "1.25")
        store.add_topic("c1", "t/sensor/a/docker_status/config")
        store.add_topic("c1", "t/update/a/docker_update/config")
        store.add_topic("c1", "t/sensor/a/docker_status/config")
        assert store.get_topics("c1") == [
            "t/sensor/a/docker_status/config",
            "t/update/a/docker_update/config",
        ]

    def test_delete_removes_topics(self, store):
        store.upsert("c1", "web", "nginx", "1.25")
        store.add_topic("c1", "topic")
        store.delete("c1")
        assert not store.exists("c1")
        assert store.get_topics("c1") == []

    def test_exclusive_topics_skip_shared(self, store):
        store.upsert("c1", "web", "nginx", "1.25")
        store.upsert("c2", "web", "nginx", "1.25")
        store.add_topic("c1", "homeassistant/sensor/web/docker_status/config")
        store.add_topic("c1", "homeassistant/button/old/docker_restart/config")
        store.add_topic("c2", "homeassistant/sensor/web/docker_status/config")
        assert store.exclusive_topics("c1") == ["homeassistant/button/old/docker_restart/config"]
        store.delete("c2")
        assert store.exclusive_topics("c1") == [
            "homeassistant/sensor/web/docker_status/config",
            "homeassistant/button/old/docker_restart/config",
        ]

    def test_exclusive_topics_unknown_container(self, store):
        assert store.exclusive_topics("nope") == []

    def test_file_database_creates_directory(self, tmp_path):
        path = tmp_path / "data" / "inventory.db"
        store = InventoryStore(str(path))
        store.upsert("c1", "web", "nginx", "latest")
        store.close()
        assert InventoryStore(str(path)).exists("c1")
