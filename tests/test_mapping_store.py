"""Tests for mapping table persistence."""

import json

import pytest

from privacy import InMemoryMappingStore, JsonFileMappingStore, MappingNotFoundError, MappingTable


@pytest.mark.asyncio
class TestInMemoryMappingStore:
    """Test the in-memory store."""

    async def test_store_and_retrieve(self):
        store = InMemoryMappingStore()
        await store.store("p1", {"[STAKEHOLDER_1]": "Alice"})
        table = await store.retrieve("p1")
        assert isinstance(table, MappingTable)
        assert table["[STAKEHOLDER_1]"] == "Alice"

    async def test_missing_project_raises(self):
        with pytest.raises(MappingNotFoundError):
            await InMemoryMappingStore().retrieve("nope")

    async def test_store_replaces_previous_table(self):
        store = InMemoryMappingStore()
        await store.store("p1", {"[STAKEHOLDER_1]": "Alice"})
        await store.store("p1", {"[STAKEHOLDER_1]": "Bob"})
        assert (await store.retrieve("p1"))["[STAKEHOLDER_1]"] == "Bob"


@pytest.mark.asyncio
class TestJsonFileMappingStore:
    """Test the JSON file store."""

    async def test_round_trip_through_disk(self, tmp_path):
        store = JsonFileMappingStore(tmp_path)
        await store.store("acme/portal", {"[STAKEHOLDER_1]": "Bob O'Neil", "[PHONE_1]": "555-123-4567"})

        files = list(tmp_path.glob("*.json"))
        assert len(files) == 1
        assert "/" not in files[0].name
        payload = json.loads(files[0].read_text(encoding="utf-8"))
        assert payload["project_id"] == "acme/portal"

        table = await JsonFileMappingStore(tmp_path).retrieve("acme/portal")
        assert table["[STAKEHOLDER_1]"] == "Bob O'Neil"
        assert table["[PHONE_1]"] == "555-123-4567"

    async def test_missing_file_raises(self, tmp_path):
        with pytest.raises(MappingNotFoundError):
            await JsonFileMappingStore(tmp_path).retrieve("unknown")
