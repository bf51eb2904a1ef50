"""Tests for the in-memory and JSON-file document stores."""

from __future__ import annotations

import asyncio
import json

import pytest

from fontsense.store.base import StoreError
from fontsense.store.file import JsonFileDocumentStore
from fontsense.store.memory import InMemoryDocumentStore


@pytest.fixture(params=["memory", "file"])
def make_store(request, tmp_path):
    def factory():
        if request.param == "memory":
            return InMemoryDocumentStore()
        return JsonFileDocumentStore(tmp_path / "data")
    return factory


def test_get_set_and_merge(make_store):
    async def scenario():
        store = make_store()
        assert await store.get("c", "k") is None
        await store.set("c", "k", {"a": 1, "b": 2})
        await store.set("c", "k", {"b": 3}, merge=True)
        merged = await store.get("c", "k")
        await store.set("c", "k", {"z": 0})
        return merged, await store.get("c", "k")

    merged, replaced = asyncio.run(scenario())
    assert merged == {"a": 1, "b": 3}
    assert replaced == {"z": 0}


def test_returned_documents_are_copies(make_store):
    async def scenario():
        store = make_store()
        await store.set("c", "k", {"items": [1]})
        doc = await store.get("c", "k")
        doc["items"].append(2)
        return await store.get("c", "k")

    assert asyncio.run(scenario()) == {"items": [1]}


def test_transaction_skips_write_when_fn_returns_none(make_store):
    async def scenario():
        store = make_store()
        await store.set("c", "k", {"n": 1})
        result = await store.transaction("c", "k", lambda doc: (None, "skipped"))
        return result, await store.get("c", "k")

    assert asyncio.run(scenario()) == ("skipped", {"n": 1})


def test_concurrent_transactions_do_not_lose_updates(make_store):
    async def scenario():
        store = make_store()

        def bump(doc):
            n = (doc or {}).get("n", 0) + 1
            return {"n": n}, n

        async def worker():
            for _ in range(10):
                await store.transaction("c", "counter", bump)
                await asyncio.sleep(0)

        await asyncio.gather(*(worker() for _ in range(5)))
        return await store.get("c", "counter")

    assert asyncio.run(scenario()) == {"n": 50}


def test_increment_creates_missing_document(make_store):
    async def scenario():
        store = make_store()
        await store.increment("c", "k", "count", -1)
        await store.increment("c", "k", "count", 3)
        return await store.get("c", "k")

    assert asyncio.run(scenario()) == {"count": 2}


def test_increment_respects_floor(make_store):
    async def scenario():
        store = make_store()
        await store.increment("c", "k", "count", -1, floor=0)
        first = await store.get("c", "k")
        await store.increment("c", "k", "count", 2, floor=0)
        await store.increment("c", "k", "count", -5, floor=0)
        return first, await store.get("c", "k")

    assert asyncio.run(scenario()) == ({"count": 0}, {"count": 0})


def test_query_by_equality(make_store):
    async def scenario():
        store = make_store()
        await store.set("c", "1", {"owner": "a", "state": "completed"})
        await store.set("c", "2", {"owner": "a", "state": "queued"})
        await store.set("c", "3", {"owner": "b", "state": "completed"})
        return await store.query("c", owner="a", state="completed")

    assert asyncio.run(scenario()) == [{"owner": "a", "state": "completed"}]


def test_file_store_persists_across_instances(tmp_path):
    async def write():
        await JsonFileDocumentStore(tmp_path).set("fonts", "x", {"name": "X"})

    async def read():
        return await JsonFileDocumentStore(tmp_path).get("fonts", "x")

    asyncio.run(write())
    assert asyncio.run(read()) == {"name": "X"}
    assert json.loads((tmp_path / "fonts.json").read_text())["x"] == {"name": "X"}
    assert list(tmp_path.glob("*.tmp")) == []


def test_file_store_reports_corrupt_collection(tmp_path):
    (tmp_path / "broken.json").write_text("{not json")
    with pytest.raises(StoreError):
        asyncio.run(JsonFileDocumentStore(tmp_path).get("broken", "x"))
