"""In-process document store. One lock per document key gives atomic transactions."""

from __future__ import annotations

import asyncio
import copy
from collections import defaultdict
from typing import Any

from fontsense.store.base import Document, TransactionFn, T, add_clamped


class InMemoryDocumentStore:
    def __init__(self) -> None:
        self._data: dict[str, dict[str, Document]] = defaultdict(dict)
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}

    def _lock(self, collection: str, key: str) -> asyncio.Lock:
        lock = self._locks.get((collection, key))
        if lock is None:
            lock = self._locks[(collection, key)] = asyncio.Lock()
        return lock

    async def get(self, collection: str, key: str) -> Document | None:
        doc = self._data[collection].get(key)
        return copy.deepcopy(doc) if doc is not None else None

    async def set(self, collection: str, key: str, doc: Document, *, merge: bool = False) -> None:
        async with self._lock(collection, key):
            self._write(collection, key, doc, merge)

    async def transaction(self, collection: str, key: str, fn: TransactionFn[T]) -> T:
        async with self._lock(collection, key):
            current = self._data[collection].get(key)
            new_doc, result = fn(copy.deepcopy(current) if current is not None else None)
            if new_doc is not None:
                self._write(collection, key, new_doc, merge=False)
            return result

    async def increment(
        self, collection: str, key: str, field: str, delta: int, *, floor: int | None = None,
    ) -> None:
        async with self._lock(collection, key):
            doc = self._data[collection].setdefault(key, {})
            doc[field] = add_clamped(doc.get(field, 0), delta, floor)

    async def query(self, collection: str, **equals: Any) -> list[Document]:
        return [
            copy.deepcopy(doc)
            for doc in self._data[collection].values()
            if all(doc.get(k) == v for k, v in equals.items())
        ]

    def _write(self, collection: str, key: str, doc: Document, merge: bool) -> None:
        if merge and key in self._data[collection]:
            self._data[collection][key].update(copy.deepcopy(doc))
        else:
            self._data[collection][key] = copy.deepcopy(doc)
