"""JSON-file document store, one ``<collection>.json`` file per collection.

Several worker processes may share one data directory. Every operation
holds an exclusive ``flock`` on ``<collection>.lock`` for its whole
load-modify-save, and every write goes through a unique temp file that is
renamed over the collection file, so a crash never leaves half-written JSON.
File I/O runs in a worker thread to keep the event loop free.
"""

from __future__ import annotations

import asyncio
import fcntl
import json
import logging
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from fontsense.store.base import Document, StoreError, TransactionFn, T, add_clamped

logger = logging.getLogger(__name__)


class JsonFileDocumentStore:
    def __init__(self, data_dir: Path | str) -> None:
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, collection: str) -> asyncio.Lock:
        lock = self._locks.get(collection)
        if lock is None:
            lock = self._locks[collection] = asyncio.Lock()
        return lock

    def _path(self, collection: str) -> Path:
        return self.data_dir / f"{collection}.json"

    async def _run(self, collection: str, fn, *args):
        async with self._lock(collection):
            return await asyncio.to_thread(fn, collection, *args)

    async def get(self, collection: str, key: str) -> Document | None:
        return await self._run(collection, self._get, key)

    async def set(self, collection: str, key: str, doc: Document, *, merge: bool = False) -> None:
        await self._run(collection, self._set, key, doc, merge)

    async def transaction(self, collection: str, key: str, fn: TransactionFn[T]) -> T:
        return await self._run(collection, self._transaction, key, fn)

    async def increment(
        self, collection: str, key: str, field: str, delta: int, *, floor: int | None = None,
    ) -> None:
        await self._run(collection, self._increment, key, field, delta, floor)

    async def query(self, collection: str, **equals: Any) -> list[Document]:
        data = await self._run(collection, self._read_all)
        return [doc for doc in data.values() if all(doc.get(k) == v for k, v in equals.items())]

    # Blocking halves, called in a worker thread

    def _get(self, collection: str, key: str) -> Document | None:
        with self._exclusive(collection):
            return self._load(collection).get(key)

    def _read_all(self, collection: str) -> dict[str, Document]:
        with self._exclusive(collection):
            return self._load(collection)

    def _set(self, collection: str, key: str, doc: Document, merge: bool) -> None:
        with self._exclusive(collection):
            data = self._load(collection)
            if merge and key in data:
                data[key].update(doc)
            else:
                data[key] = doc
            self._save(collection, data)

    def _transaction(self, collection: str, key: str, fn: TransactionFn[T]) -> T:
        with self._exclusive(collection):
            data = self._load(collection)
            new_doc, result = fn(data.get(key))
            if new_doc is not None:
                data[key] = new_doc
                self._save(collection, data)
            return result

    def _increment(self, collection: str, key: str, field: str, delta: int, floor: int | None) -> None:
        with self._exclusive(collection):
            data = self._load(collection)
            doc = data.setdefault(key, {})
            doc[field] = add_clamped(doc.get(field, 0), delta, floor)
            self._save(collection, data)

    @contextmanager
    def _exclusive(self, collection: str) -> Iterator[None]:
        lock_path = self.data_dir / f"{collection}.lock"
        try:
            handle = open(lock_path, "a+b")
        except OSError as e:
            raise StoreError(f"cannot open lock {lock_path}: {e}") from e
        with handle:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)

    def _load(self, collection: str) -> dict[str, Document]:
        path = self._path(collection)
        if not path.exists():
            return {}
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"cannot read {path}: {e}") from e

    def _save(self, collection: str, data: dict[str, Document]) -> None:
        path = self._path(collection)
        tmp_name = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=self.data_dir,
                prefix=f".{collection}.", suffix=".tmp", delete=False,
            ) as f:
                tmp_name = f.name
                json.dump(data, f, indent=2, ensure_ascii=False, default=str)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StoreError(f"cannot write {path}: {e}") from e
        logger.debug("Saved %d documents to %s", len(data), path)
