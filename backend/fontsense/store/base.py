"""Document store contract consumed by the pipeline.

Only single-document atomicity is required: ``transaction`` runs a
read-modify-write on one document with compare-and-set semantics.
``increment`` is a blind add, optionally clamped at ``floor``.
"""

from __future__ import annotations

from typing import Any, Callable, Protocol, TypeVar

T = TypeVar("T")

Document = dict[str, Any]
# Receives the current document (or None) and returns (new document or None to skip the write, result)
TransactionFn = Callable[[Document | None], tuple[Document | None, T]]


class StoreError(Exception):
    """Any failure of the backing store."""


def add_clamped(current: Any, delta: int, floor: int | None) -> int:
    value = int(current or 0) + delta
    return value if floor is None else max(floor, value)


class DocumentStore(Protocol):
    async def get(self, collection: str, key: str) -> Document | None: ...

    async def set(self, collection: str, key: str, doc: Document, *, merge: bool = False) -> None: ...

    async def transaction(self, collection: str, key: str, fn: TransactionFn[T]) -> T: ...

    async def increment(
        self, collection: str, key: str, field: str, delta: int, *, floor: int | None = None,
    ) -> None: ...

    async def query(self, collection: str, **equals: Any) -> list[Document]: ...
