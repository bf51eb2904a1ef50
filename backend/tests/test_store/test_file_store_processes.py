"""JSON-file store shared by several worker processes."""

from __future__ import annotations

import asyncio
import multiprocessing
from concurrent.futures import ProcessPoolExecutor

from fontsense.models.ingest import RATE_LIMIT_COLLECTION, RATE_LIMIT_KEY
from fontsense.pipeline.admission import AdmissionController
from fontsense.store.file import JsonFileDocumentStore

WORKERS = 4


def _bump_counter(data_dir: str, rounds: int) -> int:
    def bump(doc):
        n = (doc or {}).get("n", 0) + 1
        return {"n": n}, n

    async def run():
        store = JsonFileDocumentStore(data_dir)
        for _ in range(rounds):
            await store.transaction("counters", "shared", bump)
        return rounds

    return asyncio.run(run())


def _admission_cycles(data_dir: str, cycles: int) -> tuple[int, int]:
    async def run():
        admission = AdmissionController(JsonFileDocumentStore(data_dir), limit=1)
        acquired = overshoot = 0
        for _ in range(cycles):
            if not await admission.try_acquire():
                continue
            acquired += 1
            if await admission.active_count() > 1:
                overshoot += 1
            await admission.release()
        return acquired, overshoot

    return asyncio.run(run())


def _pool() -> ProcessPoolExecutor:
    return ProcessPoolExecutor(max_workers=WORKERS, mp_context=multiprocessing.get_context("spawn"))


def test_transactions_from_several_processes_lose_no_updates(tmp_path):
    with _pool() as pool:
        done = list(pool.map(_bump_counter, [str(tmp_path)] * WORKERS, [50] * WORKERS))

    assert sum(done) == WORKERS * 50
    store = JsonFileDocumentStore(tmp_path)
    assert asyncio.run(store.get("counters", "shared")) == {"n": WORKERS * 50}
    assert list(tmp_path.glob("*.tmp")) == []


def test_admission_counter_shared_across_processes(tmp_path):
    with _pool() as pool:
        results = list(pool.map(_admission_cycles, [str(tmp_path)] * WORKERS, [50] * WORKERS))

    acquired = sum(a for a, _ in results)
    overshoot = sum(o for _, o in results)
    assert acquired > 0
    assert overshoot == 0

    doc = asyncio.run(JsonFileDocumentStore(tmp_path).get(RATE_LIMIT_COLLECTION, RATE_LIMIT_KEY))
    assert doc["active_count"] == 0
