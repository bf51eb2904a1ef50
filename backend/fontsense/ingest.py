"""Upload entry point: hashing, quarantine and duplicate short-circuit.

Accepted files get a ``queued`` ingest record and are handed to the
pipeline under that record's processing id.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import PurePath

from fontsense.config import get_settings
from fontsense.models.result import PipelineResult
from fontsense.models.taxonomy import JobOutcome, UploadState, WarningTag
from fontsense.pipeline.orchestrator import FontPipeline
from fontsense.store.ingest import IngestRepository

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = frozenset({".ttf", ".otf", ".woff", ".woff2", ".eot", ".ttc"})
QUICK_HASH_BYTES = 2 * 1024 * 1024


def content_hash(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def quick_hash(data: bytes) -> str:
    """SHA-256 of the first 2 MiB plus the total length."""
    digest = hashlib.sha256(data[:QUICK_HASH_BYTES])
    digest.update(str(len(data)).encode("ascii"))
    return digest.hexdigest()


def quarantine_reason(filename: str, size: int, max_bytes: int) -> str | None:
    suffix = PurePath(filename).suffix.lower()
    if suffix not in ALLOWED_EXTENSIONS:
        return f"unsupported file type {suffix or '(none)'}"
    if size == 0:
        return "empty file"
    if size > max_bytes:
        return f"file too large ({size} bytes, limit {max_bytes})"
    return None


class FontIngestService:
    def __init__(self, pipeline: FontPipeline, ingests: IngestRepository) -> None:
        self.pipeline = pipeline
        self.ingests = ingests

    async def ingest(self, owner_id: str, filename: str, data: bytes) -> PipelineResult:
        settings = get_settings()
        full_hash = content_hash(data)
        record = await self.ingests.create(
            owner_id, filename, content_hash=full_hash, quick_hash=quick_hash(data),
        )
        pid = record.processing_id

        reason = quarantine_reason(filename, len(data), settings.max_upload_bytes)
        if reason is not None:
            logger.warning("Quarantining %s: %s", filename, reason)
            await self.ingests.transition(
                pid, UploadState.QUARANTINED,
                job_outcome=JobOutcome.FAILED, error=reason, error_code="quarantined",
            )
            return PipelineResult(
                processing_id=pid,
                filename=filename,
                errors=[f"Quarantined: {reason}"],
                upload_state=UploadState.QUARANTINED,
                job_outcome=JobOutcome.FAILED,
            )

        duplicate = await self.ingests.find_completed_duplicate(owner_id, full_hash)
        if duplicate is not None and duplicate.processing_id != pid:
            logger.info("%s duplicates ingest %s, skipping", filename, duplicate.processing_id)
            await self.ingests.transition(
                pid, UploadState.COMPLETED,
                job_outcome=JobOutcome.SKIPPED_DUPLICATE, family_id=duplicate.family_id,
            )
            return PipelineResult(
                processing_id=pid,
                filename=filename,
                warnings=[f"{WarningTag.DUPLICATE_FONT.value}: same file as {duplicate.processing_id}"],
                upload_state=UploadState.COMPLETED,
                job_outcome=JobOutcome.SKIPPED_DUPLICATE,
                family_id=duplicate.family_id,
                is_valid=duplicate.family_id is not None,
            )

        return await self.pipeline.run(data, filename, processing_id=pid)
