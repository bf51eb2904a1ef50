"""Ingest-record repository: creation, duplicate lookup and guarded state updates."""

from __future__ import annotations

import logging

from fontsense.models.facts import utcnow
from fontsense.models.ingest import INGEST_COLLECTION, IngestRecord
from fontsense.models.taxonomy import JobOutcome, UploadState
from fontsense.pipeline.state import InvalidTransition, check_transition
from fontsense.store.base import Document, DocumentStore

logger = logging.getLogger(__name__)


class IngestRepository:
    """Persists :class:`IngestRecord` documents keyed by processing id."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def create(
        self,
        owner_id: str,
        original_name: str,
        *,
        content_hash: str | None = None,
        quick_hash: str | None = None,
    ) -> IngestRecord:
        record = IngestRecord(
            owner_id=owner_id,
            original_name=original_name,
            content_hash=content_hash,
            quick_hash=quick_hash,
        )
        await self.store.set(INGEST_COLLECTION, record.processing_id, record.model_dump(mode="json"))
        logger.info("Registered ingest %s for %s", record.processing_id, original_name)
        return record

    async def get(self, processing_id: str) -> IngestRecord | None:
        doc = await self.store.get(INGEST_COLLECTION, processing_id)
        return IngestRecord.model_validate(doc) if doc is not None else None

    async def find_completed_duplicate(self, owner_id: str, content_hash: str) -> IngestRecord | None:
        docs = await self.store.query(
            INGEST_COLLECTION,
            owner_id=owner_id,
            content_hash=content_hash,
            upload_state=UploadState.COMPLETED.value,
        )
        records = [IngestRecord.model_validate(d) for d in docs]
        records = [r for r in records if r.job_outcome != JobOutcome.SKIPPED_DUPLICATE]
        if not records:
            return None
        return min(records, key=lambda r: r.created_at)

    async def transition(
        self,
        processing_id: str,
        target: UploadState,
        *,
        job_outcome: JobOutcome | None = None,
        error: str | None = None,
        error_code: str | None = None,
        family_id: str | None = None,
    ) -> bool:
        """Move a record to ``target``. Returns False when nothing was written.

        Invalid transitions and store failures are logged, never raised.
        """

        def apply(doc: Document | None) -> tuple[Document | None, bool]:
            if doc is None:
                raise KeyError(processing_id)
            record = IngestRecord.model_validate(doc)
            moved = check_transition(record.upload_state, target)
            extra = any(v is not None for v in (job_outcome, error, error_code, family_id))
            if not moved and not extra:
                return None, False
            record.upload_state = target
            if job_outcome is not None:
                record.job_outcome = job_outcome
            if error is not None:
                record.error = error
            if error_code is not None:
                record.error_code = error_code
            if family_id is not None:
                record.family_id = family_id
            record.updated_at = utcnow()
            return record.model_dump(mode="json"), True

        try:
            written = await self.store.transaction(INGEST_COLLECTION, processing_id, apply)
        except InvalidTransition as e:
            logger.warning("Ingest %s: %s", processing_id, e)
            return False
        except KeyError:
            logger.error("Ingest %s: no such record, state %s not persisted", processing_id, target.value)
            return False
        except Exception as e:
            logger.error("Ingest %s: failed to persist state %s: %s", processing_id, target.value, e)
            return False
        if written:
            logger.info("Ingest %s -> %s", processing_id, target.value)
        return written
