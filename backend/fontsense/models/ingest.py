"""Persisted record shapes: ingest lifecycle and the shared rate-limit counter."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from fontsense.models.facts import utcnow
from fontsense.models.taxonomy import JobOutcome, UploadState

INGEST_COLLECTION = "ingests"
FAMILY_COLLECTION = "families"
RATE_LIMIT_COLLECTION = "_rate_limits"
RATE_LIMIT_KEY = "global"


def new_id() -> str:
    return uuid.uuid4().hex


class IngestRecord(BaseModel):
    """One uploaded file, keyed by ``processing_id``."""

    ingest_id: str = Field(default_factory=new_id)
    processing_id: str = Field(default_factory=new_id)
    owner_id: str
    original_name: str
    content_hash: str | None = None
    quick_hash: str | None = None
    upload_state: UploadState = UploadState.QUEUED
    job_outcome: JobOutcome | None = None
    error: str | None = None
    error_code: str | None = None
    family_id: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class RateLimitState(BaseModel):
    active_count: int = 0
    last_updated: datetime = Field(default_factory=utcnow)
