"""Accumulator returned by one pipeline run."""

from __future__ import annotations

from pydantic import BaseModel, Field

from fontsense.models.analysis import FontAnalysis, ReconciledFacts
from fontsense.models.facts import ParsedFontFacts, VisualMetrics
from fontsense.models.taxonomy import ConfidenceBand, JobOutcome, UploadState


class PipelineResult(BaseModel):
    """Owned by exactly one run; treat as read-only once returned."""

    processing_id: str | None = None
    filename: str = ""
    parsed_data: ParsedFontFacts | None = None
    visual_metrics: VisualMetrics | None = None
    visual_analysis: FontAnalysis | None = None
    web_enrichment: ReconciledFacts | None = None
    enriched_analysis: FontAnalysis | None = None
    description: str | None = None
    is_valid: bool = False
    confidence: float = 0.0
    confidence_band: ConfidenceBand | None = None
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    upload_state: UploadState = UploadState.QUEUED
    job_outcome: JobOutcome | None = None
    family_id: str | None = None
    processing_time_ms: float = 0.0

    @property
    def final_analysis(self) -> FontAnalysis | None:
        return self.enriched_analysis or self.visual_analysis
