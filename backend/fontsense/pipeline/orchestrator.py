"""Pipeline orchestrator: drives one font through every stage.

Stages are strictly sequential. Only a structural parse failure ends a run
early; every inference stage degrades to a warning. The run always returns a
:class:`PipelineResult`, and ingest-state writes that fail are logged without
aborting the run.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

from fontsense.config import get_settings
from fontsense.models.analysis import (
    AnalysisOk,
    AnalysisOutcome,
    SchemaInvalid,
    ServiceFailure,
    WebEnrichment,
)
from fontsense.models.facts import ParsedFontFacts, utcnow
from fontsense.models.ingest import FAMILY_COLLECTION, new_id
from fontsense.models.result import PipelineResult
from fontsense.models.taxonomy import JobOutcome, UploadState, WarningTag
from fontsense.pipeline.metrics import compute_visual_metrics
from fontsense.pipeline.reconcile import reconcile
from fontsense.pipeline.stages import StageRunner
from fontsense.pipeline.validation import apply_sanity_rules, calculate_confidence, confidence_band
from fontsense.store.base import DocumentStore
from fontsense.store.ingest import IngestRepository

logger = logging.getLogger(__name__)

FontParser = Callable[[bytes, str], ParsedFontFacts | None]


def _describe(outcome: AnalysisOutcome) -> str:
    if isinstance(outcome, ServiceFailure):
        return f"{outcome.failure.value}: {outcome.message}" if outcome.message else outcome.failure.value
    if isinstance(outcome, SchemaInvalid):
        return "; ".join(outcome.errors) or "invalid output"
    return "ok"


class FontPipeline:
    """Runs the full stage sequence for one font file per :meth:`run` call."""

    def __init__(
        self,
        parser: FontParser,
        stages: StageRunner,
        store: DocumentStore | None = None,
    ) -> None:
        self.parser = parser
        self.stages = stages
        self.store = store
        self.ingests = IngestRepository(store) if store is not None else None

    async def run(self, data: bytes, filename: str, *, processing_id: str | None = None) -> PipelineResult:
        start = time.perf_counter()
        result = PipelineResult(processing_id=processing_id, filename=filename)
        logger.info("[%s] Starting font pipeline", filename)
        try:
            await self._run(result, data)
        except Exception as e:
            logger.exception("[%s] Pipeline error", filename)
            result.errors.append(f"Pipeline error: {e}")
            result.is_valid = False
            result.job_outcome = JobOutcome.FAILED
            await self._advance(
                result, UploadState.ERROR,
                job_outcome=JobOutcome.FAILED, error=str(e), error_code="pipeline_exception",
            )
        result.processing_time_ms = round((time.perf_counter() - start) * 1000, 1)
        logger.info(
            "[%s] Pipeline finished: state=%s outcome=%s valid=%s confidence=%.2f (%.0fms)",
            filename, result.upload_state.value,
            result.job_outcome.value if result.job_outcome else "none",
            result.is_valid, result.confidence, result.processing_time_ms,
        )
        return result

    async def _advance(self, result: PipelineResult, target: UploadState, **fields) -> None:
        result.upload_state = target
        if self.ingests is not None and result.processing_id:
            await self.ingests.transition(result.processing_id, target, **fields)

    async def _run(self, result: PipelineResult, data: bytes) -> None:
        filename = result.filename

        # 1. Parse
        await self._advance(result, UploadState.PARSING)
        facts = await self._parse(data, filename)
        if facts is None:
            result.errors.append("Failed to parse font file")
            result.job_outcome = JobOutcome.FAILED
            await self._advance(
                result, UploadState.ERROR,
                job_outcome=JobOutcome.FAILED, error="Failed to parse font file", error_code="parse_failed",
            )
            return
        result.parsed_data = facts
        await self._advance(result, UploadState.PARSED)

        # 2. Visual metrics
        try:
            result.visual_metrics = compute_visual_metrics(facts)
        except Exception as e:
            logger.warning("[%s] Visual metrics failed: %s", filename, e)
            result.warnings.append(f"Visual metrics unavailable: {e}")

        # 3. Visual classification
        await self._advance(result, UploadState.AI_CLASSIFYING)
        visual = await self.stages.visual_analysis(facts, result.visual_metrics)
        if isinstance(visual, AnalysisOk):
            result.visual_analysis = visual.analysis
            result.warnings.extend(visual.warnings)
        else:
            result.warnings.append(f"Visual analysis failed ({_describe(visual)}), proceeding without it")
            await self._advance(result, UploadState.AI_RETRYING)

        # 4. Web enrichment
        missing = facts.missing_provenance_fields()
        if get_settings().web_enrichment_enabled and missing:
            await self._advance(result, UploadState.WEB_ENRICHING)
            await self._enrich_from_web(result, facts)
        else:
            logger.info("[%s] Web enrichment skipped", filename)

        # 5. Enriched classification, at most one fallback model
        enriched = await self.stages.enriched_analysis(
            facts, result.visual_metrics, result.visual_analysis, result.web_enrichment,
        )
        if isinstance(enriched, SchemaInvalid) and not enriched.fatal:
            logger.warning("[%s] Enriched analysis invalid, trying fallback model: %s", filename, enriched.errors)
            enriched = await self.stages.enriched_analysis(
                facts, result.visual_metrics, result.visual_analysis, result.web_enrichment, fallback=True,
            )
        if isinstance(enriched, AnalysisOk):
            result.enriched_analysis = enriched.analysis
            result.warnings.extend(enriched.warnings)
        else:
            if isinstance(enriched, SchemaInvalid):
                result.errors.extend(f"enriched_analysis: {err}" for err in enriched.errors)
            result.warnings.append(f"Enriched analysis failed ({_describe(enriched)}), using visual analysis only")
        await self._advance(result, UploadState.ENRICHED)

        # 6. Summary
        final = result.final_analysis
        if final is not None:
            summary = await self.stages.summary(facts, final)
            if isinstance(summary, str):
                result.description = summary
            else:
                result.warnings.append(f"Description generation failed ({_describe(summary)})")

        # 7. Validation, sanity rules, confidence
        await self._advance(result, UploadState.INDEXING)
        if final is None:
            result.errors.append("No analysis result available")
            result.is_valid = False
            result.job_outcome = JobOutcome.FAILED
            await self._advance(
                result, UploadState.FAILED,
                job_outcome=JobOutcome.FAILED, error="No analysis result available", error_code="no_analysis",
            )
            return

        sanity = apply_sanity_rules(facts, result.visual_metrics, final)
        result.warnings.extend(sanity.warnings)
        result.confidence = calculate_confidence(final)
        result.confidence_band = confidence_band(result.confidence)
        final.confidence_band = result.confidence_band
        result.is_valid = not result.errors
        result.job_outcome = JobOutcome.SUCCESS if result.is_valid else JobOutcome.PARTIAL

        if result.is_valid:
            result.family_id = await self._persist_family(result)
            if result.family_id:
                await self._advance(result, UploadState.INDEXED, family_id=result.family_id)
        await self._advance(result, UploadState.COMPLETED, job_outcome=result.job_outcome)

    async def _parse(self, data: bytes, filename: str) -> ParsedFontFacts | None:
        try:
            return await asyncio.to_thread(self.parser, data, filename)
        except Exception as e:
            logger.error("[%s] Parser raised: %s", filename, e)
            return None

    async def _enrich_from_web(self, result: PipelineResult, facts: ParsedFontFacts) -> None:
        outcome = await self.stages.web_enrichment(facts)
        if not isinstance(outcome, WebEnrichment):
            result.warnings.append(f"{WarningTag.PARTIAL_ENRICHMENT.value}: web enrichment failed ({_describe(outcome)})")
            return
        reconciled = reconcile(facts, outcome)
        result.web_enrichment = reconciled
        result.warnings.extend(tag.value for tag in reconciled.warnings)
        result.warnings.extend(f"Contradiction: {c}" for c in reconciled.contradictions)

    async def _persist_family(self, result: PipelineResult) -> str | None:
        if self.store is None:
            return None
        family_id = new_id()
        facts = result.parsed_data
        analysis = result.final_analysis
        doc = {
            "family_id": family_id,
            "family_name": facts.family_name if facts else result.filename,
            "processing_id": result.processing_id,
            "parsed_data": facts.model_dump(mode="json") if facts else None,
            "visual_metrics": result.visual_metrics.model_dump(mode="json") if result.visual_metrics else None,
            "analysis": analysis.model_dump(mode="json") if analysis else None,
            "web_enrichment": result.web_enrichment.model_dump(mode="json") if result.web_enrichment else None,
            "description": result.description,
            "confidence": result.confidence,
            "confidence_band": result.confidence_band.value if result.confidence_band else None,
            "created_at": utcnow().isoformat(),
        }
        try:
            await self.store.set(FAMILY_COLLECTION, family_id, doc)
        except Exception as e:
            logger.error("[%s] Failed to persist family: %s", result.filename, e)
            result.warnings.append("Family record could not be persisted")
            return None
        logger.info("[%s] Persisted family %s", result.filename, family_id)
        return family_id
