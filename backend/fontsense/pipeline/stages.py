"""Inference-calling stages.

Every call goes through the same gate: acquire an admission slot, run the
request under the retry engine, release the slot. Failures come back as
typed outcomes and are never raised to the orchestrator.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable
from typing import Any, Callable

from pydantic import ValidationError

from fontsense.config import get_settings
from fontsense.llm.client import (
    WEB_SEARCH_TOOL,
    InferenceClient,
    InferenceRequest,
    InferenceResponse,
    extract_json,
)
from fontsense.llm.errors import InferenceUnavailable
from fontsense.llm.model_router import get_model_for_stage
from fontsense.llm.prompts import (
    build_enriched_analysis_prompt,
    build_summary_prompt,
    build_visual_analysis_prompt,
    build_web_enrichment_prompt,
    get_system_prompt,
)
from fontsense.models.analysis import (
    AnalysisOutcome,
    FontAnalysis,
    Person,
    ReconciledFacts,
    SchemaInvalid,
    ServiceFailure,
    ServiceFailureKind,
    WebEnrichment,
)
from fontsense.models.facts import ParsedFontFacts, ProvenanceEntry, VisualMetrics
from fontsense.models.taxonomy import LicenseType, SourceType
from fontsense.pipeline.admission import AdmissionController
from fontsense.pipeline.retry import default_should_retry, is_safety_rejection, with_retry
from fontsense.pipeline.validation import evaluate

logger = logging.getLogger(__name__)

_LICENSE_VALUES = {t.value.lower(): t.value for t in LicenseType}


class StageRunner:
    """Builds stage requests and turns their responses into outcomes."""

    def __init__(
        self,
        client: InferenceClient,
        admission: AdmissionController,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self.client = client
        self.admission = admission
        self._sleep = sleep
        self._rng = rng

    async def call(
        self,
        stage: str,
        prompt: str,
        *,
        model: str | None = None,
        system_stage: str | None = None,
        max_tokens: int | None = None,
        tools: list[dict[str, Any]] | None = None,
    ) -> InferenceResponse | ServiceFailure:
        """One gated, retried inference call."""
        settings = get_settings()
        if not settings.inference_enabled:
            return ServiceFailure(ServiceFailureKind.DISABLED, "inference disabled")

        request = InferenceRequest(
            model=model or get_model_for_stage(stage),
            system=get_system_prompt(system_stage or stage),
            prompt=prompt,
            op_name=stage,
            max_tokens=max_tokens or settings.max_output_tokens,
            temperature=settings.temperature,
            tools=tools or [],
        )

        async with self.admission.slot(stage) as acquired:
            if not acquired:
                return ServiceFailure(ServiceFailureKind.NO_SLOT, f"no inference slot for {stage}")
            try:
                response = await with_retry(
                    stage,
                    lambda: self.client.generate(request),
                    sleep=self._sleep,
                    rng=self._rng,
                )
            except InferenceUnavailable as e:
                logger.warning("%s skipped: %s", stage, e)
                return ServiceFailure(ServiceFailureKind.DISABLED, str(e))
            except Exception as e:
                if is_safety_rejection(e):
                    kind = ServiceFailureKind.REJECTED
                elif default_should_retry(e):
                    kind = ServiceFailureKind.EXHAUSTED
                else:
                    kind = ServiceFailureKind.CLIENT_ERROR
                logger.warning("%s failed (%s): %s", stage, kind.value, e)
                return ServiceFailure(kind, str(e))

        if not response.text or not response.text.strip():
            logger.warning("%s returned no text", stage)
            return ServiceFailure(ServiceFailureKind.EMPTY, f"{stage} returned no text")
        return response

    async def _analysis(self, stage: str, prompt: str, *, model: str | None = None) -> AnalysisOutcome:
        model = model or get_model_for_stage(stage)
        response = await self.call(stage, prompt, model=model, system_stage=_system_for(stage))
        if isinstance(response, ServiceFailure):
            return response
        try:
            raw = extract_json(response.text)
        except ValueError as e:
            logger.warning("%s output is not JSON: %s", stage, e)
            return SchemaInvalid(errors=[str(e)], fatal=True)
        return evaluate(raw, model_id=model)

    async def visual_analysis(self, facts: ParsedFontFacts, metrics: VisualMetrics | None) -> AnalysisOutcome:
        logger.info("Visual analysis for %s", facts.family_name)
        return await self._analysis("visual_analysis", build_visual_analysis_prompt(facts, metrics))

    async def enriched_analysis(
        self,
        facts: ParsedFontFacts,
        metrics: VisualMetrics | None,
        visual: FontAnalysis | None,
        web: ReconciledFacts | None = None,
        *,
        fallback: bool = False,
    ) -> AnalysisOutcome:
        stage = "enriched_analysis_fallback" if fallback else "enriched_analysis"
        web_facts = web.model_dump(mode="json", exclude={"provenance"}) if web is not None else None
        prompt = build_enriched_analysis_prompt(facts, metrics, visual, web_facts)
        logger.info("Enriched analysis for %s (%s)", facts.family_name, get_model_for_stage(stage))
        return await self._analysis(stage, prompt)

    async def web_enrichment(self, facts: ParsedFontFacts) -> WebEnrichment | SchemaInvalid | ServiceFailure:
        logger.info("Web enrichment for %s", facts.family_name)
        response = await self.call(
            "web_enrichment",
            build_web_enrichment_prompt(facts),
            tools=[WEB_SEARCH_TOOL],
        )
        if isinstance(response, ServiceFailure):
            return response
        try:
            raw = extract_json(response.text)
        except ValueError as e:
            return SchemaInvalid(errors=[str(e)], fatal=True)
        if not isinstance(raw, dict):
            return SchemaInvalid(errors=["web enrichment result is not an object"], fatal=True)
        try:
            enrichment = WebEnrichment.model_validate(_normalize_web(raw))
        except ValidationError as e:
            logger.warning("Web enrichment for %s is malformed: %s", facts.family_name, e)
            return SchemaInvalid(errors=[f"malformed web enrichment: {e.error_count()} error(s)"])

        citations = [
            ProvenanceEntry(source_type=SourceType.WEB, source_ref=url, method="web_search", confidence=0.5)
            for url in response.citations
        ]
        return enrichment.model_copy(update={"provenance": [*enrichment.provenance, *citations]})

    async def summary(self, facts: ParsedFontFacts, analysis: FontAnalysis) -> str | ServiceFailure:
        response = await self.call(
            "summary",
            build_summary_prompt(facts, analysis),
            max_tokens=get_settings().summary_max_output_tokens,
        )
        if isinstance(response, ServiceFailure):
            return response
        text = response.text.strip()
        try:
            raw = extract_json(text)
        except ValueError:
            return text
        if isinstance(raw, dict) and isinstance(raw.get("description"), str) and raw["description"].strip():
            return raw["description"].strip()
        return text


def _system_for(stage: str) -> str:
    return "enriched_analysis" if stage == "enriched_analysis_fallback" else stage


def _normalize_web(raw: dict) -> dict:
    """Drop empty sections and map free-form license names onto LicenseType."""
    data = {k: v for k, v in raw.items() if v not in (None, "", [], {})}
    for key, value in list(data.items()):
        if isinstance(value, dict):
            data[key] = {k: v for k, v in value.items() if v is not None}
    for key in ("foundry", "designer"):
        if isinstance(data.get(key), dict) and not data[key].get("name"):
            del data[key]
    if isinstance(data.get("people"), list):
        people = []
        for person in data["people"]:
            try:
                people.append(Person.model_validate(person).model_dump())
            except ValidationError:
                continue
        data["people"] = people
    license = data.get("license")
    if isinstance(license, dict):
        token = str(license.get("type", "")).strip().lower().replace("-", "_").replace(" ", "_")
        token = {"apache": "apache_2_0", "apache_2.0": "apache_2_0", "sil_ofl": "ofl", "ofl_1.1": "ofl"}.get(token, token)
        data["license"] = {**license, "type": _LICENSE_VALUES.get(token, LicenseType.UNKNOWN.value)}
    elif license is not None:
        del data["license"]
    return data
