"""Stage → model selection, resolved from settings on every call."""

from __future__ import annotations

from fontsense.config import Settings, get_settings

_STAGE_MODEL_FIELD = {
    "visual_analysis": "visual_analysis_model",
    "enriched_analysis": "enriched_analysis_model",
    "enriched_analysis_fallback": "enriched_analysis_fallback_model",
    "web_enrichment": "web_enricher_model",
    "summary": "summary_model",
}


def get_model_for_stage(stage: str, settings: Settings | None = None) -> str:
    settings = settings or get_settings()
    field_name = _STAGE_MODEL_FIELD.get(stage)
    if field_name is None:
        raise KeyError(f"Unknown pipeline stage: {stage}")
    return getattr(settings, field_name)
