"""Tests for output validation, sanity rules and confidence aggregation."""

from __future__ import annotations

import json

import pytest

from fontsense.models.analysis import AnalysisOk, SchemaInvalid
from fontsense.models.facts import ParsedFontFacts, VisualMetrics
from fontsense.models.taxonomy import ConfidenceBand, Mood, StylePrimary, Substyle, UseCase
from fontsense.pipeline.metrics import compute_visual_metrics
from fontsense.pipeline.validation import (
    apply_sanity_rules,
    calculate_confidence,
    confidence_band,
    evaluate,
    to_analysis,
    validate,
)
from tests.conftest import analysis_json


def raw(**kwargs) -> dict:
    return json.loads(analysis_json(**kwargs))


def test_complete_result_is_valid():
    result = validate(raw())
    assert result.is_valid
    assert result.errors == []


@pytest.mark.parametrize("payload", [
    {},
    {"style_primary": {}},
    {"style_primary": {"value": ""}},
    {"moods": [], "use_cases": []},
])
def test_missing_style_primary_is_invalid(payload):
    result = validate(payload)
    assert not result.is_valid
    assert "Missing style_primary.value" in result.errors


def test_out_of_taxonomy_primary_is_an_error():
    result = validate(raw(style="gothic_revival"))
    assert not result.is_valid
    assert any("Invalid classification" in e for e in result.errors)


@pytest.mark.parametrize("field", ["moods", "use_cases"])
def test_missing_lists_are_errors(field):
    result = validate(raw(drop=(field,)))
    assert not result.is_valid
    assert f"Missing or invalid {field} array" in result.errors


def test_list_entry_without_value_is_an_error():
    payload = raw()
    payload["moods"].append({"confidence": 0.5})
    result = validate(payload)
    assert not result.is_valid
    assert "Mood at index 2 missing value" in result.errors


def test_non_object_result_is_invalid():
    assert not validate(["sans"]).is_valid
    assert not validate(None).is_valid


def test_secondary_problems_are_warnings_only():
    payload = raw()
    payload["moods"].append({"value": "mysterious", "confidence": 0.5, "evidence_keys": []})
    payload["use_cases"][0]["confidence"] = 1.7
    payload["serif_type"] = {"value": "wobbly"}
    payload["script_primary"] = {"value": "Klingon"}
    payload["warnings"] = ["not_a_tag"]
    del payload["style_primary"]["evidence_keys"]

    result = validate(payload)
    assert result.is_valid
    joined = " | ".join(result.warnings)
    assert "Invalid mood: mysterious" in joined
    assert "invalid confidence" in joined
    assert "Invalid serif type" in joined
    assert "Invalid script tag" in joined
    assert "Invalid warning tag" in joined
    assert "style_primary missing evidence array" in joined


def test_substyle_from_another_family_is_a_warning():
    result = validate(raw(style="serif", substyle="geometric"))
    assert result.is_valid
    assert any("may not be valid for serif" in w for w in result.warnings)


def test_tokens_are_normalized():
    payload = raw(style="Sans-Serif", substyle="Neo Grotesque", moods=["Friendly"], use_cases=["Body Text"])
    result = validate(payload)
    assert result.is_valid, result.errors
    analysis = to_analysis(payload)
    assert analysis.style_primary.value == StylePrimary.SANS
    assert analysis.substyle.value == Substyle.NEO_GROTESQUE
    assert analysis.moods[0].value == Mood.FRIENDLY
    assert analysis.use_cases[0].value == UseCase.BODY_TEXT


def test_to_analysis_drops_unknown_values_and_clamps_confidence():
    payload = raw()
    payload["moods"].append({"value": "mysterious", "confidence": 0.5})
    payload["use_cases"][0]["confidence"] = 1.7
    analysis = to_analysis(payload, model_id="model-a")
    assert [m.value for m in analysis.moods] == [Mood.NEUTRAL, Mood.TECHNICAL]
    assert analysis.use_cases[0].confidence == 1.0
    assert analysis.model_id == "model-a"


def test_evaluate_variants():
    ok = evaluate(raw(), model_id="m")
    assert isinstance(ok, AnalysisOk)
    assert ok.analysis.style_primary.value == StylePrimary.SANS

    recoverable = evaluate(raw(drop=("moods",)))
    assert isinstance(recoverable, SchemaInvalid)
    assert not recoverable.fatal

    fatal = evaluate("not an object")
    assert isinstance(fatal, SchemaInvalid)
    assert fatal.fatal


@pytest.mark.parametrize("field, value", [
    ("warnings", 1),
    ("people", "Jane Doe"),
    ("negative_tags", {"not": "decorative"}),
])
def test_scalar_optional_arrays_are_dropped_with_a_warning(field, value):
    payload = raw()
    payload[field] = value
    result = validate(payload)
    assert result.is_valid
    assert f"{field} is not an array, ignored" in result.warnings

    outcome = evaluate(payload)
    assert isinstance(outcome, AnalysisOk)
    assert getattr(outcome.analysis, field) == []


def test_scalar_list_entries_in_moods_are_skipped():
    payload = raw()
    payload["moods"].append({"value": ["neutral"], "confidence": 0.5})
    outcome = evaluate(payload)
    assert isinstance(outcome, AnalysisOk)
    assert [m.value for m in outcome.analysis.moods] == [Mood.NEUTRAL, Mood.TECHNICAL]


def test_confidence_is_mean_of_present_scores():
    payload = raw(moods=["neutral"], use_cases=["ui"])
    payload["style_primary"]["confidence"] = 0.9
    payload["moods"][0]["confidence"] = 0.6
    del payload["use_cases"][0]["confidence"]
    analysis = to_analysis(payload)
    assert calculate_confidence(analysis) == pytest.approx(0.75)


def test_confidence_is_zero_without_scores():
    payload = raw(moods=["neutral"], use_cases=["ui"])
    for item in (payload["style_primary"], payload["moods"][0], payload["use_cases"][0]):
        del item["confidence"]
    assert calculate_confidence(to_analysis(payload)) == 0.0


@pytest.mark.parametrize("value, band", [
    (0.0, ConfidenceBand.LOW),
    (0.2, ConfidenceBand.LOW),
    (0.21, ConfidenceBand.MEDIUM),
    (0.6, ConfidenceBand.MEDIUM),
    (0.61, ConfidenceBand.HIGH),
    (0.85, ConfidenceBand.HIGH),
    (0.86, ConfidenceBand.VERY_HIGH),
    (1.0, ConfidenceBand.VERY_HIGH),
])
def test_confidence_bands(value, band):
    assert confidence_band(value, (0.2, 0.6, 0.85)) == band


def test_confidence_band_uses_configured_thresholds(monkeypatch):
    from fontsense.config import refresh_settings

    monkeypatch.setenv("FONTSENSE_CONFIDENCE_BAND_THRESHOLDS", "0.1,0.3,0.5")
    refresh_settings()
    assert confidence_band(0.4) == ConfidenceBand.HIGH
    assert confidence_band(0.55) == ConfidenceBand.VERY_HIGH


def test_sanity_ui_on_serif_without_sans_evidence():
    payload = raw(style="serif", substyle="oldstyle", use_cases=["ui"])
    payload["style_primary"]["evidence_keys"] = ["metrics.contrast_index"]
    result = apply_sanity_rules(None, None, to_analysis(payload))
    assert result.is_valid
    assert "UI use-case typically requires sans-serif fonts" in result.warnings


def test_sanity_ui_on_serif_with_explicit_evidence_passes():
    payload = raw(style="serif", substyle="oldstyle", use_cases=["ui"])
    payload["style_primary"]["evidence_keys"] = ["serif_detected=false"]
    assert apply_sanity_rules(None, None, to_analysis(payload)).warnings == []


def test_sanity_body_text_x_height():
    analysis = to_analysis(raw(use_cases=["body_text"]))
    low = apply_sanity_rules(None, VisualMetrics(x_height_ratio=0.3), analysis)
    normal = apply_sanity_rules(None, VisualMetrics(x_height_ratio=0.5), analysis)
    assert any("unusual x-height" in w for w in low.warnings)
    assert normal.warnings == []


def test_sanity_code_and_variable_rules():
    facts = ParsedFontFacts(family_name="Static", is_monospace=False, is_variable=False)
    analysis = to_analysis(raw(use_cases=["code", "variable_expressive"]))
    warnings = apply_sanity_rules(facts, None, analysis).warnings
    assert "Code use-case on a proportional font" in warnings
    assert "variable_expressive use-case on a static font" in warnings

    mono = ParsedFontFacts(family_name="Mono", is_monospace=True, is_variable=True)
    assert apply_sanity_rules(mono, None, analysis).warnings == []


def test_sanity_unknown_serif_detection_is_not_sans_evidence():
    facts = ParsedFontFacts(family_name="Unclassified", x_height=500)
    analysis = to_analysis(raw(style="serif", substyle="oldstyle", use_cases=["ui"]))
    result = apply_sanity_rules(facts, compute_visual_metrics(facts), analysis)
    assert "UI use-case typically requires sans-serif fonts" in result.warnings

    sans_hinted = ParsedFontFacts(family_name="Hinted", x_height=500, classification_hint=StylePrimary.SANS)
    result = apply_sanity_rules(sans_hinted, compute_visual_metrics(sans_hinted), analysis)
    assert result.warnings == []
