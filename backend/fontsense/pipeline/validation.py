"""Validation boundary: raw model JSON in, tagged AnalysisOutcome out.

Two tiers of findings:

* errors block the result (``is_valid=False``) and must keep it from being
  persisted as authoritative;
* warnings are surfaced for observability only.

Sanity rules are independent heuristics over an already-validated analysis and
only ever produce warnings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from fontsense.config import get_settings
from fontsense.models.analysis import (
    AnalysisOk,
    AnalysisOutcome,
    FontAnalysis,
    HistoricalContext,
    Person,
    SchemaInvalid,
)
from fontsense.models.facts import ParsedFontFacts, VisualMetrics
from fontsense.models.taxonomy import (
    ConfidenceBand,
    Mood,
    ScriptTag,
    SerifType,
    StylePrimary,
    Substyle,
    UseCase,
    WarningTag,
    is_valid_mood,
    is_valid_script_tag,
    is_valid_serif_type,
    is_valid_style_primary,
    is_valid_substyle,
    is_valid_substyle_for,
    is_valid_use_case,
    is_valid_warning_tag,
    normalize_token,
)

logger = logging.getLogger(__name__)

# Spellings models commonly use for a primary style
_STYLE_ALIASES = {
    "sans_serif": "sans",
    "sansserif": "sans",
    "monospace": "mono",
    "monospaced": "mono",
    "slab_serif": "slab",
    "handwritten": "script",
    "gothic": "blackletter",
    "symbol": "icon",
}

# Optional array fields; anything else in their place is dropped with a warning
_OPTIONAL_LISTS = ("negative_tags", "warnings", "people")

BODY_X_HEIGHT_MIN = 0.4
BODY_X_HEIGHT_MAX = 0.7


@dataclass
class ValidationResult:
    is_valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _style_token(value: object) -> str:
    token = normalize_token(value)
    return _STYLE_ALIASES.get(token, token)


def _as_item(raw: Any) -> dict | None:
    """Accept ``{"value": ...}`` objects and bare strings."""
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str) and raw.strip():
        return {"value": raw}
    return None


def _evidence(item: dict) -> Any:
    if "evidence_keys" in item:
        return item["evidence_keys"]
    return item.get("evidence")


def _valid_confidence(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and 0.0 <= value <= 1.0


def _check_confidence(label: str, item: dict, warnings: list[str]) -> None:
    if "confidence" not in item or item["confidence"] is None:
        warnings.append(f"{label} missing confidence score")
    elif not _valid_confidence(item["confidence"]):
        warnings.append(f"{label} has invalid confidence: {item['confidence']!r}")


def _check_list(name: str, label: str, raw: dict, is_valid, errors: list[str], warnings: list[str]) -> None:
    entries = raw.get(name)
    if not isinstance(entries, list):
        errors.append(f"Missing or invalid {name} array")
        return
    for i, entry in enumerate(entries):
        item = _as_item(entry)
        if item is None or not item.get("value"):
            errors.append(f"{label} at index {i} missing value")
            continue
        if not is_valid(item["value"]):
            warnings.append(f"Invalid {label.lower()}: {item['value']}")
        _check_confidence(f"{label} {item['value']}", item, warnings)


def validate(raw: Any) -> ValidationResult:
    """Structural and taxonomic validation of one raw model result."""
    errors: list[str] = []
    warnings: list[str] = []

    if not isinstance(raw, dict):
        errors.append("Result is not an object")
        return ValidationResult(False, errors, warnings)

    primary = _as_item(raw.get("style_primary"))
    style_value = primary.get("value") if primary else None
    if not style_value:
        errors.append("Missing style_primary.value")
    elif not is_valid_style_primary(_style_token(style_value)):
        errors.append(f"Invalid classification: {style_value}")

    if primary is not None:
        _check_confidence("style_primary", primary, warnings)
        if not isinstance(_evidence(primary), list):
            warnings.append("style_primary missing evidence array")

    substyle = _as_item(raw.get("substyle"))
    if substyle and substyle.get("value"):
        value = substyle["value"]
        if not is_valid_substyle(value):
            warnings.append(f"Invalid substyle: {value}")
        elif style_value and is_valid_style_primary(_style_token(style_value)):
            if not is_valid_substyle_for(_style_token(style_value), value):
                warnings.append(f"Substyle {value} may not be valid for {style_value}")

    _check_list("moods", "Mood", raw, is_valid_mood, errors, warnings)
    _check_list("use_cases", "Use case", raw, is_valid_use_case, errors, warnings)

    serif_type = _as_item(raw.get("serif_type"))
    if serif_type and serif_type.get("value") and not is_valid_serif_type(serif_type["value"]):
        warnings.append(f"Invalid serif type: {serif_type['value']}")

    script = _as_item(raw.get("script_primary"))
    if script and script.get("value") and not is_valid_script_tag(script["value"]):
        warnings.append(f"Invalid script tag: {script['value']}")

    for name in _OPTIONAL_LISTS:
        if raw.get(name) is not None and not isinstance(raw[name], list):
            warnings.append(f"{name} is not an array, ignored")

    tags = raw.get("warnings")
    if isinstance(tags, list):
        for tag in tags:
            if not is_valid_warning_tag(tag):
                warnings.append(f"Invalid warning tag: {tag}")

    people = raw.get("people")
    if isinstance(people, list):
        for i, person in enumerate(people):
            try:
                Person.model_validate(person)
            except ValidationError:
                warnings.append(f"Person at index {i} is malformed, ignored")

    return ValidationResult(not errors, errors, warnings)


def _confidence_or_none(value: Any) -> float | None:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return None
    return min(1.0, max(0.0, float(value)))


def _build_item(item: dict, value: Any) -> dict[str, Any]:
    evidence = _evidence(item)
    return {
        "value": value,
        "confidence": _confidence_or_none(item.get("confidence")),
        "evidence_keys": [str(e) for e in evidence] if isinstance(evidence, list) else [],
    }


def _enum_item(raw: Any, enum_cls, token=normalize_token) -> dict[str, Any] | None:
    item = _as_item(raw)
    if not item or not item.get("value"):
        return None
    try:
        member = enum_cls(token(item["value"]))
    except ValueError:
        return None
    return _build_item(item, member)


def _enum_items(raw: Any, enum_cls) -> list[dict[str, Any]]:
    items = []
    for entry in raw if isinstance(raw, list) else []:
        built = _enum_item(entry, enum_cls)
        if built is not None:
            items.append(built)
    return items


def _list(raw: dict, name: str) -> list:
    value = raw.get(name)
    return value if isinstance(value, list) else []


def _script_token(value: object) -> str:
    return value.strip() if isinstance(value, str) else ""


def to_analysis(raw: dict, *, model_id: str = "") -> FontAnalysis:
    """Build a FontAnalysis from a result that passed :func:`validate`.

    Out-of-taxonomy secondary values are dropped; confidences are clamped to
    [0, 1]. Raises ``ValueError`` if the primary style is unusable.
    """
    primary = _enum_item(raw.get("style_primary"), StylePrimary, _style_token)
    if primary is None:
        raise ValueError("style_primary is missing or outside the taxonomy")

    people = []
    for person in _list(raw, "people"):
        try:
            people.append(Person.model_validate(person))
        except ValidationError:
            continue

    history = None
    if isinstance(raw.get("historical_context"), dict):
        try:
            history = HistoricalContext.model_validate(raw["historical_context"])
        except ValidationError:
            history = None

    tags = []
    for tag in _list(raw, "warnings"):
        if is_valid_warning_tag(tag):
            member = WarningTag(normalize_token(tag))
            if member not in tags:
                tags.append(member)

    return FontAnalysis(
        style_primary=primary,
        substyle=_enum_item(raw.get("substyle"), Substyle),
        moods=_enum_items(raw.get("moods"), Mood),
        use_cases=_enum_items(raw.get("use_cases"), UseCase),
        negative_tags=[t for t in _list(raw, "negative_tags") if isinstance(t, str)],
        warnings=tags,
        serif_type=_enum_item(raw.get("serif_type"), SerifType),
        script_primary=_enum_item(raw.get("script_primary"), ScriptTag, _script_token),
        people=people,
        historical_context=history,
        model_id=model_id,
    )


def evaluate(raw: Any, *, model_id: str = "") -> AnalysisOutcome:
    """Validate raw model output and convert it to a typed outcome.

    Non-object payloads are fatal; missing or invalid required fields are
    recoverable (a different model may do better).
    """
    result = validate(raw)
    if not isinstance(raw, dict):
        return SchemaInvalid(errors=result.errors, warnings=result.warnings, fatal=True)
    if not result.is_valid:
        logger.info("Model output from %s failed validation: %s", model_id or "unknown model", result.errors)
        return SchemaInvalid(errors=result.errors, warnings=result.warnings)
    try:
        analysis = to_analysis(raw, model_id=model_id)
    except (ValueError, TypeError, ValidationError) as e:
        return SchemaInvalid(errors=[str(e)], warnings=result.warnings)
    return AnalysisOk(analysis=analysis, warnings=result.warnings)


def _has_use_case(analysis: FontAnalysis, use_case: UseCase) -> bool:
    return any(item.value == use_case for item in analysis.use_cases)


def _has_sans_evidence(analysis: FontAnalysis, metrics: VisualMetrics | None) -> bool:
    keys = [k.lower().replace(" ", "") for k in analysis.style_primary.evidence_keys]
    if any("serif_detected=false" in k or "sans" in k for k in keys):
        return True
    return metrics is not None and metrics.serif_detected is False and "metrics.serif_detected" in keys


def apply_sanity_rules(
    facts: ParsedFontFacts | None,
    metrics: VisualMetrics | None,
    analysis: FontAnalysis,
) -> ValidationResult:
    """Heuristic consistency checks. Warnings only; never invalidates."""
    warnings: list[str] = []
    style = analysis.style_primary.value

    if _has_use_case(analysis, UseCase.UI) and style in (StylePrimary.SERIF, StylePrimary.SLAB):
        if not _has_sans_evidence(analysis, metrics):
            warnings.append("UI use-case typically requires sans-serif fonts")

    if _has_use_case(analysis, UseCase.BODY_TEXT) and metrics is not None:
        ratio = metrics.x_height_ratio
        if ratio is not None and not (BODY_X_HEIGHT_MIN <= ratio <= BODY_X_HEIGHT_MAX):
            warnings.append(f"Body text use-case with unusual x-height ratio: {ratio:.3f}")

    if _has_use_case(analysis, UseCase.CODE) and style != StylePrimary.MONO:
        if facts is not None and not facts.is_monospace:
            warnings.append("Code use-case on a proportional font")

    if _has_use_case(analysis, UseCase.VARIABLE_EXPRESSIVE) and facts is not None and not facts.is_variable:
        warnings.append("variable_expressive use-case on a static font")

    return ValidationResult(True, [], warnings)


def calculate_confidence(analysis: FontAnalysis) -> float:
    """Mean of every confidence present on style primary, moods and use-cases; 0 if none."""
    scores = [analysis.style_primary.confidence]
    scores.extend(m.confidence for m in analysis.moods)
    scores.extend(u.confidence for u in analysis.use_cases)
    present = [s for s in scores if s is not None]
    return sum(present) / len(present) if present else 0.0


def confidence_band(value: float, thresholds: tuple[float, float, float] | None = None) -> ConfidenceBand:
    t1, t2, t3 = thresholds or get_settings().band_thresholds
    if value <= t1:
        return ConfidenceBand.LOW
    if value <= t2:
        return ConfidenceBand.MEDIUM
    if value <= t3:
        return ConfidenceBand.HIGH
    return ConfidenceBand.VERY_HIGH
