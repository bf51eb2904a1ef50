"""System prompts and user-prompt builders per pipeline stage."""

from __future__ import annotations

import json

from fontsense.models.analysis import FontAnalysis
from fontsense.models.facts import ParsedFontFacts, VisualMetrics
from fontsense.models.taxonomy import (
    STYLE_SUBSTYLE_MAP,
    TAXONOMY_VERSION,
    Mood,
    ScriptTag,
    SerifType,
    UseCase,
    WarningTag,
)


def _values(enum_cls) -> str:
    return ", ".join(m.value for m in enum_cls)


def _substyle_map() -> str:
    return "\n".join(
        f"  - {style.value}: {', '.join(sorted(s.value for s in subs))}"
        for style, subs in STYLE_SUBSTYLE_MAP.items()
    )


_VOCABULARY = f"""CONTROLLED VOCABULARY (taxonomy {TAXONOMY_VERSION}). Use these values verbatim:
- style_primary → allowed substyles:
{_substyle_map()}
- moods: {_values(Mood)}
- use_cases: {_values(UseCase)}
- serif_type: {_values(SerifType)}
- script_primary: {_values(ScriptTag)}
- warnings: {_values(WarningTag)}"""

_OUTPUT_SHAPE = """OUTPUT FORMAT: a single JSON object, no markdown:
{
  "style_primary": {"value": "...", "confidence": 0.0, "evidence_keys": ["metrics.x_height_ratio", ...]},
  "substyle": {"value": "...", "confidence": 0.0, "evidence_keys": [...]},
  "moods": [{"value": "...", "confidence": 0.0, "evidence_keys": [...]}],
  "use_cases": [{"value": "...", "confidence": 0.0, "evidence_keys": [...]}],
  "serif_type": {"value": "...", "confidence": 0.0},
  "script_primary": {"value": "Latn", "confidence": 0.0},
  "negative_tags": ["what the font is NOT"],
  "warnings": []
}
Confidences are floats in [0, 1]. Evidence keys cite the flat metric/fact keys given in the input."""

VISUAL_ANALYSIS_SYSTEM_PROMPT = f"""You are fontsense, a typographic classifier. You receive structural facts extracted from a font binary and table-derived visual metrics. Classify the typeface using ONLY that evidence; do not guess the foundry or history.

{_VOCABULARY}

{_OUTPUT_SHAPE}"""

ENRICHED_ANALYSIS_SYSTEM_PROMPT = f"""You are fontsense, a typographic classifier with access to verified provenance. You receive structural facts, visual metrics, a prior visual classification and, when available, reconciled web-sourced facts (foundry, designer, history, license). Refine the classification; keep values that the evidence supports and correct the ones it contradicts.

{_VOCABULARY}

{_OUTPUT_SHAPE}
You may additionally include:
  "people": [{{"role": "designer|foundry|contributor", "name": "...", "source": "extracted|web", "confidence": 0.0, "source_url": "..."}}],
  "historical_context": {{"period": "...", "cultural_influence": ["..."], "notable_usage": ["..."]}}"""

WEB_ENRICHMENT_SYSTEM_PROMPT = """You are fontsense's provenance researcher. Search the web for authoritative information about a font family and report ONLY what the sources state. Prefer foundry sites, font libraries and license texts over aggregators. Every fact needs the URL it came from.

OUTPUT FORMAT: a single JSON object, no markdown:
{
  "foundry": {"name": "...", "url": "...", "confidence": 0.0, "source_url": "..."},
  "designer": {"name": "...", "bio": "...", "url": "...", "confidence": 0.0, "source_url": "..."},
  "historical_context": {"period": "...", "cultural_influence": ["..."], "notable_usage": ["..."], "source_url": "..."},
  "license": {"type": "OFL|Apache_2_0|MIT|GPL|CC_BY|Proprietary_Commercial|Custom_Non_Commercial|Public_Domain|Unknown", "url": "...", "confidence": 0.0, "source_url": "..."},
  "alternate_names": ["..."],
  "language_targets": ["..."]
}
Omit any key you could not verify."""

SUMMARY_SYSTEM_PROMPT = """You are fontsense's copywriter. Write neutral, specific font descriptions.
OUTPUT FORMAT: a single JSON object, no markdown: {"description": "...", "variable_axes_note": "..."}"""


def _facts_block(facts: ParsedFontFacts) -> str:
    features = ", ".join(facts.opentype_features) or "N/A"
    lines = [
        f'Font family "{facts.family_name}"',
        f"- Subfamily: {facts.subfamily_name}",
        f"- PostScript name: {facts.postscript_name or 'N/A'}",
        f"- Version: {facts.version or 'N/A'}",
        f"- Format: {facts.format or 'N/A'}",
        f"- Foundry: {facts.foundry or 'N/A'}",
        f"- Designer: {facts.designer or 'N/A'}",
        f"- Vendor ID: {facts.vendor_id or 'N/A'}",
        f"- Weight: {facts.weight or 'N/A'}",
        f"- Italic angle: {facts.italic_angle}",
        f"- Monospace: {'yes' if facts.is_monospace else 'no'}",
        f"- Classification hint (OS/2 sFamilyClass): {facts.classification_hint.value if facts.classification_hint else 'N/A'}",
        f"- Glyph count: {facts.glyph_count or 'N/A'}",
        f"- OpenType features: {features}",
        f"- Variable: {'yes' if facts.is_variable else 'no'}",
    ]
    if facts.is_variable and facts.variable_axes:
        lines.append("Variable axes:")
        lines.extend(
            f"  - {a.tag} ({a.name or a.tag}): {a.min_value} to {a.max_value}, default {a.default_value}"
            for a in facts.variable_axes
        )
    return "\n".join(lines)


def _metrics_block(metrics: VisualMetrics | None) -> str:
    if metrics is None:
        return "Visual metrics: not available (use structural facts only)"
    evidence = metrics.evidence()
    return "Visual metrics (evidence keys):\n" + "\n".join(f"- {k}: {v}" for k, v in evidence.items())


def build_visual_analysis_prompt(facts: ParsedFontFacts, metrics: VisualMetrics | None) -> str:
    return f"""{_facts_block(facts)}

{_metrics_block(metrics)}

Classify this font. Cite evidence keys for every value."""


def build_enriched_analysis_prompt(
    facts: ParsedFontFacts,
    metrics: VisualMetrics | None,
    visual: FontAnalysis | None,
    web_facts: dict | None = None,
) -> str:
    sections = [build_visual_analysis_prompt(facts, metrics)]
    if visual is not None:
        moods = ", ".join(m.value.value for m in visual.moods) or "N/A"
        use_cases = ", ".join(u.value.value for u in visual.use_cases) or "N/A"
        sections.append(
            "Previous visual analysis:\n"
            f"- Style primary: {visual.style_primary.value.value}\n"
            f"- Substyle: {visual.substyle.value.value if visual.substyle else 'N/A'}\n"
            f"- Moods: {moods}\n"
            f"- Use cases: {use_cases}"
        )
    if web_facts:
        sections.append("Reconciled provenance facts:\n" + json.dumps(web_facts, indent=2, default=str))
    sections.append("Provide the enriched classification.")
    return "\n\n".join(sections)


def build_web_enrichment_prompt(facts: ParsedFontFacts) -> str:
    return f"""Search for information about the font family "{facts.family_name}".

Known from the font file:
- Version: {facts.version or 'Unknown'}
- Vendor ID: {facts.vendor_id or 'Unknown'}
- Foundry: {facts.foundry or 'Unknown'}
- Designer: {facts.designer or 'Unknown'}
- Fingerprint: {facts.fingerprint}

Find: the foundry, the designer(s), historical context (release period, influences, notable usage), license, and alternate names."""


def build_summary_prompt(facts: ParsedFontFacts, analysis: FontAnalysis) -> str:
    substyle = f" ({analysis.substyle.value.value})" if analysis.substyle else ""
    moods = ", ".join(m.value.value for m in analysis.moods[:3]) or "N/A"
    use_cases = ", ".join(u.value.value for u in analysis.use_cases[:2]) or "N/A"
    return f"""Write a concise description (1-2 sentences, at most 50 words) for the font family "{facts.family_name}".

- Classification: {analysis.style_primary.value.value}{substyle}
- Key characteristics: {moods}
- Best uses: {use_cases}
- Foundry: {facts.foundry or 'Unknown'}
- Variable: {'yes' if facts.is_variable else 'no'}"""


_SYSTEM_PROMPTS = {
    "visual_analysis": VISUAL_ANALYSIS_SYSTEM_PROMPT,
    "enriched_analysis": ENRICHED_ANALYSIS_SYSTEM_PROMPT,
    "web_enrichment": WEB_ENRICHMENT_SYSTEM_PROMPT,
    "summary": SUMMARY_SYSTEM_PROMPT,
}


def get_system_prompt(stage: str) -> str:
    return _SYSTEM_PROMPTS[stage]


def get_all_templates() -> dict[str, str]:
    """Return all system prompts keyed by stage name."""
    return dict(_SYSTEM_PROMPTS)
