"""Visual metrics approximated from font tables (no rendering).

All values are heuristics over OS/2, post and head data and are exposed to
the models as ``metrics.*`` evidence keys.
"""

from __future__ import annotations

import logging

from fontsense.models.facts import ParsedFontFacts, VisualMetrics
from fontsense.models.taxonomy import StylePrimary

logger = logging.getLogger(__name__)

# x-height is typically ~70% of cap height when OS/2 sxHeight is absent
CAP_TO_X_HEIGHT = 0.7
SPACING_BASE_STDDEV = 0.08


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def compute_visual_metrics(facts: ParsedFontFacts) -> VisualMetrics:
    """Derive :class:`VisualMetrics` from structural facts. Deterministic."""
    upm = facts.units_per_em or 1000
    is_serif = facts.classification_hint == StylePrimary.SERIF
    is_sans = facts.classification_hint == StylePrimary.SANS
    is_mono = facts.is_monospace or facts.classification_hint == StylePrimary.MONO

    x_height_ratio = None
    if facts.x_height:
        x_height_ratio = facts.x_height / upm
    elif facts.cap_height:
        x_height_ratio = facts.cap_height * CAP_TO_X_HEIGHT / upm

    contrast = None
    if facts.weight:
        if is_serif:
            contrast = _clamp((900 - facts.weight) / 1000, 0.1, 0.5)
        else:
            contrast = _clamp((900 - facts.weight) / 2000, 0.05, 0.3)

    aperture = _clamp(x_height_ratio * 1.2, 0.3, 0.8) if x_height_ratio else None

    spacing = None
    if is_mono:
        spacing = 0.0
    elif facts.weight:
        spacing = SPACING_BASE_STDDEV * (0.5 + (900 - facts.weight) / 1000)

    if is_serif:
        terminal = "bracketed"
    elif facts.classification_hint == StylePrimary.SLAB:
        terminal = "slab"
    elif is_sans:
        terminal = "sheared"
    else:
        terminal = "unknown"

    # no OS/2 class hint: serifs are unknown, not absent
    serif_detected = None
    if facts.classification_hint is not None:
        serif_detected = facts.classification_hint in (StylePrimary.SERIF, StylePrimary.SLAB)

    metrics = VisualMetrics(
        x_height_ratio=round(x_height_ratio, 4) if x_height_ratio is not None else None,
        contrast_index=round(contrast, 4) if contrast is not None else None,
        aperture_index=round(aperture, 4) if aperture is not None else None,
        serif_detected=serif_detected,
        stress_angle_deg=facts.italic_angle or 0.0,
        roundness=0.5 if is_sans else 0.3,
        spacing_stddev=round(spacing, 4) if spacing is not None else None,
        terminal_style=terminal,
    )
    logger.info("Computed visual metrics for %s from font tables", facts.family_name)
    return metrics
