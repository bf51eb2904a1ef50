"""Structural facts extracted from a font binary, plus provenance records."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from fontsense.models.taxonomy import SourceType, StylePrimary


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProvenanceEntry(BaseModel):
    """One append-only audit record for a fact."""

    model_config = ConfigDict(frozen=True)

    source_type: SourceType
    source_ref: str = ""  # table name ("name#8") or URL
    method: str = ""  # e.g. "fonttools_parser", "reconciliation"
    confidence: float = 1.0
    timestamp: datetime = Field(default_factory=utcnow)
    note: str = ""


class VariableAxis(BaseModel):
    model_config = ConfigDict(frozen=True)

    tag: str
    name: str = ""
    min_value: float
    max_value: float
    default_value: float


class ParsedFontFacts(BaseModel):
    """Immutable output of the font parser."""

    model_config = ConfigDict(frozen=True)

    family_name: str = "Unknown Family"
    subfamily_name: str = "Regular"
    postscript_name: str | None = None
    full_name: str | None = None
    version: str | None = None
    format: str | None = None  # TTF, OTF, WOFF, WOFF2
    filename: str = ""

    foundry: str | None = None
    designer: str | None = None
    vendor_id: str | None = None
    vendor_url: str | None = None
    designer_url: str | None = None
    copyright: str | None = None
    license_description: str | None = None
    license_url: str | None = None
    historical_context: str | None = None

    weight: int | None = None
    width_class: int | None = None
    italic_angle: float = 0.0
    is_italic: bool = False
    is_monospace: bool = False
    classification_hint: StylePrimary | None = None
    panose: tuple[int, ...] | None = None
    fs_type: int | None = None

    units_per_em: int = 1000
    x_height: int | None = None
    cap_height: int | None = None
    ascender: int | None = None
    descender: int | None = None
    glyph_count: int | None = None

    is_variable: bool = False
    variable_axes: tuple[VariableAxis, ...] = ()
    opentype_features: tuple[str, ...] = ()
    color_tables: tuple[str, ...] = ()

    provenance: dict[str, tuple[ProvenanceEntry, ...]] = Field(default_factory=dict)

    @property
    def fingerprint(self) -> str:
        """family | version | vendor | panose | glyph count, for disambiguation."""
        panose = ",".join(str(p) for p in self.panose) if self.panose else ""
        return "|".join([
            self.family_name,
            self.version or "",
            self.vendor_id or "",
            panose,
            str(self.glyph_count or 0),
        ])

    def missing_provenance_fields(self) -> list[str]:
        """Provenance facts the web enrichment stage could fill in."""
        missing = []
        if not self.foundry:
            missing.append("foundry")
        if not self.designer:
            missing.append("designer")
        if not self.historical_context:
            missing.append("historical_context")
        return missing


class VisualMetrics(BaseModel):
    """Table-derived approximations of visual characteristics."""

    x_height_ratio: float | None = None
    contrast_index: float | None = None
    aperture_index: float | None = None
    serif_detected: bool | None = None
    stress_angle_deg: float = 0.0
    roundness: float | None = None
    spacing_stddev: float | None = None
    terminal_style: str = "unknown"  # ball, teardrop, sheared, slab, bracketed, unknown

    def evidence(self) -> dict[str, object]:
        """Flat ``metrics.*`` evidence keys cited by the models."""
        return {
            f"metrics.{k}": v
            for k, v in self.model_dump().items()
            if v is not None
        }
