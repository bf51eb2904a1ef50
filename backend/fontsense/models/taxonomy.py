"""Frozen taxonomy shared by every pipeline stage (taxonomy_version 1.0.0).

Each field has a closed enumeration plus a pure ``is_valid_*`` check so the
validation layer never depends on a serialization format.
"""

from __future__ import annotations

import enum

TAXONOMY_VERSION = "1.0.0"


class StylePrimary(str, enum.Enum):
    SERIF = "serif"
    SANS = "sans"
    SLAB = "slab"
    MONO = "mono"
    DISPLAY = "display"
    SCRIPT = "script"
    BLACKLETTER = "blackletter"
    ICON = "icon"


class Substyle(str, enum.Enum):
    OLDSTYLE = "oldstyle"
    TRANSITIONAL = "transitional"
    DIDONE = "didone"
    HUMANIST = "humanist"
    GROTESQUE = "grotesque"
    NEO_GROTESQUE = "neo_grotesque"
    GEOMETRIC = "geometric"
    HUMANIST_SERIF = "humanist_serif"
    MECHANISTIC = "mechanistic"
    CLARENDON = "clarendon"
    ROUNDED = "rounded"
    REVERSE_CONTRAST = "reverse_contrast"
    HANDWRITING = "handwriting"
    BRUSH = "brush"
    CALLIGRAPHIC = "calligraphic"
    STENCIL = "stencil"
    BITMAP = "bitmap"
    DECORATIVE = "decorative"
    INDUSTRIAL = "industrial"
    TECHNO = "techno"
    UNKNOWN = "unknown"


class Mood(str, enum.Enum):
    NEUTRAL = "neutral"
    FRIENDLY = "friendly"
    AUTHORITATIVE = "authoritative"
    ELEGANT = "elegant"
    PLAYFUL = "playful"
    TECHNICAL = "technical"
    CLASSIC = "classic"
    BRUTAL = "brutal"
    WARM = "warm"
    REFINED = "refined"
    ENERGETIC = "energetic"
    MINIMALIST = "minimalist"
    RETRO = "retro"
    FUTURISTIC = "futuristic"
    SERIOUS = "serious"
    EXPRESSIVE = "expressive"


class UseCase(str, enum.Enum):
    BODY_TEXT = "body_text"
    UI = "ui"
    EDITORIAL = "editorial"
    POSTER = "poster"
    BRANDING = "branding"
    WAYFINDING = "wayfinding"
    CODE = "code"
    PACKAGING = "packaging"
    HEADLINES = "headlines"
    SIGNAGE = "signage"
    MOTION = "motion"
    PRINT = "print"
    DIGITAL = "digital"
    DECORATIVE = "decorative"
    VARIABLE_EXPRESSIVE = "variable_expressive"


class WarningTag(str, enum.Enum):
    INSUFFICIENT_SCRIPT_SUPPORT = "insufficient_script_support"
    SHAPING_ISSUES = "shaping_issues"
    LICENSE_UNKNOWN = "license_unknown"
    CONFLICTING_METADATA = "conflicting_metadata"
    LOW_CONTRAST_FOR_BODY = "low_contrast_for_body"
    POOR_LEGIBILITY_SMALL_SIZES = "poor_legibility_small_sizes"
    WEB_CLAIMS_DISAGREE = "web_claims_disagree"
    PARTIAL_ENRICHMENT = "partial_enrichment"
    DUPLICATE_FONT = "duplicate_font"
    VARIABLE_AXES_MISSING = "variable_axes_missing"
    CORRUPTED_TABLES = "corrupted_tables"
    COLOR_FONT_DETECTED = "color_font_detected"
    NON_LATIN_PRIMARY_SCRIPT = "non_latin_primary_script"


class SerifType(str, enum.Enum):
    BRACKETED = "bracketed"
    UNBRACKETED = "unbracketed"
    SLAB = "slab"
    FLARED = "flared"
    BALL = "ball"
    NONE = "none"


class ScriptTag(str, enum.Enum):
    LATN = "Latn"
    CYRL = "Cyrl"
    GREK = "Grek"
    DEVA = "Deva"
    ARAB = "Arab"
    HEBR = "Hebr"
    THAI = "Thai"
    HANG = "Hang"
    HANI = "Hani"
    KANA = "Kana"
    BENG = "Beng"
    TAML = "Taml"
    KNDA = "Knda"
    MLYM = "Mlym"
    GURU = "Guru"
    SINH = "Sinh"
    TELU = "Telu"
    CANS = "Cans"
    CHER = "Cher"
    ORYA = "Orya"
    MYMR = "Mymr"
    ETHI = "Ethi"
    ARMN = "Armn"
    GEOR = "Geor"
    LAOO = "Laoo"
    TIBT = "Tibt"
    OGHAM = "Ogham"
    RUNR = "Runr"
    UNKNOWN = "Unknown"


class FontType(str, enum.Enum):
    STATIC_FONT = "static_font"
    VARIABLE_FONT = "variable_font"
    COLOR_FONT = "color_font"
    ICON_FONT = "icon_font"
    MULTI_SCRIPT_FONT = "multi_script_font"
    DAMAGED_FONT = "damaged_font"
    DUPLICATE_REFERENCE = "duplicate_reference"


class LicenseType(str, enum.Enum):
    OFL = "OFL"
    APACHE_2_0 = "Apache_2_0"
    MIT = "MIT"
    GPL = "GPL"
    CC_BY = "CC_BY"
    PROPRIETARY_COMMERCIAL = "Proprietary_Commercial"
    CUSTOM_NON_COMMERCIAL = "Custom_Non_Commercial"
    PUBLIC_DOMAIN = "Public_Domain"
    UNKNOWN = "Unknown"


class UploadState(str, enum.Enum):
    NOT_STARTED = "not_started"
    QUEUED = "queued"
    PARSING = "parsing"
    PARSED = "parsed"
    AI_CLASSIFYING = "ai_classifying"
    AI_RETRYING = "ai_retrying"
    WEB_ENRICHING = "web_enriching"
    ENRICHED = "enriched"
    INDEXING = "indexing"
    INDEXED = "indexed"
    COMPLETED = "completed"
    ERROR = "error"
    FAILED = "failed"
    QUARANTINED = "quarantined"


class JobOutcome(str, enum.Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
    SKIPPED_DUPLICATE = "skipped_duplicate"


class ConfidenceBand(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


class SourceType(str, enum.Enum):
    EXTRACTED = "extracted"
    WEB = "web"
    COMPUTED = "computed"
    INFERRED = "inferred"


_S = Substyle
STYLE_SUBSTYLE_MAP: dict[StylePrimary, frozenset[Substyle]] = {
    StylePrimary.SERIF: frozenset({
        _S.OLDSTYLE, _S.TRANSITIONAL, _S.DIDONE, _S.HUMANIST_SERIF, _S.MECHANISTIC,
        _S.CLARENDON, _S.REVERSE_CONTRAST, _S.DECORATIVE, _S.UNKNOWN,
    }),
    StylePrimary.SANS: frozenset({
        _S.HUMANIST, _S.GROTESQUE, _S.NEO_GROTESQUE, _S.GEOMETRIC, _S.INDUSTRIAL,
        _S.TECHNO, _S.ROUNDED, _S.REVERSE_CONTRAST, _S.UNKNOWN,
    }),
    StylePrimary.SLAB: frozenset({
        _S.MECHANISTIC, _S.CLARENDON, _S.ROUNDED, _S.REVERSE_CONTRAST, _S.UNKNOWN,
    }),
    StylePrimary.MONO: frozenset({_S.UNKNOWN}),
    StylePrimary.DISPLAY: frozenset({
        _S.STENCIL, _S.BITMAP, _S.DECORATIVE, _S.REVERSE_CONTRAST, _S.INDUSTRIAL,
        _S.TECHNO, _S.UNKNOWN,
    }),
    StylePrimary.SCRIPT: frozenset({
        _S.HANDWRITING, _S.BRUSH, _S.CALLIGRAPHIC, _S.DECORATIVE, _S.UNKNOWN,
    }),
    StylePrimary.BLACKLETTER: frozenset({_S.DECORATIVE, _S.REVERSE_CONTRAST, _S.UNKNOWN}),
    StylePrimary.ICON: frozenset({_S.UNKNOWN}),
}
del _S

TERMINAL_STATES = frozenset({
    UploadState.COMPLETED,
    UploadState.ERROR,
    UploadState.FAILED,
    UploadState.QUARANTINED,
})


def normalize_token(value: object) -> str:
    """Lower-case, trim and snake-case a model-supplied enum token."""
    if not isinstance(value, str):
        return ""
    return "_".join(value.strip().lower().replace("-", " ").split())


def _members(enum_cls: type[enum.Enum]) -> frozenset[str]:
    return frozenset(m.value for m in enum_cls)


_STYLE_VALUES = _members(StylePrimary)
_SUBSTYLE_VALUES = _members(Substyle)
_MOOD_VALUES = _members(Mood)
_USE_CASE_VALUES = _members(UseCase)
_WARNING_VALUES = _members(WarningTag)
_SERIF_TYPE_VALUES = _members(SerifType)
_SCRIPT_VALUES = _members(ScriptTag)


def is_valid_style_primary(value: object) -> bool:
    return normalize_token(value) in _STYLE_VALUES


def is_valid_substyle(value: object) -> bool:
    return normalize_token(value) in _SUBSTYLE_VALUES


def is_valid_mood(value: object) -> bool:
    return normalize_token(value) in _MOOD_VALUES


def is_valid_use_case(value: object) -> bool:
    return normalize_token(value) in _USE_CASE_VALUES


def is_valid_warning_tag(value: object) -> bool:
    return normalize_token(value) in _WARNING_VALUES


def is_valid_serif_type(value: object) -> bool:
    return normalize_token(value) in _SERIF_TYPE_VALUES


def is_valid_script_tag(value: object) -> bool:
    # Script tags are ISO 15924 title-case, compare as written
    return isinstance(value, str) and value.strip() in _SCRIPT_VALUES


def valid_substyles(style: StylePrimary | str) -> frozenset[Substyle]:
    """Substyles allowed for a primary style; every substyle for unknown styles."""
    try:
        key = StylePrimary(normalize_token(style) if isinstance(style, str) else style)
    except ValueError:
        return frozenset(Substyle)
    return STYLE_SUBSTYLE_MAP[key]


def is_valid_substyle_for(style: StylePrimary | str, substyle: object) -> bool:
    token = normalize_token(substyle)
    return token in {s.value for s in valid_substyles(style)}
