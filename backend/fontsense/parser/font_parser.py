"""fontTools-backed parser: raw font bytes → :class:`ParsedFontFacts`.

Handles TTF, OTF, WOFF, WOFF2 and the first face of a TTC. Returns ``None``
for anything fontTools cannot open; a malformed binary is never retried.
"""

from __future__ import annotations

import io
import logging

from fontTools.ttLib import TTFont

from fontsense.models.facts import ParsedFontFacts, ProvenanceEntry, VariableAxis
from fontsense.models.taxonomy import SourceType, StylePrimary

logger = logging.getLogger(__name__)

PARSER_METHOD = "fonttools_parser"

# name-table ids
NAME_COPYRIGHT = 0
NAME_FAMILY = 1
NAME_SUBFAMILY = 2
NAME_FULL = 4
NAME_VERSION = 5
NAME_POSTSCRIPT = 6
NAME_MANUFACTURER = 8
NAME_DESIGNER = 9
NAME_VENDOR_URL = 11
NAME_DESIGNER_URL = 12
NAME_LICENSE = 13
NAME_LICENSE_URL = 14
NAME_TYPO_FAMILY = 16
NAME_TYPO_SUBFAMILY = 17

# OS/2 sFamilyClass high byte (IBM font class)
_FAMILY_CLASS_HINTS = {
    1: StylePrimary.SERIF,  # oldstyle
    2: StylePrimary.SERIF,  # transitional
    3: StylePrimary.SERIF,  # modern
    4: StylePrimary.SERIF,  # clarendon
    5: StylePrimary.SLAB,
    7: StylePrimary.SERIF,  # freeform
    8: StylePrimary.SANS,
    9: StylePrimary.DISPLAY,  # ornamentals
    10: StylePrimary.SCRIPT,
    12: StylePrimary.ICON,  # symbolic
}

_PANOSE_FIELDS = (
    "bFamilyType", "bSerifStyle", "bWeight", "bProportion", "bContrast",
    "bStrokeVariation", "bArmStyle", "bLetterForm", "bMidline", "bXHeight",
)

_COLOR_TABLES = ("COLR", "CPAL", "CBDT", "CBLC", "sbix", "SVG ")


def _name(tt: TTFont, name_id: int) -> str | None:
    if "name" not in tt:
        return None
    value = tt["name"].getDebugName(name_id)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _format(tt: TTFont) -> str:
    if tt.flavor in ("woff", "woff2"):
        return tt.flavor.upper()
    if "CFF " in tt or "CFF2" in tt:
        return "OTF"
    return "TTF"


def _features(tt: TTFont) -> tuple[str, ...]:
    tags: set[str] = set()
    for table_tag in ("GSUB", "GPOS"):
        if table_tag not in tt:
            continue
        feature_list = getattr(tt[table_tag].table, "FeatureList", None)
        if feature_list is None:
            continue
        tags.update(rec.FeatureTag for rec in feature_list.FeatureRecord)
    return tuple(sorted(tags))


def _axes(tt: TTFont) -> tuple[VariableAxis, ...]:
    if "fvar" not in tt:
        return ()
    return tuple(
        VariableAxis(
            tag=axis.axisTag,
            name=_name(tt, axis.axisNameID) or axis.axisTag,
            min_value=axis.minValue,
            max_value=axis.maxValue,
            default_value=axis.defaultValue,
        )
        for axis in tt["fvar"].axes
    )


def _version(raw: str | None) -> str | None:
    if raw and raw.lower().startswith("version"):
        raw = raw[len("version"):].strip()
    return raw or None


def _provenance(fields: dict[str, str]) -> dict[str, tuple[ProvenanceEntry, ...]]:
    return {
        field: (ProvenanceEntry(source_type=SourceType.EXTRACTED, source_ref=ref, method=PARSER_METHOD),)
        for field, ref in fields.items()
    }


def _facts_from_font(tt: TTFont, filename: str) -> ParsedFontFacts:
    family = _name(tt, NAME_TYPO_FAMILY) or _name(tt, NAME_FAMILY)
    subfamily = _name(tt, NAME_TYPO_SUBFAMILY) or _name(tt, NAME_SUBFAMILY)
    foundry = _name(tt, NAME_MANUFACTURER)
    designer = _name(tt, NAME_DESIGNER)

    head = tt["head"] if "head" in tt else None
    os2 = tt["OS/2"] if "OS/2" in tt else None
    post = tt["post"] if "post" in tt else None
    hhea = tt["hhea"] if "hhea" in tt else None

    sources = {"family_name": f"name#{NAME_FAMILY}"}
    if foundry:
        sources["foundry"] = f"name#{NAME_MANUFACTURER}"
    if designer:
        sources["designer"] = f"name#{NAME_DESIGNER}"

    fields: dict = {
        "family_name": family or "Unknown Family",
        "subfamily_name": subfamily or "Regular",
        "postscript_name": _name(tt, NAME_POSTSCRIPT),
        "full_name": _name(tt, NAME_FULL),
        "version": _version(_name(tt, NAME_VERSION)),
        "format": _format(tt),
        "filename": filename,
        "foundry": foundry,
        "designer": designer,
        "vendor_url": _name(tt, NAME_VENDOR_URL),
        "designer_url": _name(tt, NAME_DESIGNER_URL),
        "copyright": _name(tt, NAME_COPYRIGHT),
        "license_description": _name(tt, NAME_LICENSE),
        "license_url": _name(tt, NAME_LICENSE_URL),
        "opentype_features": _features(tt),
        "color_tables": tuple(t for t in _COLOR_TABLES if t in tt),
        "variable_axes": _axes(tt),
        "is_variable": "fvar" in tt,
    }

    if head is not None:
        fields["units_per_em"] = head.unitsPerEm
        fields["is_italic"] = bool(head.macStyle & 0x02)

    if os2 is not None:
        vendor = os2.achVendID
        if isinstance(vendor, bytes):
            vendor = vendor.decode("ascii", errors="replace")
        vendor = (vendor or "").strip() or None
        fields["vendor_id"] = vendor
        if vendor:
            sources["vendor_id"] = "OS/2#achVendID"
        fields["weight"] = os2.usWeightClass or None
        fields["width_class"] = os2.usWidthClass or None
        fields["fs_type"] = os2.fsType
        fields["classification_hint"] = _FAMILY_CLASS_HINTS.get(os2.sFamilyClass >> 8)
        if fields["classification_hint"] is not None:
            sources["classification_hint"] = "OS/2#sFamilyClass"
        fields["panose"] = tuple(int(getattr(os2.panose, f, 0)) for f in _PANOSE_FIELDS)
        fields["is_italic"] = fields.get("is_italic", False) or bool(os2.fsSelection & 0x01)
        if os2.version >= 2:
            fields["x_height"] = os2.sxHeight or None
            fields["cap_height"] = os2.sCapHeight or None
        fields["ascender"] = os2.sTypoAscender
        fields["descender"] = os2.sTypoDescender
    elif hhea is not None:
        fields["ascender"] = hhea.ascent
        fields["descender"] = hhea.descent

    if post is not None:
        fields["italic_angle"] = float(post.italicAngle)
        fields["is_monospace"] = bool(post.isFixedPitch)

    if "maxp" in tt:
        fields["glyph_count"] = tt["maxp"].numGlyphs

    fields["provenance"] = _provenance(sources)
    return ParsedFontFacts(**fields)


def parse_font(data: bytes, filename: str) -> ParsedFontFacts | None:
    """Parse one font binary. Returns None when the file cannot be read as a font."""
    if not data:
        logger.error("Cannot parse %s: empty file", filename)
        return None
    try:
        with TTFont(io.BytesIO(data), fontNumber=0, lazy=False) as tt:
            facts = _facts_from_font(tt, filename)
    except Exception as e:
        logger.error("Cannot parse %s: %s", filename, e)
        return None
    logger.info(
        "Parsed %s: family=%s format=%s glyphs=%s variable=%s",
        filename, facts.family_name, facts.format, facts.glyph_count, facts.is_variable,
    )
    return facts
