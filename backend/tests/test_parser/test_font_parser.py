"""Tests for the fontTools parser adapter."""

from __future__ import annotations

from fontsense.models.taxonomy import SourceType, StylePrimary
from fontsense.parser.font_parser import parse_font
from tests.conftest import FAMILY_CLASS_OLDSTYLE_SERIF, build_ttf


def test_parses_names_and_metrics():
    data = build_ttf("Test Sans", "Bold", foundry="Acme Type", designer="Jane Doe", weight=700)
    facts = parse_font(data, "test-sans.ttf")
    assert facts is not None
    assert facts.family_name == "Test Sans"
    assert facts.subfamily_name == "Bold"
    assert facts.foundry == "Acme Type"
    assert facts.designer == "Jane Doe"
    assert facts.version == "1.000"
    assert facts.format == "TTF"
    assert facts.filename == "test-sans.ttf"
    assert facts.vendor_id == "TEST"
    assert facts.weight == 700
    assert facts.units_per_em == 1000
    assert facts.x_height == 500
    assert facts.cap_height == 700
    assert facts.glyph_count == 4
    assert facts.classification_hint == StylePrimary.SANS
    assert facts.is_variable is False
    assert facts.historical_context is None


def test_provenance_records_name_table_sources():
    facts = parse_font(build_ttf(foundry="Acme Type"), "a.ttf")
    entry = facts.provenance["foundry"][0]
    assert entry.source_type == SourceType.EXTRACTED
    assert entry.source_ref == "name#8"
    assert entry.method == "fonttools_parser"
    assert "designer" not in facts.provenance


def test_serif_class_and_monospace_flag():
    facts = parse_font(build_ttf(family_class=FAMILY_CLASS_OLDSTYLE_SERIF, monospace=True), "m.ttf")
    assert facts.classification_hint == StylePrimary.SERIF
    assert facts.is_monospace is True


def test_missing_provenance_fields():
    facts = parse_font(build_ttf(foundry="Acme Type"), "a.ttf")
    assert facts.missing_provenance_fields() == ["designer", "historical_context"]


def test_variable_axes():
    facts = parse_font(build_ttf(variable=True), "v.ttf")
    assert facts.is_variable is True
    axis = facts.variable_axes[0]
    assert axis.tag == "wght"
    assert (axis.min_value, axis.default_value, axis.max_value) == (100, 400, 900)


def test_garbage_returns_none():
    assert parse_font(b"definitely not a font", "bad.ttf") is None
    assert parse_font(b"", "empty.ttf") is None
