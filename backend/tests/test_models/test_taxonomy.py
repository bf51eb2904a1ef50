"""Tests for the frozen taxonomy and its validators."""

from __future__ import annotations

import pytest

from fontsense.models.taxonomy import (
    STYLE_SUBSTYLE_MAP,
    Mood,
    StylePrimary,
    Substyle,
    UseCase,
    WarningTag,
    is_valid_mood,
    is_valid_script_tag,
    is_valid_style_primary,
    is_valid_substyle_for,
    is_valid_use_case,
    normalize_token,
    valid_substyles,
)


def test_enum_sizes():
    assert len(StylePrimary) == 8
    assert len(Mood) == 16
    assert len(UseCase) == 15
    assert len(WarningTag) == 13


def test_every_style_has_a_substyle_set_including_unknown():
    assert set(STYLE_SUBSTYLE_MAP) == set(StylePrimary)
    for subs in STYLE_SUBSTYLE_MAP.values():
        assert Substyle.UNKNOWN in subs


@pytest.mark.parametrize("raw, token", [
    ("Neo Grotesque", "neo_grotesque"),
    ("  body-text ", "body_text"),
    ("SANS", "sans"),
    (None, ""),
    (3, ""),
])
def test_normalize_token(raw, token):
    assert normalize_token(raw) == token


def test_validators():
    assert is_valid_style_primary("Serif")
    assert not is_valid_style_primary("grotesk")
    assert is_valid_mood("elegant")
    assert not is_valid_mood("sad")
    assert is_valid_use_case("Body Text")
    assert is_valid_script_tag("Latn")
    assert not is_valid_script_tag("latin")


def test_substyle_membership():
    assert is_valid_substyle_for("serif", "didone")
    assert is_valid_substyle_for(StylePrimary.SANS, "geometric")
    assert not is_valid_substyle_for("serif", "geometric")
    assert not is_valid_substyle_for("mono", "geometric")
    # an unknown primary style does not restrict substyles
    assert valid_substyles("nonsense") == frozenset(Substyle)
