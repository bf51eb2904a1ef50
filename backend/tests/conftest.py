"""Shared test fixtures."""

from __future__ import annotations

import io
import json

import pytest
from fontTools.fontBuilder import FontBuilder
from fontTools.pens.ttGlyphPen import TTGlyphPen

from fontsense.config import refresh_settings
from fontsense.llm.client import InferenceRequest, InferenceResponse

# OS/2 sFamilyClass values (class << 8)
FAMILY_CLASS_OLDSTYLE_SERIF = 1 << 8
FAMILY_CLASS_SANS = 8 << 8


def build_ttf(
    family: str = "Test Sans",
    style: str = "Regular",
    *,
    foundry: str | None = None,
    designer: str | None = None,
    family_class: int = FAMILY_CLASS_SANS,
    weight: int = 400,
    monospace: bool = False,
    variable: bool = False,
) -> bytes:
    """Build a small but complete TrueType font in memory."""
    glyph_order = [".notdef", "space", "A", "x"]
    fb = FontBuilder(1000, isTTF=True)
    fb.setupGlyphOrder(glyph_order)
    fb.setupCharacterMap({0x20: "space", 0x41: "A", 0x78: "x"})

    pen = TTGlyphPen(None)
    pen.moveTo((100, 0))
    pen.lineTo((100, 700))
    pen.lineTo((500, 700))
    pen.lineTo((500, 0))
    pen.closePath()
    glyph = pen.glyph()
    fb.setupGlyf({name: glyph for name in glyph_order})

    glyf = fb.font["glyf"]
    fb.setupHorizontalMetrics({name: (600, glyf[name].xMin) for name in glyph_order})
    fb.setupHorizontalHeader(ascent=800, descent=-200)

    names = {
        "familyName": family,
        "styleName": style,
        "uniqueFontIdentifier": f"{family}-{style}",
        "fullName": f"{family} {style}",
        "psName": f"{family.replace(' ', '')}-{style}",
        "version": "Version 1.000",
    }
    if foundry:
        names["manufacturer"] = foundry
    if designer:
        names["designer"] = designer
    fb.setupNameTable(names)
    fb.setupOS2(
        version=4,
        sTypoAscender=800,
        sTypoDescender=-200,
        usWinAscent=800,
        usWinDescent=200,
        sxHeight=500,
        sCapHeight=700,
        usWeightClass=weight,
        sFamilyClass=family_class,
        achVendID="TEST",
        fsType=0,
    )
    fb.setupPost(isFixedPitch=1 if monospace else 0)
    if variable:
        fb.setupFvar(axes=[("wght", 100, 400, 900, "Weight")], instances=[])

    buf = io.BytesIO()
    fb.save(buf)
    return buf.getvalue()


def analysis_json(
    style: str = "sans",
    *,
    substyle: str | None = "neo_grotesque",
    moods: list[str] | None = None,
    use_cases: list[str] | None = None,
    confidence: float = 0.8,
    drop: tuple[str, ...] = (),
) -> str:
    """A well-formed model analysis, optionally with required fields removed."""
    payload: dict = {
        "style_primary": {"value": style, "confidence": confidence, "evidence_keys": ["metrics.serif_detected"]},
        "moods": [
            {"value": m, "confidence": confidence, "evidence_keys": ["metrics.contrast_index"]}
            for m in (moods or ["neutral", "technical"])
        ],
        "use_cases": [
            {"value": u, "confidence": confidence, "evidence_keys": ["metrics.x_height_ratio"]}
            for u in (use_cases or ["ui", "body_text"])
        ],
        "script_primary": {"value": "Latn", "confidence": 0.9},
        "negative_tags": ["not decorative"],
        "warnings": [],
    }
    if substyle:
        payload["substyle"] = {"value": substyle, "confidence": confidence, "evidence_keys": []}
    for key in drop:
        payload.pop(key, None)
    return json.dumps(payload)


class FakeInferenceClient:
    """Scripted inference client keyed by stage (``request.op_name``).

    Each script entry is response text or an exception to raise. The last
    entry repeats once the script runs out.
    """

    def __init__(self, scripts: dict[str, list] | None = None) -> None:
        self.scripts = {k: list(v) for k, v in (scripts or {}).items()}
        self.requests: list[InferenceRequest] = []

    def calls(self, op_name: str) -> list[InferenceRequest]:
        return [r for r in self.requests if r.op_name == op_name]

    async def generate(self, request: InferenceRequest) -> InferenceResponse:
        self.requests.append(request)
        script = self.scripts.get(request.op_name)
        if not script:
            raise AssertionError(f"unexpected inference call: {request.op_name}")
        entry = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(entry, BaseException):
            raise entry
        if isinstance(entry, InferenceResponse):
            return entry
        return InferenceResponse(text=entry, model=request.model)


async def no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture(autouse=True)
def fontsense_env(monkeypatch, tmp_path):
    """Isolate every test from the developer's environment and .env file."""
    monkeypatch.chdir(tmp_path)
    for key, value in {
        "FONTSENSE_ANTHROPIC_API_KEY": "",
        "FONTSENSE_INFERENCE_ENABLED": "true",
        "FONTSENSE_WEB_ENRICHMENT_ENABLED": "false",
        "FONTSENSE_DATA_DIR": "",
        "FONTSENSE_MAX_CONCURRENT_OPS": "4",
        "FONTSENSE_CONFIDENCE_BAND_THRESHOLDS": "0.2,0.6,0.85",
    }.items():
        monkeypatch.setenv(key, value)
    refresh_settings()
    yield
    monkeypatch.undo()
    refresh_settings()


@pytest.fixture
def sans_ttf() -> bytes:
    return build_ttf("Test Sans", foundry="Acme Type", designer="Jane Doe")


@pytest.fixture
def serif_ttf() -> bytes:
    return build_ttf("Test Serif", family_class=FAMILY_CLASS_OLDSTYLE_SERIF)
