"""Tests for settings loading and reload."""

from __future__ import annotations

import pytest

from fontsense import config
from fontsense.config import Settings, get_settings, parse_thresholds, refresh_settings


def test_defaults():
    s = Settings()
    assert s.max_concurrent_ops == 4
    assert s.retry_max_attempts == 3
    assert s.retry_base_ms == 250
    assert s.retry_max_ms == 4000
    assert s.band_thresholds == (0.2, 0.6, 0.85)
    assert s.web_enrichment_enabled is False


@pytest.mark.parametrize("raw", ["0.2,0.6", "0.6,0.2,0.85", "a,b,c", "0.2,0.2,0.3"])
def test_bad_thresholds_are_rejected(raw):
    with pytest.raises(ValueError):
        parse_thresholds(raw)


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("FONTSENSE_MAX_CONCURRENT_OPS", "7")
    monkeypatch.setenv("FONTSENSE_VISUAL_ANALYSIS_MODEL", "custom-model")
    s = refresh_settings()
    assert s.max_concurrent_ops == 7
    assert s.visual_analysis_model == "custom-model"


def test_cached_until_ttl_expires(monkeypatch):
    first = refresh_settings()
    monkeypatch.setenv("FONTSENSE_MAX_CONCURRENT_OPS", "9")
    assert get_settings() is first

    monkeypatch.setattr(config, "_loaded_at", config._loaded_at - first.config_ttl_seconds - 1)
    assert get_settings().max_concurrent_ops == 9


def test_invalid_reload_keeps_previous_settings(monkeypatch):
    first = refresh_settings()
    monkeypatch.setenv("FONTSENSE_CONFIDENCE_BAND_THRESHOLDS", "0.9,0.1,0.5")
    monkeypatch.setattr(config, "_loaded_at", config._loaded_at - first.config_ttl_seconds - 1)
    assert get_settings() is first
