"""Application configuration from environment variables.

Settings are re-read after ``config_ttl_seconds`` so operators can change
model ids, concurrency and thresholds without restarting workers.
"""

from __future__ import annotations

import logging
import threading
import time

from pydantic import field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    anthropic_api_key: str = ""
    inference_enabled: bool = True
    log_level: str = "info"

    # Model routing, one id per stage
    visual_analysis_model: str = "claude-haiku-4-5-20251001"
    enriched_analysis_model: str = "claude-sonnet-4-5-20250929"
    enriched_analysis_fallback_model: str = "claude-haiku-4-5-20251001"
    web_enricher_model: str = "claude-sonnet-4-5-20250929"
    summary_model: str = "claude-haiku-4-5-20251001"

    # Generation bounds
    max_output_tokens: int = 1536
    summary_max_output_tokens: int = 512
    temperature: float = 0.4

    # Concurrency / retries
    max_concurrent_ops: int = 4
    admission_max_wait_ms: int = 30000
    retry_max_attempts: int = 3
    retry_base_ms: int = 250
    retry_max_ms: int = 4000

    # CSV of three ascending floats: low / medium / high upper bounds
    confidence_band_thresholds: str = "0.2,0.6,0.85"

    web_enrichment_enabled: bool = False

    # Ingest policy
    max_upload_bytes: int = 25 * 1024 * 1024
    data_dir: str = ""

    config_ttl_seconds: float = 60.0

    model_config = {
        "env_prefix": "FONTSENSE_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @field_validator("confidence_band_thresholds")
    @classmethod
    def _check_thresholds(cls, value: str) -> str:
        parse_thresholds(value)
        return value

    @property
    def band_thresholds(self) -> tuple[float, float, float]:
        return parse_thresholds(self.confidence_band_thresholds)


def parse_thresholds(raw: str) -> tuple[float, float, float]:
    """Parse ``"0.2,0.6,0.85"`` into a strictly ascending triple."""
    parts = [p.strip() for p in raw.split(",") if p.strip()]
    if len(parts) != 3:
        raise ValueError(f"expected 3 thresholds, got {len(parts)}: {raw!r}")
    t1, t2, t3 = (float(p) for p in parts)
    if not (t1 < t2 < t3):
        raise ValueError(f"thresholds must be ascending: {raw!r}")
    return (t1, t2, t3)


_lock = threading.Lock()
_cached: Settings | None = None
_loaded_at = 0.0


def get_settings() -> Settings:
    """Return the current settings, reloading once the TTL has expired.

    A reload that fails validation keeps serving the previous settings.
    """
    global _cached, _loaded_at
    with _lock:
        now = time.monotonic()
        if _cached is not None and now - _loaded_at < _cached.config_ttl_seconds:
            return _cached
        try:
            fresh = Settings()
        except ValueError as e:
            if _cached is None:
                raise
            logger.warning("Settings reload failed, keeping stale settings: %s", e)
            _loaded_at = now
            return _cached
        if _cached is not None and fresh != _cached:
            logger.info("Settings reloaded")
        _cached = fresh
        _loaded_at = now
        return _cached


def refresh_settings() -> Settings:
    """Drop the cache and re-read settings immediately."""
    global _cached
    with _lock:
        _cached = None
    return get_settings()
