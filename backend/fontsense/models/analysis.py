"""Validated analysis models and the tagged outcome of one inference stage.

Raw model JSON is only ever turned into these types by
``fontsense.pipeline.validation``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Generic, Literal, TypeVar, Union

from pydantic import BaseModel, Field

from fontsense.models.facts import ProvenanceEntry
from fontsense.models.taxonomy import (
    ConfidenceBand,
    LicenseType,
    Mood,
    ScriptTag,
    SerifType,
    StylePrimary,
    Substyle,
    UseCase,
    WarningTag,
)

E = TypeVar("E")


class ClassificationItem(BaseModel, Generic[E]):
    value: E
    confidence: float | None = None
    evidence_keys: list[str] = Field(default_factory=list)
    sources: list[ProvenanceEntry] = Field(default_factory=list)


class Person(BaseModel):
    role: Literal["designer", "foundry", "contributor"] = "designer"
    name: str
    source: Literal["extracted", "web"] = "web"
    confidence: float = 0.5
    source_url: str | None = None


class HistoricalContext(BaseModel):
    period: str | None = None
    cultural_influence: list[str] = Field(default_factory=list)
    notable_usage: list[str] = Field(default_factory=list)
    source_url: str | None = None


class FontAnalysis(BaseModel):
    """A classification that passed the validation boundary."""

    style_primary: ClassificationItem[StylePrimary]
    substyle: ClassificationItem[Substyle] | None = None
    moods: list[ClassificationItem[Mood]] = Field(default_factory=list)
    use_cases: list[ClassificationItem[UseCase]] = Field(default_factory=list)
    negative_tags: list[str] = Field(default_factory=list)
    warnings: list[WarningTag] = Field(default_factory=list)
    serif_type: ClassificationItem[SerifType] | None = None
    script_primary: ClassificationItem[ScriptTag] | None = None
    people: list[Person] = Field(default_factory=list)
    historical_context: HistoricalContext | None = None
    model_id: str = ""
    confidence_band: ConfidenceBand | None = None


class AttributedName(BaseModel):
    name: str
    url: str | None = None
    bio: str | None = None
    confidence: float = 0.5
    source_url: str = ""


class LicenseInfo(BaseModel):
    type: LicenseType = LicenseType.UNKNOWN
    url: str | None = None
    confidence: float = 0.5
    source_url: str = ""


class WebEnrichment(BaseModel):
    """Facts returned by the web-search enrichment call."""

    foundry: AttributedName | None = None
    designer: AttributedName | None = None
    people: list[Person] = Field(default_factory=list)
    historical_context: HistoricalContext | None = None
    license: LicenseInfo | None = None
    alternate_names: list[str] = Field(default_factory=list)
    language_targets: list[str] = Field(default_factory=list)
    provenance: list[ProvenanceEntry] = Field(default_factory=list)


class SourceFacts(BaseModel):
    """Deterministic facts derived from citation URLs."""

    source_kinds: dict[str, str] = Field(default_factory=dict)  # url -> kind
    distribution_channel: str = "unknown"
    foundry_type: str = "unknown"
    license_flags: list[str] = Field(default_factory=list)


class ReconciledFacts(BaseModel):
    """Extracted and web-sourced facts merged under the reconciliation rules."""

    foundry: AttributedName | None = None
    designer: AttributedName | None = None
    people: list[Person] = Field(default_factory=list)
    historical_context: HistoricalContext | None = None
    license: LicenseInfo | None = None
    alternate_names: list[str] = Field(default_factory=list)
    language_targets: list[str] = Field(default_factory=list)
    provenance: list[ProvenanceEntry] = Field(default_factory=list)
    warnings: list[WarningTag] = Field(default_factory=list)
    contradictions: list[str] = Field(default_factory=list)
    source_facts: SourceFacts = Field(default_factory=SourceFacts)


class ServiceFailureKind(str, enum.Enum):
    DISABLED = "disabled"
    NO_SLOT = "no_slot"
    REJECTED = "rejected"  # safety / policy block
    CLIENT_ERROR = "client_error"  # non-retryable 4xx
    EXHAUSTED = "exhausted"  # transient errors outlasted the retry budget
    EMPTY = "empty"  # call succeeded but returned no text


@dataclass(frozen=True)
class AnalysisOk:
    analysis: FontAnalysis
    warnings: list[str] = field(default_factory=list)
    kind: Literal["ok"] = "ok"


@dataclass(frozen=True)
class SchemaInvalid:
    errors: list[str]
    warnings: list[str] = field(default_factory=list)
    # Fatal means the payload could not be read as an analysis object at all
    fatal: bool = False
    kind: Literal["schema_invalid"] = "schema_invalid"


@dataclass(frozen=True)
class ServiceFailure:
    failure: ServiceFailureKind
    message: str = ""
    kind: Literal["service_failure"] = "service_failure"


AnalysisOutcome = Union[AnalysisOk, SchemaInvalid, ServiceFailure]
