"""Merge facts extracted from the font binary with web-sourced claims.

Extracted values win every contradiction. Web values that agree with the
binary are trusted more; web values that disagree are kept only as provenance.
Source facts (citation kind, distribution channel, foundry type, license
flags) come from fixed URL patterns and are best-effort.
"""

from __future__ import annotations

import logging
from urllib.parse import urlparse

from fontsense.models.analysis import (
    AttributedName,
    LicenseInfo,
    ReconciledFacts,
    SourceFacts,
    WebEnrichment,
)
from fontsense.models.facts import ParsedFontFacts, ProvenanceEntry
from fontsense.models.taxonomy import LicenseType, SourceType, WarningTag

logger = logging.getLogger(__name__)

EXTRACTED_CONFIDENCE = 0.9
MATCH_BONUS = 0.1
MATCH_CAP = 0.95

# name-table ids the parser reads these fields from
_NAME_REFS = {"foundry": "name#8", "designer": "name#9"}

_DOMAIN_KINDS: list[tuple[str, str]] = [
    ("fonts.google.com", "font_library"),
    ("github.com/google/fonts", "font_library"),
    ("fonts.adobe.com", "font_library"),
    ("github.com", "code_repository"),
    ("gitlab.com", "code_repository"),
    ("wikipedia.org", "encyclopedia"),
    ("myfonts.com", "retailer"),
    ("fonts.com", "retailer"),
    ("fontspring.com", "retailer"),
    ("youworkforthem.com", "retailer"),
    ("dafont.com", "free_aggregator"),
    ("fontsquirrel.com", "free_aggregator"),
    ("1001fonts.com", "free_aggregator"),
    ("fontlibrary.org", "free_aggregator"),
    ("monotype.com", "foundry_site"),
    ("linotype.com", "foundry_site"),
    ("typography.com", "foundry_site"),
    ("commercialtype.com", "foundry_site"),
    ("klim.co.nz", "foundry_site"),
    ("typotheque.com", "foundry_site"),
    ("fontfabric.com", "foundry_site"),
    ("grillitype.com", "foundry_site"),
    ("dinamo.us", "foundry_site"),
    ("fontsinuse.com", "usage_archive"),
]

_MAJOR_FOUNDRIES = {
    "monotype", "linotype", "adobe", "google", "apple", "microsoft", "bitstream",
    "itc", "urw", "urw++", "hoefler&co", "hoefler & co.", "commercial type", "berthold",
}

_OPEN_LICENSES = {
    LicenseType.OFL, LicenseType.APACHE_2_0, LicenseType.MIT, LicenseType.GPL, LicenseType.CC_BY,
}


def _same(a: str, b: str) -> bool:
    return a.strip().casefold() == b.strip().casefold()


def _extracted_ref(facts: ParsedFontFacts, field: str) -> str:
    entries = facts.provenance.get(field)
    if entries:
        return entries[-1].source_ref
    return _NAME_REFS.get(field, field)


def _merge_name(
    field: str,
    extracted: str | None,
    web: AttributedName | None,
    facts: ParsedFontFacts,
    merged: ReconciledFacts,
) -> AttributedName | None:
    if extracted and web:
        if _same(extracted, web.name):
            confidence = min(MATCH_CAP, web.confidence + MATCH_BONUS)
            merged.provenance.append(ProvenanceEntry(
                source_type=SourceType.WEB,
                source_ref=web.source_url,
                method="reconciliation",
                confidence=confidence,
                note=f"{field} confirmed by {_extracted_ref(facts, field)}",
            ))
            return web.model_copy(update={"confidence": confidence})

        merged.provenance.append(ProvenanceEntry(
            source_type=SourceType.EXTRACTED,
            source_ref=_extracted_ref(facts, field),
            method="reconciliation",
            confidence=EXTRACTED_CONFIDENCE,
            note=f"{field} kept from font binary",
        ))
        merged.provenance.append(ProvenanceEntry(
            source_type=SourceType.WEB,
            source_ref=web.source_url,
            method="reconciliation",
            confidence=web.confidence / 2,
            note=f"rejected web {field} {web.name!r}",
        ))
        merged.contradictions.append(f"{field}: extracted {extracted!r} vs web {web.name!r}")
        if WarningTag.WEB_CLAIMS_DISAGREE not in merged.warnings:
            merged.warnings.append(WarningTag.WEB_CLAIMS_DISAGREE)
        logger.info("Web %s %r contradicts extracted %r, keeping extracted", field, web.name, extracted)
        return AttributedName(name=extracted, confidence=EXTRACTED_CONFIDENCE, source_url="extracted")

    if extracted:
        return AttributedName(name=extracted, confidence=EXTRACTED_CONFIDENCE, source_url="extracted")
    return web


def classify_source(url: str, vendor_url: str | None = None) -> str:
    """Kind of site a citation URL points at."""
    parsed = urlparse(url if "://" in url else f"https://{url}")
    host = (parsed.hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    location = host + parsed.path.lower()
    for pattern, kind in _DOMAIN_KINDS:
        if location.startswith(pattern) or host.endswith("." + pattern.split("/")[0]):
            return kind
    if vendor_url:
        vendor_host = (urlparse(vendor_url if "://" in vendor_url else f"https://{vendor_url}").hostname or "").lower()
        if vendor_host.startswith("www."):
            vendor_host = vendor_host[4:]
        if vendor_host and host == vendor_host:
            return "foundry_site"
    return "web"


def _distribution_channel(urls: list[str], kinds: dict[str, str]) -> str:
    lowered = [u.lower() for u in urls]
    if any("fonts.google.com" in u or "github.com/google/fonts" in u for u in lowered):
        return "google_fonts"
    if any("fonts.adobe.com" in u for u in lowered):
        return "adobe_fonts"
    values = set(kinds.values())
    for kind, channel in (
        ("foundry_site", "foundry_direct"),
        ("retailer", "commercial_retail"),
        ("code_repository", "open_source_repository"),
        ("free_aggregator", "free_download"),
    ):
        if kind in values:
            return channel
    return "unknown"


def _foundry_type(foundry: AttributedName | None, license: LicenseInfo | None, channel: str) -> str:
    if foundry is not None and foundry.name.strip().casefold() in _MAJOR_FOUNDRIES:
        return "major"
    if (license is not None and license.type in _OPEN_LICENSES) or channel in ("google_fonts", "open_source_repository"):
        return "open_source"
    if foundry is not None:
        return "independent"
    return "unknown"


def _license_flags(license: LicenseInfo | None, fs_type: int | None) -> list[str]:
    flags: list[str] = []
    kind = license.type if license is not None else LicenseType.UNKNOWN
    if kind in _OPEN_LICENSES:
        flags += ["open_source", "commercial_use_allowed"]
    elif kind == LicenseType.PUBLIC_DOMAIN:
        flags += ["public_domain", "commercial_use_allowed"]
    elif kind == LicenseType.PROPRIETARY_COMMERCIAL:
        flags += ["commercial", "requires_purchase"]
    elif kind == LicenseType.CUSTOM_NON_COMMERCIAL:
        flags.append("non_commercial_only")
    else:
        flags.append("license_unknown")

    # OS/2 fsType embedding permissions
    if fs_type is not None:
        if fs_type & 0x0002:
            flags.append("embedding_restricted")
        elif fs_type & 0x0004:
            flags.append("embedding_preview_print")
        elif fs_type & 0x0008:
            flags.append("embedding_editable")
        else:
            flags.append("embedding_installable")
        if fs_type & 0x0200:
            flags.append("bitmap_embedding_only")
    return flags


def _citations(web: WebEnrichment, extra: list[str]) -> list[str]:
    urls: list[str] = []
    candidates = [*extra]
    for attributed in (web.foundry, web.designer, web.license):
        if attributed is not None:
            candidates.append(attributed.source_url)
    if web.historical_context is not None and web.historical_context.source_url:
        candidates.append(web.historical_context.source_url)
    candidates.extend(p.source_url for p in web.people if p.source_url)
    candidates.extend(e.source_ref for e in web.provenance if e.source_type == SourceType.WEB)
    for url in candidates:
        if url and url != "extracted" and "." in url and url not in urls:
            urls.append(url)
    return urls


def derive_source_facts(
    facts: ParsedFontFacts,
    web: WebEnrichment,
    foundry: AttributedName | None,
    citations: list[str] | None = None,
) -> SourceFacts:
    urls = _citations(web, citations or [])
    kinds = {url: classify_source(url, facts.vendor_url) for url in urls}
    channel = _distribution_channel(urls, kinds)
    return SourceFacts(
        source_kinds=kinds,
        distribution_channel=channel,
        foundry_type=_foundry_type(foundry, web.license, channel),
        license_flags=_license_flags(web.license, facts.fs_type),
    )


def reconcile(
    extracted: ParsedFontFacts,
    web: WebEnrichment | None,
    citations: list[str] | None = None,
) -> ReconciledFacts:
    """Merge ``extracted`` facts with ``web`` claims; extracted wins contradictions."""
    web = web or WebEnrichment()
    merged = ReconciledFacts(
        historical_context=web.historical_context,
        license=web.license,
        alternate_names=list(web.alternate_names),
        language_targets=list(web.language_targets),
        people=list(web.people),
        provenance=list(web.provenance),
    )
    merged.foundry = _merge_name("foundry", extracted.foundry, web.foundry, extracted, merged)
    merged.designer = _merge_name("designer", extracted.designer, web.designer, extracted, merged)

    if merged.license is None or merged.license.type == LicenseType.UNKNOWN:
        merged.warnings.append(WarningTag.LICENSE_UNKNOWN)

    merged.source_facts = derive_source_facts(extracted, web, merged.foundry, citations)
    return merged
