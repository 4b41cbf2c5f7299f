"""
Duplicate detection and cross-source merge for canonical sites.

Two relations decide whether a pair describes one real-world location:

  1. Same-site: equal non-empty address keys and closer than the threshold
  2. Probable duplicate, any of:
       - name similarity >= 0.92 within the threshold
       - at least one shared phone within the threshold
       - same city with identical, non-empty phone sets

Merge protocol:
  - The first-seen site keeps its slot; the incoming one is folded in
    via cross_source_merge(existing, incoming)
  - Geometry prefers OSM when a community fridge is involved
  - Locations more than 150 m apart raise flag_address_geo_mismatch
"""

import logging
from dataclasses import replace
from typing import Optional

from services.ingest.pipeline.geo import haversine_meters, string_similarity
from services.ingest.pipeline.models import Flags, Phone, Site, SiteType
from services.ingest.pipeline.text import collapse_ws, domain_of, phone_digits

logger = logging.getLogger(__name__)

# Proximity thresholds in meters
FRIDGE_THRESHOLD_M = 75
DEFAULT_THRESHOLD_M = 125

NAME_SIMILARITY_THRESHOLD = 0.92
GEO_MISMATCH_M = 150

OSM_SOURCE_MARKER = "osm"


# ---------------------------------------------------------------------------
# Pair predicates
# ---------------------------------------------------------------------------


def _key_part(value: Optional[str]) -> str:
    return collapse_ws(value or "").lower()


def normalize_address_key(site: Site) -> str:
    """street1|city|state|zip, lower-cased and collapsed, empty parts omitted."""
    a = site.address
    parts = (_key_part(a.street1), _key_part(a.city), _key_part(a.state), _key_part(a.zip))
    return "|".join(p for p in parts if p)


def distance_between(a: Site, b: Site) -> float:
    return haversine_meters(a.location.lat, a.location.lon, b.location.lat, b.location.lon)


def phone_set(site: Site) -> set[str]:
    return {d for d in (phone_digits(p.number) for p in site.phones) if d}


def is_same_site(a: Site, b: Site, threshold_m: float = DEFAULT_THRESHOLD_M) -> bool:
    key_a = normalize_address_key(a)
    if not key_a or key_a != normalize_address_key(b):
        return False
    return distance_between(a, b) < threshold_m


def is_probable_duplicate(a: Site, b: Site, threshold_m: float = DEFAULT_THRESHOLD_M) -> bool:
    distance = distance_between(a, b)

    if string_similarity(a.name, b.name) >= NAME_SIMILARITY_THRESHOLD and distance <= threshold_m:
        return True

    phones_a = phone_set(a)
    phones_b = phone_set(b)
    if phones_a & phones_b and distance <= threshold_m:
        return True

    city_a = _key_part(a.address.city)
    if city_a and city_a == _key_part(b.address.city) and phones_a and phones_a == phones_b:
        return True

    return False


def is_duplicate(a: Site, b: Site, threshold_m: float = DEFAULT_THRESHOLD_M) -> bool:
    return is_same_site(a, b, threshold_m) or is_probable_duplicate(a, b, threshold_m)


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def _is_osm(site: Site) -> bool:
    return OSM_SOURCE_MARKER in site.source.lower()


def _union_phones(a: list[Phone], b: list[Phone]) -> list[Phone]:
    seen: set[str] = set()
    merged = []
    for phone in a + b:
        digits = phone_digits(phone.number)
        if digits in seen:
            continue
        seen.add(digits)
        merged.append(phone)
    return merged


def _merge_flags(a: Flags, b: Flags, geo_mismatch: bool) -> Flags:
    return Flags(
        flag_address_geo_mismatch=a.flag_address_geo_mismatch or b.flag_address_geo_mismatch or geo_mismatch,
        flag_unparseable_hours=a.flag_unparseable_hours or b.flag_unparseable_hours,
        flag_broken_url=a.flag_broken_url or b.flag_broken_url,
        flag_stale_record=a.flag_stale_record or b.flag_stale_record,
        flag_sparse_record=a.flag_sparse_record and b.flag_sparse_record,
    )


def cross_source_merge(a: Site, b: Site) -> Site:
    """
    Fold b into a. Not commutative: name ties, phone order, and every
    field not named below come from a.
    """
    location = a.location
    address = a.address
    involves_fridge = SiteType.COMMUNITY_FRIDGE in (a.site_type, b.site_type)
    if involves_fridge and _is_osm(b) and not _is_osm(a):
        location = b.location
        if b.address.street1:
            address = b.address

    distance = distance_between(a, b)
    geo_mismatch = distance > GEO_MISMATCH_M

    website = a.website or b.website
    a_has_parsed = any(h.parsed for h in a.hours)
    b_has_parsed = any(h.parsed for h in b.hours)

    source_merge: dict = {"sources": [a.source, b.source]}
    if geo_mismatch:
        source_merge["conflicts"] = {
            "location_a": {"lat": a.location.lat, "lon": a.location.lon},
            "location_b": {"lat": b.location.lat, "lon": b.location.lon},
            "distance_m": distance,
        }

    return replace(
        a,
        site_id=f"merged:{a.site_id}:{b.site_id}",
        name=b.name if len(b.name) > len(a.name) else a.name,
        location=location,
        address=address,
        website=website,
        website_domain=domain_of(website) if website != a.website else a.website_domain,
        phones=_union_phones(a.phones, b.phones),
        hours=b.hours if b_has_parsed and not a_has_parsed else a.hours,
        flags=_merge_flags(a.flags, b.flags, geo_mismatch),
        raw={**a.raw, "source_merge": source_merge},
    )


# ---------------------------------------------------------------------------
# Deduplication
# ---------------------------------------------------------------------------


def _dedup_pass(sites: list[Site], threshold_m: float) -> tuple[list[Site], int]:
    unique: list[Site] = []
    seen_ids: set[str] = set()
    merges = 0

    for site in sites:
        target_idx = next(
            (i for i, existing in enumerate(unique) if is_duplicate(site, existing, threshold_m)),
            None,
        )
        if target_idx is not None:
            merged = cross_source_merge(unique[target_idx], site)
            logger.debug("Merged %s into %s", site.site_id, unique[target_idx].site_id)
            unique[target_idx] = merged
            seen_ids.add(merged.site_id)
            merges += 1
        elif site.site_id not in seen_ids:
            unique.append(site)
            seen_ids.add(site.site_id)

    return unique, merges


def deduplicate_sites(sites: list[Site], threshold_m: float = DEFAULT_THRESHOLD_M) -> list[Site]:
    """
    Collapse duplicates, keeping first-seen order.

    A merge can move a site's location or widen its phone set, so passes
    repeat until one makes no merge. The result is therefore stable under
    a second call with the same threshold.
    """
    result = list(sites)
    total_merges = 0
    while True:
        result, merges = _dedup_pass(result, threshold_m)
        total_merges += merges
        if merges == 0:
            break

    if total_merges:
        logger.info("Dedup merged %d site(s): %d -> %d", total_merges, len(sites), len(result))
    return result


def reconcile_sources(
    existing: list[Site], incoming: list[Site], threshold_m: float = DEFAULT_THRESHOLD_M
) -> list[Site]:
    """Merge a second provider's sites into an existing canonical list."""
    return deduplicate_sites(existing + incoming, threshold_m)
