"""
Rule-based classification of intermediate records.

Free-text feeds (ArcGIS) are classified by keyword tables over the
description, category, hours and name fields. Tagged feeds (OSM, and
locator rows with synthesized tags) are classified from structured tags
first, with keyword tables over description/note.

Single-valued fields take the first matching rule; tag lists accumulate
every matching rule in table order, without duplicates.
"""

import re
from datetime import datetime
from typing import Iterable, Optional, Sequence, TypeVar

from services.ingest.pipeline.models import (
    AccessModel,
    Classification,
    FreshnessBucket,
    HoursEntry,
    IntermediateRecord,
    OrgType,
    PopulationTag,
    ProviderKind,
    ServiceTag,
    SiteType,
)
from services.ingest.pipeline.text import parse_iso
from services.ingest.scrapers.parsing import NTH_WEEKDAY_RE, TWENTY_FOUR_SEVEN_RE

T = TypeVar("T")

Rule = tuple[tuple[re.Pattern, ...], T]


def _re(pattern: str) -> re.Pattern:
    return re.compile(pattern, re.IGNORECASE)


# ---------------------------------------------------------------------------
# Free-text rule tables
# ---------------------------------------------------------------------------

# Every pattern in a rule must match. Order is resolution order.
SITE_TYPE_RULES: list[Rule] = [
    ((_re(r"\b(food\s+bank|distribut(es?|ing)\s+to\s+(member\s+)?(charities|agencies))\b"),), SiteType.FOOD_BANK),
    ((_re(r"\b(shelter|emergency\s+housing|24\s*hour.*\bbeds?)\b"),), SiteType.SHELTER),
    (
        (
            _re(r"\bsenior|\b60\s*\+|\bcongregate\s+dining\b|\bdining\s+center\b|\bhome\s+delivered\s+meal"),
            _re(r"\bmeal"),
        ),
        SiteType.SENIOR_MEALS,
    ),
    ((_re(r"\b(soup\s+kitchen|cafe|dining|meals?\s+served|free\s+meals?)\b"),), SiteType.SOUP_KITCHEN),
    (
        (
            _re(r"\b(city\s+of|county|department|municipal|government)\b"),
            _re(r"\b(recreation|human\s+services|social\s+services)\b"),
        ),
        SiteType.GOV_CENTER,
    ),
    ((_re(r"\b(church|ministry|parish|synagogue|mosque|temple|faith\s+based)\b"),), SiteType.CHURCH_PROGRAM),
    ((_re(r"\b(youth|boys\s+and\s+girls|ymca|ywca)\b"),), SiteType.YOUTH_CENTER),
    (
        (_re(r"\b(counseling|utility\s+aid|employment|job\s+training|immigration|legal\s+aid)\b"),),
        SiteType.MULTI_SERVICE,
    ),
    ((_re(r"\b(food|pantry|distribution|emergency)\b"),), SiteType.FOOD_PANTRY),
]

SERVICE_TAG_RULES: list[Rule] = [
    ((_re(r"\b(food\s+pantry|emergency\s+food|food\s+distribution)\b"),), ServiceTag.FOOD_PANTRY),
    ((_re(r"\b(food\s+bank|distribut(es?|ing)\s+to\s+agencies)\b"),), ServiceTag.FOOD_BANK_WHOLESALE),
    ((_re(r"\b(congregate\s+meals?|dining|cafe|meals?\s+served|free\s+meals?)\b"),), ServiceTag.CONGREGATE_MEAL),
    ((_re(r"\b(home\s+delivered|meals?\s+on\s+wheels)\b"),), ServiceTag.HOME_DELIVERED_MEAL),
    ((_re(r"\b(holiday\s+meals?|thanksgiving|christmas)\b"),), ServiceTag.HOLIDAY_MEAL),
    ((_re(r"\b(shelter|emergency\s+housing)\b"),), ServiceTag.SHELTER),
    ((_re(r"\b(utility\s+aid|utility\s+assistance|energy\s+assistance)\b"),), ServiceTag.UTILITY_AID),
    ((_re(r"\b(counseling|therapy|mental\s+health)\b"),), ServiceTag.COUNSELING),
    ((_re(r"\b(employment|job\s+training|job\s+placement|workforce)\b"),), ServiceTag.EMPLOYMENT),
    ((_re(r"\b(immigration|visa|citizenship)\b"),), ServiceTag.IMMIGRATION),
    ((_re(r"\b(youth\s+programs?|after\s+school|tutoring|mentoring)\b"),), ServiceTag.YOUTH_PROGRAMS),
    ((_re(r"\bsenior\s+services?\b|\b60\s*\+|\belderly\b|\baging\b"),), ServiceTag.SENIOR_SERVICES),
    ((_re(r"\b(health\s+clinic|medical|dental|vision)\b"),), ServiceTag.HEALTH_CLINIC),
]

POPULATION_TAG_RULES: list[Rule] = [
    ((_re(r"\bsenior|\b60\s*\+|\belderly\b|\baging\b"),), PopulationTag.SENIORS_60_PLUS),
    ((_re(r"\b(famil(y|ies)|children|kids|parents)\b"),), PopulationTag.FAMILIES_WITH_CHILDREN),
    ((_re(r"\b(homeless|unhoused|shelter)\b"),), PopulationTag.HOMELESS),
    ((_re(r"\b(hiv|aids)\b"),), PopulationTag.HIV_AIDS),
    ((_re(r"\b(undocumented|immigration\s+status|regardless\s+of\s+status)\b"),), PopulationTag.UNDOCUMENTED),
    ((_re(r"\b(zip\s+codes?|restricted\s+to|residents\s+of)\b"),), PopulationTag.ZIP_RESTRICTED),
    ((_re(r"\b(youth|teens?|adolescents?|young\s+adults?)\b"),), PopulationTag.YOUTH),
    ((_re(r"\b(veterans?|military|va)\b"),), PopulationTag.VETERANS),
]

ACCESS_MODEL_RULES: list[Rule] = [
    ((TWENTY_FOUR_SEVEN_RE,), AccessModel.TWENTY_FOUR_SEVEN),
    ((NTH_WEEKDAY_RE,), AccessModel.SCHEDULED_DAYS),
    ((_re(r"\b(specific|designated)\s+days?\b"),), AccessModel.SCHEDULED_DAYS),
    ((_re(r"\b(appointment|call\s+ahead|schedule)\b"),), AccessModel.APPOINTMENT),
    ((_re(r"\b(walk[\s-]?ins?|open\s+to\s+(the\s+)?public|no\s+appointment)\b"),), AccessModel.WALK_IN),
]

FAITH_RE = _re(
    r"\b(church|ministry|ministries|parish|synagogue|mosque|temple|cathedral|chapel"
    r"|baptist|catholic|lutheran|methodist|presbyterian)\b"
)

ORG_TYPE_RULES: list[Rule] = [
    ((FAITH_RE,), OrgType.FAITH_BASED),
    ((_re(r"\b(city\s+of|county|department|municipal|government|public\s+health)\b"),), OrgType.GOVERNMENT),
    ((_re(r"\b(mutual\s+aid|collective|grassroots)\b"),), OrgType.COLLECTIVE),
]

# ---------------------------------------------------------------------------
# Tagged (OSM) rule tables
# ---------------------------------------------------------------------------

OSM_AMENITY_SITE_TYPES: dict[str, SiteType] = {
    "food_sharing": SiteType.COMMUNITY_FRIDGE,
    "food_bank": SiteType.FOOD_BANK,
    "shelter": SiteType.SHELTER,
}

OSM_SOCIAL_FACILITY_SITE_TYPES: dict[str, SiteType] = {
    "soup_kitchen": SiteType.SOUP_KITCHEN,
    "food_bank": SiteType.SOUP_KITCHEN,
    "shelter": SiteType.SHELTER,
}

OSM_AMENITY_SERVICE_TAGS: dict[str, tuple[ServiceTag, ...]] = {
    "food_sharing": (ServiceTag.COMMUNITY_FRIDGE, ServiceTag.MUTUAL_AID),
    "food_bank": (ServiceTag.FOOD_BANK_WHOLESALE,),
    "give_box": (ServiceTag.FREE_STORE,),
    "shelter": (ServiceTag.SHELTER,),
}

OSM_DESCRIPTION_SERVICE_RULES: list[Rule] = [
    ((_re(r"pantry|food\s+distribution"),), ServiceTag.FOOD_PANTRY),
    ((_re(r"free\s+store"),), ServiceTag.FREE_STORE),
    ((_re(r"meal|soup\s+kitchen"),), ServiceTag.CONGREGATE_MEAL),
]

OSM_POPULATION_RULES: list[Rule] = [
    ((_re(r"\bsenior|\belderly\b|\b60\s*\+|\bover\s+60\b"),), PopulationTag.SENIORS_60_PLUS),
    ((_re(r"\b(families|children|kids|youth\s+programs)\b"),), PopulationTag.FAMILIES_WITH_CHILDREN),
    ((_re(r"\b(homeless|unhoused|housing\s+insecure)\b"),), PopulationTag.HOMELESS),
    ((_re(r"\b(veterans?|vets)\b"),), PopulationTag.VETERANS),
    ((_re(r"\b(youth|teens?|young\s+adults?)\b"),), PopulationTag.YOUTH),
]

OSM_ORG_TYPE_RULES: list[Rule] = [
    ((FAITH_RE,), OrgType.FAITH_BASED),
    ((_re(r"\b(city|county|state|federal|municipal|government|public|dept)\b"),), OrgType.GOVERNMENT),
    ((_re(r"\b(collective|mutual\s+aid|community|grassroots|volunteers?)\b"),), OrgType.COLLECTIVE),
]

OSM_DAY_PREFIX_RE = re.compile(r"\b(Mo|Tu|We|Th|Fr|Sa|Su)\b")
OSM_APPOINTMENT_ACCESS = frozenset({"private", "customers"})
ORG_SUFFIX_RE = _re(r"\b(foundation|organization|association|society|inc|alliance|coalition|network)\b")

ORG_ROOT_SUFFIXES: list[re.Pattern] = [
    _re(r"\s*[-–—]\s*(Hollywood|Valley|Downtown|East|West|North|South|Central)\s*$"),
    _re(r"\s*[-–—]\s*Bread\s+And\s+Roses\s+Cafe\s*$"),
    _re(r"\s*[-–—]\s*Homeless\s+Service\s+Center\s*$"),
    _re(r"\s*[-–—]\s*(Campus|Center|Site|Location|Branch)\s*$"),
    _re(r"\s*[-–—]\s*\d+\s*$"),
    _re(r"\s*\((Main|Branch|Site)\)\s*$"),
]

DAYS_PER_MONTH = 30


# ---------------------------------------------------------------------------
# Rule evaluation
# ---------------------------------------------------------------------------


def _joined(*parts: Optional[str]) -> str:
    return " ".join(p for p in parts if p).lower()


def _matches(patterns: Sequence[re.Pattern], text: str) -> bool:
    return all(p.search(text) for p in patterns)


def first_match(rules: Iterable[Rule], text: str) -> Optional[T]:
    for patterns, value in rules:
        if _matches(patterns, text):
            return value
    return None


def all_matches(rules: Iterable[Rule], text: str) -> list[T]:
    found: list[T] = []
    for patterns, value in rules:
        if value not in found and _matches(patterns, text):
            found.append(value)
    return found


def _extend_unique(target: list[T], values: Iterable[T]) -> list[T]:
    for value in values:
        if value not in target:
            target.append(value)
    return target


# ---------------------------------------------------------------------------
# Shared derivations
# ---------------------------------------------------------------------------


def extract_org_root_name(
    name: Optional[str], org_name: Optional[str], website_domain: Optional[str]
) -> Optional[str]:
    """
    Parent organization name for clustering.

    Prefers an explicit org name; otherwise strips branch/site suffixes from
    the site name; without a name, uses the first label of the domain.
    """
    if org_name and org_name.strip():
        return org_name.strip()

    if not name or not name.strip():
        return website_domain.split(".")[0] if website_domain else None

    cleaned = name.strip()
    for suffix in ORG_ROOT_SUFFIXES:
        cleaned = suffix.sub("", cleaned).strip()
    return cleaned or name.strip()


def calculate_freshness_bucket(updated_at: Optional[str], now: datetime) -> Optional[FreshnessBucket]:
    updated = parse_iso(updated_at)
    if updated is None:
        return None

    months_ago = (now - updated).total_seconds() / (DAYS_PER_MONTH * 24 * 60 * 60)
    if months_ago < 12:
        return FreshnessBucket.UNDER_12_MONTHS
    if months_ago < 24:
        return FreshnessBucket.MONTHS_12_TO_24
    return FreshnessBucket.OVER_24_MONTHS


def _is_twenty_four_seven(hours: list[HoursEntry]) -> bool:
    return any(h.parsed and h.days == "24/7" for h in hours)


# ---------------------------------------------------------------------------
# Free-text classification
# ---------------------------------------------------------------------------


def classify_site_type(
    description: Optional[str], categories: Sequence[str], name: Optional[str]
) -> Optional[SiteType]:
    return first_match(SITE_TYPE_RULES, _joined(description, *categories, name))


def extract_service_tags(description: Optional[str], categories: Sequence[str]) -> list[ServiceTag]:
    return all_matches(SERVICE_TAG_RULES, _joined(description, *categories))


def extract_population_tags(
    description: Optional[str], hours_text: Optional[str], operator: Optional[str] = None
) -> list[PopulationTag]:
    return all_matches(POPULATION_TAG_RULES, _joined(description, hours_text, operator))


def determine_access_model(hours_text: Optional[str], description: Optional[str]) -> Optional[AccessModel]:
    model = first_match(ACCESS_MODEL_RULES, _joined(hours_text, description))
    if model is None and hours_text and hours_text.strip():
        return AccessModel.WALK_IN
    return model


def classify_org_type(
    name: Optional[str], org_name: Optional[str], description: Optional[str]
) -> Optional[OrgType]:
    # Every free-text feed row is published by some organization
    return first_match(ORG_TYPE_RULES, _joined(name, org_name, description)) or OrgType.NONPROFIT


def _classify_free_text(record: IntermediateRecord) -> Classification:
    return Classification(
        site_type=classify_site_type(record.description, record.categories, record.name),
        service_tags=extract_service_tags(record.description, record.categories),
        population_tags=extract_population_tags(record.description, record.hours_text, record.org_name),
        access_model=determine_access_model(record.hours_text, record.description),
        org_type=classify_org_type(record.name, record.org_name, record.description),
    )


# ---------------------------------------------------------------------------
# Tagged (OSM) classification
# ---------------------------------------------------------------------------


def classify_osm_site_type(tags: dict[str, str]) -> Optional[SiteType]:
    amenity = (tags.get("amenity") or "").lower()
    if amenity == "social_facility":
        facility = (tags.get("social_facility") or "").lower()
        if facility in OSM_SOCIAL_FACILITY_SITE_TYPES:
            return OSM_SOCIAL_FACILITY_SITE_TYPES[facility]
        if (tags.get("social_facility:for") or "").lower() == "homeless":
            return SiteType.SHELTER
        return None
    return OSM_AMENITY_SITE_TYPES.get(amenity)


def extract_osm_service_tags(tags: dict[str, str]) -> list[ServiceTag]:
    amenity = (tags.get("amenity") or "").lower()
    service_tags = list(OSM_AMENITY_SERVICE_TAGS.get(amenity, ()))

    description = _joined(tags.get("description") or tags.get("note"))
    _extend_unique(service_tags, all_matches(OSM_DESCRIPTION_SERVICE_RULES, description))

    if (tags.get("social_facility") or "").lower() == "shelter":
        _extend_unique(service_tags, [ServiceTag.SHELTER])
    return service_tags


def extract_osm_population_tags(tags: dict[str, str]) -> list[PopulationTag]:
    text = _joined(tags.get("description"), tags.get("note"), tags.get("social_facility:for"), tags.get("name"))
    population_tags = all_matches(OSM_POPULATION_RULES, text)
    if (tags.get("access") or "").lower() == "permissive":
        _extend_unique(population_tags, [PopulationTag.ACCESS_PERMISSIVE])
    return population_tags


def determine_osm_access_model(tags: dict[str, str], hours: list[HoursEntry]) -> Optional[AccessModel]:
    opening_hours = tags.get("opening_hours") or ""
    if _is_twenty_four_seven(hours):
        return AccessModel.TWENTY_FOUR_SEVEN
    if (tags.get("access") or "").lower() in OSM_APPOINTMENT_ACCESS:
        return AccessModel.APPOINTMENT
    if OSM_DAY_PREFIX_RE.search(opening_hours):
        return AccessModel.SCHEDULED_DAYS
    if (tags.get("amenity") or "").lower() == "food_sharing":
        return AccessModel.WALK_IN
    return None


def classify_osm_org_type(tags: dict[str, str]) -> Optional[OrgType]:
    operator = tags.get("operator") or ""
    name = tags.get("name") or ""
    org_type = first_match(OSM_ORG_TYPE_RULES, _joined(operator, name, tags.get("description")))
    if org_type is not None:
        return org_type
    if (tags.get("amenity") or "").lower() == "food_sharing":
        return OrgType.COLLECTIVE
    if operator.strip() or ORG_SUFFIX_RE.search(name):
        return OrgType.NONPROFIT
    return None


def _classify_tagged(record: IntermediateRecord) -> Classification:
    tags = record.tags
    return Classification(
        site_type=classify_osm_site_type(tags),
        service_tags=extract_osm_service_tags(tags),
        population_tags=extract_osm_population_tags(tags),
        access_model=determine_osm_access_model(tags, record.hours),
        org_type=classify_osm_org_type(tags),
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def classify(record: IntermediateRecord, now: datetime, website_domain: Optional[str] = None) -> Classification:
    """Derive every classified field of a Site from its intermediate record."""
    if record.kind == ProviderKind.ARCGIS:
        result = _classify_free_text(record)
    else:
        result = _classify_tagged(record)

    result.org_root_name = extract_org_root_name(record.raw_name, record.org_name, website_domain)
    result.freshness_bucket = calculate_freshness_bucket(record.updated_at, now)
    return result
