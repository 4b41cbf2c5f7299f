"""
Relevance scores and data-quality flags for a classified site.

All scores are in [0, 1]. open_now and population_fit are fixed until a
query-time clock and user context are available to the pipeline.
"""

from typing import Optional

from services.ingest.pipeline.models import (
    Flags,
    FreshnessBucket,
    HoursEntry,
    Phone,
    ServiceTag,
    SiteType,
)
from services.ingest.pipeline.text import is_valid_url

RECENCY_SCORES: dict[Optional[FreshnessBucket], float] = {
    FreshnessBucket.UNDER_12_MONTHS: 1.0,
    FreshnessBucket.MONTHS_12_TO_24: 0.6,
    FreshnessBucket.OVER_24_MONTHS: 0.2,
    None: 0.2,
}

FOOD_SITE_TYPES = frozenset({
    SiteType.COMMUNITY_FRIDGE,
    SiteType.FOOD_PANTRY,
    SiteType.FOOD_BANK,
    SiteType.SOUP_KITCHEN,
    SiteType.SENIOR_MEALS,
})

FOOD_SERVICE_TAGS = frozenset({
    ServiceTag.COMMUNITY_FRIDGE,
    ServiceTag.MUTUAL_AID,
    ServiceTag.FREE_STORE,
    ServiceTag.FOOD_PANTRY,
    ServiceTag.FOOD_BANK_WHOLESALE,
    ServiceTag.CONGREGATE_MEAL,
    ServiceTag.HOME_DELIVERED_MEAL,
    ServiceTag.HOLIDAY_MEAL,
})

SITE_TYPE_WEIGHT = 0.5
SERVICE_TAG_WEIGHT = 0.3

OPEN_NOW_SCORE = 0.0
POPULATION_FIT_SCORE = 0.6


def compute_recency_score(bucket: Optional[FreshnessBucket]) -> float:
    return RECENCY_SCORES[bucket]


def compute_open_now_score(hours: list[HoursEntry]) -> float:
    return OPEN_NOW_SCORE


def compute_specificity_score(site_type: Optional[SiteType], service_tags: list[ServiceTag]) -> float:
    """How squarely a site is about food: 0.5 for the type, 0.3 for the tags."""
    score = 0.0
    if site_type in FOOD_SITE_TYPES:
        score += SITE_TYPE_WEIGHT
    if any(tag in FOOD_SERVICE_TAGS for tag in service_tags):
        score += SERVICE_TAG_WEIGHT
    return min(round(score, 2), 1.0)


def compute_population_fit_score(population_tags: list) -> float:
    return POPULATION_FIT_SCORE


def generate_quality_flags(
    hours: list[HoursEntry],
    phones: list[Phone],
    website: Optional[str],
    freshness_bucket: Optional[FreshnessBucket],
) -> Flags:
    # Geo mismatch is only ever raised by cross-source merge
    return Flags(
        flag_address_geo_mismatch=False,
        flag_unparseable_hours=any(not h.parsed for h in hours),
        flag_broken_url=website is not None and not is_valid_url(website),
        flag_stale_record=freshness_bucket == FreshnessBucket.OVER_24_MONTHS,
        flag_sparse_record=not phones and not hours,
    )
