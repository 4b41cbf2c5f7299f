"""Assemble a canonical Site from an intermediate record."""

from datetime import datetime

from services.ingest.pipeline.classification import classify
from services.ingest.pipeline.models import IntermediateRecord, Site
from services.ingest.pipeline.scoring import (
    compute_open_now_score,
    compute_population_fit_score,
    compute_recency_score,
    compute_specificity_score,
    generate_quality_flags,
)
from services.ingest.pipeline.text import domain_of


def build_site(record: IntermediateRecord, now: datetime) -> Site:
    website = record.website
    website_domain = domain_of(website)
    c = classify(record, now, website_domain=website_domain)

    return Site(
        site_id=record.site_id,
        name=record.name,
        location=record.location,
        source=record.source,
        post_id=record.post_id,
        org_root_name=c.org_root_name,
        org_type=c.org_type,
        site_type=c.site_type,
        service_tags=c.service_tags,
        population_tags=c.population_tags,
        access_model=c.access_model,
        description=record.description,
        email=record.email,
        website=website,
        website_domain=website_domain,
        address=record.address,
        hours=record.hours,
        phones=record.phones,
        updated_at=record.updated_at,
        freshness_bucket=c.freshness_bucket,
        score_recency=compute_recency_score(c.freshness_bucket),
        score_open_now=compute_open_now_score(record.hours),
        score_specificity=compute_specificity_score(c.site_type, c.service_tags),
        score_population_fit=compute_population_fit_score(c.population_tags),
        flags=generate_quality_flags(record.hours, record.phones, website, c.freshness_bucket),
        raw=record.raw,
    )


def build_sites(records: list[IntermediateRecord], now: datetime) -> list[Site]:
    return [build_site(r, now) for r in records]
