"""
One ingest run for one provider.

    registry lookup -> fetch -> decode -> build sites -> dedup -> cluster -> upsert

The only suspension points are the store calls and the single upstream
fetch. Everything between them is synchronous and deterministic for a
given payload and `now`. Nothing is written unless every earlier step
succeeded.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from services.ingest.errors import IngestError, SourceRegistryMiss, UpstreamUnavailable
from services.ingest.pipeline.clustering import cluster_by_org
from services.ingest.pipeline.dedup import deduplicate_sites
from services.ingest.pipeline.models import OrgCluster, Site, to_jsonable
from services.ingest.pipeline.sink import PlaceSink, project_sites
from services.ingest.pipeline.site_builder import build_sites
from services.ingest.scrapers.base import BaseAdapter, Fetcher

logger = logging.getLogger(__name__)

UNAVAILABLE_HINT = "Consider manual curation or alternative data source."


@dataclass
class IngestResult:
    source: str
    total_key: str
    total: int = 0
    kept: int = 0
    upserted: int = 0
    sites: list[Site] = field(default_factory=list)
    org_clusters: list[OrgCluster] = field(default_factory=list)
    warning: Optional[str] = None

    def to_response(self, include_sites: bool = True, include_kept: bool = False) -> dict[str, Any]:
        body: dict[str, Any] = {
            "success": True,
            "source": self.source,
            "upserted": self.upserted,
            self.total_key: self.total,
        }
        if self.warning is not None:
            body["warning"] = self.warning
            return body
        if include_kept:
            body["filtered_to_la"] = self.kept
        if include_sites:
            body["sites"] = to_jsonable(self.sites)
            body["org_clusters"] = to_jsonable(self.org_clusters)
        return body


async def run_ingest(adapter: BaseAdapter, fetcher: Fetcher, sink: PlaceSink, now: datetime) -> IngestResult:
    """
    Run the whole pipeline for one adapter.

    Raises an IngestError subclass on any run-level failure. An optional
    provider that is unreachable yields a result with a warning and no
    upserts instead.
    """
    registry = adapter.SOURCE_REGISTRY
    result = IngestResult(source=adapter.source, total_key=registry.total_key)

    try:
        source_id = await sink.lookup_source_id(adapter.source)
        if source_id is None:
            raise SourceRegistryMiss(adapter.source)

        try:
            body = await fetcher.fetch(adapter.build_request())
            payload = adapter.decode(body)
        except UpstreamUnavailable as e:
            if registry.optional:
                logger.warning("%s API fetch failed: %s", registry.label, e)
                result.warning = f"{registry.label} API unavailable: {e}. {UNAVAILABLE_HINT}"
                return result
            raise UpstreamUnavailable(f"{registry.label} API failed: {e}") from e

        parsed = adapter.records(payload, now)
        result.total = parsed.total
        result.kept = len(parsed.records)

        sites = deduplicate_sites(build_sites(parsed.records, now), registry.dedup_threshold_m)
        result.sites = sites
        result.org_clusters = cluster_by_org(sites)

        records = project_sites(sites, source_id, now)
        result.upserted = await sink.upsert_places(records)
    except IngestError as e:
        if e.source is None:
            e.source = adapter.source
        raise

    logger.info(
        "Ingested %s: %d features, %d kept, %d sites, %d clusters, %d upserted",
        adapter.source, result.total, result.kept, len(result.sites),
        len(result.org_clusters), result.upserted,
    )
    return result
