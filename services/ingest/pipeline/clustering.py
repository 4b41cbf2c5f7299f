"""Group canonical sites into parent-organization clusters."""

import logging

from services.ingest.pipeline.models import ClusteredSite, OrgCluster, Site

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"
UNKNOWN_ORGANIZATION = "Unknown Organization"


def cluster_key(site: Site) -> tuple[str, str]:
    return (site.org_root_name or UNKNOWN, site.website_domain or UNKNOWN)


def _project(site: Site) -> ClusteredSite:
    return ClusteredSite(
        site_id=site.site_id,
        name=site.name,
        site_type=site.site_type,
        address=site.address,
        location=site.location,
        service_tags=site.service_tags,
        population_tags=site.population_tags,
    )


def cluster_by_org(sites: list[Site]) -> list[OrgCluster]:
    """
    Cluster on (org_root_name, website_domain).

    A lone site with neither part known carries no organization signal and
    is left out. Largest clusters first, then by org_root_name.
    """
    groups: dict[tuple[str, str], list[Site]] = {}
    for site in sites:
        groups.setdefault(cluster_key(site), []).append(site)

    clusters = []
    for key, members in groups.items():
        if key == (UNKNOWN, UNKNOWN) and len(members) == 1:
            continue
        first = members[0]
        clusters.append(OrgCluster(
            org_root_name=first.org_root_name or UNKNOWN_ORGANIZATION,
            org_type=first.org_type,
            website=first.website,
            website_domain=first.website_domain,
            sites=[_project(s) for s in members],
        ))

    clusters.sort(key=lambda c: (-len(c.sites), c.org_root_name))
    logger.debug("Clustered %d sites into %d organizations", len(sites), len(clusters))
    return clusters
