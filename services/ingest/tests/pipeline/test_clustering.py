"""Tests for org clustering: grouping key, unknown-singleton drop, ordering."""

from services.ingest.pipeline.clustering import cluster_by_org
from services.ingest.pipeline.models import OrgType, SiteType
from services.ingest.tests.conftest import make_site


def _church_site(n: int):
    return make_site(
        site_id=f"lac-156:OBJECTID-{n}",
        name=f"St. Mark's Church - Site {n}",
        org_root_name="St. Mark's Church",
        org_type=OrgType.FAITH_BASED,
        site_type=SiteType.CHURCH_PROGRAM,
        website="https://stmarks.org",
        website_domain="stmarks.org",
    )


class TestClusterByOrg:
    def test_s5_three_sites_one_cluster_unknown_dropped(self):
        sites = [_church_site(1), _church_site(2), _church_site(3), make_site(site_id="lone")]
        clusters = cluster_by_org(sites)

        assert len(clusters) == 1
        cluster = clusters[0]
        assert cluster.org_root_name == "St. Mark's Church"
        assert cluster.org_type == OrgType.FAITH_BASED
        assert cluster.website_domain == "stmarks.org"
        assert [s.site_id for s in cluster.sites] == [
            "lac-156:OBJECTID-1", "lac-156:OBJECTID-2", "lac-156:OBJECTID-3",
        ]

    def test_unknown_pair_is_kept(self):
        clusters = cluster_by_org([make_site(site_id="a"), make_site(site_id="b")])
        assert len(clusters) == 1
        assert clusters[0].org_root_name == "Unknown Organization"

    def test_known_singleton_is_kept(self):
        clusters = cluster_by_org([make_site(org_root_name="Hope Kitchen")])
        assert [c.org_root_name for c in clusters] == ["Hope Kitchen"]

    def test_same_name_different_domain_split(self):
        a = make_site(site_id="a", org_root_name="Hope", website_domain="hope.org")
        b = make_site(site_id="b", org_root_name="Hope", website_domain="hope.net")
        assert len(cluster_by_org([a, b])) == 2

    def test_sorted_by_size_then_name(self):
        sites = [
            make_site(site_id="z1", org_root_name="Zion Pantry"),
            make_site(site_id="a1", org_root_name="Alpha Pantry"),
            make_site(site_id="b1", org_root_name="Beta Pantry"),
            make_site(site_id="b2", org_root_name="Beta Pantry"),
        ]
        assert [c.org_root_name for c in cluster_by_org(sites)] == ["Beta Pantry", "Alpha Pantry", "Zion Pantry"]

    def test_partitions_sites(self):
        sites = [_church_site(1), _church_site(2), make_site(site_id="x", org_root_name="Hope"),
                 make_site(site_id="lone")]
        clustered = [s.site_id for c in cluster_by_org(sites) for s in c.sites]
        assert sorted(clustered) == sorted(["lac-156:OBJECTID-1", "lac-156:OBJECTID-2", "x"])
        assert len(clustered) == len(set(clustered))

    def test_projection_is_narrow(self):
        site = cluster_by_org([_church_site(1)])[0].sites[0]
        assert site.site_type == SiteType.CHURCH_PROGRAM
        assert not hasattr(site, "raw")
