"""
Tests for the provider adapters.

Covers:
- request construction for each feed
- feature -> IntermediateRecord field mapping and defaults
- per-feature isolation of malformed input
- OSM source_meta, raw_hash and image extraction
- Freedge response shapes, coordinate spellings and the bounding box
- HttpxFetcher status handling over httpx.MockTransport
"""

import json

import httpx
import pytest

from services.ingest.errors import MalformedFeature, UpstreamUnavailable
from services.ingest.pipeline.models import Address, Location, Phone, ProviderKind
from services.ingest.scrapers import ArcGISLAAdapter, FreedgeAdapter, HttpxFetcher, OverpassAdapter
from services.ingest.scrapers.arcgis_la import ARCGIS_LA_URL
from services.ingest.scrapers.base import FetchRequest
from services.ingest.scrapers.freedge import LA_BOUNDS, BoundingBox, extract_coordinates
from services.ingest.scrapers.overpass import OVERPASS_QUERY, compute_raw_hash, extract_images
from services.ingest.tests.conftest import (
    NOW,
    make_arcgis_feature,
    make_feature_collection,
    make_freedge_location,
    make_osm_element,
    make_overpass_result,
)


# ---------------------------------------------------------------------------
# ArcGIS
# ---------------------------------------------------------------------------

class TestArcGISLAAdapter:
    def setup_method(self):
        self.adapter = ArcGISLAAdapter()

    def test_request(self):
        request = self.adapter.build_request()
        assert request.method == "GET"
        assert request.url == ARCGIS_LA_URL
        assert "f=geojson" in request.url
        assert request.headers["User-Agent"]

    def test_url_override(self):
        assert ArcGISLAAdapter(url="http://mirror/query").build_request().url == "http://mirror/query"

    def test_field_mapping(self):
        feature = make_arcgis_feature(
            addrln1="123 main st",
            city="los angeles",
            state="CA",
            zip="90012",
            hours="Mon-Fri 9am-5pm",
            phones="Info (213) 555-1212",
            url="www.urm.org",
            email="help@urm.org",
            org_name="Union Rescue Mission Inc",
            cat1="Shelters",
            post_id="883",
        )
        record = self.adapter.parse(feature, NOW)

        assert record.kind == ProviderKind.ARCGIS
        assert record.site_id == "lac-156:OBJECTID-1"
        assert record.location == Location(lat=34.05, lon=-118.25)
        assert record.address == Address(street1="123 Main St", city="Los Angeles", state="CA", zip="90012")
        assert record.hours[0].days == "Mon-Fri"
        assert record.phones == [Phone(number="(213) 555-1212", label="Info")]
        assert record.websites == ["https://www.urm.org"]
        assert record.emails == ["help@urm.org"]
        assert record.categories == ["Shelters"]
        assert record.post_id == 883
        assert record.updated_at == "2024-05-07T00:00:00.000Z"
        assert record.raw["OBJECTID"] == 1

    def test_default_name(self):
        record = self.adapter.parse(make_arcgis_feature(Name=None), NOW)
        assert record.name == "Food Distribution Site"
        assert record.raw_name is None

    def test_missing_object_id_gets_stable_fallback(self):
        first = self.adapter.parse(make_arcgis_feature(OBJECTID=None), NOW)
        second = self.adapter.parse(make_arcgis_feature(OBJECTID=None), NOW)
        assert first.site_id.startswith("lac-156:OBJECTID-h")
        assert first.site_id == second.site_id

    @pytest.mark.parametrize("lon, lat", [(None, None), ("-118.2", "34.0"), (float("nan"), 34.0)])
    def test_unusable_coordinates_are_filtered(self, lon, lat):
        assert self.adapter.parse(make_arcgis_feature(lon, lat), NOW) is None

    def test_non_object_feature_is_malformed(self):
        with pytest.raises(MalformedFeature):
            self.adapter.parse(["not", "a", "feature"], NOW)

    def test_records_counts_drops(self):
        payload = make_feature_collection(make_arcgis_feature(), 7, make_arcgis_feature(None, None))
        result = self.adapter.records(payload, NOW)
        assert result.total == 3
        assert result.dropped == 2
        assert len(result.records) == 1

    def test_non_finite_numbers_do_not_break_parsing(self):
        body = json.dumps(make_feature_collection(
            make_arcgis_feature(),
            make_arcgis_feature(-118.3, 34.1, OBJECTID=2, post_id="1e999"),
            make_arcgis_feature(-118.35, 34.15, OBJECTID=3, date_updated=float("inf")),
        )).encode("utf-8")
        assert b"Infinity" in body

        result = self.adapter.records(self.adapter.decode(body), NOW)

        assert [r.site_id for r in result.records] == [
            "lac-156:OBJECTID-1", "lac-156:OBJECTID-2", "lac-156:OBJECTID-3",
        ]
        assert result.records[1].post_id is None
        assert result.records[2].updated_at is None

    def test_missing_features_key(self):
        assert self.adapter.records({"error": "busy"}, NOW).total == 0

    def test_decode_rejects_non_json(self):
        with pytest.raises(UpstreamUnavailable):
            self.adapter.decode(b"<html></html>")


# ---------------------------------------------------------------------------
# Overpass
# ---------------------------------------------------------------------------

class TestOverpassAdapter:
    def setup_method(self):
        self.adapter = OverpassAdapter()

    def test_request_posts_query_as_text(self):
        request = self.adapter.build_request()
        assert request.method == "POST"
        assert request.headers["Content-Type"] == "text/plain"
        assert request.headers["User-Agent"]
        assert request.body == OVERPASS_QUERY.encode("utf-8")
        assert 'node["amenity"="food_sharing"]' in OVERPASS_QUERY

    def test_node(self):
        element = make_osm_element(
            **{
                "addr:housenumber": "2601",
                "addr:street": "sunset blvd",
                "addr:city": "Los Angeles",
                "contact:phone": "+1 323 555 0100",
                "website": "lafridge.org",
                "image": "https://img.example/fridge.jpg",
                "image:1": "https://img.example/inside.jpg",
            }
        )
        record = self.adapter.parse(element, NOW)

        assert record.kind == ProviderKind.OSM
        assert record.site_id == "osm-node:42"
        assert record.name == "Silver Lake Fridge"
        assert record.address.street1 == "2601 Sunset Blvd"
        assert record.address.state == "CA"
        assert record.phones == [Phone(number="+1 323 555 0100", label="Contact")]
        assert record.websites == ["https://lafridge.org"]
        assert record.updated_at == "2024-06-01T12:00:00Z"
        assert record.raw["images"] == ["https://img.example/fridge.jpg", "https://img.example/inside.jpg"]

    def test_source_meta(self):
        record = self.adapter.parse(make_osm_element(), NOW)
        meta = record.raw["source_meta"]
        assert meta["provider"] == "OpenStreetMap"
        assert meta["osm_type"] == "node"
        assert meta["osm_id"] == 42
        assert meta["osm_version"] == 3
        assert meta["last_seen_at"] == "2024-08-01T00:00:00.000Z"
        assert meta["raw_hash"] == compute_raw_hash(record.tags, 34.1, -118.3)

    def test_way_uses_center(self):
        record = self.adapter.parse(make_osm_element(7, "way", lat=34.2, lon=-118.4), NOW)
        assert record.site_id == "osm-way:7"
        assert record.location == Location(lat=34.2, lon=-118.4)

    def test_name_fallbacks(self):
        assert self.adapter.parse(make_osm_element(name=None, operator="Mutual Aid LA"), NOW).name == "Mutual Aid LA"
        assert self.adapter.parse(make_osm_element(name=None), NOW).name == "Community Fridge"

    def test_unknown_element_is_malformed(self):
        with pytest.raises(MalformedFeature):
            self.adapter.parse({"type": "area", "id": 1}, NOW)

    def test_way_without_center_is_filtered(self):
        element = make_osm_element(9, "way")
        del element["center"]
        assert self.adapter.parse(element, NOW) is None

    def test_raw_hash_is_order_independent(self):
        assert compute_raw_hash({"a": "1", "b": "2"}, 34.0, -118.0) == compute_raw_hash({"b": "2", "a": "1"}, 34.0, -118.0)
        assert compute_raw_hash({"a": "1"}, 34.0, -118.0) != compute_raw_hash({"a": "1"}, 34.0000001, -118.0)

    def test_images_skip_invalid(self):
        assert extract_images({"image": "not a url", "image:0": "img.example/a.jpg"}) == ["https://img.example/a.jpg"]

    def test_records(self):
        payload = make_overpass_result(make_osm_element(1), make_osm_element(2), "junk")
        result = self.adapter.records(payload, NOW)
        assert result.total == 3
        assert [r.site_id for r in result.records] == ["osm-node:1", "osm-node:2"]


# ---------------------------------------------------------------------------
# Freedge
# ---------------------------------------------------------------------------

class TestFreedgeAdapter:
    def setup_method(self):
        self.adapter = FreedgeAdapter()

    def test_bare_array_and_wrapped_shapes(self):
        row = make_freedge_location()
        assert self.adapter.features([row]) == [row]
        assert self.adapter.features({"locations": [row]}) == [row]
        assert self.adapter.features({"data": [row]}) == []

    @pytest.mark.parametrize("row", [
        {"lat": 34.0, "lng": -118.4},
        {"lat": 34.0, "lon": -118.4},
        {"latitude": 34.0, "longitude": -118.4},
        {"coordinates": {"lat": 34.0, "lng": -118.4}},
        {"location": {"lat": 34.0, "lng": -118.4}},
        {"lat": 34.0, "longitude": -118.4},
        {"latitude": 34.0, "lon": -118.4},
        {"lat": "34.0", "latitude": 34.0, "coordinates": {"lng": -118.4}},
    ])
    def test_coordinate_spellings(self, row):
        assert extract_coordinates(row) == Location(lat=34.0, lon=-118.4)

    def test_bounding_box(self):
        assert LA_BOUNDS.contains(34.0, -118.4)
        assert not LA_BOUNDS.contains(35.0, -117.0)
        assert self.adapter.parse(make_freedge_location(35.0, -117.0), NOW) is None

    def test_custom_bounds(self):
        adapter = FreedgeAdapter(bounds=BoundingBox(min_lat=34.5, max_lat=35.5, min_lng=-118.0, max_lng=-116.0))
        assert adapter.parse(make_freedge_location(35.0, -117.0), NOW) is not None

    def test_record(self):
        row = make_freedge_location(
            description="Fridge and pantry shelf",
            hours="24 hours",
            phone="(323) 555-0101",
            website="echoparkfridge.org",
            address={"street": "1 park ave", "city": "los angeles", "state": "CA", "zip": "90026"},
        )
        record = self.adapter.parse(row, NOW)

        assert record.kind == ProviderKind.LOCATOR
        assert record.site_id == "fr-1"
        assert record.name == "Echo Park Fridge"
        assert record.tags["amenity"] == "food_sharing"
        assert record.tags["opening_hours"] == "24 hours"
        assert record.address.street1 == "1 Park Ave"
        assert record.phones == [Phone(number="(323) 555-0101")]
        assert record.websites == ["https://echoparkfridge.org"]

    def test_id_falls_back_to_coordinates(self):
        record = self.adapter.parse(make_freedge_location(34.0, -118.4, id=None), NOW)
        assert record.site_id == "34,-118.4"

    def test_string_address(self):
        record = self.adapter.parse(make_freedge_location(address=" 1 Park Ave, LA "), NOW)
        assert record.address == Address(street1="1 Park Ave, LA")

    def test_default_name(self):
        assert self.adapter.parse(make_freedge_location(name=None), NOW).name == "Community Fridge"


# ---------------------------------------------------------------------------
# HttpxFetcher
# ---------------------------------------------------------------------------

class TestHttpxFetcher:
    @pytest.mark.asyncio
    async def test_returns_body_and_sends_request(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return httpx.Response(200, content=b'{"elements": []}')

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            body = await HttpxFetcher(client).fetch(OverpassAdapter().build_request())

        assert body == b'{"elements": []}'
        assert seen["request"].method == "POST"
        assert seen["request"].content == OVERPASS_QUERY.encode("utf-8")

    @pytest.mark.asyncio
    async def test_non_2xx(self):
        async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(503))) as client:
            with pytest.raises(UpstreamUnavailable, match="API returned 503 Service Unavailable"):
                await HttpxFetcher(client).fetch(FetchRequest(url="http://upstream/x"))

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(UpstreamUnavailable, match="Fetch failed: ConnectError"):
                await HttpxFetcher(client).fetch(FetchRequest(url="http://upstream/x"))
