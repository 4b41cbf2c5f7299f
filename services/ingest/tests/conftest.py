"""
Shared test fixtures for the ingest service test suite.

Provides:
- async FastAPI test client with fake fetcher/sink/clock overrides
- factory functions for upstream features (ArcGIS, OSM, Freedge) and Sites
- FakeFetcher / FakeSink so no test touches the network or a database
"""

import json
import os
from datetime import datetime, timezone
from typing import Any, Optional

import pytest
from httpx import ASGITransport, AsyncClient

# Ensure test env vars before any app imports
os.environ.setdefault("NODE_ENV", "test")
os.environ.setdefault("INGEST_SECRET", "test-secret")
os.environ.setdefault("EXTERNAL_STORE_URL", "")
os.environ.setdefault("SENTRY_DSN", "")

from services.ingest.errors import UpstreamUnavailable  # noqa: E402
from services.ingest.pipeline.models import (  # noqa: E402
    Address,
    Flags,
    HoursEntry,
    Location,
    Phone,
    Site,
)
from services.ingest.scrapers.base import FetchRequest  # noqa: E402

NOW = datetime(2024, 8, 1, tzinfo=timezone.utc)
AUTH_HEADERS = {"Authorization": "Bearer test-secret"}


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeFetcher:
    """Returns a canned payload (or raises) and records every request."""

    def __init__(self, payload: Any = None, error: Optional[Exception] = None, body: Optional[bytes] = None):
        self.payload = payload
        self.error = error
        self.body = body
        self.requests: list[FetchRequest] = []

    async def fetch(self, request: FetchRequest) -> bytes:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.body is not None:
            return self.body
        return json.dumps(self.payload).encode("utf-8")


class FakeSink:
    """In-memory external store keyed on (source_id, source_place_id)."""

    def __init__(self, source_ids: Optional[dict[str, str]] = None, upsert_error: Optional[Exception] = None):
        self.source_ids = source_ids if source_ids is not None else {
            "lac_charitable_food": "src-lac",
            "osm_overpass": "src-osm",
            "freedge": "src-freedge",
        }
        self.upsert_error = upsert_error
        self.rows: dict[tuple[str, str], dict] = {}
        self.upsert_calls: list[list[dict]] = []
        self.lookups: list[str] = []

    async def lookup_source_id(self, source: str) -> Optional[str]:
        self.lookups.append(source)
        return self.source_ids.get(source)

    async def upsert_places(self, records: list[dict]) -> int:
        if self.upsert_error is not None:
            raise self.upsert_error
        if not records:
            return 0
        self.upsert_calls.append(records)
        for record in records:
            self.rows[(record["source_id"], record["source_place_id"])] = record
        return len(records)


def unavailable(message: str = "API returned 503 Service Unavailable") -> UpstreamUnavailable:
    return UpstreamUnavailable(message)


# ---------------------------------------------------------------------------
# FastAPI test client
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_sink():
    return FakeSink()


@pytest.fixture
def fake_fetcher():
    return FakeFetcher(payload={"features": []})


@pytest.fixture
def settings():
    from services.ingest.config import Settings

    return Settings(node_env="production", ingest_secret="test-secret", external_store_url="")


@pytest.fixture
async def app(settings, fake_fetcher, fake_sink):
    """Test app with fakes injected in place of the network and the store."""
    from services.ingest.main import app as _app
    from services.ingest.routers._ingest_deps import get_fetcher, get_now, get_sink

    _app.state.settings = settings
    _app.dependency_overrides[get_fetcher] = lambda: fake_fetcher
    _app.dependency_overrides[get_sink] = lambda: fake_sink
    _app.dependency_overrides[get_now] = lambda: NOW
    yield _app
    _app.dependency_overrides.clear()


@pytest.fixture
async def client(app):
    """Async HTTP client bound to the test app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Factory functions: upstream features
# ---------------------------------------------------------------------------

def make_arcgis_feature(lon: Any = -118.25, lat: Any = 34.05, **props: Any) -> dict:
    properties = {
        "OBJECTID": 1,
        "Name": "Union Rescue Mission",
        "description": "Emergency shelter and free meals",
        "date_updated": 1715040000000,
    }
    properties.update(props)
    return {
        "type": "Feature",
        "geometry": {"type": "Point", "coordinates": [lon, lat]},
        "properties": properties,
    }


def make_feature_collection(*features: dict) -> dict:
    return {"type": "FeatureCollection", "features": list(features)}


def make_osm_element(
    element_id: int = 42,
    element_type: str = "node",
    lat: Any = 34.1,
    lon: Any = -118.3,
    **tags: Any,
) -> dict:
    all_tags = {"amenity": "food_sharing", "name": "Silver Lake Fridge", "opening_hours": "24/7"}
    all_tags.update(tags)
    element = {
        "type": element_type,
        "id": element_id,
        "version": 3,
        "timestamp": "2024-06-01T12:00:00Z",
        "tags": {k: v for k, v in all_tags.items() if v is not None},
    }
    if element_type == "node":
        element["lat"] = lat
        element["lon"] = lon
    else:
        element["center"] = {"lat": lat, "lon": lon}
    return element


def make_overpass_result(*elements: dict) -> dict:
    return {"version": 0.6, "elements": list(elements)}


def make_freedge_location(lat: Any = 34.0, lng: Any = -118.4, **fields: Any) -> dict:
    location = {"id": "fr-1", "name": "Echo Park Fridge", "lat": lat, "lng": lng}
    location.update(fields)
    return location


# ---------------------------------------------------------------------------
# Factory functions: canonical sites
# ---------------------------------------------------------------------------

def make_site(**overrides: Any) -> Site:
    defaults: dict[str, Any] = {
        "site_id": "lac-156:OBJECTID-1",
        "name": "Community Fridge A",
        "location": Location(lat=34.05, lon=-118.25),
        "source": "lac_charitable_food",
        "address": Address(),
        "hours": [HoursEntry(days="Mon-Fri", opens="09:00", closes="17:00")],
        "phones": [Phone(number="(213) 555-1212")],
        "flags": Flags(),
        "raw": {"OBJECTID": 1},
    }
    defaults.update(overrides)
    return Site(**defaults)


def offset_north(location: Location, meters: float) -> Location:
    """A location `meters` due north (1 degree of latitude ~ 111195 m)."""
    return Location(lat=location.lat + meters / 111_194.93, lon=location.lon)
