"""
Freedge community fridge locator adapter.

The endpoint's response shape is not documented. The adapter accepts either
a bare array or {"locations": [...]}, tries several coordinate field
spellings, and keeps only rows inside the LA bounding box.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from services.ingest.errors import MalformedFeature
from services.ingest.pipeline.models import Address, IntermediateRecord, Location, Phone, ProviderKind
from services.ingest.pipeline.text import clean_text, is_valid_email, normalize_url, parse_iso, to_iso

from .base import BaseAdapter, FetchRequest, SourceRegistry
from .parsing import build_address, clean_phone_number, coerce_coordinate, make_location, parse_free_text_hours

logger = logging.getLogger(__name__)

FREEDGE_URL = "https://freedge.org/api/locations"

DEFAULT_NAME = "Community Fridge"

# Paths tried in order for each axis; a path is a tuple of keys
LAT_PATHS: list[tuple[str, ...]] = [
    ("lat",),
    ("latitude",),
    ("coordinates", "lat"),
    ("coordinates", "latitude"),
    ("location", "lat"),
]
LNG_PATHS: list[tuple[str, ...]] = [
    ("lng",),
    ("lon",),
    ("longitude",),
    ("coordinates", "lng"),
    ("coordinates", "lon"),
    ("coordinates", "longitude"),
    ("location", "lng"),
    ("location", "lon"),
]


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lng <= lng <= self.max_lng


LA_BOUNDS = BoundingBox(min_lat=33.7, max_lat=34.3, min_lng=-118.7, max_lng=-118.1)


def _dig(row: dict, path: tuple[str, ...]) -> Any:
    value: Any = row
    for key in path:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def _first_coordinate(row: dict, paths: list[tuple[str, ...]]) -> Optional[float]:
    for path in paths:
        value = coerce_coordinate(_dig(row, path))
        if value is not None:
            return value
    return None


def extract_coordinates(row: dict) -> Optional[Location]:
    """Resolve latitude and longitude independently, so mixed spellings still work."""
    return make_location(_first_coordinate(row, LAT_PATHS), _first_coordinate(row, LNG_PATHS))


def _format_coord(value: float) -> str:
    return str(int(value)) if value.is_integer() else repr(value)


def extract_address(row: dict) -> Address:
    address = row.get("address")
    if isinstance(address, dict):
        return build_address(
            address.get("street") or address.get("street1"),
            address.get("street2"),
            address.get("city"),
            address.get("state"),
            address.get("zip") or address.get("postcode"),
        )
    if isinstance(address, str) and clean_text(address):
        # A single display string; kept verbatim as street1
        return Address(street1=clean_text(address))
    return build_address(row.get("street"), None, row.get("city"), row.get("state"), row.get("zip"))


class FreedgeAdapter(BaseAdapter):
    """Freedge.org fridge directory, restricted to the LA area."""

    SOURCE_REGISTRY = SourceRegistry(
        name="freedge",
        base_url=FREEDGE_URL,
        dedup_threshold_m=75,
        total_key="total_locations",
        label="Freedge",
        optional=True,
    )

    def __init__(self, url: Optional[str] = None, bounds: BoundingBox = LA_BOUNDS):
        super().__init__(url)
        self.bounds = bounds

    def build_request(self) -> FetchRequest:
        return FetchRequest(url=self.url, headers=self.get_headers())

    def features(self, payload: Any) -> list[Any]:
        if isinstance(payload, list):
            return payload
        if isinstance(payload, dict) and isinstance(payload.get("locations"), list):
            return payload["locations"]
        return []

    def parse(self, row: Any, now: datetime) -> Optional[IntermediateRecord]:
        if not isinstance(row, dict):
            raise MalformedFeature(f"location is {type(row).__name__}, not an object")

        location = extract_coordinates(row)
        if location is None or not self.bounds.contains(location.lat, location.lon):
            return None

        raw_id = row.get("id")
        if raw_id not in (None, ""):
            place_id = str(raw_id)
        else:
            place_id = f"{_format_coord(location.lat)},{_format_coord(location.lon)}"

        name = clean_text(row.get("name")) or clean_text(row.get("title")) or DEFAULT_NAME
        description = clean_text(row.get("description"))
        hours_text = row.get("hours") if isinstance(row.get("hours"), str) else None
        website, _ = normalize_url(row.get("website") or row.get("url"))
        email = clean_text(row.get("email"))
        phone = clean_phone_number(row.get("phone"))
        updated = parse_iso(row.get("updated_at")) if isinstance(row.get("updated_at"), str) else None

        # Structured tags so the fridge-oriented tag rules classify this row
        tags = {"amenity": "food_sharing", "name": name}
        if description:
            tags["description"] = description
        if hours_text:
            tags["opening_hours"] = hours_text

        return IntermediateRecord(
            kind=ProviderKind.LOCATOR,
            source=self.source,
            site_id=place_id,
            name=name,
            raw_name=clean_text(row.get("name")) or clean_text(row.get("title")),
            location=location,
            address=extract_address(row),
            description=description,
            hours_text=hours_text,
            hours=parse_free_text_hours(hours_text),
            phones=[Phone(number=phone)] if phone else [],
            websites=[website] if website else [],
            emails=[email] if email and is_valid_email(email) else [],
            updated_at=to_iso(updated) if updated else None,
            org_name=clean_text(row.get("organization")),
            tags=tags,
            raw=dict(row),
        )
