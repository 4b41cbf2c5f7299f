"""
OpenStreetMap Overpass adapter for amenity=food_sharing (community fridges).

Nodes carry lat/lon directly; ways and relations are requested with
`out center` so they carry a center point. Every record keeps a
source_meta block with a tag hash for change detection.
"""

import hashlib
import logging
from datetime import datetime
from typing import Any, Optional

from services.ingest.errors import MalformedFeature
from services.ingest.pipeline.models import IntermediateRecord, Location, Phone, ProviderKind
from services.ingest.pipeline.text import clean_text, is_valid_email, normalize_url, to_iso

from .base import BaseAdapter, FetchRequest, SourceRegistry
from .parsing import build_address, clean_phone_number, dedupe_phones, make_location, parse_opening_hours

logger = logging.getLogger(__name__)

OVERPASS_URL = "https://overpass-api.de/api/interpreter"

OVERPASS_QUERY = """[out:json][timeout:25];
area["name"="Los Angeles"]["admin_level"="8"]->.a;
(
  node["amenity"="food_sharing"](area.a);
  way["amenity"="food_sharing"](area.a);
  relation["amenity"="food_sharing"](area.a);
);
out center meta;"""

DEFAULT_NAME = "Community Fridge"
DEFAULT_STATE = "CA"

OSM_ELEMENT_TYPES = ("node", "way", "relation")

# (tag, label) in precedence order
PHONE_TAGS = [("phone", None), ("contact:phone", "Contact"), ("contact:mobile", "Mobile")]
EMAIL_TAGS = ["email", "contact:email"]
WEBSITE_TAGS = ["website", "contact:website", "url", "contact:instagram"]


def extract_coordinates(element: dict) -> Optional[Location]:
    if element.get("type") == "node":
        return make_location(element.get("lat"), element.get("lon"))
    center = element.get("center")
    if element.get("type") in ("way", "relation") and isinstance(center, dict):
        return make_location(center.get("lat"), center.get("lon"))
    return None


def extract_phones(tags: dict) -> list[Phone]:
    phones = []
    for key, label in PHONE_TAGS:
        number = clean_phone_number(tags.get(key))
        if number:
            phones.append(Phone(number=number, label=label))
    return dedupe_phones(phones)


def extract_emails(tags: dict) -> list[str]:
    emails: list[str] = []
    for key in EMAIL_TAGS:
        email = clean_text(tags.get(key))
        if email and is_valid_email(email) and email not in emails:
            emails.append(email)
    return emails


def extract_websites(tags: dict) -> list[str]:
    websites: list[str] = []
    for key in WEBSITE_TAGS:
        url, _ = normalize_url(tags.get(key))
        if url and url not in websites:
            websites.append(url)
    return websites


def extract_images(tags: dict) -> list[str]:
    """`image` first, then any `image:*` tags in tag order."""
    images: list[str] = []
    keys = ["image"] + [k for k in tags if k.startswith("image:")]
    for key in keys:
        url, _ = normalize_url(tags.get(key))
        if url and url not in images:
            images.append(url)
    return images


def compute_raw_hash(tags: dict, lat: float, lon: float) -> str:
    """First 16 hex chars of SHA-256 over sorted k=v pairs plus 7dp coordinates."""
    parts = [f"{key}={tags[key]}" for key in sorted(tags)]
    parts.append(f"{lat:.7f}")
    parts.append(f"{lon:.7f}")
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()[:16]


class OverpassAdapter(BaseAdapter):
    """Community fridges mapped in OpenStreetMap."""

    SOURCE_REGISTRY = SourceRegistry(
        name="osm_overpass",
        base_url=OVERPASS_URL,
        dedup_threshold_m=75,
        total_key="total_elements",
        label="Overpass",
    )

    def __init__(self, url: Optional[str] = None, query: str = OVERPASS_QUERY):
        super().__init__(url)
        self.query = query

    def build_request(self) -> FetchRequest:
        headers = self.get_headers()
        headers["Content-Type"] = "text/plain"
        return FetchRequest(url=self.url, method="POST", body=self.query.encode("utf-8"), headers=headers)

    def features(self, payload: Any) -> list[Any]:
        if not isinstance(payload, dict):
            return []
        elements = payload.get("elements")
        return elements if isinstance(elements, list) else []

    def parse(self, element: Any, now: datetime) -> Optional[IntermediateRecord]:
        if not isinstance(element, dict):
            raise MalformedFeature(f"element is {type(element).__name__}, not an object")
        if element.get("type") not in OSM_ELEMENT_TYPES or element.get("id") is None:
            raise MalformedFeature(f"unknown element {element.get('type')}/{element.get('id')}")

        location = extract_coordinates(element)
        if location is None:
            return None

        tags = element.get("tags") or {}
        if not isinstance(tags, dict):
            raise MalformedFeature("tags is not an object")
        tags = {str(k): str(v) for k, v in tags.items()}

        name = clean_text(tags.get("name")) or clean_text(tags.get("operator")) or DEFAULT_NAME
        websites = extract_websites(tags)
        emails = extract_emails(tags)
        timestamp = element.get("timestamp") if isinstance(element.get("timestamp"), str) else None

        street = clean_text(tags.get("addr:street"))
        housenumber = clean_text(tags.get("addr:housenumber"))
        street1 = f"{housenumber} {street}" if housenumber and street else street

        source_meta = {
            "provider": "OpenStreetMap",
            "provider_tag": self.source,
            "endpoint": "Overpass API",
            "endpoint_query": self.query,
            "osm_type": element["type"],
            "osm_id": element["id"],
            "osm_version": element.get("version"),
            "osm_timestamp": timestamp,
            "last_seen_at": to_iso(now),
            "raw_hash": compute_raw_hash(tags, location.lat, location.lon),
        }

        return IntermediateRecord(
            kind=ProviderKind.OSM,
            source=self.source,
            site_id=f"osm-{element['type']}:{element['id']}",
            name=name,
            raw_name=clean_text(tags.get("name")),
            location=location,
            address=build_address(
                street1,
                tags.get("addr:unit"),
                tags.get("addr:city"),
                tags.get("addr:state"),
                tags.get("addr:postcode"),
                default_state=DEFAULT_STATE,
            ),
            description=clean_text(tags.get("description")) or clean_text(tags.get("note")),
            hours_text=tags.get("opening_hours"),
            hours=parse_opening_hours(tags.get("opening_hours")),
            phones=extract_phones(tags),
            websites=websites,
            emails=emails,
            updated_at=timestamp,
            org_name=clean_text(tags.get("operator")),
            tags=tags,
            raw={
                "OBJECTID": element["id"],
                "osm_element": element,
                "source_meta": source_meta,
                "images": extract_images(tags),
                "websites": websites,
                "emails": emails,
            },
        )
