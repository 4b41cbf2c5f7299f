"""
LA County ArcGIS adapter (LMS_Data_Public_2014 MapServer layer 156).

The layer is requested as GeoJSON; each feature carries [lon, lat] point
geometry and a flat property bag of free-text fields.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from services.ingest.errors import MalformedFeature
from services.ingest.pipeline.models import IntermediateRecord, ProviderKind
from services.ingest.pipeline.text import clean_text, epoch_ms_to_iso, normalize_url, stable_hash

from .base import BaseAdapter, FetchRequest, SourceRegistry
from .parsing import build_address, field_text, make_location, parse_free_text_hours, parse_phone_list

logger = logging.getLogger(__name__)

ARCGIS_LA_URL = (
    "https://arcgis.gis.lacounty.gov/arcgis/rest/services/LACounty_Dynamic/"
    "LMS_Data_Public_2014/MapServer/156/query?where=1%3D1&outFields=*&f=geojson"
)

DEFAULT_NAME = "Food Distribution Site"
SITE_ID_PREFIX = "lac-156:OBJECTID-"


def _parse_post_id(value: Any) -> Optional[int]:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None


class ArcGISLAAdapter(BaseAdapter):
    """LA County charitable food locations."""

    SOURCE_REGISTRY = SourceRegistry(
        name="lac_charitable_food",
        base_url=ARCGIS_LA_URL,
        dedup_threshold_m=125,
        total_key="total_features",
        label="ArcGIS",
    )

    def build_request(self) -> FetchRequest:
        return FetchRequest(url=self.url, headers=self.get_headers())

    def features(self, payload: Any) -> list[Any]:
        if not isinstance(payload, dict):
            return []
        features = payload.get("features")
        return features if isinstance(features, list) else []

    def parse(self, feature: Any, now: datetime) -> Optional[IntermediateRecord]:
        if not isinstance(feature, dict):
            raise MalformedFeature(f"feature is {type(feature).__name__}, not an object")

        geometry = feature.get("geometry") or {}
        coordinates = geometry.get("coordinates") if isinstance(geometry, dict) else None
        if not isinstance(coordinates, (list, tuple)) or len(coordinates) < 2:
            return None
        location = make_location(coordinates[1], coordinates[0])
        if location is None:
            return None

        props = feature.get("properties") or {}
        if not isinstance(props, dict):
            raise MalformedFeature("properties is not an object")

        name = clean_text(props.get("Name")) or DEFAULT_NAME
        website, _ = normalize_url(props.get("url"))
        email = clean_text(props.get("email"))

        object_id = props.get("OBJECTID", props.get("ObjectId"))
        if object_id in (None, ""):
            # Stable fallback so re-runs upsert the same row
            object_id = "h" + stable_hash(props)

        address = build_address(
            field_text(props, "addrln1", "Address", "ADDRESS"),
            field_text(props, "addrln2"),
            field_text(props, "city", "City", "CITY"),
            field_text(props, "state", "State", "STATE"),
            field_text(props, "zip", "Zip", "ZIP"),
        )

        hours_text = props.get("hours") if isinstance(props.get("hours"), str) else None
        categories = [c for c in (clean_text(props.get(k)) for k in ("cat1", "cat2", "cat3")) if c]

        return IntermediateRecord(
            kind=ProviderKind.ARCGIS,
            source=self.source,
            site_id=f"{SITE_ID_PREFIX}{object_id}",
            name=name,
            raw_name=clean_text(props.get("Name")),
            location=location,
            address=address,
            description=clean_text(props.get("description")),
            hours_text=hours_text,
            hours=parse_free_text_hours(hours_text),
            phones=parse_phone_list(props.get("phones")),
            websites=[website] if website else [],
            emails=[email] if email else [],
            updated_at=epoch_ms_to_iso(props.get("date_updated")),
            post_id=_parse_post_id(props.get("post_id")),
            org_name=clean_text(props.get("org_name")),
            categories=categories,
            raw={
                "OBJECTID": props.get("OBJECTID", props.get("ObjectId")),
                "link": props.get("link"),
                **props,
            },
        )
