"""
Provider adapters for the ingest service.

All adapters inherit from BaseAdapter and provide:
- Source registry metadata (provider tag, endpoint, dedup threshold)
- Request construction for the injected Fetcher
- Per-feature parsing into IntermediateRecord
"""

from .base import (
    AdapterResult,
    BaseAdapter,
    FetchRequest,
    Fetcher,
    HttpxFetcher,
    SourceRegistry,
)
from .arcgis_la import ArcGISLAAdapter
from .freedge import FreedgeAdapter
from .overpass import OverpassAdapter

__all__ = [
    "AdapterResult",
    "BaseAdapter",
    "FetchRequest",
    "Fetcher",
    "HttpxFetcher",
    "SourceRegistry",
    "ArcGISLAAdapter",
    "FreedgeAdapter",
    "OverpassAdapter",
]
