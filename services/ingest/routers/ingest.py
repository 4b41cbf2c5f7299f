"""
Ingest triggers, one per upstream provider.

Endpoints:
  POST /api/ingest/arcgis-la : LA County charitable food (ArcGIS)
  POST /api/ingest/overpass  : OSM community fridges (Overpass)
  POST /api/ingest/freedge   : Freedge fridge locator, LA area only

Each call runs the whole pipeline once and upserts into the external
store. Failures surface as IngestError and are rendered by the app's
exception handler.
"""

from datetime import datetime

from fastapi import APIRouter, Depends

from services.ingest.config import Settings
from services.ingest.middleware.ingest_auth import require_ingest_auth
from services.ingest.pipeline.ingest_runner import run_ingest
from services.ingest.pipeline.sink import PlaceSink
from services.ingest.routers._ingest_deps import get_fetcher, get_now, get_settings, get_sink
from services.ingest.scrapers import ArcGISLAAdapter, FreedgeAdapter, OverpassAdapter
from services.ingest.scrapers.base import Fetcher
from services.ingest.scrapers.freedge import BoundingBox

router = APIRouter(
    prefix="/api/ingest",
    tags=["ingest"],
    dependencies=[Depends(require_ingest_auth)],
)


@router.post("/arcgis-la")
async def ingest_arcgis_la(
    settings: Settings = Depends(get_settings),
    fetcher: Fetcher = Depends(get_fetcher),
    sink: PlaceSink = Depends(get_sink),
    now: datetime = Depends(get_now),
) -> dict:
    adapter = ArcGISLAAdapter(url=settings.arcgis_la_url)
    result = await run_ingest(adapter, fetcher, sink, now)
    return result.to_response()


@router.post("/overpass")
async def ingest_overpass(
    settings: Settings = Depends(get_settings),
    fetcher: Fetcher = Depends(get_fetcher),
    sink: PlaceSink = Depends(get_sink),
    now: datetime = Depends(get_now),
) -> dict:
    adapter = OverpassAdapter(url=settings.overpass_url)
    result = await run_ingest(adapter, fetcher, sink, now)
    return result.to_response()


@router.post("/freedge")
async def ingest_freedge(
    settings: Settings = Depends(get_settings),
    fetcher: Fetcher = Depends(get_fetcher),
    sink: PlaceSink = Depends(get_sink),
    now: datetime = Depends(get_now),
) -> dict:
    bounds = BoundingBox(
        min_lat=settings.la_min_lat,
        max_lat=settings.la_max_lat,
        min_lng=settings.la_min_lng,
        max_lng=settings.la_max_lng,
    )
    adapter = FreedgeAdapter(url=settings.freedge_url, bounds=bounds)
    result = await run_ingest(adapter, fetcher, sink, now)
    return result.to_response(include_sites=False, include_kept=True)
