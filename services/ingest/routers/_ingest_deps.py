"""Shared dependencies for ingest routers."""
from datetime import datetime, timezone

from fastapi import Request

from services.ingest.config import Settings
from services.ingest.pipeline.sink import PlaceSink, build_sink
from services.ingest.scrapers.base import Fetcher, HttpxFetcher


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_fetcher(request: Request) -> Fetcher:
    """Upstream fetcher on the shared httpx client created in lifespan."""
    settings: Settings = request.app.state.settings
    return HttpxFetcher(request.app.state.http_client, timeout_s=settings.upstream_timeout_s)


def get_sink(request: Request) -> PlaceSink:
    """
    External store sink. Raises ConfigurationMissing when the store URL
    or service key is absent, before any upstream fetch happens.
    """
    settings: Settings = request.app.state.settings
    return build_sink(
        settings.external_store_url,
        settings.external_store_service_key,
        client=getattr(request.app.state, "http_client", None),
        session_factory=getattr(request.app.state, "db_session_factory", None),
        timeout_s=settings.upstream_timeout_s,
    )


def get_now() -> datetime:
    return datetime.now(timezone.utc)
