"""
Projection of canonical sites onto the external place store, and the two
store backends.

  - PostgrestSink: Supabase/PostgREST over HTTP (service key auth)
  - SqlAlchemySink: direct PostgreSQL through SQLAlchemy async + asyncpg

Both upsert on (source_id, source_place_id) and overwrite every other
column. A run either writes all of its records or raises
SinkUpsertFailure; partial success is never reported.
"""

import logging
from datetime import datetime
from typing import Any, Optional, Protocol

import httpx
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from services.ingest.db.models import ExternalPlace, ExternalSource
from services.ingest.errors import ConfigurationMissing, SinkUpsertFailure
from services.ingest.pipeline.models import Site, to_jsonable
from services.ingest.pipeline.text import parse_iso, to_iso

logger = logging.getLogger(__name__)

UPSERT_COLUMNS = ("name", "address", "lat", "lng", "raw", "last_seen_at")


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------


def format_address(site: Site) -> str:
    return ", ".join(site.address.components())


def project_site(site: Site, source_id: str, now: datetime) -> dict[str, Any]:
    return {
        "source_id": source_id,
        "source_place_id": site.site_id,
        "name": site.name,
        "address": format_address(site),
        "lat": site.location.lat,
        "lng": site.location.lon,
        "raw": to_jsonable(site),
        "last_seen_at": to_iso(now),
    }


def project_sites(sites: list[Site], source_id: str, now: datetime) -> list[dict[str, Any]]:
    return [project_site(s, source_id, now) for s in sites]


# ---------------------------------------------------------------------------
# Sinks
# ---------------------------------------------------------------------------


class PlaceSink(Protocol):
    async def lookup_source_id(self, source: str) -> Optional[str]:
        """Return the store's id for a provider tag, or None."""
        ...

    async def upsert_places(self, records: list[dict[str, Any]]) -> int:
        """Upsert every record; return the number written."""
        ...


class PostgrestSink:
    """Supabase REST sink sharing the app's httpx.AsyncClient."""

    def __init__(self, client: httpx.AsyncClient, base_url: str, service_key: str, timeout_s: float = 30.0):
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.service_key = service_key
        self.timeout_s = timeout_s

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": "application/json",
        }

    async def lookup_source_id(self, source: str) -> Optional[str]:
        try:
            response = await self.client.get(
                f"{self.base_url}/rest/v1/external_source",
                params={"select": "id", "name": f"eq.{source}"},
                headers=self._headers(),
                timeout=self.timeout_s,
            )
            response.raise_for_status()
            rows = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise SinkUpsertFailure(f"Source lookup failed: {e}") from e

        if not isinstance(rows, list) or not rows:
            return None
        return rows[0].get("id")

    async def upsert_places(self, records: list[dict[str, Any]]) -> int:
        if not records:
            return 0

        headers = self._headers()
        headers["Prefer"] = "resolution=merge-duplicates,return=minimal"
        try:
            response = await self.client.post(
                f"{self.base_url}/rest/v1/external_place",
                params={"on_conflict": "source_id,source_place_id"},
                json=records,
                headers=headers,
                timeout=self.timeout_s,
            )
        except httpx.HTTPError as e:
            raise SinkUpsertFailure(f"Database upsert failed: {e}") from e

        if not response.is_success:
            raise SinkUpsertFailure(f"Database upsert failed: {response.status_code} {response.text}")
        return len(records)


class SqlAlchemySink:
    """Direct PostgreSQL sink; one session and one commit per run."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def lookup_source_id(self, source: str) -> Optional[str]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(ExternalSource.id).where(ExternalSource.name == source)
                )
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise SinkUpsertFailure(f"Source lookup failed: {e}") from e

    async def upsert_places(self, records: list[dict[str, Any]]) -> int:
        if not records:
            return 0

        rows = [{**r, "last_seen_at": parse_iso(r["last_seen_at"])} for r in records]
        stmt = pg_insert(ExternalPlace).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=[ExternalPlace.source_id, ExternalPlace.source_place_id],
            set_={col: stmt.excluded[col] for col in UPSERT_COLUMNS},
        )

        try:
            async with self.session_factory() as session:
                await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as e:
            raise SinkUpsertFailure(f"Database upsert failed: {e}") from e
        return len(records)


def is_database_url(url: str) -> bool:
    return url.startswith(("postgresql://", "postgresql+asyncpg://", "postgres://"))


def build_sink(
    store_url: str,
    service_key: str,
    client: Optional[httpx.AsyncClient] = None,
    session_factory: Optional[async_sessionmaker] = None,
    timeout_s: float = 30.0,
) -> PlaceSink:
    """Pick the sink for EXTERNAL_STORE_URL, or raise ConfigurationMissing."""
    if not store_url:
        raise ConfigurationMissing("Missing external store configuration")

    if is_database_url(store_url):
        if session_factory is None:
            raise ConfigurationMissing("External store database engine is not initialized")
        return SqlAlchemySink(session_factory)

    if not service_key or client is None:
        raise ConfigurationMissing("Missing external store configuration")
    return PostgrestSink(client, store_url, service_key, timeout_s=timeout_s)
