"""
SQLAlchemy DeclarativeBase models for the external place store.

external_source maps a provider tag to its id; external_place holds one
row per (source_id, source_place_id). The store owns the DDL; these models
mirror the columns the ingest service writes.
"""

import uuid as _uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, ForeignKey, JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class ExternalSource(Base):
    """Provider registry: osm_overpass, lac_charitable_food, freedge."""

    __tablename__ = "external_source"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(_uuid.uuid4()))
    name: Mapped[str] = mapped_column(String, unique=True)


class ExternalPlace(Base):
    """Upsert target. Every non-key column is overwritten on conflict."""

    __tablename__ = "external_place"
    __table_args__ = (
        UniqueConstraint("source_id", "source_place_id", name="external_place_source_place_key"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(_uuid.uuid4()))
    source_id: Mapped[str] = mapped_column(String, ForeignKey("external_source.id"))
    source_place_id: Mapped[str] = mapped_column(Text)
    name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    lat: Mapped[float] = mapped_column(Float)
    lng: Mapped[float] = mapped_column(Float)
    raw: Mapped[dict] = mapped_column(JSON)
    last_seen_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
