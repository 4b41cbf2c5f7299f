"""
SQLAlchemy async database module.

Re-exports the engine factory and the external store models.
"""

from services.ingest.db.engine import create_engine, create_session_factory, to_asyncpg_url
from services.ingest.db.models import Base, ExternalPlace, ExternalSource

__all__ = [
    "create_engine",
    "create_session_factory",
    "to_asyncpg_url",
    "Base",
    "ExternalPlace",
    "ExternalSource",
]
