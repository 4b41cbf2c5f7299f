"""
Application configuration via pydantic-settings.
All config read from environment variables with defaults for the LA feeds.
"""

from pydantic_settings import BaseSettings
from pydantic import Field

from services.ingest.scrapers.arcgis_la import ARCGIS_LA_URL
from services.ingest.scrapers.freedge import FREEDGE_URL
from services.ingest.scrapers.overpass import OVERPASS_URL


class Settings(BaseSettings):
    # App
    app_name: str = "wefrigerator-ingest"
    app_version: str = "0.1.0"
    node_env: str = "production"

    # Trigger auth
    ingest_secret: str = ""

    # External store: http(s) URL = PostgREST, postgresql:// URL = direct DB
    external_store_url: str = ""
    external_store_service_key: str = ""

    # Upstream feeds
    arcgis_la_url: str = ARCGIS_LA_URL
    overpass_url: str = OVERPASS_URL
    freedge_url: str = FREEDGE_URL
    upstream_timeout_s: float = Field(default=30.0, gt=0.0)

    # Sentry
    sentry_dsn: str = ""
    sentry_traces_sample_rate: float = Field(default=0.1, ge=0.0, le=1.0)

    # Freedge service area
    la_min_lat: float = 33.7
    la_max_lat: float = 34.3
    la_min_lng: float = -118.7
    la_max_lng: float = -118.1

    model_config = {"env_prefix": "", "env_file": ".env", "extra": "ignore"}

    @property
    def is_development(self) -> bool:
        return self.node_env == "development"


settings = Settings()
