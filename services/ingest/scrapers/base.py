"""
Base adapter framework for upstream location feeds.

An adapter knows one provider's wire shape. It builds the fetch request,
decodes the payload, and turns each upstream feature into an
IntermediateRecord. Fetching itself goes through an injected Fetcher so a
run can be exercised without the network.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Protocol

import httpx

from services.ingest.errors import MalformedFeature, UpstreamUnavailable
from services.ingest.pipeline.models import IntermediateRecord

logger = logging.getLogger(__name__)


@dataclass
class SourceRegistry:
    """Source registration metadata."""
    name: str               # provider tag, also the external_source.name key
    base_url: str
    dedup_threshold_m: float
    total_key: str          # response field reporting the upstream feature count
    label: str = ""         # human name used in failure messages
    optional: bool = False  # upstream outages end the run with a warning, not an error


@dataclass
class FetchRequest:
    url: str
    method: str = "GET"
    body: Optional[bytes] = None
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class AdapterResult:
    records: list[IntermediateRecord]
    total: int
    dropped: int = 0


class Fetcher(Protocol):
    async def fetch(self, request: FetchRequest) -> bytes:
        """Return the response body, or raise UpstreamUnavailable."""
        ...


class HttpxFetcher:
    """Fetcher backed by a shared httpx.AsyncClient. Never retries."""

    def __init__(self, client: httpx.AsyncClient, timeout_s: float = 30.0):
        self.client = client
        self.timeout_s = timeout_s

    async def fetch(self, request: FetchRequest) -> bytes:
        try:
            response = await self.client.request(
                request.method,
                request.url,
                content=request.body,
                headers=request.headers,
                timeout=self.timeout_s,
            )
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"Fetch failed: {e.__class__.__name__}: {e}") from e

        if not response.is_success:
            raise UpstreamUnavailable(
                f"API returned {response.status_code} {response.reason_phrase}".strip()
            )
        return response.content


class BaseAdapter(ABC):
    """
    Abstract base class for all provider adapters.

    Provides:
    - Source registry pattern
    - JSON payload decoding
    - Per-feature isolation: a malformed feature is logged and dropped
    """

    SOURCE_REGISTRY: Optional[SourceRegistry] = None

    USER_AGENT = "Wefrigerator Community Fridge Locator"

    def __init__(self, url: Optional[str] = None):
        if self.SOURCE_REGISTRY is None:
            raise ValueError(f"{self.__class__.__name__} must define SOURCE_REGISTRY")
        self.url = url or self.SOURCE_REGISTRY.base_url

    @property
    def source(self) -> str:
        return self.SOURCE_REGISTRY.name

    @abstractmethod
    def build_request(self) -> FetchRequest:
        """Describe the single upstream request for a run."""

    @abstractmethod
    def features(self, payload: Any) -> list[Any]:
        """Pull the list of raw upstream features out of a decoded payload."""

    @abstractmethod
    def parse(self, feature: Any, now: datetime) -> Optional[IntermediateRecord]:
        """
        Turn one raw feature into an intermediate record.

        Returns None when the feature is filtered out (no usable
        coordinates, outside the service area). Raises MalformedFeature
        when the feature cannot be read at all.
        """

    def decode(self, body: bytes) -> Any:
        try:
            return json.loads(body)
        except (ValueError, UnicodeDecodeError) as e:
            raise UpstreamUnavailable(f"{self.source} returned an unparseable payload: {e}") from e

    def records(self, payload: Any, now: datetime) -> AdapterResult:
        features = self.features(payload)
        records = []
        dropped = 0

        for feature in features:
            try:
                record = self.parse(feature, now)
            except MalformedFeature as e:
                dropped += 1
                logger.warning("Dropped malformed %s feature: %s", self.source, e)
                continue
            if record is None:
                dropped += 1
                continue
            records.append(record)

        logger.info(
            "Parsed %d/%d features from %s (%d dropped)",
            len(records), len(features), self.source, dropped,
        )
        return AdapterResult(records=records, total=len(features), dropped=dropped)

    def get_headers(self) -> dict[str, str]:
        """Get HTTP headers with a descriptive User-Agent."""
        return {"User-Agent": self.USER_AGENT}
