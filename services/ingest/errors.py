"""
Failure kinds for an ingest run.

Every run-level failure is an IngestError; the app maps them to a 500 with
{"success": false, "error": <message>}. MalformedFeature never escapes an
adapter: it is caught per feature and the feature is dropped.
"""


class IngestError(Exception):
    error_kind = "ingest_error"
    source = None  # provider tag, filled in by the runner


class ConfigurationMissing(IngestError):
    error_kind = "configuration_missing"


class SourceRegistryMiss(IngestError):
    error_kind = "source_registry_miss"

    def __init__(self, source: str):
        super().__init__(f"Source '{source}' not found in source registry")
        self.source = source


class UpstreamUnavailable(IngestError):
    error_kind = "upstream_unavailable"


class SinkUpsertFailure(IngestError):
    error_kind = "sink_upsert_failure"


class MalformedFeature(Exception):
    """A single upstream feature could not be turned into a record."""
