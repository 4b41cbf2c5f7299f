"""
Sentry initialization. A no-op unless SENTRY_DSN is set.

Ingest triggers carry the shared bearer secret, so request headers are
scrubbed before any event leaves the process.
"""

import logging

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from services.ingest.config import Settings

logger = logging.getLogger(__name__)

SENSITIVE_HEADERS = frozenset({"authorization", "cookie", "apikey", "x-api-key"})


def _strip_sensitive_data(event, hint):
    request = event.get("request") or {}
    headers = request.get("headers")
    if isinstance(headers, dict):
        for key in list(headers):
            if key.lower() in SENSITIVE_HEADERS:
                headers[key] = "[Filtered]"
    return event


def setup_sentry(settings: Settings) -> bool:
    if not settings.sentry_dsn:
        return False

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.node_env,
        release=f"{settings.app_name}@{settings.app_version}",
        traces_sample_rate=settings.sentry_traces_sample_rate,
        send_default_pii=False,
        before_send=_strip_sensitive_data,
        integrations=[
            FastApiIntegration(),
            # Error entries are captured explicitly by the ingest error handler
            LoggingIntegration(level=logging.INFO, event_level=None),
        ],
    )
    logger.info("Sentry initialized for %s", settings.node_env)
    return True
