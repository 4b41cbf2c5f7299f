"""
Bearer-secret check for ingest triggers.

Authorization: Bearer <INGEST_SECRET>. With no secret configured, only a
development environment is let through.
"""

import hmac
from typing import Optional

from fastapi import HTTPException, Request

from services.ingest.config import Settings


def is_authorized(authorization: Optional[str], settings: Settings) -> bool:
    secret = settings.ingest_secret
    if not secret:
        return settings.is_development
    if not authorization:
        return False
    # Timing-safe comparison
    return hmac.compare_digest(authorization.encode("utf-8"), f"Bearer {secret}".encode("utf-8"))


async def require_ingest_auth(request: Request) -> None:
    settings: Settings = request.app.state.settings
    if not is_authorized(request.headers.get("Authorization"), settings):
        raise HTTPException(status_code=401, detail="Unauthorized")
