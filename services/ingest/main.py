"""
Wefrigerator ingest service: external site ingestion and normalization.

Entrypoint: uvicorn services.ingest.main:app --host 0.0.0.0 --port 8000
"""

import logging
import uuid
from contextlib import asynccontextmanager

import httpx
import sentry_sdk
from fastapi import FastAPI, Request, Response
from starlette.responses import JSONResponse

from services.ingest.config import settings
from services.ingest.errors import IngestError
from services.ingest.middleware.sentry import setup_sentry
from services.ingest.pipeline.sink import is_database_url
from services.ingest.routers import health, ingest

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    setup_sentry(settings)

    app.state.settings = settings

    # One client for upstream feeds and the PostgREST sink
    http_client = httpx.AsyncClient(follow_redirects=True)
    app.state.http_client = http_client

    # Direct database store, when EXTERNAL_STORE_URL is a postgresql:// URL
    db_engine = None
    app.state.db_session_factory = None
    if is_database_url(settings.external_store_url):
        from services.ingest.db.engine import create_engine, create_session_factory

        db_engine = create_engine(settings.external_store_url)
        app.state.db_session_factory = create_session_factory(db_engine)

    yield

    await http_client.aclose()
    if db_engine:
        await db_engine.dispose()


app = FastAPI(
    title="Wefrigerator Ingest",
    version=settings.app_version,
    docs_url="/docs" if settings.is_development else None,
    redoc_url=None,
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(ingest.router)


# Request ID injection
@app.middleware("http")
async def request_envelope_middleware(request: Request, call_next) -> Response:
    request_id = request.headers.get("x-request-id", str(uuid.uuid4()))
    request.state.request_id = request_id

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# -- Exception Handlers --

@app.exception_handler(401)
async def unauthorized_handler(request: Request, exc) -> JSONResponse:
    return JSONResponse(status_code=401, content={"error": "Unauthorized"})


@app.exception_handler(IngestError)
async def ingest_error_handler(request: Request, exc: IngestError) -> JSONResponse:
    logger.error(
        "Ingest run failed: %s",
        exc,
        extra={
            "source": getattr(exc, "source", None),
            "error_kind": exc.error_kind,
            "request_id": getattr(request.state, "request_id", None),
        },
    )
    sentry_sdk.capture_exception(exc)
    return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})


@app.exception_handler(500)
async def internal_error_handler(request: Request, exc) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Unknown error"},
    )
