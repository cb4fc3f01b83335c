"""
FastAPI application for the 4WP Polylang API Sync service.

The sync routes are mounted under ``Settings.API_PREFIX``; health probes and
the Prometheus scrape endpoint live at the root.
"""

import logging
import sys
from contextlib import asynccontextmanager

from app.core.config import Settings, get_settings
from app.core.error_handlers import base_exception_handler, unhandled_exception_handler
from app.core.exceptions import BaseAppException
from app.plugin import Plugin
from app.routes import health, sync
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from prometheus_fastapi_instrumentator import Instrumentator
from prometheus_fastapi_instrumentator import metrics as instrumentator_metrics

logging.basicConfig(
    level=logging.DEBUG if get_settings().DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info(f"Starting sync service with the {settings.HOST_BACKEND} host")

    plugin = Plugin(settings)
    plugin.bind(app)
    app.state.plugin = plugin
    await plugin.check_host()
    logger.info(f"Sync routes mounted under {settings.API_PREFIX}")

    yield

    logger.info("Stopping sync service")
    await plugin.shutdown()


def _add_cors(app: FastAPI, settings: Settings) -> None:
    origins = settings.CORS_ORIGINS
    # Starlette refuses credentials together with a wildcard origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-WP-Nonce"],
    )


def _add_http_metrics(app: FastAPI) -> None:
    """Record request counts and latencies per route template.

    /metrics is served below rather than through ``expose()`` so that one
    scrape returns the HTTP series and the sync counters together.
    """
    Instrumentator(
        should_group_status_codes=False,
        should_ignore_untemplated=True,
        should_respect_env_var=False,
        excluded_handlers=["/health", "/health/ready", "/health/live", "/metrics"],
    ).add(instrumentator_metrics.default()).instrument(app)


app = FastAPI(
    title=get_settings().PROJECT_NAME,
    description="Links existing posts and taxonomy terms as Polylang translations",
    lifespan=lifespan,
)

_add_cors(app, get_settings())
_add_http_metrics(app)


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(health.router, tags=["Health"])
app.include_router(sync.router, prefix=get_settings().API_PREFIX)

# Order matters: application errors before the catch-all
app.add_exception_handler(BaseAppException, base_exception_handler)  # type: ignore[arg-type]
app.add_exception_handler(Exception, unhandled_exception_handler)


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        # Listen on all interfaces only for development containers
        host="0.0.0.0" if settings.DEBUG else "127.0.0.1",
        port=8000,
        reload=settings.DEBUG,
    )
