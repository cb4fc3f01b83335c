import os
import time
from typing import Any, Dict, Tuple

import psutil  # type: ignore[import-untyped]
from app.host.interfaces import describe_host
from fastapi import APIRouter, Request

router = APIRouter()


def _resource_usage() -> Dict[str, float]:
    return {
        "cpu_percent": psutil.cpu_percent(),
        "memory_percent": psutil.virtual_memory().percent,
        "disk_percent": psutil.disk_usage("/").percent,
    }


async def _probe_host(host: Any) -> Tuple[str, Dict[str, bool]]:
    """Return the host state and which host protocols it implements."""
    if host is None:
        return "unavailable", {}
    available = await host.is_available()
    return ("healthy" if available else "plugin_inactive"), describe_host(host)


@router.get("/health")
async def health_check(request: Request):
    """
    Report resource usage and whether translations can be synced right now.

    The service is "degraded" while the host's translation plugin is
    unreachable or inactive, since no sync can succeed in that state.
    """
    host_status, protocols = await _probe_host(getattr(request.app.state, "host", None))

    return {
        "status": "healthy" if host_status == "healthy" else "degraded",
        "timestamp": int(time.time()),
        "build_id": os.getenv("BUILD_ID", "unknown"),
        "system": _resource_usage(),
        "services": {"host": host_status, "host_protocols": protocols},
    }


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Ready once the plugin has published a sync handler."""
    ready = getattr(request.app.state, "sync_handler", None) is not None
    return {"status": "ready" if ready else "initializing"}


@router.get("/health/live")
async def liveness_check():
    return {"status": "alive"}
