"""Health check endpoints.

- /health is a liveness probe
- /healthz checks DB and Redis connectivity and reports each component
"""

import asyncio
import json
from typing import Any

from fastapi import APIRouter, Depends, Response
from sqlalchemy import text

from backend.app.services import Services, get_services

router = APIRouter()


async def check_db(services: Services) -> tuple[bool, str]:
    """Check database connectivity.

    Returns:
        (is_ok, status_message)
    """
    if services.engine is None:
        return (True, "in_memory")

    try:
        async with services.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return (True, "ok")
    except Exception as e:
        return (False, f"error: {type(e).__name__}")


async def check_redis(services: Services) -> tuple[bool, str]:
    """Check Redis connectivity.

    Returns:
        (is_ok, status_message)
    """
    if services.redis_client is None:
        return (True, "not_configured")

    try:
        await services.redis_client.ping()
        return (True, "ok")
    except Exception as e:
        return (False, f"error: {type(e).__name__}")


@router.get("/health")
async def health() -> dict[str, str]:
    """Simple health check for Docker/k8s.

    Returns:
        200 OK always (application is running)
    """
    return {"status": "ok"}


@router.get("/healthz", response_model=None)
async def healthz(services: Services = Depends(get_services)) -> dict[str, Any] | Response:
    """Component health check.

    Returns:
        200 with component status if core systems ok
        503 if a configured component fails
    """
    (db_ok, db_status), (redis_ok, redis_status) = await asyncio.gather(
        check_db(services), check_redis(services)
    )
    core_ok = db_ok and redis_ok

    response_body = {
        "status": "ok" if core_ok else "degraded",
        "components": {
            "db": db_status,
            "redis": redis_status,
            "ingest_pending": str(services.worker.pending),
        },
    }

    if not core_ok:
        return Response(
            content=json.dumps(response_body),
            status_code=503,
            media_type="application/json",
        )

    return response_body
