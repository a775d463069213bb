from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from chat_realtime.api.deps import GatewayDep
from chat_realtime.infrastructure.db.session import AsyncSessionLocal

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz(gateway: GatewayDep) -> dict[str, Any]:
    """Liveness plus a snapshot of the in-memory realtime state."""
    return {
        "status": "ok",
        "connections": len(gateway.registry),
        "activeCalls": gateway.calls.active_count,
    }


async def _check_postgres() -> str | None:
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:  # noqa: BLE001
        return str(exc)
    return None


async def _check_redis(request: Request) -> str | None:
    redis = getattr(request.app.state, "redis", None)
    if redis is None:
        return None  # bridge disabled
    try:
        await redis.ping()
    except Exception as exc:  # noqa: BLE001
        return str(exc)
    return None


@router.get("/readyz")
async def readyz(request: Request) -> JSONResponse:
    checks = {
        "postgres": await _check_postgres(),
        "redis": await _check_redis(request),
    }
    errors = [f"{name}: {err}" for name, err in checks.items() if err is not None]
    if errors:
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "errors": errors},
        )
    return JSONResponse(content={"status": "ready"})
