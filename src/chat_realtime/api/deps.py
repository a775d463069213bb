"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from chat_realtime.application.ports.auth import TokenVerifier
from chat_realtime.config import settings
from chat_realtime.infrastructure.auth.hs256_verifier import HS256Verifier
from chat_realtime.infrastructure.db.uow import sqlalchemy_uow
from chat_realtime.services.gateway import RealtimeGateway

_verifier: TokenVerifier | None = None
_gateway: RealtimeGateway | None = None


def get_verifier() -> TokenVerifier:
    global _verifier  # noqa: PLW0603
    if _verifier is None:
        _verifier = HS256Verifier(settings.JWT_SECRET, settings.JWT_ALGORITHM)
    return _verifier


def build_gateway() -> RealtimeGateway:
    return RealtimeGateway(
        sqlalchemy_uow,
        offline_grace=settings.PRESENCE_OFFLINE_GRACE_SECONDS,
        typing_stale_after=settings.TYPING_STALE_SECONDS,
        typing_sweep_interval=settings.TYPING_SWEEP_INTERVAL_SECONDS,
        ring_timeout=settings.CALL_RING_TIMEOUT_SECONDS,
    )


def get_gateway() -> RealtimeGateway:
    """Process-wide gateway; all realtime state lives in this one object."""
    global _gateway  # noqa: PLW0603
    if _gateway is None:
        _gateway = build_gateway()
    return _gateway


GatewayDep = Annotated[RealtimeGateway, Depends(get_gateway)]
VerifierDep = Annotated[TokenVerifier, Depends(get_verifier)]
