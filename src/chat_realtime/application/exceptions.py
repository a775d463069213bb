from __future__ import annotations

from chat_realtime.domain.value_objects.enums import CallErrorCode


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class InvalidTransitionError(AppError):
    """A call session was asked to move along an edge not in its state table."""


class CallError(AppError):
    """A call operation was refused; reported to the actor as ``call:error``."""

    def __init__(self, code: CallErrorCode, detail: str, call_id: str | None = None) -> None:
        self.code = code
        self.call_id = call_id
        super().__init__(detail)
