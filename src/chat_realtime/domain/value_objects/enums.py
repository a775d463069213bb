from __future__ import annotations

from enum import StrEnum


class PresenceStatus(StrEnum):
    ONLINE = "online"
    IN_CALL = "in-call"
    OFFLINE = "offline"


class MessageType(StrEnum):
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    FILE = "file"


class CallType(StrEnum):
    VOICE = "voice"
    VIDEO = "video"


class CallStatus(StrEnum):
    RINGING = "ringing"
    ACTIVE = "active"
    ENDED = "ended"


class HangupReason(StrEnum):
    HANGUP = "hangup"
    DISCONNECT = "disconnect"
    TIMEOUT = "timeout"


class SignalKind(StrEnum):
    OFFER = "call:offer"
    ANSWER = "call:answer-signal"
    CANDIDATE = "call:candidate"


class CallErrorCode(StrEnum):
    ALREADY_IN_CALL = "already_in_call"
    OFFLINE = "offline"
    BUSY = "busy"
    INVALID_CONVERSATION = "invalid_conversation"
    INVALID_TARGET = "invalid_target"
    INVALID_CALL = "invalid_call"
    INVALID_STATE = "invalid_state"
    FAILED = "failed"
