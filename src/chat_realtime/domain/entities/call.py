from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from chat_realtime.application.exceptions import InvalidTransitionError
from chat_realtime.domain.value_objects.enums import CallStatus, CallType

_TRANSITIONS: dict[CallStatus, frozenset[CallStatus]] = {
    CallStatus.RINGING: frozenset({CallStatus.ACTIVE, CallStatus.ENDED}),
    CallStatus.ACTIVE: frozenset({CallStatus.ENDED}),
    CallStatus.ENDED: frozenset(),
}


@dataclass(slots=True)
class CallSession:
    """Dyadic call between an initiator and one callee."""

    id: str
    participants: tuple[UUID, UUID]
    initiator: UUID
    type: CallType
    conversation_id: UUID
    start_time: datetime
    status: CallStatus = CallStatus.RINGING
    answer_time: datetime | None = None
    end_time: datetime | None = None

    def __post_init__(self) -> None:
        if len(self.participants) != 2 or self.participants[0] == self.participants[1]:
            raise ValueError("A call has exactly two distinct participants")
        if self.initiator not in self.participants:
            raise ValueError("Initiator must be a participant")

    @property
    def callee(self) -> UUID:
        return self.other_participant(self.initiator)

    def has_participant(self, user_id: UUID) -> bool:
        return user_id in self.participants

    def other_participant(self, user_id: UUID) -> UUID:
        first, second = self.participants
        if user_id == first:
            return second
        if user_id == second:
            return first
        raise ValueError(f"{user_id} is not a participant of {self.id}")

    def can_transition(self, target: CallStatus) -> bool:
        return target in _TRANSITIONS[self.status]

    def _transition(self, target: CallStatus) -> None:
        if not self.can_transition(target):
            raise InvalidTransitionError(
                f"Call {self.id} cannot go from {self.status} to {target}"
            )
        self.status = target

    def answer(self, at: datetime) -> None:
        self._transition(CallStatus.ACTIVE)
        self.answer_time = at

    def end(self, at: datetime) -> None:
        self._transition(CallStatus.ENDED)
        self.end_time = at
