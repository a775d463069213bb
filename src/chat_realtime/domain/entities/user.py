from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True, slots=True)
class UserIdentity:
    id: UUID
    display_name: str
    avatar_url: str | None = None
