"""Domain models for legacy sittings.

Sittings were an unreliable attempt to connect people to sessions. They are
only kept to preserve captured contact details and must never be used as a
source of session data.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True)
class SittingRecord:
    """Append-only contact record attached to a session."""

    id: UUID
    session_id: UUID
    name: str | None
    email: str
    notes: str | None = None
    position: int = 1
    hero_photo_id: UUID | None = None
    created_at: datetime | None = None
