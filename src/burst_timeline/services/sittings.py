"""Legacy sitting contact capture.

Sittings never describe who is in a session. This module only appends
contact details and exposes the two bulk moves restructuring needs.
"""

import re
from dataclasses import dataclass, field
from typing import Protocol
from uuid import UUID

from burst_timeline.domain.models import SessionRecord
from burst_timeline.domain.sittings import SittingRecord

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class SittingRepository(Protocol):
    """Persistence interface for legacy sittings."""

    def create_sitting(
        self, session_id: UUID, payload: dict[str, object]
    ) -> SittingRecord:
        """Append a sitting row and return it.

        Implementations bump the owning session's ``updated_at``.
        """

    def list_sittings(self, session_id: UUID) -> list[SittingRecord]:
        """Return a session's sittings ordered by position."""

    def reassign_sittings(self, from_session_id: UUID, to_session_id: UUID) -> int:
        """Move every sitting of a session and return the row count."""

    def reassign_sittings_by_hero(
        self, from_session_id: UUID, hero_photo_ids: list[UUID], to_session_id: UUID
    ) -> int:
        """Move sittings whose deprecated hero pointer is in ``hero_photo_ids``."""

    def count_sittings(self) -> int:
        """Count all sittings."""

    def count_sittings_with_hero(self) -> int:
        """Count sittings that still carry a deprecated hero pointer."""


class SessionLookup(Protocol):
    """Lookup used to resolve a burst id."""

    def get_session_by_burst_id(self, burst_id: str) -> SessionRecord | None:
        """Return a session by its external burst id, if present."""


@dataclass(frozen=True)
class SittingResult:
    """Outcome of recording a sitting."""

    sitting: SittingRecord | None = None
    errors: list[str] = field(default_factory=list)


@dataclass
class SittingService:
    """Append-only access to legacy contact records."""

    repository: SittingRepository
    sessions: SessionLookup

    def record_contact(
        self,
        burst_id: str,
        email: str,
        name: str | None = None,
        notes: str | None = None,
    ) -> SittingResult:
        """Append contact details for a session."""
        session = self.sessions.get_session_by_burst_id(burst_id)
        if session is None:
            return SittingResult(errors=["Session not found"])
        cleaned_email = email.strip()
        if not _EMAIL_PATTERN.match(cleaned_email):
            return SittingResult(errors=["Email is invalid"])
        position = len(self.repository.list_sittings(session.id)) + 1
        sitting = self.repository.create_sitting(
            session.id,
            {
                "name": name.strip() if name else None,
                "email": cleaned_email,
                "notes": notes,
                "position": position,
            },
        )
        return SittingResult(sitting=sitting)

    def list_for_session(self, session_id: UUID) -> list[SittingRecord]:
        """Return the contact records attached to a session."""
        return self.repository.list_sittings(session_id)
