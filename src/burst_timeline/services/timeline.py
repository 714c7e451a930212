"""Persistence interfaces for the session timeline."""

from contextlib import AbstractContextManager
from typing import Protocol
from uuid import UUID

from burst_timeline.domain.models import PhotoRecord, SessionRecord


class Transaction(Protocol):
    """Handle for the unit of work opened by ``TimelineRepository.transaction``."""

    @property
    def rolled_back(self) -> bool:
        """Return True once ``rollback`` was requested."""

    def rollback(self) -> None:
        """Discard every change made in this unit of work when it closes."""


class TimelineRepository(Protocol):
    """Persistence interface for sessions and their photos.

    Every write stamps ``updated_at`` on the touched rows. Calls made while a
    transaction is open join it; calls made outside run in their own unit of
    work.
    """

    def transaction(self) -> AbstractContextManager[Transaction]:
        """Open a unit of work that commits on exit and rolls back on error."""

    def lock_session(self, session_id: UUID) -> SessionRecord | None:
        """Return a session, holding a row lock until the transaction ends."""

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        """Return a session by id, if present."""

    def get_session_by_burst_id(self, burst_id: str) -> SessionRecord | None:
        """Return a session by its external burst id, if present."""

    def burst_id_exists(self, burst_id: str) -> bool:
        """Return True if a session already uses the burst id."""

    def create_session(self, payload: dict[str, object]) -> SessionRecord:
        """Insert a session, raising ``BurstIdConflictError`` on a duplicate id."""

    def update_session(
        self, session_id: UUID, changes: dict[str, object]
    ) -> SessionRecord:
        """Apply column changes to a session and return it."""

    def delete_session(self, session_id: UUID) -> None:
        """Delete a session together with any photos it still owns."""

    def get_photo(self, photo_id: UUID) -> PhotoRecord | None:
        """Return a photo by id, if present."""

    def list_photos(self, session_id: UUID) -> list[PhotoRecord]:
        """Return a session's photos ordered by position."""

    def count_photos(self, session_id: UUID) -> int:
        """Count the photos currently owned by a session."""

    def create_photos(
        self, session_id: UUID, rows: list[dict[str, object]]
    ) -> list[PhotoRecord]:
        """Insert photos for a session and return them."""

    def update_photo(self, photo_id: UUID, changes: dict[str, object]) -> PhotoRecord:
        """Apply column changes to a photo and return it."""

    def move_photos(self, from_session_id: UUID, to_session_id: UUID) -> int:
        """Re-parent every photo with one bulk update and return the row count."""

    def assign_photos(self, session_id: UUID, photo_ids: list[UUID]) -> None:
        """Attach photos to a session with positions 0..n-1 in list order."""
