"""Split and merge operations for burst sessions."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from burst_timeline.domain.errors import BurstIdConflictError
from burst_timeline.domain.models import PhotoRecord, SessionRecord
from burst_timeline.services.capture_time import CaptureTimeResolver
from burst_timeline.services.sittings import SittingRepository
from burst_timeline.services.timeline import TimelineRepository

SPLIT_SUFFIX = "-split-"
FIRST_SPLIT_INDEX = 2

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SplitResult:
    """Outcome of a split: the new session or validation errors."""

    session: SessionRecord | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Return True when a new session was created."""
        return self.session is not None


@dataclass(frozen=True)
class MergeResult:
    """Outcome of a merge.

    Truthy only when the source session was absorbed and destroyed.
    """

    moved_count: int = 0
    rollback_reason: str | None = None

    def __bool__(self) -> bool:
        return self.rollback_reason is None

    @classmethod
    def failed(cls, reason: str) -> "MergeResult":
        """Build a failed result carrying the rollback reason."""
        return cls(moved_count=0, rollback_reason=reason)


@dataclass
class SessionRestructuringService:
    """Splits and merges sessions while keeping photos in capture order."""

    repository: TimelineRepository
    sittings: SittingRepository
    resolver: CaptureTimeResolver
    max_id_attempts: int = 20
    retry_delay_seconds: float = 0.05
    sleep: Callable[[float], None] = time.sleep

    def split_session(self, session_id: UUID, pivot_photo_id: UUID) -> SplitResult:
        """Move the pivot photo and everything after it into a new session."""
        with self.repository.transaction():
            session = self.repository.lock_session(session_id)
            if session is None:
                return SplitResult(errors=["Session not found"])
            pivot = self.repository.get_photo(pivot_photo_id)
            if pivot is None or pivot.session_id != session.id:
                return SplitResult(errors=["Photo not found in session"])
            if pivot.position == 0:
                return SplitResult(errors=["Cannot split at the first photo"])

            photos = self.repository.list_photos(session.id)
            to_move = [photo for photo in photos if photo.position >= pivot.position]
            remaining = [photo for photo in photos if photo.position < pivot.position]
            if not to_move:
                return SplitResult(errors=["No photos to move"])

            # Resolve against the original session before positions change.
            moved_instants = [
                self.resolver.resolve(photo, session) for photo in to_move
            ]
            moved_ids = [photo.id for photo in to_move]
            hero_moves = session.hero_photo_id in moved_ids

            new_session = self._create_split_session(
                session,
                {
                    "session_number": session.session_number,
                    "day_id": session.day_id,
                    "started_at": moved_instants[0],
                    "ended_at": moved_instants[-1],
                    "photo_count": len(to_move),
                    "source": session.source,
                    "hidden": session.hidden,
                    "hero_photo_id": session.hero_photo_id if hero_moves else None,
                },
            )
            if new_session is None:
                return SplitResult(errors=["Could not allocate a unique burst id"])

            self.repository.assign_photos(new_session.id, moved_ids)

            changes: dict[str, object] = {"photo_count": len(remaining)}
            if remaining:
                changes["ended_at"] = self.resolver.resolve(remaining[-1], session)
            if hero_moves:
                changes["hero_photo_id"] = None
            self.repository.update_session(session.id, changes)

            self.sittings.reassign_sittings_by_hero(
                session.id, moved_ids, new_session.id
            )

        _logger.info(
            "Split session %s at position %s into %s (%s photos moved)",
            session.burst_id,
            pivot.position,
            new_session.burst_id,
            len(to_move),
        )
        return SplitResult(session=new_session)

    def merge_sessions(self, target_id: UUID, source_id: UUID) -> MergeResult:
        """Absorb the source session's photos into the target and destroy it."""
        if target_id == source_id:
            return MergeResult.failed("Cannot merge a session into itself")
        try:
            return self._merge(target_id, source_id)
        except Exception:
            _logger.exception(
                "Failed to merge session %s into %s", source_id, target_id
            )
            return MergeResult.failed("Merge failed; no changes were applied")

    def _merge(self, target_id: UUID, source_id: UUID) -> MergeResult:
        with self.repository.transaction() as tx:
            # Lock in a stable order so concurrent merges cannot deadlock.
            locked = {
                session_id: self.repository.lock_session(session_id)
                for session_id in sorted((target_id, source_id), key=str)
            }
            target = locked[target_id]
            source = locked[source_id]
            if target is None or source is None:
                return MergeResult.failed("Session not found")

            instants = self._resolve_all(target)
            instants.update(self._resolve_all(source))

            moved = self.repository.move_photos(source.id, target.id)

            combined = self.repository.list_photos(target.id)
            ordered = sorted(
                combined,
                key=lambda photo: (
                    instants.get(photo.id) or self.resolver.resolve(photo, target),
                    photo.filename,
                ),
            )
            self.repository.assign_photos(target.id, [photo.id for photo in ordered])
            _logger.info(
                "Reordered %s photos chronologically after merge", len(ordered)
            )

            changes: dict[str, object] = {"photo_count": len(ordered)}
            if _is_later(source.ended_at, target.ended_at):
                changes["ended_at"] = source.ended_at
            if target.hero_photo_id is None and source.hero_photo_id is not None:
                changes["hero_photo_id"] = source.hero_photo_id
            self.repository.update_session(target.id, changes)

            self.sittings.reassign_sittings(source.id, target.id)

            leftover = self.repository.count_photos(source.id)
            if leftover > 0:
                tx.rollback()
                _logger.error(
                    "Photos were not successfully moved from %s (%s left); rolled back",
                    source.burst_id,
                    leftover,
                )
                return MergeResult.failed("Photos were not successfully moved")

            self.repository.delete_session(source.id)

        _logger.info(
            "Merged session %s into %s (%s photos moved)",
            source.burst_id,
            target.burst_id,
            moved,
        )
        return MergeResult(moved_count=moved)

    def _resolve_all(self, session: SessionRecord) -> dict[UUID, datetime]:
        photos: list[PhotoRecord] = self.repository.list_photos(session.id)
        return {photo.id: self.resolver.resolve(photo, session) for photo in photos}

    def _create_split_session(
        self, original: SessionRecord, payload: dict[str, object]
    ) -> SessionRecord | None:
        """Insert the split session under the first free ``-split-N`` burst id."""
        index = FIRST_SPLIT_INDEX
        conflicts = 0
        while True:
            candidate = f"{original.burst_id}{SPLIT_SUFFIX}{index}"
            index += 1
            if self.repository.burst_id_exists(candidate):
                continue
            try:
                return self.repository.create_session(
                    {**payload, "burst_id": candidate}
                )
            except BurstIdConflictError:
                conflicts += 1
                if conflicts >= self.max_id_attempts:
                    _logger.error(
                        "Gave up allocating a split id for %s after %s conflicts",
                        original.burst_id,
                        conflicts,
                    )
                    return None
                _logger.warning(
                    "Burst id %s was taken concurrently (attempt %s/%s)",
                    candidate,
                    conflicts,
                    self.max_id_attempts,
                )
                self.sleep(self.retry_delay_seconds * 2 ** (conflicts - 1))


def _is_later(candidate: datetime | None, current: datetime | None) -> bool:
    if candidate is None:
        return False
    return current is None or candidate > current
