"""Gallery listing projection."""

from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from burst_timeline.domain.models import DayRecord, PhotoRecord, SessionRecord
from burst_timeline.services.view_cache import AggregateViewCache

DEFAULT_DAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday")


class GalleryRepository(Protocol):
    """Read interface for the gallery listing."""

    def list_sessions(self, include_hidden: bool = False) -> list[SessionRecord]:
        """Return sessions ordered by day date, then start time."""

    def list_days(self) -> list[DayRecord]:
        """Return days ordered by date."""

    def count_faces_by_session(self, session_ids: list[UUID]) -> dict[UUID, int]:
        """Count photos with face-detection results per session."""

    def list_photos_for_sessions(self, session_ids: list[UUID]) -> list[PhotoRecord]:
        """Return photos of the given sessions ordered by session and position."""


@dataclass
class GalleryService:
    """Builds the gallery index payload through the view cache."""

    repository: GalleryRepository
    view_cache: AggregateViewCache
    day_names: tuple[str, ...] = DEFAULT_DAY_NAMES

    def gallery_view(
        self, fingerprint: str, hide_heroes: bool = False, force: bool = False
    ) -> dict[str, object]:
        """Return the cached gallery listing for a fingerprint and hero filter."""
        return self.view_cache.get_or_compute(
            "index_payload",
            fingerprint,
            {"heroes": "hide" if hide_heroes else "all"},
            lambda: self.build_index_payload(hide_heroes),
            force=force,
        )

    def build_index_payload(self, hide_heroes: bool) -> dict[str, object]:
        """Compute the gallery listing from the store."""
        sessions = self.repository.list_sessions()
        if hide_heroes:
            sessions = [s for s in sessions if s.hero_photo_id is None]
        session_ids = [session.id for session in sessions]

        day_names = {day.id: day.day_name for day in self.repository.list_days()}
        raw_by_day: dict[str, list[SessionRecord]] = {}
        for session in sessions:
            day_name = day_names.get(session.day_id, "unknown")
            raw_by_day.setdefault(day_name, []).append(session)

        ordered_names = list(self.day_names) + [
            name for name in raw_by_day if name not in self.day_names
        ]
        session_ids_by_day = {
            name: [str(session.id) for session in raw_by_day.get(name, [])]
            for name in ordered_names
        }

        face_counts = (
            self.repository.count_faces_by_session(session_ids) if session_ids else {}
        )
        without_heroes = [s for s in sessions if s.hero_photo_id is None]

        return {
            "session_ids_by_day": session_ids_by_day,
            "session_ids": [str(session_id) for session_id in session_ids],
            "face_counts": {
                str(session_id): count for session_id, count in face_counts.items()
            },
            "middle_photo_ids": self._middle_photo_ids(without_heroes),
            "stats": {
                "total_sessions": len(sessions),
                "total_photos": sum(session.photo_count for session in sessions),
                "by_day": {name: len(items) for name, items in raw_by_day.items()},
            },
        }

    def _middle_photo_ids(self, sessions: list[SessionRecord]) -> dict[str, str]:
        """Pick the representative middle photo of each hero-less session."""
        if not sessions:
            return {}
        photos_by_session: dict[UUID, list[PhotoRecord]] = {}
        for photo in self.repository.list_photos_for_sessions(
            [session.id for session in sessions]
        ):
            photos_by_session.setdefault(photo.session_id, []).append(photo)

        middle_ids: dict[str, str] = {}
        for session in sessions:
            photos = photos_by_session.get(session.id, [])
            if not photos:
                continue
            middle_position = session.photo_count // 2
            middle = next(
                (photo for photo in photos if photo.position == middle_position),
                photos[0],
            )
            middle_ids[str(session.id)] = str(middle.id)
        return middle_ids
