"""Statistics projections for the archive."""

import json
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from typing import Protocol, TypeVar
from uuid import UUID

from burst_timeline.domain.models import DayRecord, PhotoRecord, SessionRecord
from burst_timeline.domain.stats import PhotoTotals
from burst_timeline.services.capture_time import CaptureTimeResolver
from burst_timeline.services.sittings import SittingRepository
from burst_timeline.services.view_cache import AggregateViewCache

CANON_PREFIX = "burst_"
IPHONE_PREFIX = "iphone_"
CANON_PHOTO_MB = 20
IPHONE_PHOTO_MB = 3
TOP_SESSIONS_LIMIT = 10
MAX_SESSION_MINUTES = 60
DISTRIBUTION_BUCKETS = (
    ("1-10", 1, 10),
    ("11-20", 11, 20),
    ("21-30", 21, 30),
    ("31-40", 31, 40),
    ("41-50", 41, 50),
)
DISTRIBUTION_OVERFLOW = "50+"

T = TypeVar("T")


class StatsRepository(Protocol):
    """Read interface for statistics."""

    def list_sessions(self, include_hidden: bool = False) -> list[SessionRecord]:
        """Return sessions ordered by day date, then start time."""

    def list_days(self) -> list[DayRecord]:
        """Return days ordered by date."""

    def list_photos_for_sessions(self, session_ids: list[UUID]) -> list[PhotoRecord]:
        """Return photos of the given sessions ordered by session and position."""

    def photo_totals(self) -> PhotoTotals:
        """Return archive-wide photo counters."""


@dataclass
class StatsService:
    """Computes the statistics bundle, one cached projection per section."""

    repository: StatsRepository
    sittings: SittingRepository
    resolver: CaptureTimeResolver
    view_cache: AggregateViewCache

    def stats_view(self, fingerprint: str, force: bool = False) -> dict[str, object]:
        """Return every statistics section for a fingerprint."""
        return {
            "summary": self.summary(fingerprint, force),
            "daily_details": self.daily_details(fingerprint, force),
            "daily_timelines": self.daily_timelines(fingerprint, force),
            "photo_distribution": self.photo_distribution(fingerprint, force),
            "top_sessions": self.top_sessions(fingerprint, force),
            "face_stats": self.face_stats(fingerprint, force),
            "session_durations": self.session_durations(fingerprint, force),
            "serialized_json": self.stats_json(fingerprint, force),
        }

    def summary(self, fingerprint: str, force: bool = False) -> dict[str, object]:
        """Return headline counters and rates."""
        return self._fetch("summary", fingerprint, self._build_summary, force)

    def daily_details(self, fingerprint: str, force: bool = False) -> dict[str, object]:
        """Return per-day session and photo counts."""
        return self._fetch(
            "daily_details", fingerprint, self._build_daily_details, force
        )

    def daily_timelines(
        self, fingerprint: str, force: bool = False
    ) -> dict[str, object]:
        """Return per-day session start times for charting."""
        return self._fetch(
            "daily_timelines", fingerprint, self._build_daily_timelines, force
        )

    def photo_distribution(
        self, fingerprint: str, force: bool = False
    ) -> dict[str, int]:
        """Return a histogram of photos per session."""
        return self._fetch(
            "photo_distribution", fingerprint, self._build_photo_distribution, force
        )

    def top_sessions(
        self, fingerprint: str, force: bool = False
    ) -> list[dict[str, object]]:
        """Return the sessions with the most photos."""
        return self._fetch("top_sessions", fingerprint, self._build_top_sessions, force)

    def face_stats(self, fingerprint: str, force: bool = False) -> dict[str, int]:
        """Return counts of photos by detected face count."""
        return self._fetch("face_stats", fingerprint, self._build_face_stats, force)

    def session_durations(
        self, fingerprint: str, force: bool = False
    ) -> dict[str, object]:
        """Return session durations in minutes and their average."""
        return self._fetch(
            "session_durations", fingerprint, self._build_session_durations, force
        )

    def stats_json(self, fingerprint: str, force: bool = False) -> str:
        """Return the pre-serialized payload consumed by the charts."""

        def build() -> str:
            summary = self.summary(fingerprint)
            data = {
                "dailyDetails": self.daily_details(fingerprint),
                "dailySessionTimelines": self.daily_timelines(fingerprint),
                "canonSessions": summary["canon_sessions"],
                "iphoneSessions": summary["iphone_sessions"],
                "photoDistribution": self.photo_distribution(fingerprint),
            }
            return json.dumps(data)

        return self._fetch("json", fingerprint, build, force)

    def _fetch(
        self, name: str, fingerprint: str, build: Callable[[], T], force: bool
    ) -> T:
        return self.view_cache.get_or_compute(
            name, fingerprint, None, build, force=force
        )

    def _build_summary(self) -> dict[str, object]:
        sessions = self.repository.list_sessions()
        totals = self.repository.photo_totals()
        total_sessions = len(sessions)
        total_heroes = sum(1 for session in sessions if session.hero_photo_id)
        canon = [s for s in sessions if s.burst_id.startswith(CANON_PREFIX)]
        iphone = [s for s in sessions if s.burst_id.startswith(IPHONE_PREFIX)]
        canon_photos = sum(session.photo_count for session in canon)
        iphone_photos = sum(session.photo_count for session in iphone)
        return {
            "total_sessions": total_sessions,
            "total_photos": totals.total,
            "total_sittings": self.sittings.count_sittings(),
            "total_heroes": total_heroes,
            "total_rejected": totals.rejected,
            "faces_detected": totals.with_face_data,
            "hero_rate": _percentage(total_heroes, totals.total),
            "rejection_rate": _percentage(totals.rejected, totals.total),
            "canon_sessions": len(canon),
            "iphone_sessions": len(iphone),
            "total_storage_gb": round(
                (canon_photos * CANON_PHOTO_MB + iphone_photos * IPHONE_PHOTO_MB)
                / 1024,
                1,
            ),
            "avg_photos_per_session": round(totals.total / total_sessions, 1)
            if total_sessions
            else 0,
        }

    def _build_daily_details(self) -> dict[str, object]:
        grouped = self._sessions_by_local_date(self.repository.list_sessions())
        details: dict[str, object] = {}
        for day in sorted(grouped):
            sessions = grouped[day]
            photos = sum(session.photo_count for session in sessions)
            details[day.isoformat()] = {
                "count": len(sessions),
                "photos": photos,
                "avg_photos": round(photos / len(sessions), 1),
            }
        return details

    def _build_daily_timelines(self) -> dict[str, object]:
        sessions = self.repository.list_sessions()
        grouped = self._sessions_by_local_date(sessions)
        photos_by_session = self._photos_by_session(sessions)
        dates = sorted({day.date for day in self.repository.list_days()})
        tz = self.resolver.event_timezone

        timelines: dict[str, object] = {}
        for day in dates:
            entries = []
            for session in grouped.get(day, []):
                photos = photos_by_session.get(session.id, [])
                # Resolving may memoize extracted EXIF, which bumps the photo's
                # updated_at; this payload is then cached under the prior
                # fingerprint and recomputed once on the next read.
                instants = [self.resolver.resolve(photo, session) for photo in photos]
                first = min(instants) if instants else session.started_at
                local = first.astimezone(tz)
                entries.append(
                    {
                        "time": local.strftime("%H:%M"),
                        "hour": local.hour,
                        "minute": local.minute,
                        "photo_count": len(photos),
                        "burst_id": session.burst_id,
                    }
                )
            entries.sort(key=lambda entry: (entry["hour"], entry["minute"]))
            total_photos = sum(entry["photo_count"] for entry in entries)
            timelines[day.isoformat()] = {
                "sessions": entries,
                "average": round(total_photos / len(entries), 1) if entries else 0,
                "total_sessions": len(entries),
                "total_photos": total_photos,
                "day_name": day.strftime("%A, %B %d"),
            }
        return timelines

    def _build_photo_distribution(self) -> dict[str, int]:
        distribution = {label: 0 for label, _, _ in DISTRIBUTION_BUCKETS}
        distribution[DISTRIBUTION_OVERFLOW] = 0
        for session in self.repository.list_sessions():
            if session.photo_count > 0:
                distribution[_bucket_for(session.photo_count)] += 1
        return distribution

    def _build_top_sessions(self) -> list[dict[str, object]]:
        sessions = sorted(
            self.repository.list_sessions(),
            key=lambda session: (-session.photo_count, session.started_at),
        )
        return [
            {
                "id": str(session.id),
                "burst_id": session.burst_id,
                "started_at": session.started_at.isoformat(),
                "count": session.photo_count,
            }
            for session in sessions[:TOP_SESSIONS_LIMIT]
        ]

    def _build_face_stats(self) -> dict[str, int]:
        sessions = self.repository.list_sessions()
        photos = self.repository.list_photos_for_sessions([s.id for s in sessions])
        stats = {"no_faces": 0, "one_face": 0, "two_faces": 0, "three_plus": 0}
        for photo in photos:
            if photo.face_data is None:
                stats["no_faces"] += 1
                continue
            count = photo.face_count
            if count == 1:
                stats["one_face"] += 1
            elif count == 2:  # noqa: PLR2004
                stats["two_faces"] += 1
            elif count >= 3:  # noqa: PLR2004
                stats["three_plus"] += 1
        return stats

    def _build_session_durations(self) -> dict[str, object]:
        durations = []
        for session in self.repository.list_sessions():
            if session.ended_at is None:
                continue
            minutes = round(
                (session.ended_at - session.started_at).total_seconds() / 60, 1
            )
            if 0 < minutes < MAX_SESSION_MINUTES:
                durations.append({"burst_id": session.burst_id, "duration": minutes})
        average = (
            round(sum(item["duration"] for item in durations) / len(durations), 1)
            if durations
            else 0
        )
        return {"list": durations, "avg": average}

    def _sessions_by_local_date(
        self, sessions: list[SessionRecord]
    ) -> dict[date, list[SessionRecord]]:
        tz = self.resolver.event_timezone
        grouped: dict[date, list[SessionRecord]] = {}
        for session in sessions:
            local_day = session.started_at.astimezone(tz).date()
            grouped.setdefault(local_day, []).append(session)
        return grouped

    def _photos_by_session(
        self, sessions: list[SessionRecord]
    ) -> dict[UUID, list[PhotoRecord]]:
        grouped: dict[UUID, list[PhotoRecord]] = {}
        photos = self.repository.list_photos_for_sessions([s.id for s in sessions])
        for photo in photos:
            grouped.setdefault(photo.session_id, []).append(photo)
        return grouped


def _percentage(part: int, whole: int) -> float:
    if whole <= 0:
        return 0
    return round(part / whole * 100, 1)


def _bucket_for(count: int) -> str:
    for label, low, high in DISTRIBUTION_BUCKETS:
        if low <= count <= high:
            return label
    return DISTRIBUTION_OVERFLOW
