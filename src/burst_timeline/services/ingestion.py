"""Ingestion of events, days and captured bursts."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Protocol
from uuid import UUID

from burst_timeline.domain.errors import BurstIdConflictError
from burst_timeline.domain.models import DayRecord, EventRecord, SessionRecord
from burst_timeline.services.timeline import TimelineRepository

MIN_EVENT_YEAR = 1900
MAX_EVENT_YEAR = 2100
_SOURCE_PREFIXES = {"burst_": "canon", "iphone_": "iphone"}

_logger = logging.getLogger(__name__)


class CalendarRepository(Protocol):
    """Persistence interface for events and days."""

    def create_event(self, name: str, year: int) -> EventRecord:
        """Create an event and return it."""

    def get_event(self, event_id: UUID) -> EventRecord | None:
        """Return an event by id, if present."""

    def create_day(self, event_id: UUID, day_name: str, day: date) -> DayRecord:
        """Create a day and return it."""

    def get_day(self, day_id: UUID) -> DayRecord | None:
        """Return a day by id, if present."""

    def find_day(self, event_id: UUID, day_name: str) -> DayRecord | None:
        """Return the event's day with the given name, if present."""


@dataclass(frozen=True)
class IngestionResult:
    """Outcome of an ingestion step."""

    record: EventRecord | DayRecord | SessionRecord | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Return True when a record was created."""
        return self.record is not None


@dataclass
class IngestionService:
    """Creates the calendar and imports bursts with dense photo positions."""

    calendar: CalendarRepository
    timeline: TimelineRepository

    def create_event(self, name: str, year: int) -> IngestionResult:
        """Create a recurring event."""
        if not name.strip():
            return IngestionResult(errors=["Event name is required"])
        if not MIN_EVENT_YEAR < year <= MAX_EVENT_YEAR:
            return IngestionResult(errors=["Event year is out of range"])
        return IngestionResult(record=self.calendar.create_event(name.strip(), year))

    def create_day(self, event_id: UUID, day_name: str, day: date) -> IngestionResult:
        """Create a named day within an event."""
        cleaned = day_name.strip().lower()
        if not cleaned:
            return IngestionResult(errors=["Day name is required"])
        if self.calendar.get_event(event_id) is None:
            return IngestionResult(errors=["Event not found"])
        if self.calendar.find_day(event_id, cleaned) is not None:
            return IngestionResult(errors=[f"Day {cleaned} already exists"])
        return IngestionResult(record=self.calendar.create_day(event_id, cleaned, day))

    def ingest_burst(  # noqa: PLR0913
        self,
        day_id: UUID,
        burst_id: str,
        session_number: int,
        started_at: datetime,
        filenames: list[str],
        source: str | None = None,
        ended_at: datetime | None = None,
        original_paths: list[str] | None = None,
    ) -> IngestionResult:
        """Create a session and its photos at positions 0..n-1."""
        if self.calendar.get_day(day_id) is None:
            return IngestionResult(errors=["Day not found"])
        if not filenames:
            return IngestionResult(errors=["A burst needs at least one photo"])
        if original_paths is not None and len(original_paths) != len(filenames):
            return IngestionResult(errors=["Original paths do not match filenames"])
        if ended_at is not None and ended_at < started_at:
            return IngestionResult(errors=["Burst ends before it starts"])

        with self.timeline.transaction():
            try:
                session = self.timeline.create_session(
                    {
                        "burst_id": burst_id,
                        "session_number": session_number,
                        "day_id": day_id,
                        "started_at": started_at,
                        "ended_at": ended_at,
                        "photo_count": len(filenames),
                        "source": source or infer_source(burst_id),
                    }
                )
            except BurstIdConflictError as exc:
                return IngestionResult(errors=[str(exc)])
            self.timeline.create_photos(
                session.id,
                [
                    {
                        "filename": filename,
                        "position": position,
                        "original_path": original_paths[position]
                        if original_paths
                        else None,
                    }
                    for position, filename in enumerate(filenames)
                ],
            )
        _logger.info("Ingested burst %s with %s photos", burst_id, len(filenames))
        return IngestionResult(record=session)


def infer_source(burst_id: str) -> str | None:
    """Guess the capture device from a burst id prefix."""
    for prefix, source in _SOURCE_PREFIXES.items():
        if burst_id.startswith(prefix):
            return source
    return None
