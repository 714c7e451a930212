"""Shared test fixtures."""

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime, timedelta
from uuid import UUID, uuid4

import pytest

from burst_timeline.config import Settings
from burst_timeline.containers import AppContainer
from burst_timeline.domain.errors import BurstIdConflictError, RecordNotFoundError
from burst_timeline.domain.models import (
    DayRecord,
    EventRecord,
    PhotoRecord,
    SessionRecord,
)
from burst_timeline.domain.sittings import SittingRecord
from burst_timeline.domain.stats import PhotoTotals
from burst_timeline.services.cache import InMemoryCache
from burst_timeline.services.capture_time import (
    CaptureTimeRepository,
    CaptureTimeResolver,
    MetadataExtractor,
)
from burst_timeline.services.curation import CurationService
from burst_timeline.services.fingerprint import (
    FingerprintService,
    MutationClockRepository,
)
from burst_timeline.services.gallery import GalleryRepository, GalleryService
from burst_timeline.services.ingestion import CalendarRepository, IngestionService
from burst_timeline.services.restructuring import SessionRestructuringService
from burst_timeline.services.sittings import SittingRepository, SittingService
from burst_timeline.services.stats import StatsRepository, StatsService
from burst_timeline.services.timeline import TimelineRepository
from burst_timeline.services.view_cache import AggregateViewCache

EVENT_START = datetime(2025, 8, 25, 17, 0, tzinfo=UTC)


@dataclass
class TickingClock:
    """Clock that advances one second per reading."""

    current: datetime = datetime(2025, 9, 1, tzinfo=UTC)
    step: timedelta = timedelta(seconds=1)

    def __call__(self) -> datetime:
        self.current += self.step
        return self.current


@dataclass
class InMemoryTransaction:
    rolled_back: bool = False

    def rollback(self) -> None:
        self.rolled_back = True


@dataclass
class InMemoryTimelineStore(
    TimelineRepository,
    SittingRepository,
    CalendarRepository,
    GalleryRepository,
    StatsRepository,
    MutationClockRepository,
    CaptureTimeRepository,
):
    """In-memory store for tests; transactions snapshot and restore state."""

    events: dict[UUID, EventRecord] = field(default_factory=dict)
    days: dict[UUID, DayRecord] = field(default_factory=dict)
    sessions: dict[UUID, SessionRecord] = field(default_factory=dict)
    photos: dict[UUID, PhotoRecord] = field(default_factory=dict)
    sittings: dict[UUID, SittingRecord] = field(default_factory=dict)
    clock: Callable[[], datetime] = field(default_factory=TickingClock)
    locked: list[UUID] = field(default_factory=list)
    # Ids that look free on lookup but collide on insert.
    contended_burst_ids: set[str] = field(default_factory=set)
    after_move: Callable[[UUID, UUID], None] | None = None
    fail_on: set[str] = field(default_factory=set)
    photo_updates: int = 0
    _active: InMemoryTransaction | None = None

    @contextmanager
    def transaction(self) -> Iterator[InMemoryTransaction]:
        if self._active is not None:
            yield self._active
            return
        snapshot = self._snapshot()
        tx = InMemoryTransaction()
        self._active = tx
        try:
            yield tx
        except Exception:
            self._restore(snapshot)
            raise
        finally:
            self._active = None
        if tx.rolled_back:
            self._restore(snapshot)

    def _snapshot(self) -> tuple[dict, ...]:
        return (
            dict(self.events),
            dict(self.days),
            dict(self.sessions),
            dict(self.photos),
            dict(self.sittings),
        )

    def _restore(self, snapshot: tuple[dict, ...]) -> None:
        self.events, self.days, self.sessions, self.photos, self.sittings = (
            dict(part) for part in snapshot
        )

    def _check(self, name: str) -> None:
        if name in self.fail_on:
            raise RuntimeError(f"{name} failed")

    # Sessions

    def lock_session(self, session_id: UUID) -> SessionRecord | None:
        self.locked.append(session_id)
        return self.sessions.get(session_id)

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        return self.sessions.get(session_id)

    def get_session_by_burst_id(self, burst_id: str) -> SessionRecord | None:
        return next(
            (s for s in self.sessions.values() if s.burst_id == burst_id), None
        )

    def burst_id_exists(self, burst_id: str) -> bool:
        return self.get_session_by_burst_id(burst_id) is not None

    def create_session(self, payload: dict[str, object]) -> SessionRecord:
        self._check("create_session")
        burst_id = str(payload["burst_id"])
        if burst_id in self.contended_burst_ids or self.burst_id_exists(burst_id):
            raise BurstIdConflictError(burst_id)
        session = SessionRecord(id=uuid4(), updated_at=self.clock(), **payload)
        self.sessions[session.id] = session
        return session

    def update_session(
        self, session_id: UUID, changes: dict[str, object]
    ) -> SessionRecord:
        self._check("update_session")
        if session_id not in self.sessions:
            raise RecordNotFoundError(f"Session {session_id} not found")
        updated = replace(self.sessions[session_id], **changes, updated_at=self.clock())
        self.sessions[session_id] = updated
        return updated

    def delete_session(self, session_id: UUID) -> None:
        self._check("delete_session")
        self.sessions.pop(session_id, None)
        self.photos = {
            pid: p for pid, p in self.photos.items() if p.session_id != session_id
        }
        self.sittings = {
            sid: s for sid, s in self.sittings.items() if s.session_id != session_id
        }

    def list_sessions(self, include_hidden: bool = False) -> list[SessionRecord]:
        sessions = [
            s for s in self.sessions.values() if include_hidden or not s.hidden
        ]
        return sorted(
            sessions,
            key=lambda s: (self.days[s.day_id].date, s.started_at),
        )

    # Photos

    def get_photo(self, photo_id: UUID) -> PhotoRecord | None:
        return self.photos.get(photo_id)

    def list_photos(self, session_id: UUID) -> list[PhotoRecord]:
        return sorted(
            (p for p in self.photos.values() if p.session_id == session_id),
            key=lambda p: (p.position, p.filename),
        )

    def list_photos_for_sessions(self, session_ids: list[UUID]) -> list[PhotoRecord]:
        wanted = set(session_ids)
        return sorted(
            (p for p in self.photos.values() if p.session_id in wanted),
            key=lambda p: (str(p.session_id), p.position),
        )

    def count_photos(self, session_id: UUID) -> int:
        return len(self.list_photos(session_id))

    def create_photos(
        self, session_id: UUID, rows: list[dict[str, object]]
    ) -> list[PhotoRecord]:
        created = [
            PhotoRecord(
                id=uuid4(), session_id=session_id, updated_at=self.clock(), **row
            )
            for row in rows
        ]
        for photo in created:
            self.photos[photo.id] = photo
        return created

    def update_photo(self, photo_id: UUID, changes: dict[str, object]) -> PhotoRecord:
        self._check("update_photo")
        if photo_id not in self.photos:
            raise RecordNotFoundError(f"Photo {photo_id} not found")
        self.photo_updates += 1
        updated = replace(self.photos[photo_id], **changes, updated_at=self.clock())
        self.photos[photo_id] = updated
        return updated

    def move_photos(self, from_session_id: UUID, to_session_id: UUID) -> int:
        self._check("move_photos")
        now = self.clock()
        moved = 0
        for photo in list(self.photos.values()):
            if photo.session_id == from_session_id:
                self.photos[photo.id] = replace(
                    photo, session_id=to_session_id, updated_at=now
                )
                moved += 1
        if self.after_move is not None:
            self.after_move(from_session_id, to_session_id)
        return moved

    def assign_photos(self, session_id: UUID, photo_ids: list[UUID]) -> None:
        now = self.clock()
        for position, photo_id in enumerate(photo_ids):
            self.photos[photo_id] = replace(
                self.photos[photo_id],
                session_id=session_id,
                position=position,
                updated_at=now,
            )

    def count_faces_by_session(self, session_ids: list[UUID]) -> dict[UUID, int]:
        counts: dict[UUID, int] = {}
        for photo in self.list_photos_for_sessions(session_ids):
            if photo.face_data is not None:
                counts[photo.session_id] = counts.get(photo.session_id, 0) + 1
        return counts

    def photo_totals(self) -> PhotoTotals:
        photos = list(self.photos.values())
        return PhotoTotals(
            total=len(photos),
            rejected=sum(1 for p in photos if p.rejected),
            with_face_data=sum(1 for p in photos if p.face_data is not None),
        )

    def latest_mutations(self) -> list[datetime | None]:
        def latest(records: list) -> datetime | None:
            stamps = [r.updated_at for r in records if r.updated_at is not None]
            return max(stamps) if stamps else None

        return [
            latest(list(self.photos.values())),
            latest(list(self.sessions.values())),
            latest(list(self.days.values())),
        ]

    # Calendar

    def create_event(self, name: str, year: int) -> EventRecord:
        event = EventRecord(id=uuid4(), name=name, year=year)
        self.events[event.id] = event
        return event

    def get_event(self, event_id: UUID) -> EventRecord | None:
        return self.events.get(event_id)

    def create_day(self, event_id: UUID, day_name: str, day: date) -> DayRecord:
        record = DayRecord(
            id=uuid4(),
            event_id=event_id,
            day_name=day_name,
            date=day,
            updated_at=self.clock(),
        )
        self.days[record.id] = record
        return record

    def get_day(self, day_id: UUID) -> DayRecord | None:
        return self.days.get(day_id)

    def find_day(self, event_id: UUID, day_name: str) -> DayRecord | None:
        return next(
            (
                d
                for d in self.days.values()
                if d.event_id == event_id and d.day_name == day_name
            ),
            None,
        )

    def list_days(self) -> list[DayRecord]:
        return sorted(self.days.values(), key=lambda d: d.date)

    # Sittings

    def create_sitting(
        self, session_id: UUID, payload: dict[str, object]
    ) -> SittingRecord:
        sitting = SittingRecord(
            id=uuid4(),
            session_id=session_id,
            created_at=self.clock(),
            **{"name": None, **payload},
        )
        self.sittings[sitting.id] = sitting
        if session_id in self.sessions:
            self.sessions[session_id] = replace(
                self.sessions[session_id], updated_at=self.clock()
            )
        return sitting

    def list_sittings(self, session_id: UUID) -> list[SittingRecord]:
        return sorted(
            (s for s in self.sittings.values() if s.session_id == session_id),
            key=lambda s: s.position,
        )

    def reassign_sittings(self, from_session_id: UUID, to_session_id: UUID) -> int:
        return self._reassign(from_session_id, to_session_id, None)

    def reassign_sittings_by_hero(
        self, from_session_id: UUID, hero_photo_ids: list[UUID], to_session_id: UUID
    ) -> int:
        return self._reassign(from_session_id, to_session_id, set(hero_photo_ids))

    def _reassign(
        self, from_session_id: UUID, to_session_id: UUID, heroes: set[UUID] | None
    ) -> int:
        moved = 0
        for sitting in list(self.sittings.values()):
            if sitting.session_id != from_session_id:
                continue
            if heroes is not None and sitting.hero_photo_id not in heroes:
                continue
            self.sittings[sitting.id] = replace(sitting, session_id=to_session_id)
            moved += 1
        return moved

    def count_sittings(self) -> int:
        return len(self.sittings)

    def count_sittings_with_hero(self) -> int:
        return sum(1 for s in self.sittings.values() if s.hero_photo_id is not None)


@dataclass
class FakeMetadataExtractor(MetadataExtractor):
    """Returns canned DateTimeOriginal values keyed by path."""

    values: dict[str, str] = field(default_factory=dict)
    calls: list[str] = field(default_factory=list)
    error: Exception | None = None

    def extract_datetime_original(self, path: str) -> str | None:
        self.calls.append(path)
        if self.error is not None:
            raise self.error
        return self.values.get(path)


def add_day(
    store: InMemoryTimelineStore, day_name: str = "monday", day: date | None = None
) -> DayRecord:
    """Create an event day directly in the store."""
    event = next(iter(store.events.values()), None) or store.create_event(
        "Festival", 2025
    )
    return store.create_day(event.id, day_name, day or EVENT_START.date())


def add_session(  # noqa: PLR0913
    store: InMemoryTimelineStore,
    day: DayRecord,
    burst_id: str,
    started_at: datetime = EVENT_START,
    photo_count: int = 3,
    exif_times: list[str | None] | None = None,
    filenames: list[str] | None = None,
    **extra: object,
) -> tuple[SessionRecord, list[PhotoRecord]]:
    """Create a session with photos at positions 0..n-1."""
    names = filenames or [f"{burst_id}_{i:03d}.jpg" for i in range(photo_count)]
    session = store.create_session(
        {
            "burst_id": burst_id,
            "session_number": 1,
            "day_id": day.id,
            "started_at": started_at,
            "ended_at": started_at + timedelta(seconds=2 * (len(names) - 1)),
            "photo_count": len(names),
            **extra,
        }
    )
    rows = []
    for position, name in enumerate(names):
        exif = exif_times[position] if position < len(exif_times or []) else None
        rows.append(
            {
                "filename": name,
                "position": position,
                "exif_data": {"DateTimeOriginal": exif} if exif else None,
            }
        )
    return session, store.create_photos(session.id, rows)


@pytest.fixture(autouse=True)
def _propagate_package_logs() -> None:
    logging.getLogger("burst_timeline").propagate = True


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url="sqlite://", split_retry_delay_seconds=0)


@pytest.fixture
def store() -> InMemoryTimelineStore:
    return InMemoryTimelineStore()


@pytest.fixture
def extractor() -> FakeMetadataExtractor:
    return FakeMetadataExtractor()


@pytest.fixture
def resolver(
    store: InMemoryTimelineStore, extractor: FakeMetadataExtractor
) -> CaptureTimeResolver:
    return CaptureTimeResolver(repository=store, extractor=extractor)


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def restructuring(
    store: InMemoryTimelineStore, resolver: CaptureTimeResolver, sleeps: list[float]
) -> SessionRestructuringService:
    return SessionRestructuringService(
        repository=store,
        sittings=store,
        resolver=resolver,
        max_id_attempts=5,
        retry_delay_seconds=0.01,
        sleep=sleeps.append,
    )


@pytest.fixture
def container(
    settings: Settings,
    store: InMemoryTimelineStore,
    resolver: CaptureTimeResolver,
    restructuring: SessionRestructuringService,
) -> AppContainer:
    cache = InMemoryCache()

    def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        store=store,
        resolver=resolver,
        restructuring_service=restructuring,
        curation_service=CurationService(store),
        ingestion_service=IngestionService(calendar=store, timeline=store),
        sitting_service=SittingService(repository=store, sessions=store),
        fingerprint_service=FingerprintService(store),
        gallery_service=GalleryService(
            repository=store, view_cache=AggregateViewCache(cache, "gallery")
        ),
        stats_service=StatsService(
            repository=store,
            sittings=store,
            resolver=resolver,
            view_cache=AggregateViewCache(cache, "stats"),
        ),
        close_resources=close_resources,
    )
