"""SQLModel-backed timeline store."""

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from uuid import UUID

from sqlalchemy import delete, event, func, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, select

from burst_timeline.adapters.sql_tables import (
    DayRow,
    EventRow,
    PhotoRow,
    SessionRow,
    SittingRow,
)
from burst_timeline.domain.errors import BurstIdConflictError, RecordNotFoundError
from burst_timeline.domain.models import (
    DayRecord,
    EventRecord,
    PhotoRecord,
    PortraitCrop,
    SessionRecord,
    SessionTags,
)
from burst_timeline.domain.sittings import SittingRecord
from burst_timeline.domain.stats import PhotoTotals
from burst_timeline.services.capture_time import CaptureTimeRepository
from burst_timeline.services.fingerprint import MutationClockRepository
from burst_timeline.services.gallery import GalleryRepository
from burst_timeline.services.ingestion import CalendarRepository
from burst_timeline.services.sittings import SittingRepository
from burst_timeline.services.stats import StatsRepository
from burst_timeline.services.timeline import TimelineRepository

_TAG_COLUMNS = {
    "general": "tags",
    "appearance": "appearance_tags",
    "expression": "expression_tags",
    "accessory": "accessory_tags",
}

_logger = logging.getLogger(__name__)


def create_timeline_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine, enabling SAVEPOINT support on SQLite."""
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo, pool_pre_ping=True)

    options: dict[str, object] = {"connect_args": {"check_same_thread": False}}
    if database_url in {"sqlite://", "sqlite:///:memory:"}:
        options["poolclass"] = StaticPool
    engine = create_engine(database_url, echo=echo, **options)

    # pysqlite manages BEGIN itself and breaks nested transactions; let
    # SQLAlchemy emit BEGIN so SAVEPOINT works.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, _record) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(connection) -> None:
        connection.exec_driver_sql("BEGIN")

    return engine


def create_schema(engine: Engine) -> None:
    """Create every timeline table that does not exist yet."""
    SQLModel.metadata.create_all(engine)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class _UnitOfWork:
    session: Session
    rolled_back: bool = False

    def rollback(self) -> None:
        self.rolled_back = True


@dataclass
class SqlTimelineStore(
    TimelineRepository,
    SittingRepository,
    CalendarRepository,
    GalleryRepository,
    StatsRepository,
    MutationClockRepository,
    CaptureTimeRepository,
):
    """Relational implementation of every timeline repository.

    The open unit of work is tracked per thread, so repository calls made
    inside ``transaction()`` share one database transaction.
    """

    engine: Engine
    clock: Callable[[], datetime] = _utcnow
    _local: threading.local = field(default_factory=threading.local, init=False)

    @contextmanager
    def transaction(self) -> Iterator[_UnitOfWork]:
        """Open a unit of work that commits on exit and rolls back on error."""
        active = getattr(self._local, "unit", None)
        if active is not None:
            yield active
            return

        unit = _UnitOfWork(Session(self.engine, expire_on_commit=False))
        self._local.unit = unit
        try:
            yield unit
            if unit.rolled_back:
                unit.session.rollback()
                _logger.info("Transaction rolled back on request")
            else:
                unit.session.commit()
        except Exception:
            unit.session.rollback()
            raise
        finally:
            self._local.unit = None
            unit.session.close()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        active = getattr(self._local, "unit", None)
        if active is not None:
            yield active.session
            return
        with Session(self.engine, expire_on_commit=False) as session:
            yield session
            session.commit()

    # Sessions

    def lock_session(self, session_id: UUID) -> SessionRecord | None:
        """Return a session row locked ``FOR UPDATE``."""
        with self._session() as session:
            row = session.exec(
                select(SessionRow)
                .where(SessionRow.id == session_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).first()
            return _to_session(row) if row else None

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        """Return a session by id, if present."""
        with self._session() as session:
            row = session.get(SessionRow, session_id, populate_existing=True)
            return _to_session(row) if row else None

    def get_session_by_burst_id(self, burst_id: str) -> SessionRecord | None:
        """Return a session by burst id, if present."""
        with self._session() as session:
            row = session.exec(
                select(SessionRow).where(SessionRow.burst_id == burst_id)
            ).first()
            return _to_session(row) if row else None

    def burst_id_exists(self, burst_id: str) -> bool:
        """Return True if a session already uses the burst id."""
        with self._session() as session:
            count = session.exec(
                select(func.count())
                .select_from(SessionRow)
                .where(SessionRow.burst_id == burst_id)
            ).one()
            return count > 0

    def create_session(self, payload: dict[str, object]) -> SessionRecord:
        """Insert a session inside a savepoint so a duplicate id is recoverable."""
        values = _session_columns(payload)
        row = SessionRow(**values, updated_at=self.clock())
        with self._session() as session:
            try:
                with session.begin_nested():
                    session.add(row)
            except IntegrityError as exc:
                raise BurstIdConflictError(str(values.get("burst_id"))) from exc
            session.refresh(row)
            return _to_session(row)

    def update_session(
        self, session_id: UUID, changes: dict[str, object]
    ) -> SessionRecord:
        """Apply column changes to a session and return it."""
        with self._session() as session:
            row = session.get(SessionRow, session_id)
            if row is None:
                raise RecordNotFoundError(f"Session {session_id} not found")
            for column, value in _session_columns(changes).items():
                setattr(row, column, value)
            row.updated_at = self.clock()
            session.add(row)
            session.flush()
            return _to_session(row)

    def delete_session(self, session_id: UUID) -> None:
        """Delete a session and cascade to its photos and sittings."""
        with self._session() as session:
            connection = session.connection()
            connection.execute(
                delete(PhotoRow).where(PhotoRow.session_id == session_id)
            )
            connection.execute(
                delete(SittingRow).where(SittingRow.session_id == session_id)
            )
            connection.execute(delete(SessionRow).where(SessionRow.id == session_id))
            session.expire_all()

    def list_sessions(self, include_hidden: bool = False) -> list[SessionRecord]:
        """Return sessions ordered by day date, then start time."""
        with self._session() as session:
            statement = select(SessionRow).join(DayRow, SessionRow.day_id == DayRow.id)
            if not include_hidden:
                statement = statement.where(SessionRow.hidden.is_(False))
            statement = statement.order_by(DayRow.day_date, SessionRow.started_at)
            return [_to_session(row) for row in session.exec(statement).all()]

    # Photos

    def get_photo(self, photo_id: UUID) -> PhotoRecord | None:
        """Return a photo by id, if present."""
        with self._session() as session:
            row = session.get(PhotoRow, photo_id, populate_existing=True)
            return _to_photo(row) if row else None

    def list_photos(self, session_id: UUID) -> list[PhotoRecord]:
        """Return a session's photos ordered by position."""
        with self._session() as session:
            rows = session.exec(
                select(PhotoRow)
                .where(PhotoRow.session_id == session_id)
                .order_by(PhotoRow.position, PhotoRow.filename)
                .execution_options(populate_existing=True)
            ).all()
            return [_to_photo(row) for row in rows]

    def list_photos_for_sessions(self, session_ids: list[UUID]) -> list[PhotoRecord]:
        """Return photos of the given sessions ordered by session and position."""
        if not session_ids:
            return []
        with self._session() as session:
            rows = session.exec(
                select(PhotoRow)
                .where(PhotoRow.session_id.in_(session_ids))
                .order_by(PhotoRow.session_id, PhotoRow.position)
            ).all()
            return [_to_photo(row) for row in rows]

    def count_photos(self, session_id: UUID) -> int:
        """Count the photos currently owned by a session."""
        with self._session() as session:
            return session.exec(
                select(func.count())
                .select_from(PhotoRow)
                .where(PhotoRow.session_id == session_id)
            ).one()

    def create_photos(
        self, session_id: UUID, rows: list[dict[str, object]]
    ) -> list[PhotoRecord]:
        """Insert photos for a session and return them."""
        now = self.clock()
        created = [
            PhotoRow(session_id=session_id, updated_at=now, **_photo_columns(values))
            for values in rows
        ]
        with self._session() as session:
            session.add_all(created)
            session.flush()
            return [_to_photo(row) for row in created]

    def update_photo(self, photo_id: UUID, changes: dict[str, object]) -> PhotoRecord:
        """Apply column changes to a photo and return it."""
        with self._session() as session:
            row = session.get(PhotoRow, photo_id)
            if row is None:
                raise RecordNotFoundError(f"Photo {photo_id} not found")
            for column, value in _photo_columns(changes).items():
                setattr(row, column, value)
            row.updated_at = self.clock()
            session.add(row)
            session.flush()
            return _to_photo(row)

    def move_photos(self, from_session_id: UUID, to_session_id: UUID) -> int:
        """Re-parent photos with one UPDATE, bypassing loaded objects."""
        with self._session() as session:
            result = session.connection().execute(
                update(PhotoRow)
                .where(PhotoRow.session_id == from_session_id)
                .values(session_id=to_session_id, updated_at=self.clock())
            )
            # Loaded rows still hold the old owner; force a reload on next access.
            session.expire_all()
            return result.rowcount

    def assign_photos(self, session_id: UUID, photo_ids: list[UUID]) -> None:
        """Attach photos to a session with positions 0..n-1 in list order."""
        now = self.clock()
        with self._session() as session:
            for position, photo_id in enumerate(photo_ids):
                row = session.get(PhotoRow, photo_id)
                if row is None:
                    raise RecordNotFoundError(f"Photo {photo_id} not found")
                row.session_id = session_id
                row.position = position
                row.updated_at = now
                session.add(row)
            session.flush()

    def count_faces_by_session(self, session_ids: list[UUID]) -> dict[UUID, int]:
        """Count photos with face-detection results per session."""
        if not session_ids:
            return {}
        with self._session() as session:
            rows = session.exec(
                select(PhotoRow.session_id, func.count(PhotoRow.id))
                .where(PhotoRow.session_id.in_(session_ids))
                .where(PhotoRow.face_data.is_not(None))
                .group_by(PhotoRow.session_id)
            ).all()
            return {session_id: count for session_id, count in rows}

    def photo_totals(self) -> PhotoTotals:
        """Return archive-wide photo counters."""
        with self._session() as session:
            total = session.exec(select(func.count()).select_from(PhotoRow)).one()
            rejected = session.exec(
                select(func.count())
                .select_from(PhotoRow)
                .where(PhotoRow.rejected.is_(True))
            ).one()
            with_faces = session.exec(
                select(func.count())
                .select_from(PhotoRow)
                .where(PhotoRow.face_data.is_not(None))
            ).one()
            return PhotoTotals(
                total=total, rejected=rejected, with_face_data=with_faces
            )

    def latest_mutations(self) -> list[datetime | None]:
        """Return max(updated_at) for photos, sessions and days."""
        with self._session() as session:
            return [
                _as_utc(session.exec(select(func.max(column))).one())
                for column in (
                    PhotoRow.updated_at,
                    SessionRow.updated_at,
                    DayRow.updated_at,
                )
            ]

    # Calendar

    def create_event(self, name: str, year: int) -> EventRecord:
        """Create an event and return it."""
        row = EventRow(name=name, year=year)
        with self._session() as session:
            session.add(row)
            session.flush()
            return EventRecord(id=row.id, name=row.name, year=row.year)

    def get_event(self, event_id: UUID) -> EventRecord | None:
        """Return an event by id, if present."""
        with self._session() as session:
            row = session.get(EventRow, event_id)
            return EventRecord(id=row.id, name=row.name, year=row.year) if row else None

    def create_day(self, event_id: UUID, day_name: str, day: date) -> DayRecord:
        """Create a day and return it."""
        row = DayRow(
            event_id=event_id, day_name=day_name, day_date=day, updated_at=self.clock()
        )
        with self._session() as session:
            session.add(row)
            session.flush()
            return _to_day(row)

    def get_day(self, day_id: UUID) -> DayRecord | None:
        """Return a day by id, if present."""
        with self._session() as session:
            row = session.get(DayRow, day_id)
            return _to_day(row) if row else None

    def find_day(self, event_id: UUID, day_name: str) -> DayRecord | None:
        """Return the event's day with the given name, if present."""
        with self._session() as session:
            row = session.exec(
                select(DayRow)
                .where(DayRow.event_id == event_id)
                .where(DayRow.day_name == day_name)
            ).first()
            return _to_day(row) if row else None

    def list_days(self) -> list[DayRecord]:
        """Return days ordered by date."""
        with self._session() as session:
            rows = session.exec(select(DayRow).order_by(DayRow.day_date)).all()
            return [_to_day(row) for row in rows]

    # Legacy sittings

    def create_sitting(
        self, session_id: UUID, payload: dict[str, object]
    ) -> SittingRecord:
        """Append a sitting row and touch its session.

        Sittings carry no ``updated_at`` of their own, so the owning session's
        timestamp is what moves the fingerprint for the sitting counters.
        """
        row = SittingRow(session_id=session_id, **payload)
        with self._session() as session:
            session.add(row)
            session.connection().execute(
                update(SessionRow)
                .where(SessionRow.id == session_id)
                .values(updated_at=self.clock())
            )
            session.flush()
            session.expire_all()
            return _to_sitting(row)

    def list_sittings(self, session_id: UUID) -> list[SittingRecord]:
        """Return a session's sittings ordered by position."""
        with self._session() as session:
            rows = session.exec(
                select(SittingRow)
                .where(SittingRow.session_id == session_id)
                .order_by(SittingRow.position)
            ).all()
            return [_to_sitting(row) for row in rows]

    def reassign_sittings(self, from_session_id: UUID, to_session_id: UUID) -> int:
        """Move every sitting of a session and return the row count."""
        with self._session() as session:
            result = session.connection().execute(
                update(SittingRow)
                .where(SittingRow.session_id == from_session_id)
                .values(session_id=to_session_id)
            )
            session.expire_all()
            return result.rowcount

    def reassign_sittings_by_hero(
        self, from_session_id: UUID, hero_photo_ids: list[UUID], to_session_id: UUID
    ) -> int:
        """Move sittings whose deprecated hero pointer is in ``hero_photo_ids``."""
        if not hero_photo_ids:
            return 0
        with self._session() as session:
            result = session.connection().execute(
                update(SittingRow)
                .where(SittingRow.session_id == from_session_id)
                .where(SittingRow.hero_photo_id.in_(hero_photo_ids))
                .values(session_id=to_session_id)
            )
            session.expire_all()
            return result.rowcount

    def count_sittings(self) -> int:
        """Count all sittings."""
        with self._session() as session:
            return session.exec(select(func.count()).select_from(SittingRow)).one()

    def count_sittings_with_hero(self) -> int:
        """Count sittings that still carry a deprecated hero pointer."""
        with self._session() as session:
            return session.exec(
                select(func.count())
                .select_from(SittingRow)
                .where(SittingRow.hero_photo_id.is_not(None))
            ).one()


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _session_columns(values: dict[str, object]) -> dict[str, object]:
    columns = dict(values)
    tags = columns.pop("tags", None)
    if isinstance(tags, SessionTags):
        for context, column in _TAG_COLUMNS.items():
            columns[column] = list(getattr(tags, context))
    return columns


def _photo_columns(values: dict[str, object]) -> dict[str, object]:
    columns = dict(values)
    if "portrait_crop" in columns:
        crop = columns["portrait_crop"]
        columns["portrait_crop"] = (
            {
                "left": crop.left,
                "top": crop.top,
                "width": crop.width,
                "height": crop.height,
                "source": crop.source,
            }
            if isinstance(crop, PortraitCrop)
            else crop
        )
    return columns


def _to_session(row: SessionRow) -> SessionRecord:
    return SessionRecord(
        id=row.id,
        burst_id=row.burst_id,
        session_number=row.session_number,
        day_id=row.day_id,
        started_at=_as_utc(row.started_at),
        ended_at=_as_utc(row.ended_at),
        photo_count=row.photo_count,
        hero_photo_id=row.hero_photo_id,
        hidden=row.hidden,
        source=row.source,
        tags=SessionTags(
            general=tuple(row.tags or ()),
            appearance=tuple(row.appearance_tags or ()),
            expression=tuple(row.expression_tags or ()),
            accessory=tuple(row.accessory_tags or ()),
        ),
        updated_at=_as_utc(row.updated_at),
    )


def _to_photo(row: PhotoRow) -> PhotoRecord:
    crop = row.portrait_crop
    return PhotoRecord(
        id=row.id,
        session_id=row.session_id,
        filename=row.filename,
        position=row.position,
        rejected=row.rejected,
        face_data=row.face_data,
        exif_data=row.exif_data,
        original_path=row.original_path,
        portrait_crop=PortraitCrop(
            left=int(crop["left"]),
            top=int(crop["top"]),
            width=int(crop["width"]),
            height=int(crop["height"]),
            source=str(crop.get("source", "manual")),
        )
        if crop
        else None,
        updated_at=_as_utc(row.updated_at),
    )


def _to_day(row: DayRow) -> DayRecord:
    return DayRecord(
        id=row.id,
        event_id=row.event_id,
        day_name=row.day_name,
        date=row.day_date,
        updated_at=_as_utc(row.updated_at),
    )


def _to_sitting(row: SittingRow) -> SittingRecord:
    return SittingRecord(
        id=row.id,
        session_id=row.session_id,
        name=row.name,
        email=row.email,
        notes=row.notes,
        position=row.position,
        hero_photo_id=row.hero_photo_id,
        created_at=_as_utc(row.created_at),
    )
