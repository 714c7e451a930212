"""SQLModel table definitions for the timeline store."""

from datetime import UTC, date, datetime
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column, DateTime, Index, UniqueConstraint
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def _timestamp_column(nullable: bool = False, index: bool = False) -> Column:
    return Column(DateTime(timezone=True), nullable=nullable, index=index)


def _json_column() -> Column:
    return Column(JSON(none_as_null=True), nullable=True)


class EventRow(SQLModel, table=True):
    __tablename__ = "events"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str
    year: int
    created_at: datetime = Field(
        default_factory=_utcnow, sa_column=_timestamp_column()
    )


class DayRow(SQLModel, table=True):
    __tablename__ = "session_days"
    __table_args__ = (UniqueConstraint("event_id", "day_name"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    event_id: UUID = Field(foreign_key="events.id", index=True)
    day_name: str
    day_date: date
    updated_at: datetime = Field(
        default_factory=_utcnow, sa_column=_timestamp_column(index=True)
    )


class SessionRow(SQLModel, table=True):
    __tablename__ = "photo_sessions"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    burst_id: str = Field(unique=True, index=True)
    session_number: int
    day_id: UUID = Field(foreign_key="session_days.id", index=True)
    started_at: datetime = Field(sa_column=_timestamp_column())
    ended_at: datetime | None = Field(
        default=None, sa_column=_timestamp_column(nullable=True)
    )
    photo_count: int = 0
    hero_photo_id: UUID | None = Field(default=None, index=True)
    hidden: bool = False
    source: str | None = None
    tags: list[str] | None = Field(default=None, sa_column=_json_column())
    appearance_tags: list[str] | None = Field(default=None, sa_column=_json_column())
    expression_tags: list[str] | None = Field(default=None, sa_column=_json_column())
    accessory_tags: list[str] | None = Field(default=None, sa_column=_json_column())
    updated_at: datetime = Field(
        default_factory=_utcnow, sa_column=_timestamp_column(index=True)
    )


class PhotoRow(SQLModel, table=True):
    __tablename__ = "photos"
    __table_args__ = (Index("ix_photos_session_position", "session_id", "position"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    session_id: UUID = Field(foreign_key="photo_sessions.id", index=True)
    filename: str
    position: int
    rejected: bool = False
    face_data: dict | None = Field(default=None, sa_column=_json_column())
    exif_data: dict | None = Field(default=None, sa_column=_json_column())
    original_path: str | None = None
    portrait_crop: dict | None = Field(default=None, sa_column=_json_column())
    updated_at: datetime = Field(
        default_factory=_utcnow, sa_column=_timestamp_column(index=True)
    )


class SittingRow(SQLModel, table=True):
    __tablename__ = "sittings"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    session_id: UUID = Field(foreign_key="photo_sessions.id", index=True)
    name: str | None = None
    email: str
    notes: str | None = None
    position: int = 1
    hero_photo_id: UUID | None = None
    created_at: datetime = Field(
        default_factory=_utcnow, sa_column=_timestamp_column()
    )
