"""Domain models for the burst timeline."""

from dataclasses import dataclass, field
from datetime import date, datetime
from uuid import UUID

TAG_CONTEXTS = ("general", "appearance", "expression", "accessory")


@dataclass(frozen=True)
class EventRecord:
    """Represents a recurring event stored in the database."""

    id: UUID
    name: str
    year: int


@dataclass(frozen=True)
class DayRecord:
    """One calendar day within an event."""

    id: UUID
    event_id: UUID
    day_name: str
    date: date
    updated_at: datetime | None = None


@dataclass(frozen=True)
class SessionTags:
    """Free-form session labels grouped by category."""

    general: tuple[str, ...] = ()
    appearance: tuple[str, ...] = ()
    expression: tuple[str, ...] = ()
    accessory: tuple[str, ...] = ()

    def for_context(self, context: str) -> tuple[str, ...]:
        """Return the labels stored under a tag context."""
        if context not in TAG_CONTEXTS:
            raise ValueError(f"Unknown tag context: {context}")
        return getattr(self, context)

    def all_tags(self) -> list[str]:
        """Return every label across categories, de-duplicated and sorted."""
        return sorted(
            {*self.general, *self.appearance, *self.expression, *self.accessory}
        )


@dataclass(frozen=True)
class SessionRecord:
    """Represents a persisted burst session."""

    id: UUID
    burst_id: str
    session_number: int
    day_id: UUID
    started_at: datetime
    ended_at: datetime | None
    photo_count: int
    hero_photo_id: UUID | None = None
    hidden: bool = False
    source: str | None = None
    tags: SessionTags = field(default_factory=SessionTags)
    updated_at: datetime | None = None


@dataclass(frozen=True)
class PortraitCrop:
    """Manual or default portrait crop rectangle in source pixels."""

    left: int
    top: int
    width: int
    height: int
    source: str = "manual"


@dataclass(frozen=True)
class PhotoRecord:
    """Represents one captured image within a session."""

    id: UUID
    session_id: UUID
    filename: str
    position: int
    rejected: bool = False
    face_data: dict[str, object] | None = None
    exif_data: dict[str, object] | None = None
    original_path: str | None = None
    portrait_crop: PortraitCrop | None = None
    updated_at: datetime | None = None

    @property
    def has_faces(self) -> bool:
        """Return True when face detection found at least one face."""
        if not self.face_data:
            return False
        faces = self.face_data.get("faces")
        return isinstance(faces, list) and len(faces) > 0

    @property
    def face_count(self) -> int:
        """Return the number of detected faces."""
        if not self.has_faces:
            return 0
        faces = self.face_data.get("faces") if self.face_data else []
        return len(faces) if isinstance(faces, list) else 0
