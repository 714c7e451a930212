"""Capture instant resolution for burst photos."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta, timezone
from pathlib import Path
from typing import Protocol
from uuid import UUID

from burst_timeline.domain.errors import RecordNotFoundError
from burst_timeline.domain.models import PhotoRecord, SessionRecord

EXIF_DATETIME_FORMAT = "%Y:%m:%d %H:%M:%S"
DATETIME_ORIGINAL = "DateTimeOriginal"
_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

_logger = logging.getLogger(__name__)


class MetadataExtractor(Protocol):
    """Reads embedded capture metadata from an original image file."""

    def extract_datetime_original(self, path: str) -> str | None:
        """Return the raw DateTimeOriginal value, or None if absent."""


class CaptureTimeRepository(Protocol):
    """Persistence interface used to memoize extracted metadata."""

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        """Return a session by id, if present."""

    def update_photo(self, photo_id: UUID, changes: dict[str, object]) -> PhotoRecord:
        """Apply column changes to a photo and return it."""


@dataclass
class CaptureTimeResolver:
    """Derives the true UTC capture instant of a photo.

    Embedded DateTimeOriginal values are camera wall-clock time at the event,
    so they are read with the event's fixed UTC offset. Photos without usable
    metadata fall back to ``session.started_at + position * interval``, which
    keeps the fallback monotonic in ``position``.
    """

    repository: CaptureTimeRepository
    extractor: MetadataExtractor | None = None
    utc_offset_hours: float = -7.0
    interframe_interval_seconds: float = 2.0

    @property
    def event_timezone(self) -> timezone:
        """Return the fixed event timezone."""
        return timezone(timedelta(hours=self.utc_offset_hours))

    def resolve(
        self, photo: PhotoRecord, session: SessionRecord | None = None
    ) -> datetime:
        """Return the best available UTC capture instant for a photo.

        Never raises: a photo whose session is gone is placed by position
        from the Unix epoch.
        """
        raw = _embedded_datetime(photo)
        if raw is None:
            raw = self._extract_and_store(photo)
        if raw is not None:
            instant = self._parse(raw, photo.id)
            if instant is not None:
                return instant
        try:
            return self.calculated_instant(photo, session)
        except RecordNotFoundError as exc:
            _logger.warning("No session to anchor photo %s: %s", photo.id, exc)
            return _EPOCH + self._position_offset(photo)

    def calculated_instant(
        self, photo: PhotoRecord, session: SessionRecord | None = None
    ) -> datetime:
        """Return the position-based fallback instant."""
        if session is None or session.id != photo.session_id:
            session = self.repository.get_session(photo.session_id)
        if session is None:
            raise RecordNotFoundError(f"Session {photo.session_id} not found")
        return _as_utc(session.started_at) + self._position_offset(photo)

    def _position_offset(self, photo: PhotoRecord) -> timedelta:
        return timedelta(seconds=photo.position * self.interframe_interval_seconds)

    def _parse(self, raw: object, photo_id: UUID) -> datetime | None:
        try:
            local = datetime.strptime(str(raw).strip(), EXIF_DATETIME_FORMAT)
        except ValueError as exc:
            _logger.warning(
                "Failed to parse EXIF datetime for photo %s: %s", photo_id, exc
            )
            return None
        return local.replace(tzinfo=self.event_timezone).astimezone(UTC)

    def _extract_and_store(self, photo: PhotoRecord) -> str | None:
        if self.extractor is None or not photo.original_path:
            return None
        if not Path(photo.original_path).exists():
            return None
        try:
            value = self.extractor.extract_datetime_original(photo.original_path)
        except Exception as exc:  # noqa: BLE001
            _logger.warning("EXIF extraction failed for photo %s: %s", photo.id, exc)
            return None
        if not value:
            return None

        exif_data = dict(photo.exif_data or {})
        exif_data[DATETIME_ORIGINAL] = value
        try:
            self.repository.update_photo(photo.id, {"exif_data": exif_data})
        except Exception as exc:  # noqa: BLE001
            _logger.warning("Failed to store EXIF data for photo %s: %s", photo.id, exc)
        return value


def _embedded_datetime(photo: PhotoRecord) -> object | None:
    if not photo.exif_data:
        return None
    value = photo.exif_data.get(DATETIME_ORIGINAL)
    return value or None


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
