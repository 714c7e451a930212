"""Operator curation of sessions and photos."""

import logging
from dataclasses import dataclass, field, replace
from uuid import UUID

from burst_timeline.domain.models import (
    TAG_CONTEXTS,
    PhotoRecord,
    PortraitCrop,
    SessionRecord,
    SessionTags,
)
from burst_timeline.services.timeline import TimelineRepository

PORTRAIT_ASPECT_RATIO = 9 / 16
MIN_CROP_HEIGHT_RATIO = 0.1
MIN_CROP_HEIGHT_PX = 50

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurationResult:
    """Outcome of a curation action."""

    session: SessionRecord | None = None
    photo: PhotoRecord | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Return True when the action was applied."""
        return not self.errors


@dataclass
class CurationService:
    """Hero selection, rejection, tagging and visibility toggles.

    Each action runs in its own transaction and bumps ``updated_at`` on the
    row it changes, which is what moves the cache fingerprint forward.
    """

    repository: TimelineRepository

    def set_hero(self, session_id: UUID, photo_id: UUID) -> CurationResult:
        """Select the representative photo of a session."""
        with self.repository.transaction():
            session = self.repository.lock_session(session_id)
            if session is None:
                return CurationResult(errors=["Session not found"])
            photo = self.repository.get_photo(photo_id)
            if photo is None or photo.session_id != session.id:
                return CurationResult(errors=["Photo not found in session"])
            updated = self.repository.update_session(
                session.id, {"hero_photo_id": photo.id}
            )
        _logger.info("Hero for session %s set to photo %s", session.burst_id, photo_id)
        return CurationResult(session=updated, photo=photo)

    def set_hero_by_position(self, burst_id: str, position: int) -> CurationResult:
        """Select the hero by burst id and photo position."""
        session = self.repository.get_session_by_burst_id(burst_id)
        if session is None:
            return CurationResult(errors=["Session not found"])
        photo = next(
            (
                photo
                for photo in self.repository.list_photos(session.id)
                if photo.position == position
            ),
            None,
        )
        if photo is None:
            return CurationResult(errors=["Photo not found in session"])
        return self.set_hero(session.id, photo.id)

    def clear_hero(self, session_id: UUID) -> CurationResult:
        """Remove the hero selection of a session."""
        with self.repository.transaction():
            session = self.repository.lock_session(session_id)
            if session is None:
                return CurationResult(errors=["Session not found"])
            updated = self.repository.update_session(
                session.id, {"hero_photo_id": None}
            )
        return CurationResult(session=updated)

    def toggle_reject(self, photo_id: UUID) -> CurationResult:
        """Flip the rejected flag of a photo."""
        with self.repository.transaction():
            photo = self.repository.get_photo(photo_id)
            if photo is None:
                return CurationResult(errors=["Photo not found"])
            updated = self.repository.update_photo(
                photo.id, {"rejected": not photo.rejected}
            )
        return CurationResult(photo=updated)

    def toggle_hidden(self, session_id: UUID) -> CurationResult:
        """Flip the hidden flag of a session."""
        with self.repository.transaction():
            session = self.repository.lock_session(session_id)
            if session is None:
                return CurationResult(errors=["Session not found"])
            updated = self.repository.update_session(
                session.id, {"hidden": not session.hidden}
            )
        return CurationResult(session=updated)

    def update_tags(
        self,
        session_id: UUID,
        tag: str,
        context: str = "general",
        action: str = "add",
    ) -> CurationResult:
        """Add or remove a tag in one of the tag contexts."""
        cleaned = tag.strip()
        if not cleaned:
            return CurationResult(errors=["Tag is required"])
        if context not in TAG_CONTEXTS:
            return CurationResult(errors=[f"Unknown tag context: {context}"])
        if action not in {"add", "remove"}:
            return CurationResult(errors=[f"Unknown tag action: {action}"])

        with self.repository.transaction():
            session = self.repository.lock_session(session_id)
            if session is None:
                return CurationResult(errors=["Session not found"])
            current = list(session.tags.for_context(context))
            if action == "remove":
                current = [existing for existing in current if existing != cleaned]
            elif cleaned not in current:
                current.append(cleaned)
            tags = replace(session.tags, **{context: tuple(current)})
            updated = self.repository.update_session(session.id, {"tags": tags})
        return CurationResult(session=updated)

    def clear_tags(self, session_id: UUID) -> CurationResult:
        """Remove every tag from a session."""
        with self.repository.transaction():
            session = self.repository.lock_session(session_id)
            if session is None:
                return CurationResult(errors=["Session not found"])
            updated = self.repository.update_session(
                session.id, {"tags": SessionTags()}
            )
        return CurationResult(session=updated)

    def update_portrait_crop(
        self,
        photo_id: UUID,
        rect: dict[str, float],
        image_width: int,
        image_height: int,
    ) -> CurationResult:
        """Store a manual portrait crop clamped to the image."""
        if image_width <= 0 or image_height <= 0:
            return CurationResult(errors=["Image dimensions are required"])
        crop = sanitize_portrait_crop(rect, image_width, image_height)
        with self.repository.transaction():
            photo = self.repository.get_photo(photo_id)
            if photo is None:
                return CurationResult(errors=["Photo not found"])
            updated = self.repository.update_photo(photo.id, {"portrait_crop": crop})
        return CurationResult(photo=updated)

    def reset_portrait_crop(self, photo_id: UUID) -> CurationResult:
        """Drop the manual portrait crop of a photo."""
        with self.repository.transaction():
            photo = self.repository.get_photo(photo_id)
            if photo is None:
                return CurationResult(errors=["Photo not found"])
            updated = self.repository.update_photo(photo.id, {"portrait_crop": None})
        return CurationResult(photo=updated)


def sanitize_portrait_crop(
    rect: dict[str, float], image_width: int, image_height: int
) -> PortraitCrop:
    """Clamp a requested rectangle to a 9:16 portrait inside the image."""
    height = float(rect.get("height") or 0)
    if height <= 0:
        height = float(image_height)
    min_height = min(
        max(image_height * MIN_CROP_HEIGHT_RATIO, MIN_CROP_HEIGHT_PX), image_height
    )
    height = min(max(height, min_height), image_height)
    width = height * PORTRAIT_ASPECT_RATIO
    if width >= image_width:
        width = float(image_width)
        height = width / PORTRAIT_ASPECT_RATIO

    left = min(max(float(rect.get("left") or 0), 0), image_width - width)
    top = min(max(float(rect.get("top") or 0), 0), image_height - height)

    return PortraitCrop(
        left=max(round(left), 0),
        top=max(round(top), 0),
        width=round(width),
        height=round(height),
        source="manual",
    )
