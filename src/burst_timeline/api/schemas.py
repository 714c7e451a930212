"""Pydantic request models for the HTTP API."""

from uuid import UUID

from pydantic import BaseModel, Field


class SplitRequest(BaseModel):
    """Split a session at a pivot photo."""

    photo_id: UUID


class MergeRequest(BaseModel):
    """Absorb another session into the addressed one."""

    source_session_id: UUID


class HeroRequest(BaseModel):
    """Select the hero photo of a session."""

    photo_id: UUID


class TagRequest(BaseModel):
    """Add or remove one tag."""

    tag: str = Field(min_length=1)
    context: str = "general"
    action: str = "add"


class PortraitCropRequest(BaseModel):
    """Manual portrait crop rectangle plus the source image size."""

    left: float = 0
    top: float = 0
    height: float = 0
    image_width: int = Field(gt=0)
    image_height: int = Field(gt=0)


class SittingRequest(BaseModel):
    """Legacy contact capture for a burst."""

    burst_id: str
    email: str
    name: str | None = None
    notes: str | None = None
