"""Photo curation and capture-time endpoints."""

from __future__ import annotations

from dataclasses import asdict
from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse

from burst_timeline.api.schemas import PortraitCropRequest, SittingRequest
from burst_timeline.api.sessions import error_response

if TYPE_CHECKING:
    from burst_timeline.containers import AppContainer
    from burst_timeline.services.curation import CurationResult

router = APIRouter(prefix="/photos", tags=["photos"])
sittings_router = APIRouter(prefix="/sittings", tags=["sittings"])


@router.post("/{photo_id}/reject", response_model=None)
def toggle_reject(photo_id: UUID, request: Request) -> dict[str, object] | JSONResponse:
    """Toggle the rejected flag."""
    container: AppContainer = request.app.state.container
    return _photo_response(container.curation_service.toggle_reject(photo_id))


@router.put("/{photo_id}/portrait-crop", response_model=None)
def update_portrait_crop(
    photo_id: UUID, body: PortraitCropRequest, request: Request
) -> dict[str, object] | JSONResponse:
    """Store a manual portrait crop."""
    container: AppContainer = request.app.state.container
    result = container.curation_service.update_portrait_crop(
        photo_id,
        {"left": body.left, "top": body.top, "height": body.height},
        body.image_width,
        body.image_height,
    )
    return _photo_response(result)


@router.delete("/{photo_id}/portrait-crop", response_model=None)
def reset_portrait_crop(
    photo_id: UUID, request: Request
) -> dict[str, object] | JSONResponse:
    """Drop the manual portrait crop."""
    container: AppContainer = request.app.state.container
    return _photo_response(container.curation_service.reset_portrait_crop(photo_id))


@router.get("/{photo_id}/capture-time")
def capture_time(photo_id: UUID, request: Request) -> dict[str, str]:
    """Return the resolved UTC capture instant of a photo."""
    container: AppContainer = request.app.state.container
    photo = container.store.get_photo(photo_id)
    if photo is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    instant = container.resolver.resolve(photo)
    return {"photo_id": str(photo.id), "captured_at": instant.isoformat()}


@sittings_router.post("", status_code=status.HTTP_201_CREATED, response_model=None)
def record_sitting(
    body: SittingRequest, request: Request
) -> dict[str, object] | JSONResponse:
    """Append legacy contact details to a burst."""
    container: AppContainer = request.app.state.container
    result = container.sitting_service.record_contact(
        body.burst_id, body.email, name=body.name, notes=body.notes
    )
    if result.sitting is None:
        return error_response(result.errors, status.HTTP_422_UNPROCESSABLE_ENTITY)
    return {"sitting": asdict(result.sitting)}


def _photo_response(result: CurationResult) -> dict[str, object] | JSONResponse:
    if not result.ok or result.photo is None:
        code = (
            status.HTTP_404_NOT_FOUND
            if "Photo not found" in result.errors
            else status.HTTP_422_UNPROCESSABLE_ENTITY
        )
        return error_response(result.errors, code)
    return {"photo": asdict(result.photo)}
