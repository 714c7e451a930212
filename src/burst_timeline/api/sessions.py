"""Session restructuring and curation endpoints."""

from __future__ import annotations

from dataclasses import asdict
from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from burst_timeline.api.schemas import (
    HeroRequest,
    MergeRequest,
    SplitRequest,
    TagRequest,
)

if TYPE_CHECKING:
    from burst_timeline.containers import AppContainer
    from burst_timeline.services.curation import CurationResult

router = APIRouter(prefix="/sessions", tags=["sessions"])


def error_response(errors: list[str], status_code: int) -> JSONResponse:
    """Render validation errors as a JSON body."""
    return JSONResponse(status_code=status_code, content={"errors": errors})


@router.post(
    "/{session_id}/split", status_code=status.HTTP_201_CREATED, response_model=None
)
def split_session(
    session_id: UUID, body: SplitRequest, request: Request
) -> dict[str, str] | JSONResponse:
    """Move the pivot photo and all later photos into a new session."""
    container: AppContainer = request.app.state.container
    result = container.restructuring_service.split_session(session_id, body.photo_id)
    if not result.ok or result.session is None:
        return error_response(result.errors, status.HTTP_422_UNPROCESSABLE_ENTITY)
    return {"session_id": str(result.session.id), "burst_id": result.session.burst_id}


@router.post("/{session_id}/merge", response_model=None)
def merge_session(
    session_id: UUID, body: MergeRequest, request: Request
) -> dict[str, int] | JSONResponse:
    """Absorb the source session into this one."""
    container: AppContainer = request.app.state.container
    result = container.restructuring_service.merge_sessions(
        session_id, body.source_session_id
    )
    if not result:
        return error_response(
            [result.rollback_reason or "Merge failed"], status.HTTP_409_CONFLICT
        )
    return {"moved_count": result.moved_count}


@router.put("/{session_id}/hero", response_model=None)
def set_hero(
    session_id: UUID, body: HeroRequest, request: Request
) -> dict[str, object] | JSONResponse:
    """Select the hero photo."""
    container: AppContainer = request.app.state.container
    return _session_response(
        container.curation_service.set_hero(session_id, body.photo_id)
    )


@router.delete("/{session_id}/hero", response_model=None)
def clear_hero(session_id: UUID, request: Request) -> dict[str, object] | JSONResponse:
    """Clear the hero photo."""
    container: AppContainer = request.app.state.container
    return _session_response(container.curation_service.clear_hero(session_id))


@router.patch("/{session_id}/tags", response_model=None)
def update_tags(
    session_id: UUID, body: TagRequest, request: Request
) -> dict[str, object] | JSONResponse:
    """Add or remove a tag."""
    container: AppContainer = request.app.state.container
    return _session_response(
        container.curation_service.update_tags(
            session_id, body.tag, context=body.context, action=body.action
        )
    )


@router.delete("/{session_id}/tags", response_model=None)
def clear_tags(session_id: UUID, request: Request) -> dict[str, object] | JSONResponse:
    """Remove every tag."""
    container: AppContainer = request.app.state.container
    return _session_response(container.curation_service.clear_tags(session_id))


@router.post("/{session_id}/hide", response_model=None)
def toggle_hidden(
    session_id: UUID, request: Request
) -> dict[str, object] | JSONResponse:
    """Toggle whether the session is listed."""
    container: AppContainer = request.app.state.container
    return _session_response(container.curation_service.toggle_hidden(session_id))


def _session_response(result: CurationResult) -> dict[str, object] | JSONResponse:
    if not result.ok or result.session is None:
        return error_response(result.errors, _status_for(result.errors))
    return {"session": asdict(result.session)}


def _status_for(errors: list[str]) -> int:
    if any(error.endswith("not found") for error in errors):
        return status.HTTP_404_NOT_FOUND
    return status.HTTP_422_UNPROCESSABLE_ENTITY
