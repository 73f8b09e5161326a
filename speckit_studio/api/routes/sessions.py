"""Sessions API - chat sessions, turns and project file edits."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sse_starlette.sse import EventSourceResponse

from speckit_studio.api.dependencies import configured_rate_limit, get_session_service, limiter
from speckit_studio.application.sessions.dto import (
    ActionRequest,
    ActiveFileRequest,
    FilePatch,
    MessageRequest,
    SessionSummary,
    TurnOutcome,
)
from speckit_studio.application.sessions.use_case import SessionTurnService
from speckit_studio.domain.entities.project_state import ChatSession, ProjectState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _require(value, what: str = "Session"):
    if value is None:
        raise HTTPException(status_code=404, detail=f"{what} not found")
    return value


@router.post("", response_model=ChatSession)
@limiter.limit("30/minute")
async def create_session(
    request: Request,
    service: SessionTurnService = Depends(get_session_service),
) -> ChatSession:
    """Start a new session with the welcome messages."""
    return service.create_session()


@router.get("", response_model=list[SessionSummary])
@limiter.limit("60/minute")
async def list_sessions(
    request: Request,
    service: SessionTurnService = Depends(get_session_service),
) -> list[SessionSummary]:
    """Sessions, newest first."""
    try:
        return service.list_sessions()
    except Exception:
        logger.exception("Failed to list sessions")
        raise HTTPException(status_code=500, detail="Failed to list sessions")


@router.get("/{session_id}", response_model=ChatSession)
@limiter.limit("60/minute")
async def get_session(
    session_id: str,
    request: Request,
    service: SessionTurnService = Depends(get_session_service),
) -> ChatSession:
    return _require(service.get_session(session_id))


@router.delete("/{session_id}")
@limiter.limit("30/minute")
async def delete_session(
    session_id: str,
    request: Request,
    service: SessionTurnService = Depends(get_session_service),
) -> dict:
    """Delete a session (stops its running turn)."""
    if not service.delete_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return {"ok": True}


@router.post("/{session_id}/messages", response_model=TurnOutcome)
@limiter.limit(configured_rate_limit)
async def send_message(
    session_id: str,
    request: Request,
    message: MessageRequest,
    service: SessionTurnService = Depends(get_session_service),
) -> TurnOutcome:
    """Submit a user message; cancels any turn still running for this session."""
    return _require(await service.submit_message(session_id, message))


@router.post("/{session_id}/messages/stream")
@limiter.limit(configured_rate_limit)
async def send_message_stream(
    session_id: str,
    request: Request,
    message: MessageRequest,
    service: SessionTurnService = Depends(get_session_service),
) -> EventSourceResponse:
    """Submit a user message; progress lines as SSE "progress" events, then one "done"."""
    _require(service.get_session(session_id))

    async def event_generator():
        try:
            async for event in service.stream_message(session_id, message):
                yield event
        except Exception:
            logger.exception("Session stream failed")
            yield {"event": "error", "data": "Stream failed"}

    return EventSourceResponse(event_generator())


@router.post("/{session_id}/actions", response_model=TurnOutcome)
@limiter.limit(configured_rate_limit)
async def click_action(
    session_id: str,
    request: Request,
    action: ActionRequest,
    service: SessionTurnService = Depends(get_session_service),
) -> TurnOutcome:
    """Run a suggested action (clarification option or next stage)."""
    return _require(await service.submit_action(session_id, action))


@router.post("/{session_id}/stop")
@limiter.limit("60/minute")
async def stop_generation(
    session_id: str,
    request: Request,
    service: SessionTurnService = Depends(get_session_service),
) -> dict:
    """Cancel the running turn, if any."""
    _require(service.get_session(session_id))
    return {"stopped": service.stop(session_id)}


@router.patch("/{session_id}/files/{node_id}", response_model=ProjectState)
@limiter.limit("120/minute")
async def patch_file(
    session_id: str,
    node_id: str,
    request: Request,
    patch: FilePatch,
    service: SessionTurnService = Depends(get_session_service),
) -> ProjectState:
    """Rename, edit or expand/collapse a project node."""
    return _require(service.update_file(session_id, node_id, patch), "Session or file")


@router.delete("/{session_id}/files/{node_id}", response_model=ProjectState)
@limiter.limit("60/minute")
async def delete_file(
    session_id: str,
    node_id: str,
    request: Request,
    service: SessionTurnService = Depends(get_session_service),
) -> ProjectState:
    return _require(service.delete_file(session_id, node_id), "Session or file")


@router.put("/{session_id}/active-file", response_model=ProjectState)
@limiter.limit("120/minute")
async def select_file(
    session_id: str,
    request: Request,
    body: ActiveFileRequest,
    service: SessionTurnService = Depends(get_session_service),
) -> ProjectState:
    return _require(service.select_file(session_id, body.node_id), "Session or file")
