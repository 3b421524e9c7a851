"""
Activity log API Routes

Read and clear the current user's mutation history.
"""

from fastapi import APIRouter, Depends, Query

from libris.api.dependencies import AuthSession, get_audit_logger, get_current_session
from libris.api.schemas import LogEntryResponse, LogListEnvelope, MessageResponse
from libris.storage import AuditLogger
from libris.storage.activity_log import DEFAULT_HISTORY_LIMIT, MAX_HISTORY_LIMIT


router = APIRouter(prefix="/logs", tags=["logs"])


@router.get("", response_model=LogListEnvelope)
async def get_history(
    limit: int = Query(DEFAULT_HISTORY_LIMIT, ge=1, le=MAX_HISTORY_LIMIT),
    session: AuthSession = Depends(get_current_session),
    audit: AuditLogger = Depends(get_audit_logger),
):
    """Most recent activity first."""
    entries = await audit.history(session.account_id, limit=limit)
    return LogListEnvelope(
        count=len(entries),
        data=[LogEntryResponse.model_validate(entry) for entry in entries],
    )


@router.delete("", response_model=MessageResponse)
async def clear_history(
    session: AuthSession = Depends(get_current_session),
    audit: AuditLogger = Depends(get_audit_logger),
):
    """Delete all of the user's activity entries."""
    await audit.clear(session.account_id)
    return MessageResponse(message="Activity history cleared successfully")
