"""Conversations and Messages API routes.

Routes are transport-only: each calls exactly one service function.

All routes require authentication.
Response envelope: {"data": ...} or {"data": [...], "page": {...}}
Error envelope: {"error": {"code": "...", "message": "...", "request_id": "..."}}
"""

from uuid import UUID

from fastapi import APIRouter, Query, Response

from hundrednet.api.deps import CurrentViewer, DbSession
from hundrednet.responses import success_response
from hundrednet.schemas.conversation import CreateConversationRequest, SendMessageRequest
from hundrednet.services import conversations as conversations_service
from hundrednet.services.message_log import DEFAULT_LIMIT

router = APIRouter(tags=["conversations"])


# =============================================================================
# Conversation Endpoints
# =============================================================================


@router.get("/conversations")
def list_conversations(viewer: CurrentViewer, db: DbSession) -> dict:
    """List the viewer's conversations, most recently active first."""
    summaries = conversations_service.list_conversations(db, viewer.user_id)
    return success_response([s.model_dump(mode="json") for s in summaries])


@router.post("/conversations", status_code=201)
def create_conversation(
    body: CreateConversationRequest,
    viewer: CurrentViewer,
    db: DbSession,
    response: Response,
) -> dict:
    """Start a one-on-one conversation or create a group.

    Returns 201 when a conversation was created, 200 when an existing
    one-on-one conversation is returned.
    """
    conversation, created = conversations_service.create_conversation(
        db,
        viewer.user_id,
        kind=body.type,
        user_ids=body.user_ids,
        group_name=body.group_name,
    )
    if not created:
        response.status_code = 200
    return success_response(conversation.model_dump(mode="json"))


@router.get("/conversations/{conversation_id}")
def get_conversation(conversation_id: UUID, viewer: CurrentViewer, db: DbSession) -> dict:
    """Get a conversation the viewer participates in."""
    conversation = conversations_service.get_conversation(db, viewer.user_id, conversation_id)
    return success_response(conversation.model_dump(mode="json"))


# =============================================================================
# Message Endpoints
# =============================================================================


@router.get("/conversations/{conversation_id}/messages")
def list_messages(
    conversation_id: UUID,
    viewer: CurrentViewer,
    db: DbSession,
    limit: int = Query(default=DEFAULT_LIMIT, description="Page size (clamped to 100)"),
    offset: int = Query(default=0, description="Messages to skip, newest first"),
) -> dict:
    """List messages newest first and mark the conversation read.

    Errors:
        E_INVALID_PAGINATION (400): limit < 1 or offset < 0.
    """
    page = conversations_service.get_messages(
        db, viewer.user_id, conversation_id, limit=limit, offset=offset
    )
    return page.model_dump(mode="json")


@router.post("/conversations/{conversation_id}/messages", status_code=201)
def send_message(
    conversation_id: UUID,
    body: SendMessageRequest,
    viewer: CurrentViewer,
    db: DbSession,
) -> dict:
    """Send a text message to the conversation."""
    message = conversations_service.send_message(
        db, viewer.user_id, conversation_id, body.content
    )
    return success_response(message.model_dump(mode="json"))
