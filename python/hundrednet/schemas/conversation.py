"""Conversation and Message Pydantic schemas.

Contains request and response models for the conversation and message
endpoints.
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from hundrednet.schemas.user import ParticipantOut, UserOut

# Valid conversation kinds - must match DB constraint
CONVERSATION_KINDS = Literal["one_on_one", "group"]

# Max content length
MAX_MESSAGE_CONTENT_LENGTH = 20000


# =============================================================================
# Response Schemas
# =============================================================================


class ConversationOut(BaseModel):
    """Response schema for a single conversation with its participants.

    Both the "created" and "already existed" branches of one-on-one creation
    return this same shape.
    """

    id: UUID
    kind: str  # "one_on_one" | "group"
    name: str | None = None
    avatar_url: str | None = None
    created_by_user_id: UUID | None = None
    participants: list[ParticipantOut]
    created_at: datetime
    updated_at: datetime


class LastMessageOut(BaseModel):
    """Preview of the most recent message in a conversation."""

    content: str
    sender_id: UUID
    sender_first_name: str
    created_at: datetime


class ConversationSummaryOut(BaseModel):
    """Conversation list entry.

    ``name`` / ``avatar_url`` are display values: the partner's for a
    one_on_one conversation, the group's own for a group.
    """

    id: UUID
    kind: str
    name: str
    avatar_url: str | None = None
    participants: list[ParticipantOut]
    last_message: LastMessageOut | None = None
    unread_count: int
    updated_at: datetime


class MessageOut(BaseModel):
    """Response schema for a message, with sender display fields attached.

    Messages are immutable after creation.
    """

    id: UUID
    conversation_id: UUID
    sender: UserOut
    content_type: str
    content: str
    status: str
    created_at: datetime


class MessagePageInfo(BaseModel):
    """Offset pagination metadata for message lists."""

    limit: int
    offset: int
    total: int
    has_more: bool


class MessagePageOut(BaseModel):
    """A page of messages, newest first."""

    data: list[MessageOut]
    page: MessagePageInfo


# =============================================================================
# Request Schemas
# =============================================================================


class CreateConversationRequest(BaseModel):
    """Request schema for starting a conversation.

    - one_on_one: user_ids holds exactly the other participant
    - group: user_ids lists the members (the caller is added implicitly),
      group_name is required
    """

    type: CONVERSATION_KINDS
    user_ids: list[UUID] = Field(min_length=1)
    group_name: str | None = None

    @model_validator(mode="after")
    def check_one_on_one_target(self) -> "CreateConversationRequest":
        if self.type == "one_on_one" and len(self.user_ids) != 1:
            raise ValueError("one_on_one conversations take exactly one user id")
        return self


class SendMessageRequest(BaseModel):
    """Request schema for sending a message.

    Content is validated (non-empty after trim, length cap) by the message log.
    """

    content: str
