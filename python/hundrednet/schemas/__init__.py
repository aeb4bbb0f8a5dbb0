"""Pydantic schemas for request/response models."""

from hundrednet.schemas.conversation import (
    ConversationOut,
    ConversationSummaryOut,
    CreateConversationRequest,
    LastMessageOut,
    MessageOut,
    MessagePageInfo,
    MessagePageOut,
    SendMessageRequest,
)
from hundrednet.schemas.user import ParticipantOut, UserOut

__all__ = [
    "ConversationOut",
    "ConversationSummaryOut",
    "CreateConversationRequest",
    "LastMessageOut",
    "MessageOut",
    "MessagePageInfo",
    "MessagePageOut",
    "ParticipantOut",
    "SendMessageRequest",
    "UserOut",
]
