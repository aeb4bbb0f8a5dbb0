"""Database module.

Provides engine creation, session management, transaction helpers, and ORM models.
"""

from hundrednet.db.engine import create_db_engine
from hundrednet.db.models import (
    Base,
    Conversation,
    ConversationKind,
    ConversationParticipant,
    Message,
    MessageContentType,
    MessageStatus,
    ParticipantRole,
    Profile,
)
from hundrednet.db.session import create_session_factory, get_db, transaction

__all__ = [
    # Engine and session
    "create_db_engine",
    "create_session_factory",
    "get_db",
    "transaction",
    # Base
    "Base",
    # Enums
    "ConversationKind",
    "ParticipantRole",
    "MessageContentType",
    "MessageStatus",
    # Models
    "Profile",
    "Conversation",
    "ConversationParticipant",
    "Message",
]
