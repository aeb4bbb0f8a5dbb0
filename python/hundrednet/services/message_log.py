"""Message log.

Append-only, per-conversation sequence of messages with offset pagination
and per-participant read watermarks.

Ordering: messages are totally ordered by (created_at, seq). ``seq`` is
assigned from the conversation's ``next_seq`` counter while the conversation
row is locked (FOR UPDATE), and ``created_at`` is never earlier than the
conversation's current ``updated_at``, so both keys are monotonic within a
conversation regardless of which concurrent sender commits first.

The message insert and the conversation's ``updated_at`` bump share one
transaction: readers never see one without the other.

Participation is checked by the conversation service before calling in here.
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hundrednet.db.models import (
    Conversation,
    ConversationParticipant,
    Message,
    MessageContentType,
    MessageStatus,
    utcnow,
)
from hundrednet.db.session import transaction
from hundrednet.errors import ApiErrorCode, InvalidRequestError, NotFoundError
from hundrednet.logging import get_logger
from hundrednet.schemas.conversation import MAX_MESSAGE_CONTENT_LENGTH

logger = get_logger(__name__)

# =============================================================================
# Constants
# =============================================================================

# Pagination limits
DEFAULT_LIMIT = 50
MAX_LIMIT = 100


@dataclass
class MessagePage:
    """One page of messages, newest first."""

    messages: list[Message]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.messages) < self.total


# =============================================================================
# Validation
# =============================================================================


def validate_content(content: str | None) -> str:
    """Check message text and return it unchanged.

    Blank means empty after trimming; surrounding whitespace is kept.

    Raises:
        InvalidRequestError(E_MESSAGE_EMPTY): Blank content.
        InvalidRequestError(E_MESSAGE_TOO_LONG): Over MAX_MESSAGE_CONTENT_LENGTH.
    """
    text = content or ""
    if not text.strip():
        raise InvalidRequestError(ApiErrorCode.E_MESSAGE_EMPTY, "Message content cannot be empty")
    if len(text) > MAX_MESSAGE_CONTENT_LENGTH:
        raise InvalidRequestError(
            ApiErrorCode.E_MESSAGE_TOO_LONG,
            f"Message exceeds {MAX_MESSAGE_CONTENT_LENGTH} characters",
        )
    return text


def validate_pagination(limit: int, offset: int) -> int:
    """Check bounds and return the effective limit (clamped to MAX_LIMIT).

    Raises:
        InvalidRequestError(E_INVALID_PAGINATION): limit < 1 or offset < 0.
    """
    if limit < 1 or offset < 0:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_PAGINATION,
            "limit must be a positive integer and offset must not be negative",
        )
    return min(limit, MAX_LIMIT)


# =============================================================================
# Operations
# =============================================================================


def append(db: Session, conversation_id: UUID, sender_id: UUID, content: str) -> Message:
    """Append a message and move the conversation to the top of its lists.

    This function opens and commits its own transaction:
    1. Locks the conversation row with FOR UPDATE
    2. Assigns seq = next_seq and increments the counter
    3. Stamps created_at = max(now, conversation.updated_at)
    4. Inserts the message and sets conversation.updated_at = created_at

    Args:
        db: Database session.
        conversation_id: Target conversation.
        sender_id: Author (must already be authorized as a participant).
        content: Message text.

    Returns:
        The stored message.

    Raises:
        InvalidRequestError: Empty or oversized content (checked before any write).
        NotFoundError(E_CONVERSATION_NOT_FOUND): Conversation does not exist.
        StorageError: The write failed; nothing was stored.
    """
    text = validate_content(content)

    with transaction(db):
        conversation = db.execute(
            select(Conversation)
            .where(Conversation.id == conversation_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if conversation is None:
            raise NotFoundError(ApiErrorCode.E_CONVERSATION_NOT_FOUND, "Conversation not found")

        seq = conversation.next_seq
        created_at = max(utcnow(), conversation.updated_at)

        message = Message(
            conversation_id=conversation_id,
            sender_id=sender_id,
            seq=seq,
            content_type=MessageContentType.text.value,
            content=text,
            status=MessageStatus.sent.value,
            created_at=created_at,
        )
        db.add(message)

        conversation.next_seq = seq + 1
        conversation.updated_at = created_at
        db.flush()

    logger.info(
        "message_appended",
        conversation_id=str(conversation_id),
        message_id=str(message.id),
        seq=seq,
    )
    return message


def count_messages(db: Session, conversation_id: UUID) -> int:
    """Get the count of messages in a conversation."""
    result = db.scalar(
        select(func.count()).select_from(Message).where(Message.conversation_id == conversation_id)
    )
    return result or 0


def list_messages(
    db: Session,
    conversation_id: UUID,
    limit: int = DEFAULT_LIMIT,
    offset: int = 0,
) -> MessagePage:
    """Fetch a page of messages, newest first.

    Ordered by created_at DESC, seq DESC. Offset-based: messages appended
    while a client pages backwards shift later pages by the number of new
    messages.

    Raises:
        InvalidRequestError(E_INVALID_PAGINATION): Bad limit/offset.
    """
    effective_limit = validate_pagination(limit, offset)

    total = count_messages(db, conversation_id)
    messages = db.scalars(
        select(Message)
        .where(Message.conversation_id == conversation_id)
        .order_by(Message.created_at.desc(), Message.seq.desc())
        .limit(effective_limit)
        .offset(offset)
    ).all()

    return MessagePage(
        messages=list(messages),
        total=total,
        limit=effective_limit,
        offset=offset,
    )


def mark_read(db: Session, conversation_id: UUID, user_id: UUID) -> None:
    """Advance the participant's read watermark to now.

    Best effort: the watermark only feeds unread counts, so failures are
    logged and swallowed. Commits on its own.
    """
    now = utcnow()
    try:
        db.execute(
            update(ConversationParticipant)
            .where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id,
                or_(
                    ConversationParticipant.last_read_at.is_(None),
                    ConversationParticipant.last_read_at < now,
                ),
            )
            .values(last_read_at=now)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning(
            "mark_read_failed",
            conversation_id=str(conversation_id),
            user_id=str(user_id),
            error_type=type(exc).__name__,
        )
