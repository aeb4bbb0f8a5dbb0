"""Conversation store.

Owns the ``conversations`` and ``conversation_participants`` tables: nothing
else in the package writes to them (the message log only bumps
``updated_at``/``next_seq`` under its own row lock).

Invariants:
- A one_on_one conversation has exactly two distinct participants and is
  unique per unordered user pair (enforced by ``uix_conversations_direct_key``)
- A group has a non-empty name and at least two participants; its creator is
  the only admin
- Conversation and participant rows are written in one transaction
- Membership never changes after creation
"""

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, aliased

from hundrednet.db.models import (
    Conversation,
    ConversationKind,
    ConversationParticipant,
    Message,
    ParticipantRole,
    utcnow,
)
from hundrednet.db.session import transaction
from hundrednet.errors import ApiErrorCode, InvalidRequestError, StorageError
from hundrednet.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ConversationSummaryRow:
    """Everything needed to render one entry of a conversation list."""

    conversation: Conversation
    participants: list[ConversationParticipant]
    last_message: Message | None
    unread_count: int


# =============================================================================
# Helper Functions
# =============================================================================


def direct_pair_key(user_a: UUID, user_b: UUID) -> str:
    """Canonical key for an unordered pair of users."""
    low, high = sorted((str(user_a), str(user_b)))
    return f"{low}:{high}"


def get_conversation(db: Session, conversation_id: UUID) -> Conversation | None:
    """Load a conversation by id."""
    return db.get(Conversation, conversation_id)


def find_one_on_one(db: Session, user_a: UUID, user_b: UUID) -> Conversation | None:
    """Find the one_on_one conversation between two users, if any."""
    return db.scalar(
        select(Conversation).where(
            Conversation.kind == ConversationKind.one_on_one.value,
            Conversation.direct_key == direct_pair_key(user_a, user_b),
        )
    )


def is_participant(db: Session, conversation_id: UUID, user_id: UUID) -> bool:
    """Check membership. Unknown conversations or users yield False."""
    row = db.scalar(
        select(ConversationParticipant.user_id).where(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.user_id == user_id,
        )
    )
    return row is not None


def list_participants(
    db: Session, conversation_ids: Sequence[UUID]
) -> dict[UUID, list[ConversationParticipant]]:
    """Load participants for many conversations in one query."""
    result: dict[UUID, list[ConversationParticipant]] = defaultdict(list)
    if not conversation_ids:
        return result

    rows = db.scalars(
        select(ConversationParticipant)
        .where(ConversationParticipant.conversation_id.in_(conversation_ids))
        .order_by(ConversationParticipant.joined_at, ConversationParticipant.user_id)
    )
    for participant in rows:
        result[participant.conversation_id].append(participant)
    return result


# =============================================================================
# Creation
# =============================================================================


def create_one_on_one(
    db: Session, caller_id: UUID, other_user_id: UUID
) -> tuple[Conversation, bool]:
    """Return the one_on_one conversation between two users, creating it if needed.

    Idempotent: repeated or concurrent calls for the same pair always yield
    the same conversation. The unique ``direct_key`` constraint arbitrates
    concurrent creators; the loser's insert is rolled back and it returns
    the winner's row.

    Args:
        db: Database session.
        caller_id: The requesting user.
        other_user_id: The other participant.

    Returns:
        Tuple of (conversation, created) where created is False when the
        conversation already existed.

    Raises:
        InvalidRequestError(E_SELF_CONVERSATION): If other_user_id == caller_id.
        StorageError: If the insert fails for any reason other than losing the race.
    """
    if other_user_id == caller_id:
        raise InvalidRequestError(
            ApiErrorCode.E_SELF_CONVERSATION, "Cannot start a conversation with yourself"
        )

    existing = find_one_on_one(db, caller_id, other_user_id)
    if existing is not None:
        return existing, False

    now = utcnow()
    try:
        with transaction(db):
            conversation = Conversation(
                kind=ConversationKind.one_on_one.value,
                direct_key=direct_pair_key(caller_id, other_user_id),
                created_at=now,
                updated_at=now,
            )
            db.add(conversation)
            db.flush()

            db.add_all(
                [
                    ConversationParticipant(
                        conversation_id=conversation.id,
                        user_id=user_id,
                        role=ParticipantRole.member.value,
                        joined_at=now,
                    )
                    for user_id in (caller_id, other_user_id)
                ]
            )
            db.flush()
    except StorageError as exc:
        if not isinstance(exc.__cause__, IntegrityError):
            raise
        # Lost the race: another request created the pair first
        existing = find_one_on_one(db, caller_id, other_user_id)
        if existing is None:
            raise
        logger.info(
            "one_on_one_race_resolved",
            conversation_id=str(existing.id),
            caller_id=str(caller_id),
        )
        return existing, False

    logger.info(
        "one_on_one_created",
        conversation_id=str(conversation.id),
        caller_id=str(caller_id),
        other_user_id=str(other_user_id),
    )
    return conversation, True


def normalize_group(
    creator_id: UUID, member_ids: Sequence[UUID], name: str | None
) -> tuple[str, list[UUID]]:
    """Validate group input and return (trimmed name, member list).

    The creator is placed first and duplicate ids are collapsed.

    Raises:
        InvalidRequestError(E_NAME_INVALID): If the name is blank.
        InvalidRequestError(E_GROUP_TOO_SMALL): If fewer than two distinct members remain.
    """
    clean_name = (name or "").strip()
    if not clean_name:
        raise InvalidRequestError(ApiErrorCode.E_NAME_INVALID, "Group name is required")

    members = list(dict.fromkeys([creator_id, *member_ids]))
    if len(members) < 2:
        raise InvalidRequestError(
            ApiErrorCode.E_GROUP_TOO_SMALL, "Group requires at least one other member"
        )
    return clean_name, members


def create_group(
    db: Session, creator_id: UUID, member_ids: Sequence[UUID], name: str | None
) -> Conversation:
    """Create a group conversation.

    The creator is added to the member list if absent and becomes the admin;
    everyone else is a member.

    Raises:
        InvalidRequestError: See ``normalize_group``.
        StorageError: If the rows cannot be written (nothing is left behind).
    """
    clean_name, members = normalize_group(creator_id, member_ids, name)

    now = utcnow()
    with transaction(db):
        conversation = Conversation(
            kind=ConversationKind.group.value,
            name=clean_name,
            created_by_user_id=creator_id,
            created_at=now,
            updated_at=now,
        )
        db.add(conversation)
        db.flush()

        db.add_all(
            [
                ConversationParticipant(
                    conversation_id=conversation.id,
                    user_id=user_id,
                    role=(
                        ParticipantRole.admin.value
                        if user_id == creator_id
                        else ParticipantRole.member.value
                    ),
                    joined_at=now,
                )
                for user_id in members
            ]
        )
        db.flush()

    logger.info(
        "group_created",
        conversation_id=str(conversation.id),
        creator_id=str(creator_id),
        member_count=len(members),
    )
    return conversation


# =============================================================================
# Listing
# =============================================================================


def _last_messages(db: Session, conversation_ids: Sequence[UUID]) -> dict[UUID, Message]:
    """Most recent message per conversation, by (created_at, seq)."""
    ranked = (
        select(
            Message,
            func.row_number()
            .over(
                partition_by=Message.conversation_id,
                order_by=(Message.created_at.desc(), Message.seq.desc()),
            )
            .label("rank"),
        )
        .where(Message.conversation_id.in_(conversation_ids))
        .subquery()
    )
    latest = aliased(Message, ranked)
    rows = db.scalars(select(latest).where(ranked.c.rank == 1))
    return {message.conversation_id: message for message in rows}


def _unread_counts(
    db: Session, user_id: UUID, conversation_ids: Sequence[UUID]
) -> dict[UUID, int]:
    """Messages from other participants newer than the user's watermark."""
    rows = db.execute(
        select(Message.conversation_id, func.count(Message.id))
        .join(
            ConversationParticipant,
            and_(
                ConversationParticipant.conversation_id == Message.conversation_id,
                ConversationParticipant.user_id == user_id,
            ),
        )
        .where(
            Message.conversation_id.in_(conversation_ids),
            Message.sender_id != user_id,
            or_(
                ConversationParticipant.last_read_at.is_(None),
                Message.created_at > ConversationParticipant.last_read_at,
            ),
        )
        .group_by(Message.conversation_id)
    )
    return {conversation_id: count for conversation_id, count in rows}


def list_for_user(db: Session, user_id: UUID) -> list[ConversationSummaryRow]:
    """List every conversation the user participates in, most recent first.

    Uses a fixed number of queries (conversations, participants, last
    messages, unread counts) regardless of how many conversations there are.

    Returns:
        Summary rows ordered by updated_at DESC, id DESC.
    """
    conversations = db.scalars(
        select(Conversation)
        .join(
            ConversationParticipant,
            ConversationParticipant.conversation_id == Conversation.id,
        )
        .where(ConversationParticipant.user_id == user_id)
        .order_by(Conversation.updated_at.desc(), Conversation.id.desc())
    ).all()

    if not conversations:
        return []

    conversation_ids = [c.id for c in conversations]
    participants = list_participants(db, conversation_ids)
    last_messages = _last_messages(db, conversation_ids)
    unread = _unread_counts(db, user_id, conversation_ids)

    return [
        ConversationSummaryRow(
            conversation=conversation,
            participants=participants.get(conversation.id, []),
            last_message=last_messages.get(conversation.id),
            unread_count=unread.get(conversation.id, 0),
        )
        for conversation in conversations
    ]
