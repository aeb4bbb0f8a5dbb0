"""Conversation service layer.

Composes the conversation store, the message log and the participant
directory into the operations the HTTP routes expose.

All operations:
- Authorize before reading or writing: a missing conversation is
  E_CONVERSATION_NOT_FOUND, an existing one the viewer is not in is
  E_NOT_PARTICIPANT
- Resolve display fields with one batched directory lookup per call
- Never retry; storage failures surface as StorageError

Service functions correspond 1:1 with route handlers.
Routes are transport-only and call exactly one service function.
"""

from collections.abc import Iterable, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from hundrednet.db.models import Conversation, ConversationKind, ConversationParticipant, Message
from hundrednet.errors import ApiErrorCode, ForbiddenError, InvalidRequestError, NotFoundError
from hundrednet.schemas.conversation import (
    ConversationOut,
    ConversationSummaryOut,
    LastMessageOut,
    MessageOut,
    MessagePageInfo,
    MessagePageOut,
)
from hundrednet.schemas.user import ParticipantOut, UserOut
from hundrednet.services import conversation_store, directory, message_log


# =============================================================================
# Helper Functions
# =============================================================================


def get_conversation_for_participant(
    db: Session, viewer_id: UUID, conversation_id: UUID
) -> Conversation:
    """Load a conversation and verify the viewer participates in it.

    Raises:
        NotFoundError(E_CONVERSATION_NOT_FOUND): Conversation doesn't exist.
        ForbiddenError(E_NOT_PARTICIPANT): Viewer is not a participant.
    """
    conversation = conversation_store.get_conversation(db, conversation_id)
    if conversation is None:
        raise NotFoundError(ApiErrorCode.E_CONVERSATION_NOT_FOUND, "Conversation not found")
    if not conversation_store.is_participant(db, conversation_id, viewer_id):
        raise ForbiddenError(
            ApiErrorCode.E_NOT_PARTICIPANT, "You are not a participant in this conversation"
        )
    return conversation


def ensure_users_exist(db: Session, user_ids: Iterable[UUID]) -> None:
    """Raise NotFoundError(E_USER_NOT_FOUND) if any id has no profile."""
    missing = directory.missing_users(db, user_ids)
    if missing:
        raise NotFoundError(ApiErrorCode.E_USER_NOT_FOUND, "User not found")


def _display(users: dict[UUID, UserOut], user_id: UUID) -> UserOut:
    return users.get(user_id) or directory.unknown_user(user_id)


def participants_to_out(
    participants: Sequence[ConversationParticipant], users: dict[UUID, UserOut]
) -> list[ParticipantOut]:
    """Attach display fields to participant rows."""
    return [
        ParticipantOut(**_display(users, p.user_id).model_dump(), role=p.role)
        for p in participants
    ]


def message_to_out(message: Message, users: dict[UUID, UserOut]) -> MessageOut:
    """Convert a Message row to MessageOut with its sender resolved."""
    return MessageOut(
        id=message.id,
        conversation_id=message.conversation_id,
        sender=_display(users, message.sender_id),
        content_type=message.content_type,
        content=message.content,
        status=message.status,
        created_at=message.created_at,
    )


def conversation_to_out(db: Session, conversation: Conversation) -> ConversationOut:
    """Convert a Conversation row to ConversationOut with enriched participants."""
    participants = conversation_store.list_participants(db, [conversation.id])[conversation.id]
    users = directory.lookup_users(db, [p.user_id for p in participants])
    return ConversationOut(
        id=conversation.id,
        kind=conversation.kind,
        name=conversation.name,
        avatar_url=conversation.avatar_url,
        created_by_user_id=conversation.created_by_user_id,
        participants=participants_to_out(participants, users),
        created_at=conversation.created_at,
        updated_at=conversation.updated_at,
    )


def _summary_to_out(
    row: conversation_store.ConversationSummaryRow,
    viewer_id: UUID,
    users: dict[UUID, UserOut],
) -> ConversationSummaryOut:
    conversation = row.conversation

    if conversation.kind == ConversationKind.one_on_one.value:
        partner = next((p for p in row.participants if p.user_id != viewer_id), None)
        partner_out = users.get(partner.user_id) if partner else None
        if partner_out is not None:
            name = partner_out.full_name
            avatar_url = partner_out.avatar_url
        else:
            name = directory.UNKNOWN_USER_NAME
            avatar_url = None
    else:
        name = conversation.name or ""
        avatar_url = conversation.avatar_url

    last_message = None
    if row.last_message is not None:
        sender = users.get(row.last_message.sender_id)
        last_message = LastMessageOut(
            content=row.last_message.content,
            sender_id=row.last_message.sender_id,
            sender_first_name=(sender.first_name if sender else None)
            or directory.DEFAULT_DISPLAY_NAME,
            created_at=row.last_message.created_at,
        )

    return ConversationSummaryOut(
        id=conversation.id,
        kind=conversation.kind,
        name=name,
        avatar_url=avatar_url,
        participants=participants_to_out(row.participants, users),
        last_message=last_message,
        unread_count=row.unread_count,
        updated_at=conversation.updated_at,
    )


# =============================================================================
# Service Functions
# =============================================================================


def start_or_get_one_on_one(
    db: Session, viewer_id: UUID, other_user_id: UUID
) -> tuple[ConversationOut, bool]:
    """Return the viewer's one-on-one conversation with another user.

    The returned shape is the same whether the conversation was just created
    or already existed; ``created`` only lets the transport pick a status code.

    Raises:
        InvalidRequestError(E_SELF_CONVERSATION): other_user_id is the viewer.
        NotFoundError(E_USER_NOT_FOUND): Either user has no profile.
    """
    if other_user_id != viewer_id:
        ensure_users_exist(db, [viewer_id, other_user_id])

    conversation, created = conversation_store.create_one_on_one(db, viewer_id, other_user_id)
    return conversation_to_out(db, conversation), created


def create_group(
    db: Session, viewer_id: UUID, member_ids: Sequence[UUID], name: str | None
) -> ConversationOut:
    """Create a group conversation with the viewer as admin.

    Raises:
        InvalidRequestError(E_NAME_INVALID | E_GROUP_TOO_SMALL): Bad input.
        NotFoundError(E_USER_NOT_FOUND): A member (or the viewer) has no profile.
    """
    clean_name, members = conversation_store.normalize_group(viewer_id, member_ids, name)
    ensure_users_exist(db, members)

    conversation = conversation_store.create_group(db, viewer_id, members, clean_name)
    return conversation_to_out(db, conversation)


def create_conversation(
    db: Session,
    viewer_id: UUID,
    kind: str,
    user_ids: Sequence[UUID],
    group_name: str | None = None,
) -> tuple[ConversationOut, bool]:
    """Dispatch a create request by conversation kind.

    Returns:
        Tuple of (conversation, created). Groups are always created.
    """
    if kind == ConversationKind.one_on_one.value:
        if len(user_ids) != 1:
            raise InvalidRequestError(
                ApiErrorCode.E_INVALID_REQUEST,
                "one_on_one conversations take exactly one user id",
            )
        return start_or_get_one_on_one(db, viewer_id, user_ids[0])

    if kind == ConversationKind.group.value:
        return create_group(db, viewer_id, user_ids, group_name), True

    raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, f"Unknown conversation type: {kind}")


def get_conversation(db: Session, viewer_id: UUID, conversation_id: UUID) -> ConversationOut:
    """Get a single conversation with its participants.

    Raises:
        NotFoundError(E_CONVERSATION_NOT_FOUND): Conversation doesn't exist.
        ForbiddenError(E_NOT_PARTICIPANT): Viewer is not a participant.
    """
    conversation = get_conversation_for_participant(db, viewer_id, conversation_id)
    return conversation_to_out(db, conversation)


def list_conversations(db: Session, viewer_id: UUID) -> list[ConversationSummaryOut]:
    """List the viewer's conversations, most recently active first.

    Participants and last-message senders for every conversation are
    resolved with a single directory lookup.
    """
    rows = conversation_store.list_for_user(db, viewer_id)

    user_ids: set[UUID] = set()
    for row in rows:
        user_ids.update(p.user_id for p in row.participants)
        if row.last_message is not None:
            user_ids.add(row.last_message.sender_id)
    users = directory.lookup_users(db, user_ids)

    return [_summary_to_out(row, viewer_id, users) for row in rows]


def send_message(
    db: Session, viewer_id: UUID, conversation_id: UUID, content: str
) -> MessageOut:
    """Send a message to a conversation the viewer participates in.

    Raises:
        NotFoundError(E_CONVERSATION_NOT_FOUND): Conversation doesn't exist.
        ForbiddenError(E_NOT_PARTICIPANT): Viewer is not a participant.
        InvalidRequestError(E_MESSAGE_EMPTY | E_MESSAGE_TOO_LONG): Bad content.
    """
    get_conversation_for_participant(db, viewer_id, conversation_id)

    message = message_log.append(db, conversation_id, viewer_id, content)
    users = directory.lookup_users(db, [viewer_id])
    return message_to_out(message, users)


def get_messages(
    db: Session,
    viewer_id: UUID,
    conversation_id: UUID,
    limit: int = message_log.DEFAULT_LIMIT,
    offset: int = 0,
) -> MessagePageOut:
    """Fetch a page of messages (newest first) and mark the conversation read.

    The read watermark is advanced whether or not the page fetch succeeds;
    that update is best effort and never fails the request.

    Raises:
        NotFoundError(E_CONVERSATION_NOT_FOUND): Conversation doesn't exist.
        ForbiddenError(E_NOT_PARTICIPANT): Viewer is not a participant.
        InvalidRequestError(E_INVALID_PAGINATION): Bad limit/offset.
    """
    get_conversation_for_participant(db, viewer_id, conversation_id)
    message_log.validate_pagination(limit, offset)

    try:
        page = message_log.list_messages(db, conversation_id, limit=limit, offset=offset)
    finally:
        message_log.mark_read(db, conversation_id, viewer_id)

    users = directory.lookup_users(db, {m.sender_id for m in page.messages})
    return MessagePageOut(
        data=[message_to_out(m, users) for m in page.messages],
        page=MessagePageInfo(
            limit=page.limit,
            offset=page.offset,
            total=page.total,
            has_more=page.has_more,
        ),
    )


def search_users(db: Session, viewer_id: UUID, query: str) -> list[UserOut]:
    """Search users to start a conversation with (viewer excluded)."""
    return directory.search_users(db, viewer_id, query)
