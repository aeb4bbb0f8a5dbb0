"""SQLAlchemy ORM models for the messaging core.

Defines all database tables using SQLAlchemy 2.x declarative patterns.
Enumerated columns are stored as text guarded by CHECK constraints, matching
the Alembic migrations in migrations/alembic/versions.

Column types are portable (PostgreSQL in production, SQLite in the test
suite); timestamps are always returned timezone-aware in UTC.
"""

from datetime import UTC, datetime
from enum import Enum as PyEnum
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


class UTCDateTime(TypeDecorator):
    """Timestamp column that always round-trips as an aware UTC datetime.

    PostgreSQL ``timestamptz`` already does this; SQLite stores naive text,
    so the offset is dropped on the way in and re-attached on the way out.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        value = value.astimezone(UTC)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# =============================================================================
# Enums
# =============================================================================


class ConversationKind(str, PyEnum):
    """Kinds of conversation.

    one_on_one: exactly two participants, de-duplicated per user pair
    group: two or more participants, named, with an admin creator
    """

    one_on_one = "one_on_one"
    group = "group"


class ParticipantRole(str, PyEnum):
    """Roles a participant can have (meaningful for groups only)."""

    admin = "admin"
    member = "member"


class MessageContentType(str, PyEnum):
    """Message payload types. Only plain text is supported."""

    text = "text"


class MessageStatus(str, PyEnum):
    """Delivery marker on a message. Informational only."""

    sent = "sent"


# =============================================================================
# Models
# =============================================================================


class Profile(Base):
    """User profile, owned by the profile subsystem.

    The messaging core only reads this table: participant display names and
    avatars are resolved from it.
    """

    __tablename__ = "profiles"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    first_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(timezone=True), default=utcnow, nullable=False
    )


class Conversation(Base):
    """Conversation model - a thread between a fixed set of participants.

    ``direct_key`` holds the unordered user pair of a one_on_one conversation
    ("<smaller uuid>:<larger uuid>"); its unique constraint is what keeps two
    users from ending up with two separate threads.
    """

    __tablename__ = "conversations"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    kind: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str | None] = mapped_column(Text, nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by_user_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("profiles.id", ondelete="SET NULL"),
        nullable=True,
    )
    direct_key: Mapped[str | None] = mapped_column(Text, nullable=True)
    next_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "kind IN ('one_on_one', 'group')",
            name="ck_conversations_kind",
        ),
        CheckConstraint(
            "(kind = 'one_on_one' AND direct_key IS NOT NULL)"
            " OR (kind = 'group' AND direct_key IS NULL)",
            name="ck_conversations_direct_key_kind",
        ),
        CheckConstraint(
            "kind <> 'group' OR (name IS NOT NULL AND length(trim(name)) > 0)",
            name="ck_conversations_group_name",
        ),
        CheckConstraint(
            "next_seq >= 1",
            name="ck_conversations_next_seq_positive",
        ),
        UniqueConstraint("direct_key", name="uix_conversations_direct_key"),
        Index("idx_conversations_updated_at", "updated_at"),
    )

    # Relationships
    participants: Mapped[list["ConversationParticipant"]] = relationship(
        "ConversationParticipant", back_populates="conversation", cascade="all, delete-orphan"
    )
    messages: Mapped[list["Message"]] = relationship(
        "Message", back_populates="conversation", cascade="all, delete-orphan"
    )


class ConversationParticipant(Base):
    """Membership of a user in a conversation, with role and read watermark."""

    __tablename__ = "conversation_participants"

    conversation_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        primary_key=True,
    )
    role: Mapped[str] = mapped_column(Text, nullable=False, default=ParticipantRole.member.value)
    last_read_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(timezone=True), nullable=True
    )
    joined_at: Mapped[datetime] = mapped_column(
        UTCDateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "role IN ('admin', 'member')",
            name="ck_conversation_participants_role",
        ),
        Index("idx_conversation_participants_user", "user_id"),
    )

    conversation: Mapped["Conversation"] = relationship(
        "Conversation", back_populates="participants"
    )


class Message(Base):
    """Message model - one entry of a conversation's append-only log.

    ``seq`` is assigned under a row lock on the conversation and breaks ties
    between messages that share a ``created_at``.
    """

    __tablename__ = "messages"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    conversation_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    content_type: Mapped[str] = mapped_column(
        Text, nullable=False, default=MessageContentType.text.value
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default=MessageStatus.sent.value)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("content_type IN ('text')", name="ck_messages_content_type"),
        CheckConstraint("length(content) > 0", name="ck_messages_content_not_empty"),
        CheckConstraint("seq >= 1", name="ck_messages_seq_positive"),
        UniqueConstraint("conversation_id", "seq", name="uix_messages_conversation_seq"),
        Index("idx_messages_conversation_created", "conversation_id", "created_at", "seq"),
    )

    conversation: Mapped["Conversation"] = relationship("Conversation", back_populates="messages")
