"""Messaging schema - conversations, conversation_participants, messages

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-12

One-on-one conversations carry a ``direct_key`` ("<low uuid>:<high uuid>")
with a unique constraint, so a user pair can never own two threads.
Messages are ordered by (created_at, seq); ``seq`` comes from the
conversation's ``next_seq`` counter, assigned under a row lock.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0002"
down_revision: str | None = "0001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # ==========================================================================
    # Step 1: conversations
    # ==========================================================================
    op.create_table(
        "conversations",
        sa.Column(
            "id",
            sa.UUID(),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("kind", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column(
            "created_by_user_id",
            sa.UUID(),
            sa.ForeignKey("profiles.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("direct_key", sa.Text(), nullable=True),
        sa.Column("next_seq", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.UniqueConstraint("direct_key", name="uix_conversations_direct_key"),
    )

    op.create_check_constraint(
        "ck_conversations_kind",
        "conversations",
        "kind IN ('one_on_one', 'group')",
    )
    op.create_check_constraint(
        "ck_conversations_direct_key_kind",
        "conversations",
        "(kind = 'one_on_one' AND direct_key IS NOT NULL)"
        " OR (kind = 'group' AND direct_key IS NULL)",
    )
    op.create_check_constraint(
        "ck_conversations_group_name",
        "conversations",
        "kind <> 'group' OR (name IS NOT NULL AND length(trim(name)) > 0)",
    )
    op.create_check_constraint(
        "ck_conversations_next_seq_positive",
        "conversations",
        "next_seq >= 1",
    )
    op.create_index(
        "idx_conversations_updated_at",
        "conversations",
        [sa.text("updated_at DESC")],
    )

    # ==========================================================================
    # Step 2: conversation_participants
    # ==========================================================================
    op.create_table(
        "conversation_participants",
        sa.Column(
            "conversation_id",
            sa.UUID(),
            sa.ForeignKey("conversations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.UUID(),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", sa.Text(), nullable=False, server_default="member"),
        sa.Column("last_read_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "joined_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("conversation_id", "user_id"),
    )

    op.create_check_constraint(
        "ck_conversation_participants_role",
        "conversation_participants",
        "role IN ('admin', 'member')",
    )
    op.create_index(
        "idx_conversation_participants_user",
        "conversation_participants",
        ["user_id"],
    )

    # ==========================================================================
    # Step 3: messages
    # ==========================================================================
    op.create_table(
        "messages",
        sa.Column(
            "id",
            sa.UUID(),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column(
            "conversation_id",
            sa.UUID(),
            sa.ForeignKey("conversations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "sender_id",
            sa.UUID(),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("seq", sa.Integer(), nullable=False),
        sa.Column("content_type", sa.Text(), nullable=False, server_default="text"),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="sent"),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.UniqueConstraint("conversation_id", "seq", name="uix_messages_conversation_seq"),
    )

    op.create_check_constraint(
        "ck_messages_content_type",
        "messages",
        "content_type IN ('text')",
    )
    op.create_check_constraint(
        "ck_messages_content_not_empty",
        "messages",
        "length(content) > 0",
    )
    op.create_check_constraint(
        "ck_messages_seq_positive",
        "messages",
        "seq >= 1",
    )
    op.create_index(
        "idx_messages_conversation_created",
        "messages",
        ["conversation_id", sa.text("created_at DESC"), sa.text("seq DESC")],
    )


def downgrade() -> None:
    op.drop_index("idx_messages_conversation_created", table_name="messages")
    op.drop_table("messages")
    op.drop_index("idx_conversation_participants_user", table_name="conversation_participants")
    op.drop_table("conversation_participants")
    op.drop_index("idx_conversations_updated_at", table_name="conversations")
    op.drop_table("conversations")
