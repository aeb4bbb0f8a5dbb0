"""User display schemas.

Users are owned by the profile subsystem; these are the minimal display
records the messaging core renders next to conversations and messages.
"""

from uuid import UUID

from pydantic import BaseModel, ConfigDict


class UserOut(BaseModel):
    """Display record for a user (participant, sender or search result)."""

    id: UUID
    first_name: str | None = None
    last_name: str | None = None
    full_name: str
    avatar_url: str | None = None

    model_config = ConfigDict(from_attributes=True)


class ParticipantOut(UserOut):
    """Display record for a conversation participant, with role."""

    role: str  # "admin" | "member"
