"""Participant directory.

Read-only lookups against the profile subsystem's ``profiles`` table. Every
lookup is batched: callers pass all the ids they need for a page or a
conversation list and get one query back, never one query per row.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from hundrednet.db.models import Profile
from hundrednet.schemas.user import UserOut

# Fallback display names
DEFAULT_DISPLAY_NAME = "User"
UNKNOWN_USER_NAME = "Unknown User"

# User search
SEARCH_RESULT_LIMIT = 10


def full_name(first_name: str | None, last_name: str | None) -> str:
    """Join name parts, falling back to a generic name when both are blank."""
    joined = f"{first_name or ''} {last_name or ''}".strip()
    return joined or DEFAULT_DISPLAY_NAME


def profile_to_out(profile: Profile) -> UserOut:
    """Convert a Profile row to its display record."""
    return UserOut(
        id=profile.id,
        first_name=profile.first_name,
        last_name=profile.last_name,
        full_name=full_name(profile.first_name, profile.last_name),
        avatar_url=profile.avatar_url,
    )


def unknown_user(user_id: UUID) -> UserOut:
    """Display record for an id with no profile row."""
    return UserOut(id=user_id, full_name=UNKNOWN_USER_NAME)


def lookup_users(db: Session, user_ids: Iterable[UUID]) -> dict[UUID, UserOut]:
    """Resolve user ids to display records in a single query.

    Ids without a profile are absent from the result; use ``unknown_user``
    as the fallback when rendering.
    """
    ids = set(user_ids)
    if not ids:
        return {}

    profiles = db.scalars(select(Profile).where(Profile.id.in_(ids)))
    return {profile.id: profile_to_out(profile) for profile in profiles}


def missing_users(db: Session, user_ids: Iterable[UUID]) -> set[UUID]:
    """Return the subset of ids that have no profile."""
    ids = set(user_ids)
    if not ids:
        return set()

    found = set(db.scalars(select(Profile.id).where(Profile.id.in_(ids))))
    return ids - found


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def search_users(db: Session, viewer_id: UUID, query: str) -> list[UserOut]:
    """Find users by first name, last name or full name.

    Case-insensitive substring match. The viewer is never included. Blank
    queries return an empty list.

    Args:
        db: Database session.
        viewer_id: The searching user (excluded from results).
        query: Free-text search string.

    Returns:
        Up to SEARCH_RESULT_LIMIT users ordered by name.
    """
    term = query.strip().lower()
    if not term:
        return []

    pattern = f"%{_escape_like(term)}%"
    first = func.coalesce(Profile.first_name, "")
    last = func.coalesce(Profile.last_name, "")

    profiles = db.scalars(
        select(Profile)
        .where(
            or_(
                func.lower(first).like(pattern, escape="\\"),
                func.lower(last).like(pattern, escape="\\"),
                func.lower(first + " " + last).like(pattern, escape="\\"),
            ),
            Profile.id != viewer_id,
        )
        .order_by(first, last, Profile.id)
        .limit(SEARCH_RESULT_LIMIT)
    )
    return [profile_to_out(profile) for profile in profiles]
