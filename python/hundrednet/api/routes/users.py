"""User lookup routes for the conversation picker."""

from fastapi import APIRouter, Query

from hundrednet.api.deps import CurrentViewer, DbSession
from hundrednet.responses import success_response
from hundrednet.services import conversations as conversations_service

router = APIRouter(tags=["users"])


@router.get("/users/search")
def search_users(
    viewer: CurrentViewer,
    db: DbSession,
    query: str = Query(default="", max_length=100),
) -> dict:
    """Search other users by name. Blank queries return an empty list."""
    users = conversations_service.search_users(db, viewer.user_id, query)
    return success_response([u.model_dump(mode="json") for u in users])
