"""FastAPI dependencies for route handlers."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from hundrednet.auth.middleware import Viewer, get_viewer
from hundrednet.db.session import get_db

# Annotated aliases used in route signatures
DbSession = Annotated[Session, Depends(get_db)]
CurrentViewer = Annotated[Viewer, Depends(get_viewer)]

__all__ = ["CurrentViewer", "DbSession", "get_db", "get_viewer"]
