"""Database session management and transaction helpers.

Provides:
- Request-scoped database sessions via get_db() dependency
- Transaction context manager for mutations
"""

from collections.abc import Generator
from contextlib import contextmanager

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from hundrednet.errors import ApiError, StorageError
from hundrednet.logging import get_logger

logger = get_logger(__name__)


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create a session factory bound to an engine."""
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


def get_db(request: Request) -> Generator[Session, None, None]:
    """FastAPI dependency that provides a database session.

    The session factory lives on ``app.state`` (created in the app lifespan),
    so each request gets its own session from the shared pool.

    Usage:
        @app.get("/endpoint")
        def endpoint(db: Session = Depends(get_db)):
            ...
    """
    session_factory: sessionmaker[Session] = request.app.state.session_factory
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Generator[None, None, None]:
    """Context manager for database transactions.

    Commits on success, rolls back on exception. API errors raised inside the
    block propagate unchanged; database errors are reported as a single
    StorageError chained to the original exception.

    Usage:
        with transaction(db):
            db.add(...)
            db.flush()
        # Committed if no exception
    """
    try:
        yield
        db.commit()
    except ApiError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("transaction_failed", error_type=type(exc).__name__, error=str(exc))
        raise StorageError() from exc
