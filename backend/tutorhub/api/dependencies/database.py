"""Request-scoped database session."""

from typing import Iterator

from sqlalchemy.orm import Session

from ...database import get_db as _session_scope


def get_db() -> Iterator[Session]:
    """
    One SQLAlchemy session per request, closed when the response is sent.

    Tests override this dependency to bind the app to an in-memory engine.
    """
    yield from _session_scope()
