"""
Database utility functions for consistent session management across the pipeline.

Every store access (a scan query, a per-message update) gets its own short-lived
session so no transaction is held open across broker or socket calls.
"""

import logging
from contextlib import contextmanager
from typing import Callable, Generator, Optional

from sqlalchemy.orm import Session

from taskmanagement.db.session import SessionLocal

logger = logging.getLogger(__name__)


@contextmanager
def get_db_session(session_factory: Optional[Callable[[], Session]] = None) -> Generator[Session, None, None]:
    """
    Get a database session with proper cleanup using context manager.

    Usage:
        with get_db_session() as db:
            rows = db.execute(stmt).all()

    Commits on success, rolls back and re-raises on any exception, always closes.
    """
    factory = session_factory or SessionLocal
    db = factory()
    try:
        yield db
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Database session error: {e}")
        raise
    finally:
        db.close()
