"""
Shared API dependencies.
Provides the database session and error translation used by every router.
"""

from contextlib import contextmanager

from fastapi import HTTPException

from app.core.errors import ExpenseNotFoundError
from app.db import SessionLocal


def get_db():
    """Yield a database session. Use as a FastAPI dependency: Depends(get_db)"""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@contextmanager
def http_errors():
    """Translate domain errors raised inside a route into HTTP responses."""
    try:
        yield
    except ExpenseNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
