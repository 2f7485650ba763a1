"""Database session management.

The engine is built lazily from DATABASE_URL so importing this module never
requires a database (memory and redis ledgers do not use one).
"""

from typing import Optional

from sqlalchemy.orm import Session, sessionmaker

from plk_api.db.engine import build_engine, build_sessionmaker

_session_factory: Optional[sessionmaker[Session]] = None


def get_session_factory() -> sessionmaker[Session]:
    """Get the process-wide session factory (built on first use)."""
    global _session_factory
    if _session_factory is None:
        _session_factory = build_sessionmaker(build_engine())
    return _session_factory
