"""Sandbox Database Connection Module

Provides the SQLAlchemy declarative base, engine construction and the
per-request session dependency. SQLite is the default store; any SQLAlchemy
URL works through DATABASE_URL.
"""

import os
from pathlib import Path
from typing import Generator

from fastapi import Request
from sqlalchemy import Engine, create_engine, text
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

DEFAULT_DATABASE_URL = 'sqlite:///./data/pos_sandbox.db'

Base = declarative_base()


def get_database_url() -> str:
    """Resolve the database URL from the environment.

    Environment variables:
        DATABASE_URL: SQLAlchemy URL (default: sqlite:///./data/pos_sandbox.db)
    """
    return os.getenv('DATABASE_URL', DEFAULT_DATABASE_URL)


def create_db_engine(database_url: str | None = None) -> Engine:
    """Create the SQLAlchemy engine for the sandbox store.

    In-memory SQLite gets a StaticPool so every session in the process sees
    the same database; file-backed SQLite gets its parent directory created.

    Args:
        database_url: SQLAlchemy URL (defaults to get_database_url())

    Returns:
        Configured SQLAlchemy engine
    """
    url = database_url or get_database_url()

    if not url.startswith('sqlite'):
        return create_engine(url, pool_pre_ping=True, pool_recycle=3600, echo=False)

    connect_args = {'check_same_thread': False}
    if url in ('sqlite://', 'sqlite:///:memory:'):
        return create_engine(url, connect_args=connect_args, poolclass=StaticPool, echo=False)

    db_path = url.split('///', 1)[-1]
    if db_path:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, connect_args=connect_args, echo=False)


def create_session_factory(engine: Engine) -> sessionmaker:
    """Build a session factory bound to the engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_schema(engine: Engine) -> None:
    """Create any missing tables.

    Used for local runs and tests; deployed databases are migrated with
    Alembic (see migrations/).
    """
    # Importing the models registers their tables on Base.metadata
    import server.models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def get_db_session(request: Request) -> Generator[Session, None, None]:
    """Get database session for dependency injection.

    Commits when the endpoint returns and rolls back if it raises.

    Yields:
        Database session bound to the application's engine

    Usage (FastAPI):
        @router.get('/configs')
        async def list_configs(db: Session = Depends(get_db_session)):
            return ConfigurationService(db).list_configurations()
    """
    session = request.app.state.session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def check_connection(engine: Engine) -> bool:
    """Return True when the database answers a trivial query."""
    try:
        with engine.connect() as conn:
            conn.execute(text('SELECT 1'))
        return True
    except Exception:
        return False
