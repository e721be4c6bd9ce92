from contextlib import contextmanager
from typing import Optional

from fastapi import Request
from sqlmodel import SQLModel, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from .config import DATABASE_URL, DB_TIMEOUT_SECONDS

# Import all models to ensure they are registered with SQLModel metadata
from .models import Task, User  # noqa: F401


def create_db_engine(database_url: str = DATABASE_URL) -> Engine:
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=False,
            connect_args={"check_same_thread": False, "timeout": DB_TIMEOUT_SECONDS},
        )

    # Postgres: disable pooling for serverless, enable pre-ping and bound the connect time
    return create_engine(
        database_url,
        echo=False,
        pool_pre_ping=True,
        poolclass=NullPool,
        connect_args={"connect_timeout": int(DB_TIMEOUT_SECONDS)},
    )


def create_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind)


engine = create_db_engine()

SessionLocal = create_session_factory(engine)


def create_tables(bind: Optional[Engine] = None) -> None:
    """Create all tables registered on the SQLModel metadata."""
    SQLModel.metadata.create_all(bind or engine)


def get_db(request: Request):
    """Dependency to get a database session from the app's session factory."""
    factory = getattr(request.app.state, "session_factory", SessionLocal)
    db = factory()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_session(factory: Optional[sessionmaker] = None):
    """Get a database session (context manager style).

    This is a convenience function for use outside of FastAPI dependencies.
    Usage:
        with get_session() as session:
            # do something with session
    """
    session = (factory or SessionLocal)()
    try:
        yield session
    finally:
        session.close()
