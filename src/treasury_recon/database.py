"""
Database configuration and session management.

Provides the SQLAlchemy declarative base, engine and session factory.
"""

from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import ReconConfig

# Create declarative base for models
Base = declarative_base()


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create a SQLAlchemy engine for the given URL.

    Args:
        database_url: SQLAlchemy database URL
        echo: Log emitted SQL

    Returns:
        Configured engine
    """
    # SQLite doesn't support pool_size/max_overflow
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            return create_engine(
                database_url,
                echo=echo,
                connect_args=connect_args,
                poolclass=StaticPool,
            )
        return create_engine(database_url, echo=echo, connect_args=connect_args)

    return create_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    """Create the session factory used by the services."""
    return sessionmaker(
        bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
    )


def init_db(engine: Engine) -> None:
    """Initialize database tables."""
    # Import models to ensure they're registered with Base
    from .models import entities  # noqa: F401

    Base.metadata.create_all(bind=engine)


def session_factory_from_config(
    config: ReconConfig, database_url: Optional[str] = None
) -> sessionmaker:
    """Build a session factory from configuration, creating tables if needed."""
    engine = create_db_engine(database_url or config.database.url, config.database.echo)
    init_db(engine)
    return create_session_factory(engine)
