"""Database engine, session factory and declarative base."""
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from purchase_timeline.config import DatabaseConfig, settings


Base = declarative_base()


def build_engine(config: DatabaseConfig) -> Engine:
    """
    Create an engine for the configured store.

    SQLite gets a busy timeout equal to the transaction timeout so that a
    writer waiting on another writer fails instead of hanging.
    """
    connect_args = {}
    if config.is_sqlite:
        connect_args = {
            "check_same_thread": False,
            "timeout": config.transaction_timeout_seconds,
        }

    return create_engine(
        config.url,
        echo=config.echo,
        connect_args=connect_args,
        pool_pre_ping=not config.is_sqlite,
    )


engine = build_engine(settings.database)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Iterator[Session]:
    """Yield a session and always close it."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
