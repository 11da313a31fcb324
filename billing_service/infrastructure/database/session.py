from typing import Generator

from sqlalchemy import text
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from billing_service.config.config import config
from billing_service.config.logger_config import log

# Global engine instance
engine = None


def build_engine(database_url: str):
    """Create an engine for Postgres, or an in-process engine for SQLite URLs."""
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(
        database_url,
        echo=False,
        pool_pre_ping=True,
        pool_recycle=300,
    )


def init_sqlmodel() -> None:
    """
    Initialize the SQLModel engine using configuration from `config`
    and create the payments table if it does not exist.
    Must be called before any database operations.
    """
    global engine
    if engine is not None:
        log.warning("Database engine already initialized. Skipping re-initialization.")
        return

    try:
        engine = build_engine(config.DATABASE_URL)
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        SQLModel.metadata.create_all(engine)
        log.info("SQLModel engine initialized and connection verified")
    except Exception as e:
        log.critical(
            "Failed to initialize SQLModel engine", error=str(e), exc_info=True
        )
        raise RuntimeError("Failed to initialize database engine") from e


def check_connection() -> bool:
    """Return True when the engine is initialized and answers a trivial query."""
    if engine is None:
        return False
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        log.warning("Database health check failed", error=str(e))
        return False


def get_session() -> Generator[Session, None, None]:
    """
    Dependency that provides a database session.
    Ensures proper cleanup after use.

    Yields:
        Session: An active SQLModel session.

    Raises:
        RuntimeError: If engine is not initialized.
    """
    if engine is None:
        log.critical("Database session requested, but engine is not initialized")
        raise RuntimeError(
            "Database engine not initialized. Call init_sqlmodel() first."
        )

    session = Session(engine)
    try:
        yield session
    except Exception as e:
        log.error("Database session error, rolling back", error=str(e))
        session.rollback()
        raise
    finally:
        session.close()
