"""
Database engine and session management.

PostgreSQL in production; SQLite for local runs and tests.
"""
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from lp_indexer.exceptions import OperationalError
from lp_indexer.monitoring.logger import get_logger

logger = get_logger(__name__)

# Base class for ORM models
Base = declarative_base()


def _engine_kwargs(database_url: str, echo: bool) -> dict:
    if database_url.startswith("postgresql"):
        return dict(
            echo=echo,
            pool_pre_ping=True,  # Verify connections before using
            pool_size=5,
            max_overflow=10,
            pool_recycle=3600,
            pool_timeout=30,
        )
    if database_url.startswith("sqlite"):
        kwargs = dict(echo=echo, connect_args={"check_same_thread": False})
        # In-memory databases live on a single connection
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return kwargs
    raise ValueError(
        f"Unsupported database URL: {database_url[:30]}... "
        "Use a postgresql:// or sqlite:// connection string."
    )


class Database:
    """Database engine and session manager."""

    def __init__(self, database_url: str, echo: bool = False):
        """
        Initialize database connection.

        Args:
            database_url: postgresql:// or sqlite:// connection string
            echo: Log emitted SQL
        """
        self.database_url = database_url
        self.engine = create_engine(database_url, **_engine_kwargs(database_url, echo))
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def create_all(self) -> None:
        """Create all tables."""
        # Registers every ORM model on Base.metadata
        import lp_indexer.storage.repository  # noqa: F401

        try:
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as e:
            raise OperationalError(f"Table creation failed: {e}") from e

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """
        Context manager for database sessions.

        Commits on success, rolls back on any exception.

        Example:
            with db.get_session() as session:
                session.add(obj)
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


def init_db(database_url: str, echo: bool = False) -> Database:
    """
    Create a Database and make sure its tables exist.

    Args:
        database_url: postgresql:// or sqlite:// connection string

    Returns:
        Database instance
    """
    if database_url.startswith("sqlite:///") and database_url != "sqlite:///:memory:":
        from pathlib import Path
        Path(database_url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)

    db = Database(database_url, echo=echo)
    db.create_all()
    logger.info("DATABASE_INITIALIZED", dialect=db.engine.dialect.name)
    return db
