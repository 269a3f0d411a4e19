"""
Database connection and session management.
"""
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.exc import ArgumentError, OperationalError, DBAPIError
from typing import Generator, Optional
import logging
import time

from backend.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

engine = None
SessionLocal = None


def _redacted(url: str) -> str:
    return url.split('@')[1] if '@' in url else 'local'


def init_db(
    database_url: Optional[str],
    pool_size: int = 10,
    max_overflow: int = 90,
    max_retries: int = 3,
    retry_delay: float = 1.0,
):
    """
    Initialize the database engine and session factory with retry logic.
    Call this once at application startup.

    Args:
        database_url: SQLAlchemy URL of the account store
        pool_size: Connection pool size
        max_overflow: Connections allowed beyond the pool size
        max_retries: Number of connection attempts
        retry_delay: Seconds to wait between retries

    Raises:
        ConfigurationError: If no URL is configured or connection fails after all retries
    """
    global engine, SessionLocal

    if not database_url:
        raise ConfigurationError("DATABASE_URL or DB_USER/DB_NAME must be set")

    if database_url.startswith('sqlite'):
        engine_kwargs = {'connect_args': {'check_same_thread': False}}
    else:
        engine_kwargs = {
            'pool_size': pool_size,
            'max_overflow': max_overflow,
            'pool_recycle': 3600,  # Recycle connections after 1 hour
            'connect_args': {'connect_timeout': 10},
        }

    for attempt in range(max_retries):
        try:
            engine = create_engine(
                database_url,
                pool_pre_ping=True,  # Verify connections before using
                echo=False,
                **engine_kwargs
            )

            # Test connection
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))

            SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

            logger.info(f"Database initialized: {_redacted(database_url)}")
            return

        except ArgumentError as e:
            raise ConfigurationError(f"Invalid database URL: {e}") from e
        except (OperationalError, DBAPIError) as e:
            logger.warning(f"Database connection attempt {attempt + 1}/{max_retries} failed: {e}")
            if attempt < max_retries - 1:
                time.sleep(retry_delay * (attempt + 1))
            else:
                logger.error(f"Database initialization failed after {max_retries} attempts")
                raise ConfigurationError(f"Failed to connect to database: {e}") from e


def get_db() -> Generator[Session, None, None]:
    """
    Get a database session (FastAPI dependency).

    Usage:
        from fastapi import Depends
        from backend.core.database import get_db

        @router.get("/users")
        def list_users(db: Session = Depends(get_db)):
            ...
    """
    if not SessionLocal:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    db = SessionLocal()
    try:
        yield db
    except (OperationalError, DBAPIError) as e:
        logger.error(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def create_tables():
    """
    Create all tables in the database.
    Runs at every startup; existing tables are left untouched.
    """
    if not engine:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    from .models import Base
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")


def check_connection() -> bool:
    """Return True when the database answers a trivial query."""
    if not engine:
        return False
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except (OperationalError, DBAPIError) as e:
        logger.warning(f"Database health check failed: {e}")
        return False
