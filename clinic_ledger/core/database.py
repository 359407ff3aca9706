from contextlib import contextmanager
from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from typing import Generator
import logging
import redis

from .config import settings
from .errors import PersistenceError

logger = logging.getLogger(__name__)


def enable_sqlite_write_serialization(engine: Engine) -> None:
    """Start every SQLite transaction with BEGIN IMMEDIATE.

    pysqlite defers BEGIN until the first write, so a read-then-write
    sequence (conflict check, counter increment) could interleave with
    another connection. BEGIN IMMEDIATE takes the database write lock up
    front and makes each unit of work a serialized critical section.
    """
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_db_engine(url: str) -> Engine:
    """Create an engine with the pool and locking behaviour for its dialect."""
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        enable_sqlite_write_serialization(engine)
        return engine

    return create_engine(
        url,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=30,
        pool_recycle=1800,  # Recycle connections after 30 minutes
        pool_pre_ping=True,
    )


engine = create_db_engine(settings.get_database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

# Redis setup - mock for testing
if settings.TESTING:
    # Use a simple dict-based mock for Redis in tests
    class RedisMock:
        def __init__(self):
            self.data = {}

        def setex(self, key, time, value):
            self.data[key] = value
            return True

        def get(self, key):
            return self.data.get(key)

        def incr(self, key):
            self.data[key] = int(self.data.get(key) or 0) + 1
            return self.data[key]

    redis_client = RedisMock()
else:
    # Real Redis client for production
    redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)

# Database dependency
def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

# Redis dependency
def get_redis():
    """Get Redis client."""
    return redis_client

# Database initialization
def init_db():
    """Initialize database tables."""
    from .. import models  # noqa: F401  registers mappers on Base

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured")

@contextmanager
def transaction(db: Session):
    """All-or-nothing unit of work: commit on success, roll back on any error.

    Storage failures surface as ``PersistenceError`` so raw driver messages
    never reach the caller.
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Transaction rolled back: {e}")
        raise PersistenceError() from e
    except Exception:
        db.rollback()
        raise
