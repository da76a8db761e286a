"""
Database engine and session management
PostgreSQL in production; SQLite is accepted for local development
"""
import logging
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import Pool

from ..config import config

logger = logging.getLogger(__name__)


def create_database_engine(database_url: str) -> Engine:
    """Create a SQLAlchemy engine with pool settings suited to the backend"""
    if database_url.startswith("sqlite"):
        logger.info("DATABASE_URL configured for SQLite (local development)")
        return create_engine(database_url, connect_args={"check_same_thread": False})

    if not database_url.startswith("postgresql"):
        logger.warning(f"DATABASE_URL uses unknown format: {database_url[:20]}...")

    return create_engine(
        database_url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=5,
        max_overflow=10,
        pool_recycle=900,  # Recycle connections after 15 minutes
        pool_timeout=30,
        echo=False,
        connect_args={
            "connect_timeout": 10,
            "keepalives": 1,
            "keepalives_idle": 60,
            "keepalives_interval": 10,
            "keepalives_count": 3,
            "application_name": "media_studio",
        },
    )


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_conn, connection_record):
    """SQLite ignores ON DELETE CASCADE unless foreign keys are switched on"""
    if type(dbapi_conn).__module__.startswith("sqlite3"):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@event.listens_for(Pool, "invalidate")
def receive_invalidate(dbapi_conn, connection_record, exception):
    """Called when a connection is invalidated"""
    logger.warning(f"[POOL] Connection invalidated: {exception}")


engine = create_database_engine(config.get_database_url())

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency yielding a request-scoped session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine = None) -> None:
    """Create tables that don't exist yet and seed the default credit packages"""
    from .base import Base
    from . import models  # noqa: F401  (register mappers)
    from ..services.payment_service import seed_default_packages

    target = bind or engine
    Base.metadata.create_all(bind=target)

    db = sessionmaker(bind=target)()
    try:
        created = seed_default_packages(db)
        if created:
            logger.info(f"Seeded {created} default credit packages")
    finally:
        db.close()
