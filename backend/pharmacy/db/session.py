"""Database engine and session factory. SQLite compatible with connection pooling."""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from pharmacy.core.config import settings


def create_engine_for(url: str) -> Engine:
    if url.startswith("sqlite"):
        # SQLite: NullPool for thread-safety; every session gets its own
        # connection and waits on the busy timeout for competing writers.
        return create_engine(
            url,
            connect_args={
                "check_same_thread": False,
                "timeout": settings.SQLITE_BUSY_TIMEOUT_SECONDS,
            },
            poolclass=NullPool,
        )

    # PostgreSQL/MySQL: QueuePool with sensible defaults
    return create_engine(
        url,
        pool_size=5,  # Number of persistent connections
        max_overflow=10,  # Max temporary connections
        pool_timeout=30,  # Seconds to wait for connection
        pool_recycle=3600,  # Recycle connections after 1 hour
        pool_pre_ping=True,  # Verify connection health
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


engine = create_engine_for(settings.DATABASE_URL)

SessionLocal = create_session_factory(engine)
