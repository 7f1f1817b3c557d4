"""Database engine and session wiring for the cockpit service."""

from collections.abc import Iterator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from cockpit.settings import settings


class Base(DeclarativeBase):
    pass


def get_engine(url: str | None = None) -> Engine:
    # SQL echo follows the service log level
    return create_engine(
        url or settings.DATABASE_URL,
        pool_pre_ping=True,
        echo=settings.LOG_LEVEL.upper() == "DEBUG",
    )


engine = get_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def get_db() -> Iterator[Session]:
    """FastAPI dependency yielding one session per request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
