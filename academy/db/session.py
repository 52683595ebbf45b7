from typing import Generator
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from academy.core.config import settings
from academy.db.base import Base

def _connect_args(url: str) -> dict:
    # FastAPI runs sync routes in a threadpool; SQLite connections must be shareable
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}

engine = create_engine(
    settings.database_url,
    echo=settings.db_echo,
    connect_args=_connect_args(settings.database_url),
    pool_pre_ping=not settings.database_url.startswith("sqlite"),
)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

def get_db() -> Generator[Session, None, None]:
    """One session per request, closed when the request ends."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db(bind=None) -> None:
    """Create all tables known to the models package."""
    # Register every mapped class on Base.metadata
    import academy.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
