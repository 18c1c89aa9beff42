from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from portfolio_cache.config import get_settings

_database_url = get_settings().database_url

engine = create_engine(
    _database_url,
    # SQLite specific; stores read sub-batches from worker threads
    connect_args={"check_same_thread": False} if _database_url.startswith("sqlite") else {},
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_session_factory() -> sessionmaker:
    """Dependency for FastAPI routes; stores open their own sessions."""
    return SessionLocal
