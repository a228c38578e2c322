# marketplace/data/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from marketplace.utils.settings import DATABASE_URL


def _connect_args(url: str) -> dict:
    # sqlite (dev/testy) - sesja moze wedrowac miedzy watkami threadpoola FastAPI
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    DATABASE_URL,
    pool_pre_ping=True,
    connect_args=_connect_args(DATABASE_URL),
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dependency FastAPI - jedna sesja na request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
