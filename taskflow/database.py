from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from taskflow.config import settings


def _build_engine(database_url: str):
    """Create the SQLAlchemy engine for the configured DATABASE_URL."""
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(database_url, pool_pre_ping=True)


engine = _build_engine(settings.DATABASE_URL)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for the models
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
