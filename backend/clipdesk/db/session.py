"""Database session management"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from clipdesk.core.config import settings
from clipdesk.models import Base

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    pool_recycle=3600
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db():
    """Initialize database (create all tables)"""
    Base.metadata.create_all(bind=engine)
