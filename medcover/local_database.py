from sqlalchemy import create_engine, Column, String, Text
from sqlalchemy.types import DateTime
from datetime import datetime
from sqlalchemy.orm import declarative_base, sessionmaker

from medcover.config import get_database_url

Base = declarative_base()


class LocalStorageEntry(Base):
    """One serialized blob per key, replaced wholesale on every write."""

    __tablename__ = "local_storage"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


def make_engine(url: str = None):
    url = url or get_database_url()
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


#engine and sessions
engine = make_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind=None):
    #to create tables
    Base.metadata.create_all(bind or engine)
