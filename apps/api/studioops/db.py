"""Engine and session factory. The database URL comes from the environment (.env is honored)."""
import os

from dotenv import load_dotenv
from sqlalchemy import Engine
from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.orm import sessionmaker

load_dotenv()


class Base(DeclarativeBase):
    pass


def normalize_database_url(url: str) -> str:
    """Point bare postgres URLs at the psycopg 3 driver.

    Hosting providers hand out ``postgres://`` or ``postgresql://``; SQLAlchemy
    reads the latter as psycopg2, which is not installed.
    """
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix):]
    return url


def make_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        # Local runs share one connection across FastAPI's worker threads
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set")
DATABASE_URL = normalize_database_url(DATABASE_URL)

engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
