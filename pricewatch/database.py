"""
PriceWatch Database Configuration
SQLAlchemy engine and session management
"""
from contextlib import contextmanager
from typing import Callable, Generator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from pricewatch.config import settings
from pricewatch.models import Base


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """SQLite shares one connection across threads; other backends get a pool"""
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo,
        )
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        echo=echo,
    )


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def create_tables(bind: Engine = engine):
    """Create the price_alerts table if missing"""
    Base.metadata.create_all(bind=bind)


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session for the API"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context(session_factory: Callable[[], Session] = SessionLocal) -> Generator[Session, None, None]:
    """One unit of work outside a request: committed on success, rolled back on error"""
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def health_check(session_factory: Callable[[], Session] = SessionLocal) -> bool:
    """Check database connectivity"""
    try:
        with get_db_context(session_factory) as db:
            db.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
