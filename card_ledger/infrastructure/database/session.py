"""Database engine and session factory construction"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from card_ledger.config import Settings


def build_engine(database_url: str, pool_size: int = 10, max_overflow: int = 10) -> Engine:
    """Create an engine; SQLite gets thread-sharing and a busy timeout instead of pool sizing"""
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": 30},
        )

    # Connection pool: recycle after 1 hour to avoid stale connections
    return create_engine(
        database_url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_recycle=3600,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    # Records returned by the engines outlive their unit of work
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def engine_from_settings(app_settings: Settings) -> Engine:
    return build_engine(
        app_settings.database_url,
        pool_size=app_settings.database_pool_size,
        max_overflow=app_settings.database_max_overflow,
    )
