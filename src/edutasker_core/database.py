"""Database connection and session management."""
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from .config import get_settings

settings = get_settings()


def _use_immediate_transactions(engine: Engine) -> None:
    """Make every SQLite transaction take the write lock up front.

    pysqlite defers BEGIN until the first write, so two transactions could both
    read a scope before either writes. BEGIN IMMEDIATE serializes them before
    the snapshot read, the same guarantee FOR UPDATE gives on PostgreSQL.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def make_engine(database_url: str, **kwargs) -> Engine:
    """
    Create an engine configured for ordering transactions.

    Args:
        database_url: SQLAlchemy database URL
        **kwargs: Extra keyword arguments passed to create_engine

    Returns:
        Engine: Configured SQLAlchemy engine
    """
    if database_url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        engine = create_engine(database_url, connect_args=connect_args, **kwargs)
        _use_immediate_transactions(engine)
        return engine

    # Conservative pool settings (max ~10 connections per process)
    kwargs.setdefault("pool_pre_ping", True)          # Verify connections before using
    kwargs.setdefault("pool_size", settings.db_pool_size)
    kwargs.setdefault("max_overflow", settings.db_max_overflow)
    kwargs.setdefault("pool_recycle", settings.db_pool_recycle)
    kwargs.setdefault("pool_timeout", settings.db_pool_timeout)
    return create_engine(database_url, **kwargs)


# Create database engine
engine = make_engine(settings.database_url)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency function to get database session.

    Yields:
        Session: SQLAlchemy database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
