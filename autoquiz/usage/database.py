"""
Usage counter persistence using SQLAlchemy.

One row per (identity, date). The date column is a real DATE so that
comparisons and pruning never depend on string formats.
"""

from datetime import datetime
from pathlib import Path

from sqlalchemy import Column, Date, DateTime, Integer, String, UniqueConstraint, create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()


class AutoCreateUsage(Base):
    __tablename__ = "auto_create_usage"
    __table_args__ = (UniqueConstraint("identity", "usage_date", name="uq_auto_create_usage_identity_date"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    identity = Column(String(255), nullable=False, index=True)
    usage_date = Column(Date, nullable=False, index=True)
    usage_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<AutoCreateUsage(identity={self.identity!r}, date={self.usage_date}, count={self.usage_count})>"


def create_session_factory(database_url: str) -> sessionmaker:
    """Create an engine and session factory, creating tables if needed.

    Args:
        database_url: SQLAlchemy database URL.

    Returns:
        Configured sessionmaker.
    """
    url = make_url(database_url)
    connect_args = {}
    engine_kwargs = {"pool_pre_ping": True}
    if url.get_backend_name() == "sqlite":
        connect_args["check_same_thread"] = False  # Required for SQLite with FastAPI threads
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        else:
            # In-memory databases exist per connection; share a single one
            engine_kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, connect_args=connect_args, **engine_kwargs)
    if url.get_backend_name() == "sqlite":
        _begin_immediate(engine)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def _begin_immediate(engine) -> None:
    """Take SQLite's write lock when a transaction begins.

    The driver otherwise defers the lock until the first write, and two
    sessions upgrading from a shared lock at once fail with "database is
    locked" instead of waiting.
    """

    @event.listens_for(engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")
