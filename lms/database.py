"""
Database engine, session factory and declarative base
"""
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
import logging

from lms.config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()


def _enable_sqlite_transactions(engine: Engine) -> None:
    """
    Let SQLAlchemy own BEGIN/SAVEPOINT on SQLite

    pysqlite issues its own BEGIN lazily, which breaks SAVEPOINT handling.
    The idempotent inserts rely on savepoints, so the driver is put into
    autocommit mode and the transaction is started explicitly.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.execute("PRAGMA journal_mode = WAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def create_db_engine(url: str) -> Engine:
    """Create an engine for the given URL with dialect-specific setup"""
    if url.startswith("sqlite"):
        engine = create_engine(url, connect_args={"check_same_thread": False})
        _enable_sqlite_transactions(engine)
    else:
        engine = create_engine(url, pool_pre_ping=True)
    return engine


engine = create_db_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_db():
    """FastAPI dependency yielding a request-scoped session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine = None) -> None:
    """Create all tables if they don't exist"""
    # Register models on Base.metadata
    import lms.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database tables ensured")
