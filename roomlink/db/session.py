"""Database engine and session management."""
import logging
import time
from functools import lru_cache
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from roomlink.config.settings import settings

logger = logging.getLogger(__name__)


def build_engine(url: str, **overrides) -> Engine:
    """Create an engine; pool sizing only applies to server databases."""
    kwargs = {"pool_pre_ping": True, "echo": settings.DB_ECHO}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_recycle=3600,
        )
    kwargs.update(overrides)
    engine = create_engine(url, **kwargs)
    _install_slow_query_logging(engine)
    if _is_file_sqlite(url):
        _install_immediate_transactions(engine)
    return engine


def _is_file_sqlite(url: str) -> bool:
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return False
    database = parsed.database or ""
    return database not in ("", ":memory:") and parsed.query.get("mode") != "memory"


def _install_immediate_transactions(engine: Engine) -> None:
    """
    Take the SQLite write lock when a transaction begins.

    pysqlite defers BEGIN until the first write, so two sessions could both
    count free units and both confirm. BEGIN IMMEDIATE makes the second
    writer wait until the first commits, which gives ``SELECT ... FOR
    UPDATE`` semantics on a database that ignores row locks.
    """

    @event.listens_for(engine, "connect")
    def disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def _install_slow_query_logging(engine: Engine) -> None:
    @event.listens_for(engine, "before_cursor_execute")
    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault('query_start_time', []).append(time.perf_counter())

    @event.listens_for(engine, "after_cursor_execute")
    def after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        total_time = time.perf_counter() - conn.info['query_start_time'].pop()
        if total_time > settings.SLOW_QUERY_THRESHOLD:
            logger.warning(f"Slow query detected ({total_time:.4f}s): {statement[:100]}...")


@lru_cache()
def get_engine() -> Engine:
    return build_engine(settings.get_database_url())


@lru_cache()
def get_session_factory() -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine())


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that yields a database session.

    Usage:
        @router.get("/items")
        def read_items(db: Session = Depends(get_db)):
            ...
    """
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()
