"""
Database engine, session factory and declarative base.

Sessions are handed to request handlers through ``get_db``. Tests rebind
``engine`` and ``SessionLocal`` on this module, so callers must look them up
at call time rather than importing the names directly.
"""

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from postbacks.core.config import settings


Base = declarative_base()


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def enable_sqlite_savepoints(sqlite_engine) -> None:
    # pysqlite defers BEGIN until the first DML statement, which turns a
    # leading SAVEPOINT into the outer transaction. Emit BEGIN ourselves.
    # IMMEDIATE takes the write lock up front, so concurrent writers wait on
    # the busy timeout instead of failing a read-to-write lock upgrade.
    @event.listens_for(sqlite_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, _record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str | None = None):
    url = url or settings.DATABASE_URL
    if _is_sqlite(url):
        # SQLite: busy timeout bounds lock waits for concurrent writers.
        sqlite_engine = create_engine(
            url,
            echo=settings.DB_ECHO,
            connect_args={
                "check_same_thread": False,
                "timeout": settings.POSTBACK_DB_TIMEOUT_SECONDS,
            },
            future=True,
        )
        enable_sqlite_savepoints(sqlite_engine)
        return sqlite_engine
    timeout_ms = int(settings.POSTBACK_DB_TIMEOUT_SECONDS * 1000)
    return create_engine(
        url,
        echo=settings.DB_ECHO,
        pool_size=20,
        max_overflow=10,
        pool_pre_ping=True,
        pool_recycle=3600,
        pool_timeout=settings.POSTBACK_DB_TIMEOUT_SECONDS,
        connect_args={"options": f"-c lock_timeout={timeout_ms}"},
        future=True,
    )


engine = build_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


def apply_statement_timeout(db: Session) -> None:
    """Bound every statement of the current transaction (Postgres only)."""
    bind = db.get_bind()
    if bind.dialect.name != "postgresql":
        return
    timeout_ms = int(settings.POSTBACK_DB_TIMEOUT_SECONDS * 1000)
    db.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
