import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from sqlalchemy.pool import NullPool

from .config import settings

logger = logging.getLogger(__name__)

APP_ENV = settings.APP_ENV.lower()  # "dev" | "prod"


def _serialize_sqlite_writes(eng):
    """
    SQLite ignores SELECT ... FOR UPDATE. Starting every transaction with
    BEGIN IMMEDIATE takes the write lock up front, so the
    read-occupancy / compare / insert sequence cannot interleave.
    """

    @event.listens_for(eng, "connect")
    def _on_connect(dbapi_conn, _record):
        dbapi_conn.isolation_level = None

    @event.listens_for(eng, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def _make_engine():
    if settings.DB_URL.startswith("sqlite"):
        eng = create_engine(
            settings.DB_URL,
            future=True,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        _serialize_sqlite_writes(eng)
        return eng

    # dev: no pool, the connection is closed right after each request
    if APP_ENV != "prod":
        return create_engine(
            settings.DB_URL,
            future=True,
            pool_pre_ping=True,
            poolclass=NullPool,
        )

    return create_engine(
        settings.DB_URL,
        future=True,
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=0,
        pool_recycle=1800,
    )


engine = _make_engine()

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
    future=True,
)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session):
    """Commit on success, roll back on any exception and re-raise it."""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def is_postgres(db: Session) -> bool:
    return db.get_bind().dialect.name == "postgresql"
