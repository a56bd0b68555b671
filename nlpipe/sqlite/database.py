from contextlib import contextmanager

from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from nlpipe.core.config import settings
from nlpipe.utils.logging import get_logger

logger = get_logger("nlpipe.sqlite.database")


class Base(DeclarativeBase):
    """Base class for all ORM models."""


@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable WAL mode so entity reads don't block on concurrent writers."""
    if not settings.database_url.startswith("sqlite"):
        return
    cursor = dbapi_conn.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")  # Faster than FULL, safer than OFF
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA temp_store=MEMORY")
    except Exception as e:
        # WAL is unavailable on some filesystems and for :memory: databases
        logger.warning("Could not set SQLite pragmas: %s", e)
    finally:
        cursor.close()


def create_db_engine(database_url: str | None = None) -> Engine:
    """Build an engine for ``database_url`` (defaults to settings)."""
    url = database_url or settings.database_url
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={
                "check_same_thread": settings.sqlite_check_same_thread,
                "timeout": settings.sqlite_timeout,
            },
            echo=False,
        )
    return create_engine(url, pool_pre_ping=True, echo=False)


engine = create_db_engine()

# Plain session factory; create a new Session per request/task
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,
)


@contextmanager
def get_db_context(session_factory: sessionmaker = SessionLocal):
    """
    Context manager for database sessions (store queries, scripts).
    Commits on success, rolls back on error, always closes.
    """
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(bind: Engine = engine) -> bool:
    """
    Verify the connection works and create missing tables.
    Call this during app startup.
    """
    from nlpipe.sqlite import models  # noqa: F401  (registers models with Base)

    try:
        with bind.connect() as conn:
            conn.execute(text("SELECT 1"))
        Base.metadata.create_all(bind=bind)
        logger.info("[OK] Entity database ready")
        return True
    except Exception as e:
        logger.error("[FAIL] Entity database initialization failed: %s", e)
        return False
