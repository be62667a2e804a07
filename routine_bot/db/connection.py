import asyncio
import logging
import os
from pathlib import Path
import uuid

from alembic import command
from alembic.config import Config
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url

from routine_bot.config import settings

SQLITE_TIMEOUT_SECONDS = 30
PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _is_sqlite_url(url: str) -> bool:
    return url.startswith("sqlite")


def sqlite_db_file_path(db_url: str) -> Path | None:
    if not _is_sqlite_url(db_url):
        return None
    try:
        url = make_url(db_url)
    except Exception:
        return None

    db = getattr(url, "database", None)
    if not db or db == ":memory:":
        return None
    return Path(db)


def _resolve_db_path(db_path: Path, cwd: Path | None = None) -> Path:
    cwd = cwd or Path.cwd()
    if db_path.is_absolute():
        return db_path.resolve()
    return (cwd / db_path).resolve()


def _directory_write_check(directory: Path) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    tmp = directory / f".writecheck-{uuid.uuid4().hex}"
    try:
        with open(tmp, "xb") as f:
            f.write(b"1")
            f.flush()
            os.fsync(f.fileno())
    finally:
        tmp.unlink(missing_ok=True)


def _prepare_sqlite_filesystem(db_url: str) -> None:
    sqlite_db = sqlite_db_file_path(db_url)
    if sqlite_db is None:
        return

    db_abs = _resolve_db_path(sqlite_db)
    try:
        _directory_write_check(db_abs.parent)
    except OSError as exc:
        msg = f"Directory {db_abs.parent} is not writable; check DB_PATH and volume mounts"
        if db_abs.exists():
            logging.exception("%s (DB exists at %s; continuing)", msg, db_abs)
            return
        raise RuntimeError(msg) from exc


_engine = None
_session_maker = None


def _ensure_engine_initialized() -> None:
    global _engine, _session_maker
    if _engine is not None and _session_maker is not None:
        return

    _prepare_sqlite_filesystem(settings.DB_PATH)

    connect_args = {"timeout": SQLITE_TIMEOUT_SECONDS} if _is_sqlite_url(settings.DB_PATH) else {}
    _engine = create_async_engine(settings.DB_PATH, echo=False, connect_args=connect_args)
    _session_maker = async_sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)


def async_session_maker() -> AsyncSession:
    _ensure_engine_initialized()
    assert _session_maker is not None
    return _session_maker()

@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    if not _is_sqlite_url(settings.DB_PATH):
        return
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute(f"PRAGMA busy_timeout={SQLITE_TIMEOUT_SECONDS * 1000}")
    finally:
        cursor.close()

def get_engine():
    _ensure_engine_initialized()
    assert _engine is not None
    return _engine


async def ensure_schema() -> None:
    """
    Ensure the database schema matches the latest migrations.
    """
    _ensure_engine_initialized()
    try:
        db_url = make_url(settings.DB_PATH).render_as_string(hide_password=True)
    except Exception:
        db_url = settings.DB_PATH
    logging.info("Database URL=%s", db_url)

    sqlite_db = sqlite_db_file_path(settings.DB_PATH)
    if sqlite_db is not None:
        sqlite_db_abs = _resolve_db_path(sqlite_db)
        logging.info("SQLite DB file=%s (exists=%s)", sqlite_db_abs, sqlite_db_abs.exists())
    try:
        await asyncio.to_thread(run_migrations)
    except Exception:
        logging.exception("Database migrations failed")
        raise


def run_migrations(revision: str = "head") -> None:
    alembic_cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(PROJECT_ROOT / "migrations"))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.DB_PATH)
    command.upgrade(alembic_cfg, revision)
