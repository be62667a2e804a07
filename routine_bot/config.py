from datetime import date
from pathlib import Path
import re
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings

from routine_bot.ical.exporter import DEFAULT_SEMESTER_END

BASE_DIR = Path(__file__).resolve().parent.parent

DEFAULT_DB_PATH = "sqlite+aiosqlite:///./data/routine.db"

_URL_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")
_WINDOWS_DRIVE_PATH_RE = re.compile(r"^[a-zA-Z]:[\\\\/]")
_SECTION_PREFIX_RE = re.compile(r"^[A-Za-z]{1,4}$")


def _looks_like_sqlalchemy_url(value: str) -> bool:
    value = value.strip()
    if _WINDOWS_DRIVE_PATH_RE.match(value):
        return False
    return _URL_SCHEME_RE.match(value) is not None


def _sqlite_aiosqlite_url_from_path(value: str) -> str:
    value = value.strip()
    if value == ":memory:":
        return "sqlite+aiosqlite:///:memory:"

    path = Path(value).expanduser()
    path_posix = path.as_posix()

    # Windows absolute paths need: sqlite+aiosqlite:///C:/...
    if path.drive:
        return f"sqlite+aiosqlite:///{path_posix}"

    # Unix absolute paths need: sqlite+aiosqlite:////abs/path.db
    if path.is_absolute():
        return f"sqlite+aiosqlite:////{path_posix.lstrip('/')}"

    return f"sqlite+aiosqlite:///{path_posix}"


def normalize_db_path(value: str) -> str:
    """
    Normalize DB_PATH into a SQLAlchemy URL.

    - If DB_PATH already looks like a SQLAlchemy URL (sqlite:/postgres:/...), keep as-is.
    - If DB_PATH looks like a filesystem path, convert it to sqlite+aiosqlite URL.
    """
    value = (value or "").strip()
    if not value:
        return DEFAULT_DB_PATH
    if _looks_like_sqlalchemy_url(value):
        return value
    return _sqlite_aiosqlite_url_from_path(value)


class Settings(BaseSettings):
    DB_PATH: str = DEFAULT_DB_PATH

    BOT_TOKEN: str
    TZ: str = "Asia/Dhaka"
    CLASSES_PATH: Path = BASE_DIR / "data" / "classes.json"
    DINING_PATH: Path = BASE_DIR / "data" / "dining.json"
    # Recurring events stop on this date; it is fixed per semester, never derived from "today".
    SEMESTER_END: date = DEFAULT_SEMESTER_END
    SECTION_PREFIX: str = "S"
    DINING_HALL_LABEL: str = "Dining Hall"
    CALENDAR_NAME: str = "RS Routine"
    # Cosmetic "Loading..." pause before the routine is shown.
    SUBMIT_DELAY_SECONDS: float = 0.8
    TELEGRAM_PROXY: Optional[str] = None

    @field_validator("TZ")
    @classmethod
    def validate_timezone(cls, value: str):
        try:
            ZoneInfo(value)
        except ZoneInfoNotFoundError as exc:
            raise ValueError(f"TZ must be a valid IANA timezone, got '{value}'") from exc
        return value

    @field_validator("SECTION_PREFIX")
    @classmethod
    def validate_section_prefix(cls, value: str):
        value = (value or "").strip()
        if not _SECTION_PREFIX_RE.match(value):
            raise ValueError("SECTION_PREFIX must be 1-4 letters")
        return value.upper()

    @field_validator("SUBMIT_DELAY_SECONDS")
    @classmethod
    def validate_delay(cls, value: float):
        if value < 0:
            raise ValueError("SUBMIT_DELAY_SECONDS must be >= 0")
        return value

    @field_validator("DB_PATH", mode="before")
    @classmethod
    def normalize_db_path_value(cls, value):
        if value is None:
            return DEFAULT_DB_PATH
        return normalize_db_path(str(value))

    class Config:
        env_file = BASE_DIR / ".env"
        env_file_encoding = "utf-8"

settings = Settings()
