import logging
import re
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

_TELEGRAM_TOKEN_RE = re.compile(r"\b\d{8,12}:[A-Za-z0-9_-]{20,}\b")
_KEY_VALUE_RE = re.compile(
    r"(?i)\b(BOT_TOKEN|TG_TOKEN|TELEGRAM_TOKEN|TELEGRAM_PROXY|DATABASE_URL|DB_URL|SECRET|PASSWORD)\s*[:=]\s*([^\s]+)"
)
_PROXY_CREDENTIALS_RE = re.compile(r"(?i)\b((?:socks5|http|https)://)[^\s:@/]+:[^\s@/]+@")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _redact(text: str) -> str:
    redacted = _TELEGRAM_TOKEN_RE.sub("[REDACTED]", text)
    redacted = _KEY_VALUE_RE.sub(lambda match: f"{match.group(1)}=[REDACTED]", redacted)
    redacted = _PROXY_CREDENTIALS_RE.sub(lambda match: f"{match.group(1)}[REDACTED]@", redacted)
    return redacted


class RedactingFormatter(logging.Formatter):
    def formatException(self, ei):
        return _redact(super().formatException(ei))

    def formatStack(self, stack_info):
        return _redact(super().formatStack(stack_info))


class RedactingFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        record.msg = _redact(message)
        record.args = ()
        return True


def setup_logging(log_dir: str | Path = "data", level: int = logging.INFO) -> None:
    """
    Configures logging for the bot.
    output: stdout + rotating file (<log_dir>/routine.log)
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    formatter = RedactingFormatter(LOG_FORMAT)
    handlers = [
        logging.StreamHandler(sys.stdout),
        RotatingFileHandler(log_dir / "routine.log", maxBytes=5 * 1024 * 1024, backupCount=2, encoding="utf-8"),
    ]
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(RedactingFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in handlers:
        root_logger.addHandler(handler)

    logging.getLogger("aiogram").setLevel(logging.INFO)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
