"""
Centralized logging configuration for the Quscina auth service
"""
import logging
import os
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_DIR = Path(os.getenv("QUSCINA_LOG_DIR") or Path(__file__).parent.parent.parent / "logs")


def _level_from_env(default: int) -> int:
    name = (os.getenv("QUSCINA_LOG_LEVEL") or "").strip().upper()
    if not name:
        return default
    value = logging.getLevelName(name)
    return value if isinstance(value, int) else default


def _file_handler(log_file: str, level: int, formatter: logging.Formatter) -> RotatingFileHandler:
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        LOG_DIR / log_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a module.

    Handlers live on the root logger (see configure_app_logging), so
    module loggers only need a name.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def configure_app_logging(
    level: int = logging.INFO,
    log_to_file: bool = True,
    log_file: str = "quscina.log",
) -> None:
    """
    Configure application-wide logging settings.

    This should be called once at application startup. QUSCINA_LOG_LEVEL
    overrides the level, QUSCINA_LOG_TO_FILE=false disables the file handler.

    Args:
        level: Root logging level (default: INFO)
        log_to_file: Whether to enable file logging (default: True)
        log_file: Log file name inside LOG_DIR (default: "quscina.log")
    """
    level = _level_from_env(level)
    if os.getenv("QUSCINA_LOG_TO_FILE", "").strip().lower() in {"0", "false", "no"}:
        log_to_file = False

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_to_file:
        root_logger.addHandler(_file_handler(log_file, level, formatter))


def redact_email(email: str | None) -> str:
    """Shorten an e-mail address for log lines (jo***@example.com)."""
    if not email or "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"
