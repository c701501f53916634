import logging
import os
import sys
from typing import Optional, Union

DEFAULT_LOG_LEVEL = logging.INFO
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

LOG_LEVEL_ENV = "SITEPATHS_LOG_LEVEL"
# Set to a truthy value to see every statement the path store issues.
LOG_SQL_ENV = "SITEPATHS_LOG_SQL"
SQL_LOGGER_NAME = "sqlalchemy.engine"


def _parse_level(value: str, source: str) -> int:
    level = logging.getLevelName(value.strip().upper())
    if isinstance(level, int):
        return level
    # Logging is not configured yet, so this goes straight to stderr.
    print(
        f"Warning: Invalid {source} '{value}'. Defaulting to {logging.getLevelName(DEFAULT_LOG_LEVEL)}.",
        file=sys.stderr,
    )
    return DEFAULT_LOG_LEVEL


def setup_logging(level: Union[int, str, None] = None, log_sql: Optional[bool] = None) -> None:
    """
    Sets up logging for sitepaths.

    Args:
        level: Level of the ``sitepaths`` loggers, as an int or a name such as
            "DEBUG". Falls back to SITEPATHS_LOG_LEVEL, then to INFO.
        log_sql: Log SQL statements at INFO. Falls back to SITEPATHS_LOG_SQL.
            Rebuilds issue a few statements per page, so SQLAlchemy's engine
            logger is held at WARNING otherwise.
    """
    if level is None:
        env_level = os.environ.get(LOG_LEVEL_ENV, "")
        log_level = _parse_level(env_level, LOG_LEVEL_ENV) if env_level else DEFAULT_LOG_LEVEL
    elif isinstance(level, str):
        log_level = _parse_level(level, "log level string")
    else:
        log_level = level

    app_logger = logging.getLogger("sitepaths")
    app_logger.setLevel(log_level)

    # Prevent duplicate handlers if setup_logging is called multiple times
    if not app_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        app_logger.addHandler(handler)

    if log_sql is None:
        log_sql = os.environ.get(LOG_SQL_ENV, "").strip().lower() in ("1", "true", "yes", "on")
    logging.getLogger(SQL_LOGGER_NAME).setLevel(logging.INFO if log_sql else logging.WARNING)
