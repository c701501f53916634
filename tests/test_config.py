import logging

import pytest

from sitepaths.core.config import Settings
from sitepaths.core.logging_config import DEFAULT_LOG_LEVEL, SQL_LOGGER_NAME, setup_logging


def test_defaults(monkeypatch):
    for name in ("SITEPATHS_DATABASE_URL", "SITEPATHS_PATH_ENCODING", "SITEPATHS_ROOT_ID"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.DATABASE_URL == "sqlite:///./sitepaths.db"
    assert settings.ROOT_ID == 1
    assert settings.ROOT_DEFAULT_NAME == "home"
    assert settings.PATH_ENCODING == "ascii"
    assert settings.LOWERCASE_PATHS is True


def test_environment_aliases(monkeypatch):
    monkeypatch.setenv("SITEPATHS_DATABASE_URL", "sqlite:///./other.db")
    monkeypatch.setenv("SITEPATHS_ROOT_ID", "7")
    monkeypatch.setenv("SITEPATHS_PATH_ENCODING", "UTF-8")
    monkeypatch.setenv("SITEPATHS_LOWERCASE_PATHS", "false")

    settings = Settings(_env_file=None)

    assert settings.DATABASE_URL == "sqlite:///./other.db"
    assert settings.ROOT_ID == 7
    assert settings.PATH_ENCODING == "utf8"
    assert settings.LOWERCASE_PATHS is False


def test_field_names_accepted():
    settings = Settings(_env_file=None, PATH_ENCODING="Ascii", ROOT_DEFAULT_NAME=" /start/ ")

    assert settings.PATH_ENCODING == "ascii"
    assert settings.ROOT_DEFAULT_NAME == "start"


def test_unknown_encoding_rejected():
    with pytest.raises(ValueError):
        Settings(_env_file=None, PATH_ENCODING="latin1")


@pytest.fixture
def app_logger(monkeypatch):
    monkeypatch.delenv("SITEPATHS_LOG_SQL", raising=False)
    logger = logging.getLogger("sitepaths")
    sql_logger = logging.getLogger(SQL_LOGGER_NAME)
    handlers, level, sql_level = list(logger.handlers), logger.level, sql_logger.level
    logger.handlers[:] = []
    yield logger
    logger.handlers[:] = handlers
    logger.setLevel(level)
    sql_logger.setLevel(sql_level)


def test_setup_logging_levels(app_logger, monkeypatch):
    setup_logging("debug")
    assert app_logger.level == logging.DEBUG
    assert len(app_logger.handlers) == 1

    setup_logging(logging.WARNING)
    assert app_logger.level == logging.WARNING
    assert len(app_logger.handlers) == 1

    monkeypatch.setenv("SITEPATHS_LOG_LEVEL", "error")
    setup_logging()
    assert app_logger.level == logging.ERROR


def test_setup_logging_invalid_level(app_logger, monkeypatch, capsys):
    setup_logging("chatty")
    assert app_logger.level == DEFAULT_LOG_LEVEL
    assert "Invalid log level string 'chatty'" in capsys.readouterr().err

    monkeypatch.setenv("SITEPATHS_LOG_LEVEL", "nope")
    setup_logging()
    assert app_logger.level == DEFAULT_LOG_LEVEL
    assert "Invalid SITEPATHS_LOG_LEVEL 'nope'" in capsys.readouterr().err


def test_sql_logging_is_quiet_unless_asked_for(app_logger, monkeypatch):
    sql_logger = logging.getLogger(SQL_LOGGER_NAME)

    setup_logging("debug")
    assert sql_logger.level == logging.WARNING

    setup_logging("debug", log_sql=True)
    assert sql_logger.level == logging.INFO

    monkeypatch.setenv("SITEPATHS_LOG_SQL", "yes")
    setup_logging()
    assert sql_logger.level == logging.INFO
