import logging
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from sitepaths.models import Base

from .config import Settings

logger = logging.getLogger(__name__)


class DatabaseManager:
    """
    Manages the database engine and sessions for one site.
    """

    def __init__(self, app_settings: Settings):
        """
        Initializes the DatabaseManager.

        Args:
            app_settings: Settings carrying DATABASE_URL and the testing mode flag.
        """
        self.settings = app_settings
        self.testing_mode = app_settings.TESTING_MODE
        self._engine: Optional[Engine] = None
        self._session_local: Optional[sessionmaker[Session]] = None
        self._initialize_engine()

    def _initialize_engine(self):
        if not self.settings.DATABASE_URL:
            raise ValueError("DATABASE_URL not set. Cannot initialize database.")

        connect_args = {}
        is_sqlite = self.settings.DATABASE_URL.startswith("sqlite")
        if is_sqlite:
            connect_args["check_same_thread"] = False

        self._engine = create_engine(self.settings.DATABASE_URL, connect_args=connect_args)
        if is_sqlite:
            event.listen(self._engine, "connect", _enable_sqlite_foreign_keys)
        self._session_local = sessionmaker(autocommit=False, autoflush=False, bind=self._engine)
        logger.info(f"Initialized database engine ({self.settings.DATABASE_URL})")

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database engine has not been initialized.")
        return self._engine

    @property
    def session_local(self) -> sessionmaker[Session]:
        if self._session_local is None:
            raise RuntimeError("SessionLocal has not been initialized.")
        return self._session_local

    def get_db_session(self) -> Session:
        """
        Provides a new database session.
        The caller is responsible for closing the session, typically with ``with``.
        """
        return self.session_local()

    def create_db_and_tables(self):
        """
        Creates all database tables.
        In TESTING_MODE, if the database URL suggests a test database,
        it will drop all tables before creating them.
        """
        logger.info("Attempting to create database tables...")

        # WARNING: Destructive operation in testing mode.
        if self.testing_mode and ("pytest" in self.settings.DATABASE_URL or "test" in self.settings.DATABASE_URL):
            Base.metadata.drop_all(bind=self.engine)
            logger.info(f"Dropped all tables ({self.settings.DATABASE_URL}) (testing mode)")

        try:
            Base.metadata.create_all(bind=self.engine)
            logger.info(f"Database tables created (or verified existing) ({self.settings.DATABASE_URL})")
        except Exception as e:
            logger.error(f"Error creating tables: {e}", exc_info=True)
            raise

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
