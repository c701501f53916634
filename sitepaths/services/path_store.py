"""
Persistent (page, locale) -> path table.

Every public operation runs in its own short session and commits on its own,
so a failed write only ever affects the one page it was about. Database
errors that look like a missing or outdated schema trigger one
``ensure_schema()`` followed by a single retry; a second failure is raised as
StoreUnavailableError.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple, TypeVar, Union

from sqlalchemy import delete, func, inspect, select, text
from sqlalchemy.exc import OperationalError, ProgrammingError, SQLAlchemyError
from sqlalchemy.orm import Session

from sitepaths.core.config import Settings
from sitepaths.core.database import DatabaseManager
from sitepaths.core.exceptions import StoreUnavailableError
from sitepaths.core.locale import LocaleLike, as_locale
from sitepaths.models import ModuleConfig, PathEntry
from sitepaths.services.sanitizer import PathSanitizer
from sitepaths.services.tree_reader import TreeReader

logger = logging.getLogger(__name__)

T = TypeVar("T")

ROOT_PATH = "/"
NOT_FOUND: Tuple[int, int] = (0, 0)

# Errors that may be cured by creating or migrating the schema.
SELF_HEAL_ERRORS = (OperationalError, ProgrammingError)


@dataclass(frozen=True)
class PageInfo:
    """Stored path together with the page attributes routing needs."""

    page_id: int
    locale_id: int
    path: str
    parent_id: int
    template_id: int
    status: int


class PathIndexStore:
    def __init__(self, db_manager: DatabaseManager, app_settings: Optional[Settings] = None):
        self.db_manager = db_manager
        self.settings = app_settings or db_manager.settings
        self.sanitizer = PathSanitizer(self.settings)
        self.table = PathEntry.__table__

    # --- Reads ---

    def get_path(self, page_id: int, locale: LocaleLike = None) -> Optional[str]:
        """
        Stored path of a page in one locale, None when there is no row.
        The root's empty path is returned as "/".
        """
        locale_id = as_locale(locale).id

        def _get(session: Session) -> Optional[str]:
            stmt = select(PathEntry.path).where(PathEntry.page_id == page_id, PathEntry.locale_id == locale_id)
            return session.execute(stmt).scalar_one_or_none()

        path = self.run(_get, "get_path")
        if path is None:
            return None
        return path or ROOT_PATH

    def get_all_paths(self, page_id: int) -> Dict[int, str]:
        """All stored locale variants of a page, keyed by locale id."""

        def _get(session: Session) -> Dict[int, str]:
            stmt = select(PathEntry.locale_id, PathEntry.path).where(PathEntry.page_id == page_id)
            return {locale_id: path or ROOT_PATH for locale_id, path in session.execute(stmt)}

        return self.run(_get, "get_all_paths")

    def lookup_by_path(self, path_or_paths: Union[str, Iterable[str]]) -> Tuple[int, int]:
        """
        Finds the page owning a path.

        Args:
            path_or_paths: One path, or several candidates tried in the given
                order (e.g. with and without a locale prefix).

        Returns:
            (page_id, locale_id) of the first candidate that matches, (0, 0) otherwise.
            When a candidate matches in several locales the default locale wins.
        """
        candidates = self._candidate_paths(path_or_paths)
        if not candidates:
            return NOT_FOUND

        def _lookup(session: Session) -> Tuple[int, int]:
            stmt = (
                select(PathEntry.path, PathEntry.page_id, PathEntry.locale_id)
                .where(PathEntry.path.in_(candidates))
                .order_by(PathEntry.locale_id)
            )
            matches: Dict[str, Tuple[int, int]] = {}
            for path, page_id, locale_id in session.execute(stmt):
                matches.setdefault(path, (page_id, locale_id))
            for candidate in candidates:
                if candidate in matches:
                    return matches[candidate]
            return NOT_FOUND

        return self.run(_lookup, "lookup_by_path")

    def lookup_info(self, path: str, tree_reader: TreeReader) -> Optional[PageInfo]:
        """
        Path row plus the page attributes ``tree_reader`` reports for its page.
        None when the path is not indexed or its page is no longer in the tree.
        """
        sanitized = self.sanitizer.sanitize(path)

        def _lookup(session: Session) -> Optional[Tuple[int, int, str]]:
            stmt = (
                select(PathEntry.page_id, PathEntry.locale_id, PathEntry.path)
                .where(PathEntry.path == sanitized)
                .order_by(PathEntry.locale_id)
                .limit(1)
            )
            row = session.execute(stmt).first()
            return tuple(row) if row is not None else None

        row = self.run(_lookup, "lookup_info")
        if row is None:
            return None
        page_id, locale_id, stored_path = row
        node = tree_reader.get_node(page_id)
        if node is None:
            logger.warning(f"Path '{stored_path}' points at page {page_id}, which is not in the tree.")
            return None
        return PageInfo(
            page_id=page_id,
            locale_id=locale_id,
            path=stored_path or ROOT_PATH,
            parent_id=node.parent_id,
            template_id=node.template_id,
            status=node.status,
        )

    def count(self, locale: LocaleLike = None) -> int:
        """Number of stored rows; restricted to one locale when ``locale`` is given (0 for the default)."""

        def _count(session: Session) -> int:
            stmt = select(func.count()).select_from(PathEntry)
            if locale is not None:
                stmt = stmt.where(PathEntry.locale_id == as_locale(locale).id)
            return session.execute(stmt).scalar_one()

        return self.run(_count, "count")

    # --- Writes ---

    def upsert(self, page_id: int, paths: Mapping[LocaleLike, str]) -> int:
        """
        Inserts or replaces the given locale paths of one page.
        Rows for locales missing from ``paths`` are left untouched.
        """
        normalized = self._normalize_paths(paths)
        return self.run(lambda session: self._write(session, page_id, normalized, prune=False), "upsert")

    def replace(self, page_id: int, paths: Mapping[LocaleLike, str]) -> int:
        """Like upsert, but also removes the page's rows for locales not in ``paths``."""
        normalized = self._normalize_paths(paths)
        return self.run(lambda session: self._write(session, page_id, normalized, prune=True), "replace")

    def delete_node(self, page_id: int) -> int:
        def _delete(session: Session) -> int:
            return session.execute(delete(PathEntry).where(PathEntry.page_id == page_id)).rowcount

        deleted = self.run(_delete, "delete_node")
        logger.debug(f"Deleted {deleted} path rows of page {page_id}.")
        return deleted

    def delete_locale(self, locale: LocaleLike) -> int:
        locale_id = as_locale(locale).id

        def _delete(session: Session) -> int:
            return session.execute(delete(PathEntry).where(PathEntry.locale_id == locale_id)).rowcount

        deleted = self.run(_delete, "delete_locale")
        logger.info(f"Deleted {deleted} path rows of locale {locale_id}.")
        return deleted

    def clear(self) -> int:
        return self.run(lambda session: session.execute(delete(PathEntry)).rowcount, "clear")

    def _write(self, session: Session, page_id: int, paths: Dict[int, str], prune: bool) -> int:
        for locale_id, path in paths.items():
            # Another page still holding this path has a stale row: the newest computation wins.
            evicted = session.execute(
                delete(PathEntry).where(
                    PathEntry.locale_id == locale_id,
                    PathEntry.path == path,
                    PathEntry.page_id != page_id,
                )
            ).rowcount
            if evicted:
                logger.warning(
                    f"Path '{path}' (locale {locale_id}) was held by another page; "
                    f"evicted {evicted} stale row(s) in favour of page {page_id}."
                )

        stmt = delete(PathEntry).where(PathEntry.page_id == page_id)
        if not prune:
            stmt = stmt.where(PathEntry.locale_id.in_(list(paths)))
        session.execute(stmt)

        session.add_all([PathEntry(page_id=page_id, locale_id=locale_id, path=path) for locale_id, path in paths.items()])
        session.flush()
        return len(paths)

    # --- Schema ---

    def ensure_schema(self) -> List[str]:
        """
        Creates or migrates the tables the index owns. Safe to call repeatedly.

        Returns:
            Descriptions of the changes applied, empty when nothing was missing.
        """
        changes: List[str] = []
        table_name = self.table.name
        with self.db_manager.engine.begin() as conn:
            inspector = inspect(conn)
            for table in (self.table, ModuleConfig.__table__):
                if not inspector.has_table(table.name):
                    table.create(conn)
                    changes.append(f"created table {table.name}")
            if changes:
                inspector = inspect(conn)

            primary_key = inspector.get_pk_constraint(table_name).get("constrained_columns") or []
            if sorted(primary_key) != sorted(column.name for column in self.table.primary_key.columns):
                # Derived data only: recreate and let the next rebuild fill it.
                self.table.drop(conn)
                self.table.create(conn)
                changes.append(f"recreated {table_name} with primary key (page_id, locale_id)")
                inspector = inspect(conn)

            existing_columns = {column["name"] for column in inspector.get_columns(table_name)}
            for column in self.table.columns:
                if column.name in existing_columns:
                    continue
                column_type = column.type.compile(dialect=conn.dialect)
                default = " NOT NULL DEFAULT 0" if column.name == "locale_id" else ""
                conn.execute(text(f"ALTER TABLE {table_name} ADD COLUMN {column.name} {column_type}{default}"))
                changes.append(f"added column {table_name}.{column.name}")

            existing_indexes = {index["name"] for index in inspector.get_indexes(table_name)}
            existing_indexes.update(constraint["name"] for constraint in inspector.get_unique_constraints(table_name))
            if "uq_page_paths_path_locale" not in existing_indexes:
                conn.execute(text(f"CREATE UNIQUE INDEX uq_page_paths_path_locale ON {table_name} (path, locale_id)"))
                changes.append("added unique index on (path, locale_id)")
            if "ix_page_paths_locale_id" not in existing_indexes:
                conn.execute(text(f"CREATE INDEX ix_page_paths_locale_id ON {table_name} (locale_id)"))
                changes.append("added index on locale_id")

        for change in changes:
            logger.info(f"Path index schema: {change}.")
        return changes

    def run(self, operation: Callable[[Session], T], description: str) -> T:
        """Runs ``operation`` in a fresh committed session with the one-shot schema self-heal."""
        try:
            return self._attempt(operation)
        except SELF_HEAL_ERRORS as first_error:
            logger.info(f"Path store error during {description} ({first_error}); checking schema and retrying once.")
            try:
                self.ensure_schema()
                return self._attempt(operation)
            except SQLAlchemyError as e:
                logger.error(f"Path store still failing during {description} after schema check: {e}")
                raise StoreUnavailableError(f"Path store unavailable during {description}", original_exception=e) from e

    def _attempt(self, operation: Callable[[Session], T]) -> T:
        with self.db_manager.get_db_session() as session:
            result = operation(session)
            session.commit()
            return result

    def _normalize_paths(self, paths: Mapping[LocaleLike, str]) -> Dict[int, str]:
        return {as_locale(locale).id: self.sanitizer.sanitize(path) for locale, path in paths.items()}

    def _candidate_paths(self, path_or_paths: Union[str, Iterable[str]]) -> List[str]:
        if path_or_paths is None:
            return []
        raw = [path_or_paths] if isinstance(path_or_paths, str) else list(path_or_paths)
        candidates: List[str] = []
        for path in raw:
            sanitized = self.sanitizer.sanitize(path)
            if sanitized not in candidates:
                candidates.append(sanitized)
        return candidates
