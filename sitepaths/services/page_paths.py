"""
PagePaths: the read and maintenance interface of the path index.

Wires the store, the tree reader, the root segment cache, the rebuild engine
and the lifecycle hooks together for one database.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple, Union

from sqlalchemy import Select
from sqlalchemy.sql.elements import ColumnElement

from sitepaths.core import config as app_config
from sitepaths.core.config import Settings
from sitepaths.core.database import DatabaseManager
from sitepaths.core.dispatcher import EventDispatcher
from sitepaths.core.events import BaseEvent
from sitepaths.core.locale import DEFAULT_LOCALE_ID, LocaleLike, as_locale
from sitepaths.services import module_config_service
from sitepaths.services.hooks import LifecycleHookBinder
from sitepaths.services.path_store import PageInfo, PathIndexStore
from sitepaths.services.query_adapter import PathCondition, apply_path_condition
from sitepaths.services.rebuild_engine import LAST_REBUILD_KEY, RebuildEngine, RebuildResult
from sitepaths.services.root_segments import RootSegmentCache
from sitepaths.services.sanitizer import to_display
from sitepaths.services.tree_reader import SqlTreeReader, TreeReader

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexStats:
    row_count: int
    node_count: int
    estimated_rebuild_seconds: Optional[float]


class PagePaths:
    def __init__(
        self,
        db_manager: Optional[DatabaseManager] = None,
        tree_reader: Optional[TreeReader] = None,
        app_settings: Optional[Settings] = None,
        dispatcher: Optional[EventDispatcher] = None,
    ):
        self.settings = app_settings or (db_manager.settings if db_manager else app_config.settings)
        self.db_manager = db_manager or DatabaseManager(self.settings)
        self.store = PathIndexStore(self.db_manager, self.settings)
        self.tree_reader = tree_reader or SqlTreeReader(self.db_manager.get_db_session)
        self.root_segments = RootSegmentCache(self.tree_reader, self.store, self.settings)
        self.engine = RebuildEngine(self.store, self.tree_reader, self.root_segments, self.settings)
        self.dispatcher = dispatcher or EventDispatcher()
        self.hooks = LifecycleHookBinder(self.engine, self.store, self.root_segments)
        self.hooks.bind(self.dispatcher)
        self.last_result: Optional[RebuildResult] = None

    # --- Maintenance ---

    def rebuild(self, node_id: Optional[int] = None) -> int:
        """Rebuilds the whole index (no argument) or one page's subtree. Returns rows written."""
        if node_id is None:
            self.last_result = self.engine.rebuild_all()
        else:
            self.last_result = self.engine.rebuild_subtree(node_id)
        return self.last_result.count

    def dispatch(self, event: BaseEvent) -> int:
        return self.dispatcher.dispatch(event)

    def ensure_schema(self):
        return self.store.ensure_schema()

    # --- Reads ---

    def get_path(self, node_id: int, locale: LocaleLike = None) -> Optional[str]:
        """
        Path of a page, None when the page is not indexed.
        A locale without its own path falls back to the default path.
        """
        locale = as_locale(locale)
        path = self.store.get_path(node_id, locale)
        if path is None and not locale.is_default:
            path = self.store.get_path(node_id, DEFAULT_LOCALE_ID)
        return to_display(path, self.settings.PATH_ENCODING)

    def get_paths(self, node_id: int) -> Dict[int, str]:
        return {
            locale_id: to_display(path, self.settings.PATH_ENCODING)
            for locale_id, path in self.store.get_all_paths(node_id).items()
        }

    def get_page_id(self, path: str) -> int:
        return self.store.lookup_by_path(path)[0]

    def get_page_and_locale_id(self, path_or_paths: Union[str, Iterable[str]]) -> Tuple[int, int]:
        return self.store.lookup_by_path(path_or_paths)

    def get_page_info(self, path: str) -> Optional[PageInfo]:
        return self.store.lookup_info(path, self.tree_reader)

    def filter_by_path(
        self, stmt: Select, page_id_column: ColumnElement, condition: PathCondition, locale: LocaleLike = None
    ) -> Select:
        """apply_path_condition with this instance's settings."""
        return apply_path_condition(stmt, page_id_column, condition, locale, app_settings=self.settings)

    def is_root_segment(self, segment: str) -> int:
        return self.root_segments.is_root_segment(segment)

    def get_root_segments(self, force_rebuild: bool = False) -> Dict[str, str]:
        return self.root_segments.get(force_rebuild=force_rebuild)

    def stats(self) -> IndexStats:
        """Row count and a rebuild time estimate based on the last full rebuild."""
        row_count = self.store.count()
        node_count = self.tree_reader.count_nodes()
        last = self.store.run(
            lambda session: module_config_service.get_module_config(session, self.settings.MODULE_NAME).get(
                LAST_REBUILD_KEY
            ),
            "read rebuild statistics",
        )
        estimate = None
        if last and last.get("nodes"):
            estimate = float(last["duration"]) / int(last["nodes"]) * node_count
        return IndexStats(row_count=row_count, node_count=node_count, estimated_rebuild_seconds=estimate)
