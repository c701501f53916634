"""
Cache of first-level path segments.

Maps ``"_<pageId>"`` (a root child's default name, or a renamed root) and
``"_<pageId>.<localeId>"`` (locale-specific names, including locale prefixes
carried by the root) to the segment string. It is derived from the tree,
kept in memory and persisted through the module configuration, and rebuilt
whenever it is empty or asked to. Callers always go through ``get()``.
"""

import logging
from typing import Dict, Optional

from sqlalchemy.orm import Session

from sitepaths.core.config import Settings
from sitepaths.core.locale import DEFAULT_LOCALE_ID
from sitepaths.services import module_config_service
from sitepaths.services.path_store import PathIndexStore
from sitepaths.services.sanitizer import PathSanitizer
from sitepaths.services.tree_reader import TreeNode, TreeReader

logger = logging.getLogger(__name__)

CONFIG_KEY = "root_segments"


def segment_key(page_id: int, locale_id: int = DEFAULT_LOCALE_ID) -> str:
    if locale_id == DEFAULT_LOCALE_ID:
        return f"_{page_id}"
    return f"_{page_id}.{locale_id}"


def page_id_from_key(key: str) -> int:
    return int(key.lstrip("_").split(".", 1)[0])


class RootSegmentCache:
    def __init__(self, tree_reader: TreeReader, store: PathIndexStore, app_settings: Settings):
        self.tree_reader = tree_reader
        self.store = store
        self.settings = app_settings
        self.sanitizer = PathSanitizer(app_settings)
        self._segments: Optional[Dict[str, str]] = None

    def get(self, force_rebuild: bool = False) -> Dict[str, str]:
        """Returns the segment map, rebuilding it when empty or when forced."""
        if not force_rebuild and self._segments is None:
            self._segments = self._load()
        if force_rebuild or not self._segments:
            return self.rebuild()
        return dict(self._segments)

    def invalidate(self) -> None:
        """Drops the in-memory and persisted copies; the next get() rebuilds."""
        self._segments = None
        self.store.run(lambda session: self._save(session, {}), "invalidate root segments")

    def rebuild(self) -> Dict[str, str]:
        segments: Dict[str, str] = {}
        root_id = self.settings.ROOT_ID
        root = self.tree_reader.get_node(root_id)
        if root is not None:
            self._add_segments(segments, root, is_root=True)
        for child in self.tree_reader.get_children(root_id):
            self._add_segments(segments, child, is_root=False)

        self.store.run(lambda session: self._save(session, segments), "save root segments")
        self._segments = segments
        logger.debug(f"Rebuilt root segment cache with {len(segments)} entries.")
        return dict(segments)

    def is_root_segment(self, segment: str) -> int:
        """
        Page id owning ``segment`` at the root level, 0 for an ordinary segment.
        Only the first segment of a longer path is considered.
        """
        segment = self.sanitizer.first_segment(segment)
        if not segment:
            return 0
        for key, value in self.get().items():
            if value == segment:
                return page_id_from_key(key)
        return 0

    def _add_segments(self, segments: Dict[str, str], node: TreeNode, is_root: bool) -> None:
        for locale_id, name in node.names.items():
            segment = self.sanitizer.sanitize(name)
            if not segment:
                continue
            # The untouched default root name never appears in a path.
            stock_root_name = self.sanitizer.sanitize(self.settings.ROOT_DEFAULT_NAME)
            if is_root and locale_id == DEFAULT_LOCALE_ID and segment == stock_root_name:
                continue
            segments[segment_key(node.id, locale_id)] = segment

    def _load(self) -> Dict[str, str]:
        def _read(session: Session) -> Dict[str, str]:
            data = module_config_service.get_module_config(session, self.settings.MODULE_NAME)
            return dict(data.get(CONFIG_KEY) or {})

        return self.store.run(_read, "load root segments")

    def _save(self, session: Session, segments: Dict[str, str]) -> None:
        module_config_service.update_module_config(session, self.settings.MODULE_NAME, **{CONFIG_KEY: segments})
