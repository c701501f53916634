import logging
from typing import Optional

from sitepaths.core.dispatcher import EventDispatcher
from sitepaths.core.events import LocaleAdded, LocaleRemoved, NodeAdded, NodeDeleted, NodeMoved, NodeRenamed
from sitepaths.services.path_store import PathIndexStore
from sitepaths.services.rebuild_engine import RebuildEngine, RebuildResult
from sitepaths.services.root_segments import RootSegmentCache

logger = logging.getLogger(__name__)


class LifecycleHookBinder:
    """Connects tree lifecycle events to the rebuild engine and the path store."""

    def __init__(self, engine: RebuildEngine, store: PathIndexStore, root_segments: RootSegmentCache):
        self.engine = engine
        self.store = store
        self.root_segments = root_segments

    def bind(self, dispatcher: EventDispatcher) -> None:
        dispatcher.register(NodeAdded, self.on_node_added)
        dispatcher.register(NodeRenamed, self.on_node_renamed)
        dispatcher.register(NodeMoved, self.on_node_moved)
        dispatcher.register(NodeDeleted, self.on_node_deleted)
        dispatcher.register(LocaleAdded, self.on_locale_added)
        dispatcher.register(LocaleRemoved, self.on_locale_removed)

    def on_node_added(self, event: NodeAdded) -> RebuildResult:
        # A page that was just created cannot have children yet.
        return self.engine.rebuild_subtree(event.node_id, has_children=False)

    def on_node_renamed(self, event: NodeRenamed) -> RebuildResult:
        return self.engine.rebuild_subtree(event.node_id)

    def on_node_moved(self, event: NodeMoved) -> RebuildResult:
        result = self.engine.rebuild_subtree(event.node_id)
        if self._left_root(event.old_parent_id) and not result.root_segments_rebuilt:
            self.root_segments.rebuild()
            result.root_segments_rebuilt = True
        return result

    def on_node_deleted(self, event: NodeDeleted) -> int:
        deleted = self.store.delete_node(event.node_id)
        self.root_segments.rebuild()
        return deleted

    def on_locale_added(self, event: LocaleAdded) -> None:
        self.root_segments.rebuild()

    def on_locale_removed(self, event: LocaleRemoved) -> int:
        deleted = self.store.delete_locale(event.locale_id)
        self.root_segments.rebuild()
        return deleted

    def _left_root(self, old_parent_id: Optional[int]) -> bool:
        return old_parent_id is not None and old_parent_id == self.engine.root_id
