"""
Computes page paths top-down and writes them to the path store.

A child's path is its parent's path plus the child's own name, so paths are
always produced from the top of the subtree downwards: every page's row is
written before any of its children are looked at, and the parent's freshly
computed paths are handed to the children instead of being read back.
The ancestor chain is only walked once, for the page a rebuild starts from.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from sitepaths.core.config import Settings
from sitepaths.core.exceptions import SitePathsError
from sitepaths.core.locale import DEFAULT_LOCALE_ID, alternate_ids, resolve
from sitepaths.services import module_config_service
from sitepaths.services.path_store import PathIndexStore
from sitepaths.services.root_segments import RootSegmentCache
from sitepaths.services.sanitizer import PathSanitizer
from sitepaths.services.tree_reader import TreeNode, TreeReader

logger = logging.getLogger(__name__)

LAST_REBUILD_KEY = "last_rebuild"

# Per-locale paths keyed by locale id. DEFAULT_LOCALE_ID is always present;
# other locales only appear where their path differs from the default one.
LocalePaths = Dict[int, str]


@dataclass
class RebuildResult:
    count: int = 0
    failures: List[Tuple[int, Exception]] = field(default_factory=list)
    duration: float = 0.0
    nodes: int = 0
    root_segments_rebuilt: bool = False

    @property
    def ok(self) -> bool:
        return not self.failures

    def __int__(self) -> int:
        return self.count


class RebuildEngine:
    def __init__(
        self,
        store: PathIndexStore,
        tree_reader: TreeReader,
        root_segments: RootSegmentCache,
        app_settings: Settings,
    ):
        self.store = store
        self.tree_reader = tree_reader
        self.root_segments = root_segments
        self.settings = app_settings
        self.sanitizer = PathSanitizer(app_settings)

    @property
    def root_id(self) -> int:
        return self.settings.ROOT_ID

    def rebuild_all(self) -> RebuildResult:
        """Clears the store and indexes the whole tree from the root."""
        started = time.perf_counter()
        cleared = self.store.clear()
        logger.info(f"Cleared {cleared} path rows; rebuilding the whole tree.")

        result = self.rebuild_subtree(self.root_id)
        if not result.root_segments_rebuilt:
            self.root_segments.rebuild()
            result.root_segments_rebuilt = True
        result.duration = time.perf_counter() - started

        stats = {"count": result.count, "nodes": result.nodes, "duration": result.duration}
        self.store.run(
            lambda session: module_config_service.update_module_config(
                session, self.settings.MODULE_NAME, **{LAST_REBUILD_KEY: stats}
            ),
            "save rebuild statistics",
        )
        return result

    def rebuild_subtree(
        self,
        node_id: int,
        parent_paths: Optional[Mapping[int, str]] = None,
        has_children: Optional[bool] = None,
    ) -> RebuildResult:
        """
        Recomputes and stores the paths of a page and all of its descendants.

        Args:
            node_id: Page to start from.
            parent_paths: Already computed paths of the page's parent, keyed by
                locale id. When omitted they are derived by walking the
                ancestor chain.
            has_children: Hint; False skips the children lookup entirely.

        Returns:
            RebuildResult with the number of rows written and the pages whose
            write failed. Failures do not stop the rebuild.
        """
        node = self.tree_reader.get_node(node_id)
        if node is None:
            logger.warning(f"Cannot rebuild paths of page {node_id}: it is not in the tree.")
            return RebuildResult()

        result = RebuildResult()
        started = time.perf_counter()
        self._rebuild_node(node, parent_paths, has_children, result, level=0)
        result.duration = time.perf_counter() - started
        return result

    def compute_paths(self, node: TreeNode) -> LocalePaths:
        """Paths of a single page, derived from its ancestor chain."""
        prefix: LocalePaths = {DEFAULT_LOCALE_ID: ""}
        for ancestor in self._ancestors(node):
            prefix = self._prefix_paths(ancestor, self._node_paths(ancestor, prefix))
        return self._node_paths(node, prefix)

    def _rebuild_node(
        self,
        node: TreeNode,
        parent_paths: Optional[Mapping[int, str]],
        has_children: Optional[bool],
        result: RebuildResult,
        level: int,
    ) -> None:
        if parent_paths is None:
            paths = self.compute_paths(node)
        else:
            paths = self._node_paths(node, parent_paths)

        result.nodes += 1
        try:
            result.count += self.store.replace(node.id, paths)
        except (SQLAlchemyError, SitePathsError) as e:
            logger.error(f"Failed to store paths of page {node.id}: {e}")
            result.failures.append((node.id, e))

        if has_children is None:
            has_children = node.num_children > 0
        if has_children:
            prefix = self._prefix_paths(node, paths)
            for child in self.tree_reader.get_children(node.id):
                self._rebuild_node(child, prefix, child.num_children > 0, result, level + 1)

        if level == 0:
            self._after_rebuild(node, result)

    def _after_rebuild(self, node: TreeNode, result: RebuildResult) -> None:
        logger.info(f"Rebuilt {result.count} paths for {result.nodes} page(s) starting at page {node.id}.")
        if result.failures:
            failed = ", ".join(str(page_id) for page_id, _ in result.failures)
            logger.warning(f"{len(result.failures)} page(s) could not be indexed: {failed}")
        if node.id == self.root_id or node.parent_id == self.root_id:
            self.root_segments.rebuild()
            result.root_segments_rebuilt = True

    def _node_paths(self, node: TreeNode, parent_paths: Mapping[int, str]) -> LocalePaths:
        """Paths stored for ``node`` given its parent's prefix paths."""
        if node.id == self.root_id:
            # The root's own path is empty; its locale names act as locale prefixes.
            paths: LocalePaths = {DEFAULT_LOCALE_ID: ""}
            for locale_id, name in alternate_ids(node.names).items():
                segment = self.sanitizer.sanitize(name)
                if segment:
                    paths[locale_id] = segment
            return paths

        default_path = self.sanitizer.join(parent_paths.get(DEFAULT_LOCALE_ID, ""), node.name)
        paths = {DEFAULT_LOCALE_ID: default_path}
        locale_ids = set(alternate_ids(parent_paths)) | set(alternate_ids(node.names))
        for locale_id in sorted(locale_ids):
            path = self.sanitizer.join(resolve(parent_paths, locale_id) or "", resolve(node.names, locale_id) or "")
            if path != default_path:
                paths[locale_id] = path
        return paths

    def _prefix_paths(self, node: TreeNode, paths: LocalePaths) -> LocalePaths:
        """Paths that ``node``'s children build on."""
        if node.id != self.root_id:
            return paths
        prefix = dict(paths)
        root_name = self.sanitizer.sanitize(node.name)
        # A root carrying a name other than the stock one keeps that name in front of every default path.
        if root_name and root_name != self.sanitizer.sanitize(self.settings.ROOT_DEFAULT_NAME):
            prefix[DEFAULT_LOCALE_ID] = root_name
        return prefix

    def _ancestors(self, node: TreeNode) -> List[TreeNode]:
        """Ancestors of ``node`` ordered from the top of the tree down."""
        ancestors: List[TreeNode] = []
        seen = {node.id}
        current = node
        while current.id != self.root_id and current.parent_id and current.parent_id not in seen:
            parent = self.tree_reader.get_node(current.parent_id)
            if parent is None:
                logger.warning(f"Page {current.id} has a missing parent {current.parent_id}.")
                break
            ancestors.append(parent)
            seen.add(parent.id)
            current = parent
        ancestors.reverse()
        return ancestors
