"""
Read access to the authoritative page tree.

The path index never writes to the tree. It only needs, per node, the id,
the parent id, the default and locale-specific names, whether the node
has children and the few page attributes routing reads alongside a path.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Protocol

from sqlalchemy import func, select
from sqlalchemy.orm import Session, aliased

from sitepaths.core.locale import DEFAULT_LOCALE_ID
from sitepaths.models import Locale, Page, PageName

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TreeNode:
    id: int
    parent_id: int
    # Keyed by locale id; DEFAULT_LOCALE_ID holds the default name.
    names: Dict[int, str] = field(default_factory=dict)
    num_children: int = 0
    # Routing attributes handed back by PagePaths.get_page_info.
    template_id: int = 0
    status: int = 1

    @property
    def name(self) -> str:
        return self.names.get(DEFAULT_LOCALE_ID, "")


class TreeReader(Protocol):
    def get_node(self, node_id: int) -> Optional[TreeNode]: ...

    def get_children(self, node_id: int) -> List[TreeNode]: ...

    def count_nodes(self) -> int: ...

    def locale_ids(self) -> List[int]: ...


class SqlTreeReader:
    """TreeReader over the reference ``pages`` / ``page_names`` / ``locales`` tables."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get_node(self, node_id: int) -> Optional[TreeNode]:
        with self.session_factory() as session:
            nodes = self._load(session, select(Page).where(Page.id == node_id))
        return nodes[0] if nodes else None

    def get_children(self, node_id: int) -> List[TreeNode]:
        # Children are the pages whose parent is this node.
        stmt = select(Page).where(Page.parent_id == node_id).order_by(Page.sort, Page.id)
        with self.session_factory() as session:
            return self._load(session, stmt)

    def count_nodes(self) -> int:
        with self.session_factory() as session:
            return session.execute(select(func.count()).select_from(Page)).scalar_one()

    def locale_ids(self) -> List[int]:
        with self.session_factory() as session:
            return list(session.execute(select(Locale.id).order_by(Locale.id)).scalars().all())

    def _load(self, session: Session, stmt) -> List[TreeNode]:
        child = aliased(Page)
        child_count = (
            select(func.count(child.id)).where(child.parent_id == Page.id).correlate(Page).scalar_subquery()
        )
        rows = session.execute(stmt.add_columns(child_count)).all()
        if not rows:
            return []

        page_ids = [page.id for page, _ in rows]
        names_by_page = self._locale_names(session, page_ids)
        nodes = []
        for page, num_children in rows:
            names = {DEFAULT_LOCALE_ID: page.name}
            names.update(names_by_page.get(page.id, {}))
            nodes.append(
                TreeNode(
                    id=page.id,
                    parent_id=page.parent_id,
                    names=names,
                    num_children=num_children,
                    template_id=page.template_id,
                    status=page.status,
                )
            )
        return nodes

    def _locale_names(self, session: Session, page_ids: Iterable[int]) -> Dict[int, Dict[int, str]]:
        stmt = select(PageName.page_id, PageName.locale_id, PageName.name).where(
            PageName.page_id.in_(list(page_ids)), PageName.locale_id != DEFAULT_LOCALE_ID
        )
        names: Dict[int, Dict[int, str]] = defaultdict(dict)
        for page_id, locale_id, name in session.execute(stmt):
            if name:
                names[page_id][locale_id] = name
        return names
