from dataclasses import dataclass
from typing import Optional

# Tree lifecycle notifications consumed by the path index. The host's tree
# layer dispatches these synchronously after it has committed the mutation.


@dataclass(frozen=True)
class BaseEvent:
    """Base class for all events."""

    pass


@dataclass(frozen=True)
class NodeAdded(BaseEvent):
    node_id: int
    parent_id: int


@dataclass(frozen=True)
class NodeRenamed(BaseEvent):
    """The node's default name or one of its locale names changed."""

    node_id: int
    parent_id: int


@dataclass(frozen=True)
class NodeMoved(BaseEvent):
    node_id: int
    parent_id: int
    old_parent_id: Optional[int] = None


@dataclass(frozen=True)
class NodeDeleted(BaseEvent):
    node_id: int
    parent_id: int


@dataclass(frozen=True)
class LocaleAdded(BaseEvent):
    locale_id: int


@dataclass(frozen=True)
class LocaleRemoved(BaseEvent):
    locale_id: int


__all__ = [
    "BaseEvent",
    "NodeAdded",
    "NodeRenamed",
    "NodeMoved",
    "NodeDeleted",
    "LocaleAdded",
    "LocaleRemoved",
]
