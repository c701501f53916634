# This file makes the 'models' directory a Python package.
# All model modules are imported here so they register with Base.metadata.

from .base_class import Base
from .module_config import ModuleConfig
from .path_entry import PathEntry
from .tree import Locale, Page, PageName

__all__ = [
    "Base",
    "Locale",
    "ModuleConfig",
    "Page",
    "PageName",
    "PathEntry",
]
