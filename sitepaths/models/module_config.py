from typing import Any, Dict

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from .base_class import Base


class ModuleConfig(Base):
    """Generic persisted key/value configuration, one JSON document per module."""

    __tablename__ = "module_configs"

    module_name: Mapped[str] = mapped_column(String(128), primary_key=True)
    data: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default_factory=dict)
