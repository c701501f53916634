"""
Reference schema for the authoritative page tree.

The path index only reads these tables (through ``SqlTreeReader``) and joins
``pages`` for page info lookups. Hosts that keep their tree elsewhere provide
their own ``TreeReader`` instead.
"""

from typing import Optional

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base_class import Base


class Page(Base):
    __tablename__ = "pages"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    parent_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False, default=0)
    template_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    sort: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    id: Mapped[Optional[int]] = mapped_column(primary_key=True, autoincrement=True, default=None)

    def __repr__(self):
        return f"Page(id={self.id}, parent_id={self.parent_id}, name={self.name!r})"


class Locale(Base):
    """A named alternate locale. The default locale (id 0) has no row."""

    __tablename__ = "locales"

    name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    id: Mapped[Optional[int]] = mapped_column(primary_key=True, autoincrement=True, default=None)


class PageName(Base):
    """Locale-specific name override for a page."""

    __tablename__ = "page_names"

    page_id: Mapped[int] = mapped_column(ForeignKey("pages.id", ondelete="CASCADE"), nullable=False, index=True)
    locale_id: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    id: Mapped[Optional[int]] = mapped_column(primary_key=True, autoincrement=True, default=None)

    __table_args__ = (UniqueConstraint("page_id", "locale_id", name="uq_page_names_page_locale"),)
