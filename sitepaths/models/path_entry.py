from sqlalchemy import Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base_class import Base

PATH_MAX_LENGTH = 2048


class PathEntry(Base):
    """
    One denormalized path per (page, locale).

    locale_id 0 is the default locale. Rows for other locales only exist when
    the locale gives the page (or one of its ancestors) a distinct name.
    """

    __tablename__ = "page_paths"

    page_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    locale_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False, default=0)
    path: Mapped[str] = mapped_column(String(PATH_MAX_LENGTH), nullable=False)

    __table_args__ = (
        UniqueConstraint("path", "locale_id", name="uq_page_paths_path_locale"),
        Index("ix_page_paths_locale_id", "locale_id"),
    )

    def __repr__(self):
        return f"PathEntry(page_id={self.page_id}, locale_id={self.locale_id}, path={self.path!r})"
