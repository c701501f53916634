from pathlib import Path
from typing import Generator, Optional

import pytest
from sqlalchemy.orm import Session

import sitepaths.core.config
from sitepaths.core.config import Settings
from sitepaths.core.database import DatabaseManager
from sitepaths.models import Base, Locale, Page, PageName
from sitepaths.services.page_paths import PagePaths

ROOT_ID = 1
LOCALE_DE = 5


@pytest.fixture(scope="function")
def settings_override(tmp_path: Path, monkeypatch) -> Generator[Settings, None, None]:
    """
    Overrides application settings for the duration of a test function.
    Each test gets its own SQLite database file under tmp_path.
    """
    new_settings = Settings(
        DATABASE_URL=f"sqlite:///{tmp_path}/test_sitepaths.db",
        TESTING_MODE=True,
    )
    monkeypatch.setattr(sitepaths.core.config, "settings", new_settings)
    yield new_settings


@pytest.fixture(scope="function")
def db_manager(settings_override: Settings) -> Generator[DatabaseManager, None, None]:
    db_mngr = DatabaseManager(settings_override)
    db_mngr.create_db_and_tables()
    yield db_mngr
    Base.metadata.drop_all(bind=db_mngr.engine)
    db_mngr.dispose()


@pytest.fixture(scope="function")
def db_session(db_manager: DatabaseManager) -> Generator[Session, None, None]:
    with db_manager.get_db_session() as session:
        yield session


@pytest.fixture
def page_paths(db_manager: DatabaseManager) -> PagePaths:
    return PagePaths(db_manager=db_manager)


class SiteTree:
    """
    Test stand-in for the host's tree layer: writes the reference tree tables
    directly and commits after every change.
    """

    def __init__(self, session: Session):
        self.session = session

    def add_page(
        self, page_id: int, name: str, parent_id: int, template_id: int = 0, status: int = 1, sort: int = 0
    ) -> Page:
        page = Page(id=page_id, name=name, parent_id=parent_id, template_id=template_id, status=status, sort=sort)
        self.session.add(page)
        self.session.commit()
        return page

    def add_locale(self, locale_id: int, name: str) -> Locale:
        locale = Locale(id=locale_id, name=name)
        self.session.add(locale)
        self.session.commit()
        return locale

    def rename(self, page_id: int, name: str) -> None:
        page = self.session.get(Page, page_id)
        page.name = name
        self.session.commit()

    def set_locale_name(self, page_id: int, locale_id: int, name: Optional[str]) -> None:
        existing = (
            self.session.query(PageName).filter(PageName.page_id == page_id, PageName.locale_id == locale_id).first()
        )
        if name is None:
            if existing is not None:
                self.session.delete(existing)
        elif existing is None:
            self.session.add(PageName(page_id=page_id, locale_id=locale_id, name=name))
        else:
            existing.name = name
        self.session.commit()

    def move(self, page_id: int, parent_id: int) -> None:
        page = self.session.get(Page, page_id)
        page.parent_id = parent_id
        self.session.commit()

    def delete(self, page_id: int) -> None:
        for name in self.session.query(PageName).filter(PageName.page_id == page_id).all():
            self.session.delete(name)
        page = self.session.get(Page, page_id)
        self.session.delete(page)
        self.session.commit()


@pytest.fixture
def tree(db_session: Session) -> SiteTree:
    """A tree holding only the root page ("home") and the German locale."""
    site = SiteTree(db_session)
    site.add_page(ROOT_ID, "home", parent_id=0)
    site.add_locale(LOCALE_DE, "de")
    return site


@pytest.fixture
def about_tree(tree: SiteTree) -> SiteTree:
    """home -> about (10) -> team (11)."""
    tree.add_page(10, "about", parent_id=ROOT_ID)
    tree.add_page(11, "team", parent_id=10)
    return tree
