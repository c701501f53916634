import pytest
from sqlalchemy import inspect, text
from sqlalchemy.exc import OperationalError

from sitepaths.core.database import DatabaseManager
from sitepaths.core.exceptions import StoreUnavailableError
from sitepaths.services.path_store import PathIndexStore


@pytest.fixture
def store(db_manager: DatabaseManager) -> PathIndexStore:
    return PathIndexStore(db_manager)


def test_get_path_returns_none_when_absent(store: PathIndexStore):
    assert store.get_path(42) is None
    assert store.get_path(42, 5) is None
    assert store.get_all_paths(42) == {}


def test_upsert_and_read_back(store: PathIndexStore):
    assert store.upsert(10, {0: "/about/", 5: "unternehmen"}) == 2

    assert store.get_path(10) == "about"
    assert store.get_path(10, 5) == "unternehmen"
    assert store.get_all_paths(10) == {0: "about", 5: "unternehmen"}


def test_root_empty_path_reads_as_slash(store: PathIndexStore):
    store.upsert(1, {0: ""})

    assert store.get_path(1) == "/"
    assert store.lookup_by_path("/") == (1, 0)


def test_upsert_leaves_unmentioned_locales_alone(store: PathIndexStore):
    store.upsert(10, {0: "about", 5: "unternehmen"})

    store.upsert(10, {0: "company"})

    assert store.get_all_paths(10) == {0: "company", 5: "unternehmen"}


def test_replace_prunes_unmentioned_locales(store: PathIndexStore):
    store.upsert(10, {0: "about", 5: "unternehmen"})

    store.replace(10, {0: "company"})

    assert store.get_all_paths(10) == {0: "company"}


def test_upsert_evicts_stale_owner_of_the_same_path(store: PathIndexStore):
    store.upsert(10, {0: "about"})
    store.upsert(12, {0: "contact", 5: "about"})

    store.upsert(12, {0: "about"})

    assert store.lookup_by_path("about") == (12, 0)
    assert store.get_path(10) is None
    # Same path in another locale is not a conflict.
    assert store.get_path(12, 5) == "about"


def test_lookup_prefers_default_locale_then_candidate_order(store: PathIndexStore):
    store.upsert(10, {0: "about", 5: "uber-uns"})
    store.upsert(11, {5: "about"})

    assert store.lookup_by_path("about") == (10, 0)
    assert store.lookup_by_path(["uber-uns", "about"]) == (10, 5)
    assert store.lookup_by_path([]) == (0, 0)
    assert store.lookup_by_path("nope") == (0, 0)


def test_delete_node_and_locale(store: PathIndexStore):
    store.upsert(10, {0: "about", 5: "unternehmen"})
    store.upsert(11, {0: "about/team", 5: "unternehmen/team"})

    assert store.delete_locale(5) == 2
    assert store.get_all_paths(10) == {0: "about"}

    assert store.delete_node(10) == 1
    assert store.get_all_paths(10) == {}
    assert store.get_path(11) == "about/team"


def test_count_and_clear(store: PathIndexStore):
    store.upsert(10, {0: "about", 5: "unternehmen"})
    store.upsert(11, {0: "about/team"})

    assert store.count() == 3
    assert store.count(0) == 2
    assert store.count(5) == 1
    assert store.clear() == 3
    assert store.count() == 0


def test_ensure_schema_is_idempotent(store: PathIndexStore):
    assert store.ensure_schema() == []
    assert store.ensure_schema() == []


def test_missing_table_is_recreated_and_operation_retried(store: PathIndexStore, db_manager: DatabaseManager):
    with db_manager.engine.begin() as conn:
        conn.execute(text("DROP TABLE page_paths"))

    assert store.get_path(10) is None
    assert inspect(db_manager.engine).has_table("page_paths")

    store.upsert(10, {0: "about"})
    assert store.get_path(10) == "about"


def test_outdated_table_is_migrated(store: PathIndexStore, db_manager: DatabaseManager):
    with db_manager.engine.begin() as conn:
        conn.execute(text("DROP TABLE page_paths"))
        conn.execute(text("CREATE TABLE page_paths (page_id INTEGER NOT NULL PRIMARY KEY, path VARCHAR(2048))"))

    changes = store.ensure_schema()

    assert any("primary key" in change for change in changes)
    inspector = inspect(db_manager.engine)
    assert {column["name"] for column in inspector.get_columns("page_paths")} == {"page_id", "locale_id", "path"}
    assert sorted(inspector.get_pk_constraint("page_paths")["constrained_columns"]) == ["locale_id", "page_id"]


def test_missing_indexes_are_added(store: PathIndexStore, db_manager: DatabaseManager):
    with db_manager.engine.begin() as conn:
        conn.execute(text("DROP TABLE page_paths"))
        conn.execute(
            text(
                "CREATE TABLE page_paths (page_id INTEGER NOT NULL, locale_id INTEGER NOT NULL, "
                "path VARCHAR(2048) NOT NULL, PRIMARY KEY (page_id, locale_id))"
            )
        )

    changes = store.ensure_schema()

    assert "added unique index on (path, locale_id)" in changes
    assert "added index on locale_id" in changes
    index_names = {index["name"] for index in inspect(db_manager.engine).get_indexes("page_paths")}
    assert {"uq_page_paths_path_locale", "ix_page_paths_locale_id"} <= index_names


def test_second_failure_after_self_heal_is_fatal(store: PathIndexStore, mocker):
    error = OperationalError("SELECT 1", {}, Exception("database is locked"))
    attempt = mocker.patch.object(store, "_attempt", side_effect=error)
    ensure_schema = mocker.patch.object(store, "ensure_schema", return_value=[])

    with pytest.raises(StoreUnavailableError) as exc_info:
        store.get_path(10)

    assert attempt.call_count == 2
    ensure_schema.assert_called_once()
    assert exc_info.value.original_exception is error
    assert exc_info.value.__cause__ is error
