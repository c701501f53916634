from sitepaths.core.exceptions import StoreUnavailableError
from sitepaths.services.page_paths import PagePaths
from sitepaths.services.rebuild_engine import RebuildResult

from .conftest import LOCALE_DE, ROOT_ID, SiteTree


def test_failed_page_does_not_stop_the_rebuild(page_paths: PagePaths, about_tree: SiteTree, mocker):
    about_tree.add_page(12, "contact", parent_id=ROOT_ID)
    store = page_paths.store
    original_replace = store.replace
    error = StoreUnavailableError("row rejected")

    def flaky_replace(page_id, paths):
        if page_id == 10:
            raise error
        return original_replace(page_id, paths)

    mocker.patch.object(store, "replace", side_effect=flaky_replace)

    result = page_paths.engine.rebuild_all()

    assert result.failures == [(10, error)]
    assert not result.ok
    assert result.nodes == 4
    assert result.count == 3
    assert page_paths.get_path(10) is None
    # Children of the failed page are still indexed from the computed paths.
    assert page_paths.get_path(11) == "about/team"
    assert page_paths.get_path(12) == "contact"


def test_childless_hint_skips_children_lookup(page_paths: PagePaths, about_tree: SiteTree, mocker):
    mocker.patch.object(page_paths.root_segments, "rebuild")
    get_children = mocker.spy(page_paths.tree_reader, "get_children")

    result = page_paths.engine.rebuild_subtree(10, has_children=False)

    assert result.count == 1
    get_children.assert_not_called()
    assert page_paths.get_path(11) is None


def test_parent_paths_are_reused_instead_of_walking_ancestors(page_paths: PagePaths, about_tree: SiteTree, mocker):
    get_node = mocker.spy(page_paths.tree_reader, "get_node")

    result = page_paths.engine.rebuild_subtree(11, parent_paths={0: "about", LOCALE_DE: "unternehmen"})

    assert result.count == 2
    # Only the page itself is read; no ancestor lookups.
    assert get_node.call_count == 1
    assert page_paths.get_paths(11) == {0: "about/team", LOCALE_DE: "unternehmen/team"}


def test_ancestor_walk_happens_once_per_rebuild(page_paths: PagePaths, about_tree: SiteTree, mocker):
    about_tree.add_page(12, "alice", parent_id=11)
    about_tree.add_page(13, "bob", parent_id=11)
    mocker.patch.object(page_paths.root_segments, "rebuild")
    get_node = mocker.spy(page_paths.tree_reader, "get_node")

    page_paths.engine.rebuild_subtree(10)

    # Page 10 itself plus its parent (the root); descendants come from get_children.
    assert get_node.call_count == 2
    assert page_paths.get_path(13) == "about/team/bob"


def test_root_segments_rebuilt_only_for_root_adjacent_pages(page_paths: PagePaths, about_tree: SiteTree, mocker):
    rebuild_segments = mocker.spy(page_paths.root_segments, "rebuild")

    deep = page_paths.engine.rebuild_subtree(11)
    assert not deep.root_segments_rebuilt
    rebuild_segments.assert_not_called()

    top = page_paths.engine.rebuild_subtree(10)
    assert top.root_segments_rebuilt
    # Once for the outermost call, not once per recursion level.
    assert rebuild_segments.call_count == 1


def test_locale_row_removed_when_locale_name_is_dropped(page_paths: PagePaths, about_tree: SiteTree):
    about_tree.set_locale_name(10, LOCALE_DE, "unternehmen")
    page_paths.rebuild()
    assert page_paths.get_paths(11) == {0: "about/team", LOCALE_DE: "unternehmen/team"}

    about_tree.set_locale_name(10, LOCALE_DE, None)
    page_paths.rebuild(10)

    assert page_paths.get_paths(10) == {0: "about"}
    assert page_paths.get_paths(11) == {0: "about/team"}


def test_compute_paths_for_single_page(page_paths: PagePaths, about_tree: SiteTree):
    about_tree.set_locale_name(11, LOCALE_DE, "mannschaft")
    node = page_paths.tree_reader.get_node(11)

    assert page_paths.engine.compute_paths(node) == {0: "about/team", LOCALE_DE: "about/mannschaft"}


def test_rebuild_result_converts_to_count():
    result = RebuildResult(count=7)

    assert int(result) == 7
    assert result.ok
