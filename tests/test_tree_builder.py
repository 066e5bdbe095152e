"""Tests for tree/builder.py and tree/sources.py."""

from __future__ import annotations

import pytest

from meshtree.exceptions import TreeLoadError
from meshtree.plugins.manager import PluginManager
from meshtree.tree.builder import (
    build_directory_children,
    build_plugin_roots,
    create_directory_node,
    create_file_node,
)
from meshtree.tree.sources import SourcesTree

# ---------------------------------------------------------------------------
# Roots
# ---------------------------------------------------------------------------


class TestBuildPluginRoots:
    def test_one_root_per_plugin(self, make_plugin):
        plugins = [make_plugin("Local Files"), make_plugin("Notes")]
        roots = build_plugin_roots(plugins)

        assert [r.name for r in roots] == ["Local Files", "Notes"]
        for root, plugin in zip(roots, plugins, strict=True):
            assert root.full_path == "/"
            assert root.is_directory is True
            assert root.plugin is plugin
            assert root.children is None

    def test_skips_missing_and_unnamed(self, make_plugin):
        roots = build_plugin_roots([None, make_plugin("   "), make_plugin("Ok")])
        assert [r.name for r in roots] == ["Ok"]

    def test_skips_disabled(self, make_plugin):
        disabled = make_plugin("Off")
        disabled.is_enabled = False
        roots = build_plugin_roots([make_plugin("On"), disabled])
        assert [r.name for r in roots] == ["On"]

    def test_building_roots_does_not_enumerate(self, fake_plugin):
        build_plugin_roots([fake_plugin])
        assert fake_plugin.calls == []


# ---------------------------------------------------------------------------
# Node factories
# ---------------------------------------------------------------------------


class TestNodeFactories:
    def test_directory_node(self, fake_plugin):
        node = create_directory_node(fake_plugin, "docs/drafts")
        assert node is not None
        assert node.name == "drafts"
        assert node.full_path == "docs/drafts"
        assert node.can_expand

    def test_file_node(self, fake_plugin):
        node = create_file_node(fake_plugin, "docs/readme.md")
        assert node is not None
        assert node.name == "readme.md"
        assert not node.can_expand

    def test_blank_path_skipped(self, fake_plugin):
        assert create_file_node(fake_plugin, "  ") is None


# ---------------------------------------------------------------------------
# Expansion
# ---------------------------------------------------------------------------


class TestBuildDirectoryChildren:
    async def test_sorted_directories_first(self, fake_plugin):
        children = await build_directory_children(fake_plugin, "/")
        assert [(c.name, c.is_directory) for c in children] == [
            ("Archive", True),
            ("docs", True),
            ("A.md", False),
            ("a.txt", False),
            ("b.txt", False),
        ]

    async def test_top_level_only(self, fake_plugin):
        await build_directory_children(fake_plugin, "/")
        assert fake_plugin.calls == [("get_directories", "/"), ("get_files", "/")]

    async def test_failure_raises_tree_load_error(self, make_plugin):
        plugin = make_plugin("Broken", listing_error=OSError("offline"))
        with pytest.raises(TreeLoadError) as excinfo:
            await build_directory_children(plugin, "docs")
        assert excinfo.value.path == "docs"
        assert excinfo.value.plugin_name == "Broken"
        assert isinstance(excinfo.value.__cause__, OSError)


class TestLazyTree:
    async def test_expansion_is_cached(self, fake_plugin):
        (root,) = build_plugin_roots([fake_plugin])

        await root.ensure_children_loaded()
        await root.ensure_children_loaded()

        assert fake_plugin.calls.count(("get_directories", "/")) == 1

    async def test_grandchildren_load_on_demand(self, fake_plugin):
        (root,) = build_plugin_roots([fake_plugin])
        children = await root.ensure_children_loaded()
        docs = next(c for c in children if c.name == "docs")

        assert ("get_directories", "docs") not in fake_plugin.calls
        grandchildren = await docs.ensure_children_loaded()

        assert [c.name for c in grandchildren] == ["drafts", "readme.md"]
        assert grandchildren[0].full_path == "docs/drafts"
        assert grandchildren[0].plugin is fake_plugin

    async def test_retry_after_backend_failure(self, fake_plugin):
        (root,) = build_plugin_roots([fake_plugin])
        fake_plugin.listing_error = OSError("flaky")

        with pytest.raises(TreeLoadError):
            await root.ensure_children_loaded()
        assert root.children is None

        fake_plugin.listing_error = None
        children = await root.ensure_children_loaded()
        assert len(children) == 5


# ---------------------------------------------------------------------------
# SourcesTree
# ---------------------------------------------------------------------------


@pytest.fixture
async def manager(registry, resolver, make_plugin):
    registry.register(lambda: make_plugin("Alpha", {"/": ([], ["x.txt"])}), key="alpha")
    registry.register(lambda: make_plugin("Locked", authorized=False), key="locked")
    mgr = PluginManager(resolver, registry)
    await mgr.load_plugins()
    yield mgr
    mgr.dispose()


class TestSourcesTree:
    async def test_refresh_uses_enabled_plugins(self, manager):
        tree = SourcesTree(manager)
        assert tree.roots == ()

        roots = tree.refresh()

        assert [r.name for r in roots] == ["Alpha"]
        assert tree.roots == roots

    async def test_refresh_after_enable(self, manager):
        tree = SourcesTree(manager)
        manager.enable_plugin("Locked")
        assert {r.name for r in tree.refresh()} == {"Alpha", "Locked"}

    async def test_refresh_discards_cached_children(self, manager):
        tree = SourcesTree(manager)
        tree.refresh()
        old_root = tree.find_root("Alpha")
        await old_root.ensure_children_loaded()

        tree.refresh()
        new_root = tree.find_root("Alpha")
        assert new_root is not old_root
        assert new_root.children is None

    async def test_find_node(self, fake_plugin, registry, resolver):
        registry.register(lambda: fake_plugin, key="fake")
        with PluginManager(resolver, registry) as mgr:
            await mgr.load_plugins()
            tree = SourcesTree(mgr)
            tree.refresh()

            node = await tree.find_node("Fake", "docs/drafts/v1.md")
            assert node is not None
            assert node.full_path == "docs/drafts/v1.md"
            assert await tree.find_node("Fake", "docs/missing") is None
            assert await tree.find_node("Nope", "docs") is None
