"""Tests for the content graph and the asset/bundle graph facades."""

import pytest

from bundlegraph_cli.errors import NotFoundError, PreconditionError
from bundlegraph_cli.graph import ContentGraph
from bundlegraph_cli.models import (
    Asset,
    AssetNode,
    BundleGraphEdgeType,
    Dependency,
    DependencyNode,
    RootNode,
)


class TestContentGraph:
    """Tests for ContentGraph."""

    def test_add_node_assigns_dense_ids(self):
        """Test that nodes get consecutive ids in insertion order."""
        g = ContentGraph()
        assert g.add_node(RootNode()) == 0
        assert g.add_node(AssetNode(id="a", value=Asset(id="a", file_path="a.js"))) == 1
        assert len(g) == 2

    def test_duplicate_content_key_rejected(self):
        """Test that a content key can only be added once."""
        g = ContentGraph()
        g.add_node(RootNode())
        with pytest.raises(ValueError):
            g.add_node(RootNode())

    def test_lookup_by_content_key(self):
        """Test content key lookups, present and missing."""
        g = ContentGraph()
        node = AssetNode(id="a", value=Asset(id="a", file_path="a.js"))
        node_id = g.add_node(node)

        assert g.get_node_by_content_key("a") is node
        assert g.get_node_id_by_content_key("a") == node_id
        assert g.get_node_by_content_key("missing") is None
        with pytest.raises(NotFoundError):
            g.get_node_id_by_content_key("missing")

    def test_duplicate_edge_ignored(self):
        """Test that re-adding an edge of the same type is a no-op."""
        g = ContentGraph()
        a = g.add_node(RootNode())
        b = g.add_node(AssetNode(id="b", value=Asset(id="b", file_path="b.js")))

        assert g.add_edge(a, b) is True
        assert g.add_edge(a, b) is False
        assert g.add_edge(a, b, BundleGraphEdgeType.contains) is True
        assert len(list(g.iter_edges())) == 2

    def test_edge_type_filtering(self):
        """Test predecessor and successor queries by single type and tuple of types."""
        g = ContentGraph()
        a = g.add_node(RootNode())
        b = g.add_node(AssetNode(id="b", value=Asset(id="b", file_path="b.js")))
        c = g.add_node(AssetNode(id="c", value=Asset(id="c", file_path="c.js")))
        g.add_edge(a, c)
        g.add_edge(b, c, BundleGraphEdgeType.references)
        g.add_edge(a, c, BundleGraphEdgeType.contains)

        assert g.get_node_ids_connected_to(c) == [a]
        assert g.get_node_ids_connected_to(c, BundleGraphEdgeType.references) == [b]
        assert g.get_node_ids_connected_to(c, (BundleGraphEdgeType.null, BundleGraphEdgeType.references)) == [a, b]
        # Deduplicated across edge types
        assert g.get_node_ids_connected_to(c, (BundleGraphEdgeType.null, BundleGraphEdgeType.contains)) == [a]
        assert g.get_node_ids_connected_from(a, BundleGraphEdgeType.contains) == [c]

    def test_has_edge(self):
        """Test typed and untyped edge existence checks."""
        g = ContentGraph()
        a = g.add_node(RootNode())
        b = g.add_node(AssetNode(id="b", value=Asset(id="b", file_path="b.js")))
        g.add_edge(a, b, BundleGraphEdgeType.contains)

        assert g.has_edge(a, b, BundleGraphEdgeType.contains)
        assert not g.has_edge(a, b)
        assert not g.has_edge(b, a, BundleGraphEdgeType.contains)

    def test_edge_to_unknown_node_rejected(self):
        """Test that edges need both endpoints in the graph."""
        g = ContentGraph()
        a = g.add_node(RootNode())
        with pytest.raises(ValueError):
            g.add_edge(a, 42)


class TestAssetGraph:
    """Tests for AssetGraph lookups."""

    def test_incoming_dependencies(self, sample):
        """Test that both importers of util are found."""
        util = sample.asset_graph.get_node_by_content_key(sample.util_id).value
        deps = sample.asset_graph.get_incoming_dependencies(util)

        assert [d.id for d in deps] == [sample.dep_index_util, sample.dep_lazy_util]

    def test_incoming_dependencies_through_asset_group(self):
        """Test that dependencies resolving through an asset group are found."""
        from bundlegraph_cli.graph import AssetGraph
        from bundlegraph_cli.models import AssetGroup, AssetGroupNode

        g = AssetGraph()
        dep = g.add_node(DependencyNode(id="d", value=Dependency(id="d", specifier="./x")))
        group = g.add_node(AssetGroupNode(id="g", value=AssetGroup(file_path="x.js")))
        asset = Asset(id="x", file_path="x.js")
        x = g.add_node(AssetNode(id="x", value=asset))
        g.add_edge(dep, group)
        g.add_edge(group, x)

        assert [d.id for d in g.get_incoming_dependencies(asset)] == ["d"]


class TestBundleGraph:
    """Tests for BundleGraph lookups."""

    def test_get_bundles_in_order(self, sample):
        """Test that bundles are listed in insertion order."""
        ids = [b.id for b in sample.bundle_graph.get_bundles()]
        assert ids == [sample.main_bundle_id, sample.lazy_bundle_id, sample.shared_bundle_id]

    def test_get_bundle_node_wrong_variant(self, sample):
        """Test that a non-bundle content key is rejected."""
        with pytest.raises(PreconditionError, match="Node is not a bundle, but a asset"):
            sample.bundle_graph.get_bundle_node(sample.util_id)

    def test_get_bundle_node_missing(self, sample):
        """Test that an unknown bundle id is reported."""
        with pytest.raises(NotFoundError, match="Bundle not found"):
            sample.bundle_graph.get_bundle_node("nope")

    def test_bundles_with_asset(self, sample):
        """Test that containing bundles are found via contains edges."""
        util = sample.bundle_graph.get_asset_by_id(sample.util_id)
        bundles = sample.bundle_graph.get_bundles_with_asset(util)
        assert [b.id for b in bundles] == [sample.shared_bundle_id]

    def test_bundles_with_dependency(self, sample):
        """Test that the bundle packaging a dependency is found."""
        node = sample.bundle_graph.graph.get_node_by_content_key(sample.dep_lazy_util)
        bundles = sample.bundle_graph.get_bundles_with_dependency(node.value)
        assert [b.id for b in bundles] == [sample.lazy_bundle_id]

    def test_referencing_bundles(self, sample):
        """Test that both referencing bundles of the shared bundle are returned."""
        shared = sample.bundle_graph.get_bundle_node(sample.shared_bundle_id).value
        refs = sample.bundle_graph.get_referencing_bundles(shared)
        assert [b.id for b in refs] == [sample.main_bundle_id, sample.lazy_bundle_id]

    def test_referencing_bundles_none(self, sample):
        """Test a bundle nobody references."""
        main = sample.bundle_graph.get_bundle_node(sample.main_bundle_id).value
        assert sample.bundle_graph.get_referencing_bundles(main) == []

    def test_asset_public_id(self, sample):
        """Test public id lookups."""
        util = sample.bundle_graph.get_asset_by_id(sample.util_id)
        assert sample.bundle_graph.get_asset_public_id(util) == "pUtl1"

        orphan = Asset(id="zzzzzzzzzzzzzzzz", file_path="x.js")
        with pytest.raises(NotFoundError):
            sample.bundle_graph.get_asset_public_id(orphan)

    def test_pruned_asset_not_in_bundle_graph(self, sample):
        """Test that an asset present only in the asset graph is not found."""
        with pytest.raises(NotFoundError):
            sample.bundle_graph.get_asset_by_id(sample.pruned_id)

    def test_resolved_asset(self, sample):
        """Test dependency resolution."""
        node = sample.bundle_graph.graph.get_node_by_content_key(sample.dep_util_vendor)
        asset = sample.bundle_graph.get_resolved_asset(node.value)
        assert asset.id == sample.vendor_id

    def test_asset_with_dependency(self, sample):
        """Test finding the asset that declared a dependency."""
        node = sample.bundle_graph.graph.get_node_by_content_key(sample.dep_index_lazy)
        asset = sample.bundle_graph.get_asset_with_dependency(node.value)
        assert asset.id == sample.index_id

    def test_asset_with_entry_dependency_is_none(self):
        """Test that a dependency without an owning asset yields None."""
        from bundlegraph_cli.graph import BundleGraph

        g = ContentGraph()
        g.add_node(DependencyNode(id="entry", value=Dependency(id="entry", specifier="src/index.js")))
        bg = BundleGraph(g)
        dep = g.get_node_by_content_key("entry").value
        assert bg.get_asset_with_dependency(dep) is None

    def test_asset_with_dependency_under_root_is_none(self):
        """Test that an entry dependency owned by the root node yields None."""
        from bundlegraph_cli.graph import BundleGraph

        g = ContentGraph()
        root = g.add_node(RootNode())
        entry = g.add_node(DependencyNode(id="entry", value=Dependency(id="entry", specifier="src/index.js")))
        index = g.add_node(AssetNode(id="index", value=Asset(id="index", file_path="src/index.js")))
        g.add_edge(root, entry)
        g.add_edge(entry, index)
        bg = BundleGraph(g)

        dep = g.get_node_by_content_key("entry").value
        assert bg.get_asset_with_dependency(dep) is None
        assert bg.get_resolved_asset(dep).id == "index"

    def test_traverse_bundle_skips_uncontained(self, sample):
        """Test that traversal yields only nodes the bundle contains."""
        main = sample.bundle_graph.get_bundle_node(sample.main_bundle_id).value
        ids = [node.id for node in sample.bundle_graph.iter_bundle(main)]

        assert ids == [sample.index_id, sample.dep_index_util, sample.dep_index_lazy]

    def test_traverse_assets(self, sample):
        """Test that only assets reach the visitor, in depth-first order."""
        shared = sample.bundle_graph.get_bundle_node(sample.shared_bundle_id).value
        seen = []
        sample.bundle_graph.traverse_assets(shared, lambda asset: seen.append(asset.id))

        assert seen == [sample.util_id, sample.vendor_id]
