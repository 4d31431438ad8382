"""Explain why an asset is packaged in a bundle."""

from __future__ import annotations

from typing import List, Tuple

from .errors import NotFoundError, PreconditionError
from .graph import BundleGraph
from .locator import LocatorResolver
from .models import AssetNode, BundleGraphEdgeType, DependencyNode, InclusionReport, NodeId

CONTAINS = BundleGraphEdgeType.contains


class InclusionReasoner:
    """Looks at a bundle/asset pair from every angle that can put the asset there.

    The report answers four independent questions: is the asset the bundle's
    main entry, is it one of its entries, which incoming dependencies does the
    bundle itself package, and which incoming dependencies are packaged by
    bundles that use this bundle as a shared bundle.
    """

    def __init__(self, bundle_graph: BundleGraph, locator: LocatorResolver):
        self.bundle_graph = bundle_graph
        self.locator = locator

    def explain(self, bundle_locator: str, asset_locator: str) -> InclusionReport:
        graph = self.bundle_graph.graph

        bundle_id = self.locator.require_bundle(bundle_locator)
        bundle_node_id = graph.get_node_id_by_content_key(bundle_id)
        bundle_node = self.bundle_graph.get_bundle_node(bundle_id)

        asset_id = self.locator.require_asset(asset_locator)
        if not graph.has_content_key(asset_id):
            raise NotFoundError("Asset not found")
        asset_node_id = graph.get_node_id_by_content_key(asset_id)
        asset_node = graph.get_node(asset_node_id)
        if not isinstance(asset_node, AssetNode):
            raise PreconditionError(f"Expected an asset, but found a {asset_node.type}")

        if not graph.has_edge(bundle_node_id, asset_node_id, CONTAINS):
            raise PreconditionError("Asset is not part of the bundle")

        incoming = self._incoming_dependencies(asset_node_id)
        referencing_ids = [
            graph.get_node_id_by_content_key(ref.id)
            for ref in self.bundle_graph.get_referencing_bundles(bundle_node.value)
        ]

        return InclusionReport(
            bundle=bundle_node.value,
            asset=asset_node.value,
            is_main_entry=bundle_node.value.main_entry_id == asset_id,
            is_entry=asset_id in bundle_node.value.entry_asset_ids,
            contained_dependencies=[
                dep for node_id, dep in incoming
                if graph.has_edge(bundle_node_id, node_id, CONTAINS)
            ],
            shared_bundle_dependencies=[
                dep for node_id, dep in incoming
                if any(graph.has_edge(ref_id, node_id, CONTAINS) for ref_id in referencing_ids)
            ],
        )

    def _incoming_dependencies(self, asset_node_id: NodeId) -> List[Tuple[NodeId, DependencyNode]]:
        graph = self.bundle_graph.graph
        out = []
        for node_id in graph.get_node_ids_connected_to(asset_node_id):
            node = graph.get_node(node_id)
            if isinstance(node, DependencyNode):
                out.append((node_id, node))
        return out
