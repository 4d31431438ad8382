"""Node population counts for both graphs."""

from __future__ import annotations

from typing import Dict

from . import config
from .graph import AssetGraph, BundleGraph
from .models import AssetNode, GraphStats, project_relative


def compute_stats(
    asset_graph: AssetGraph,
    bundle_graph: BundleGraph,
    vendor_marker: str = config.VENDOR_MARKER,
) -> GraphStats:
    """Tally node types; bundled assets are split into vendored and first-party."""
    ag: Dict[str, int] = {"asset": 0, "dependency": 0, "asset_group": 0}
    for node in asset_graph.nodes.values():
        if node.type in ag:
            ag[node.type] += 1

    bg: Dict[str, int] = {
        "dependency": 0,
        "bundle": 0,
        "asset": 0,
        "asset_node_modules": 0,
        "asset_source": 0,
    }
    for node in bundle_graph.graph.nodes.values():
        if node.type in bg:
            bg[node.type] += 1
        if isinstance(node, AssetNode):
            if vendor_marker in project_relative(node.value.file_path):
                bg["asset_node_modules"] += 1
            else:
                bg["asset_source"] += 1

    return GraphStats(asset_graph=ag, bundle_graph=bg)
