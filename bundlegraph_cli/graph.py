"""In-memory graph access facade over the asset graph and the bundle graph.

:class:`ContentGraph` stores nodes under a dense numeric id and an opaque
content key, with typed directed edges. :class:`AssetGraph` and
:class:`BundleGraph` add the domain lookups the queries rely on. Both graphs
are read-only once loaded; nothing in the query layer mutates them.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Dict, Iterator, List, Optional, Set, Tuple, Union

from .errors import NotFoundError, PreconditionError
from .models import (
    Asset,
    AssetNode,
    Bundle,
    BundleGraphEdgeType,
    BundleNode,
    Dependency,
    DependencyNode,
    Node,
    NodeId,
    project_relative,
)

logger = logging.getLogger(__name__)

NULL_EDGE = int(BundleGraphEdgeType.null)

Edge = Tuple[NodeId, NodeId, int]


class ContentGraph:
    """Directed multigraph addressable by numeric id and by content key."""

    def __init__(self) -> None:
        # Insertion ordered: id -> node
        self.nodes: Dict[NodeId, Node] = {}
        self._content_key_to_node_id: Dict[str, NodeId] = {}
        self._next_id: NodeId = 0
        self._edges: List[Edge] = []
        self._edge_set: Set[Edge] = set()
        self._inbound: Dict[NodeId, List[Tuple[NodeId, int]]] = {}
        self._outbound: Dict[NodeId, List[Tuple[NodeId, int]]] = {}

    def __len__(self) -> int:
        return len(self.nodes)

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def add_node(self, node: Node, node_id: Optional[NodeId] = None) -> NodeId:
        """Add *node* under its content key and return its numeric id."""
        if node.id in self._content_key_to_node_id:
            raise ValueError(f"Graph already has content key {node.id}")
        if node_id is None:
            node_id = self._next_id
        elif node_id in self.nodes:
            raise ValueError(f"Graph already has node id {node_id}")
        self.nodes[node_id] = node
        self._content_key_to_node_id[node.id] = node_id
        self._next_id = max(self._next_id, node_id + 1)
        return node_id

    def add_edge(self, from_id: NodeId, to_id: NodeId, edge_type: int = NULL_EDGE) -> bool:
        """Add a typed edge. Returns ``False`` if the edge already exists."""
        for node_id in (from_id, to_id):
            if node_id not in self.nodes:
                raise ValueError(f"Edge endpoint {node_id} is not in the graph")
        edge = (from_id, to_id, int(edge_type))
        if edge in self._edge_set:
            return False
        self._edge_set.add(edge)
        self._edges.append(edge)
        self._outbound.setdefault(from_id, []).append((to_id, int(edge_type)))
        self._inbound.setdefault(to_id, []).append((from_id, int(edge_type)))
        return True

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def has_node(self, node_id: NodeId) -> bool:
        return node_id in self.nodes

    def has_content_key(self, key: str) -> bool:
        return key in self._content_key_to_node_id

    def get_node(self, node_id: NodeId) -> Optional[Node]:
        return self.nodes.get(node_id)

    def get_node_by_content_key(self, key: str) -> Optional[Node]:
        node_id = self._content_key_to_node_id.get(key)
        if node_id is None:
            return None
        return self.nodes[node_id]

    def get_node_id_by_content_key(self, key: str) -> NodeId:
        try:
            return self._content_key_to_node_id[key]
        except KeyError:
            raise NotFoundError(f"Node with content key {key} not found") from None

    def has_edge(self, from_id: NodeId, to_id: NodeId, edge_type: int = NULL_EDGE) -> bool:
        return (from_id, to_id, int(edge_type)) in self._edge_set

    def get_node_ids_connected_to(
        self,
        node_id: NodeId,
        edge_type: Union[int, Tuple[int, ...]] = NULL_EDGE,
    ) -> List[NodeId]:
        """Predecessors of *node_id* over edges of *edge_type*, in edge order."""
        return _select(self._inbound.get(node_id, ()), edge_type)

    def get_node_ids_connected_from(
        self,
        node_id: NodeId,
        edge_type: Union[int, Tuple[int, ...]] = NULL_EDGE,
    ) -> List[NodeId]:
        """Successors of *node_id* over edges of *edge_type*, in edge order."""
        return _select(self._outbound.get(node_id, ()), edge_type)

    def iter_edges(self) -> Iterator[Edge]:
        return iter(self._edges)


def _select(pairs, edge_type) -> List[NodeId]:
    if isinstance(edge_type, tuple):
        wanted = {int(t) for t in edge_type}
    else:
        wanted = {int(edge_type)}
    seen: Set[NodeId] = set()
    out: List[NodeId] = []
    for node_id, etype in pairs:
        if etype not in wanted or node_id in seen:
            continue
        seen.add(node_id)
        out.append(node_id)
    return out


# ===================================================================
# AssetGraph
# ===================================================================


class AssetGraph(ContentGraph):
    """Graph of assets, dependencies and asset groups before bundling."""

    def get_incoming_dependencies(self, asset: Asset) -> List[Dependency]:
        """Dependencies resolving to *asset*, directly or through an asset group."""
        node_id = self.get_node_id_by_content_key(asset.id)
        dependencies: List[Dependency] = []
        for parent_id in self.get_node_ids_connected_to(node_id):
            parent = self.get_node(parent_id)
            # Inline dependencies connect straight to the asset
            if isinstance(parent, DependencyNode):
                dependencies.append(parent.value)
                continue
            for grandparent_id in self.get_node_ids_connected_to(parent_id):
                grandparent = self.get_node(grandparent_id)
                if isinstance(grandparent, DependencyNode):
                    dependencies.append(grandparent.value)
        return dependencies


# ===================================================================
# BundleGraph
# ===================================================================


class BundleGraph:
    """Bundle-domain view over the bundled content graph.

    Args:
        graph: Content graph holding bundles, assets and dependencies.
        public_id_by_asset_id: Short public aliases of canonical asset ids.
        bundle_info: Output file path of every written bundle.
    """

    def __init__(
        self,
        graph: ContentGraph,
        public_id_by_asset_id: Optional[Dict[str, str]] = None,
        bundle_info: Optional[Dict[str, str]] = None,
    ) -> None:
        self._graph = graph
        self._public_id_by_asset_id: Dict[str, str] = dict(public_id_by_asset_id or {})
        self._bundle_info: Dict[str, str] = dict(bundle_info or {})

    @property
    def graph(self) -> ContentGraph:
        return self._graph

    @property
    def public_id_by_asset_id(self) -> Dict[str, str]:
        return self._public_id_by_asset_id

    @property
    def bundle_info(self) -> Dict[str, str]:
        return self._bundle_info

    # ------------------------------------------------------------------
    # Bundles
    # ------------------------------------------------------------------

    def get_bundles(self) -> List[Bundle]:
        return [node.value for node in self._graph.nodes.values() if isinstance(node, BundleNode)]

    def get_bundle_file_path(self, bundle_id: str) -> str:
        try:
            return project_relative(self._bundle_info[bundle_id])
        except KeyError:
            raise NotFoundError(f"No output file recorded for bundle {bundle_id}") from None

    def get_bundle_node(self, bundle_id: str) -> BundleNode:
        node = self._graph.get_node_by_content_key(bundle_id)
        if node is None:
            raise NotFoundError("Bundle not found")
        if not isinstance(node, BundleNode):
            raise PreconditionError(f"Node is not a bundle, but a {node.type}")
        return node

    def get_bundles_with_asset(self, asset: Asset) -> List[Bundle]:
        return self._containing_bundles(asset.id)

    def get_bundles_with_dependency(self, dependency: Dependency) -> List[Bundle]:
        return self._containing_bundles(dependency.id)

    def _containing_bundles(self, key: str) -> List[Bundle]:
        node_id = self._graph.get_node_id_by_content_key(key)
        bundles = []
        for parent_id in self._graph.get_node_ids_connected_to(node_id, BundleGraphEdgeType.contains):
            parent = self._graph.get_node(parent_id)
            if isinstance(parent, BundleNode):
                bundles.append(parent.value)
        return bundles

    def get_referencing_bundles(self, bundle: Bundle) -> List[Bundle]:
        """Bundles that reference *bundle*, directly or transitively."""
        start = self._graph.get_node_id_by_content_key(bundle.id)
        seen = {start}
        queue = deque([start])
        referencing: List[Bundle] = []
        while queue:
            current = queue.popleft()
            for parent_id in self._graph.get_node_ids_connected_to(current, BundleGraphEdgeType.references):
                if parent_id in seen:
                    continue
                seen.add(parent_id)
                queue.append(parent_id)
                parent = self._graph.get_node(parent_id)
                if isinstance(parent, BundleNode) and parent.value.id != bundle.id:
                    referencing.append(parent.value)
        return referencing

    # ------------------------------------------------------------------
    # Assets
    # ------------------------------------------------------------------

    def get_asset_by_id(self, asset_id: str) -> Asset:
        node = self._graph.get_node_by_content_key(asset_id)
        if node is None:
            raise NotFoundError(f"Asset {asset_id} is not in the bundle graph")
        if not isinstance(node, AssetNode):
            raise PreconditionError(f"Node is not an asset, but a {node.type}")
        return node.value

    def get_asset_public_id(self, asset: Asset) -> str:
        try:
            return self._public_id_by_asset_id[asset.id]
        except KeyError:
            raise NotFoundError(f"Asset {asset.id} has no public id") from None

    def get_incoming_dependencies(self, asset: Asset) -> List[Dependency]:
        """Dependencies pointing at *asset* over untyped or ``references`` edges."""
        if not self._graph.has_content_key(asset.id):
            return []
        node_id = self._graph.get_node_id_by_content_key(asset.id)
        edge_types = (BundleGraphEdgeType.null, BundleGraphEdgeType.references)
        dependencies = []
        for parent_id in self._graph.get_node_ids_connected_to(node_id, edge_types):
            parent = self._graph.get_node(parent_id)
            if isinstance(parent, DependencyNode):
                dependencies.append(parent.value)
        return dependencies

    def get_resolved_asset(self, dependency: Dependency, bundle: Optional[Bundle] = None) -> Optional[Asset]:
        """Asset *dependency* resolves to, preferring one contained in *bundle*."""
        dep_id = self._graph.get_node_id_by_content_key(dependency.id)
        assets: List[Tuple[NodeId, Asset]] = []
        for child_id in self._graph.get_node_ids_connected_from(dep_id):
            child = self._graph.get_node(child_id)
            if isinstance(child, AssetNode):
                assets.append((child_id, child.value))
        if not assets:
            return None
        if bundle is not None:
            bundle_id = self._graph.get_node_id_by_content_key(bundle.id)
            for child_id, asset in assets:
                if self._graph.has_edge(bundle_id, child_id, BundleGraphEdgeType.contains):
                    return asset
        return assets[0][1]

    def get_asset_with_dependency(self, dependency: Dependency) -> Optional[Asset]:
        """The asset that declared *dependency*; ``None`` for entry dependencies."""
        dep_id = self._graph.get_node_id_by_content_key(dependency.id)
        parents = self._graph.get_node_ids_connected_to(dep_id)
        if not parents:
            return None
        parent = self._graph.get_node(parents[0])
        # Entry dependencies hang off the root or an entry node
        if not isinstance(parent, AssetNode):
            return None
        return parent.value

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def iter_bundle(self, bundle: Bundle) -> Iterator[Union[AssetNode, DependencyNode]]:
        """Depth-first walk of the assets and dependencies packaged in *bundle*.

        Starts at the bundle node and follows untyped edges; nodes the bundle
        does not contain are neither yielded nor descended into.
        """
        bundle_id = self._graph.get_node_id_by_content_key(bundle.id)
        seen = {bundle_id}
        stack = list(reversed(self._graph.get_node_ids_connected_from(bundle_id)))
        while stack:
            node_id = stack.pop()
            if node_id in seen:
                continue
            seen.add(node_id)
            node = self._graph.get_node(node_id)
            if not isinstance(node, (AssetNode, DependencyNode)):
                continue
            if not self._graph.has_edge(bundle_id, node_id, BundleGraphEdgeType.contains):
                continue
            yield node
            stack.extend(reversed(self._graph.get_node_ids_connected_from(node_id)))

    def traverse_bundle(self, bundle: Bundle, visit: Callable[[Union[AssetNode, DependencyNode]], None]) -> None:
        for node in self.iter_bundle(bundle):
            visit(node)

    def traverse_assets(self, bundle: Bundle, visit: Callable[[Asset], None]) -> None:
        for node in self.iter_bundle(bundle):
            if isinstance(node, AssetNode):
                visit(node.value)
