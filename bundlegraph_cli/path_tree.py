"""Reverse-reachability paths from an asset up to the graph's entries.

Starting from one node, the walk follows incoming untyped edges towards the
roots and records every asset it meets as a :class:`PathTree` line. Diamond
and cyclic structures are bounded by a per-call visited set: a node met a
second time is recorded as a ``(revisiting)`` leaf and not expanded again,
so every reachable node is expanded at most once.

Dependencies never get a line of their own. A lazy dependency marks the
nearest asset above it (the importer that loads it asynchronously) with the
lazy marker.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Set, Tuple

from . import config
from .errors import PreconditionError
from .graph import ContentGraph
from .models import NODE_TYPES, AssetNode, DependencyNode, NodeId, Priority, project_relative, unknown_node


class PathTree:
    """One step of a reconstructed path; children keep traversal order."""

    def __init__(self, node_id: NodeId, label: str = config.EAGER_MARKER, suffix: str = ""):
        self.node_id = node_id
        self.label = label
        self.suffix = suffix
        self.children: List[PathTree] = []

    def add(self, node_id: NodeId, label: Optional[str] = None, suffix: Optional[str] = None) -> "PathTree":
        child = PathTree(
            node_id,
            label if label is not None else config.EAGER_MARKER,
            suffix if suffix is not None else "",
        )
        self.children.append(child)
        return child

    def walk(self) -> Iterator[Tuple[int, "PathTree"]]:
        """Depth-first ``(depth, node)`` pairs below this node (excluded)."""
        stack = [(0, child) for child in reversed(self.children)]
        while stack:
            depth, node = stack.pop()
            yield depth, node
            stack.extend((depth + 1, child) for child in reversed(node.children))

    def render(self, fmt: Callable[[NodeId], str], indent: str = "  ") -> List[str]:
        """Printable lines for every node below this one."""
        lines = []
        for depth, node in self.walk():
            lines.append(f"{indent * depth}{node.label} {fmt(node.node_id)} {node.suffix}".rstrip())
        return lines


@dataclass(frozen=True)
class TraversalContext:
    """State carried from a node to each of its predecessors."""

    parent: PathTree
    lazy_outgoing: bool = False


def visit_node(
    graph: ContentGraph,
    start: NodeId,
    node_id: NodeId,
    ctx: TraversalContext,
    revisiting: bool,
    lazy_marker: str = config.LAZY_MARKER,
    eager_marker: str = config.EAGER_MARKER,
) -> TraversalContext:
    """Record *node_id* under ``ctx.parent`` and return the context for its predecessors."""
    if node_id == start:
        return ctx
    node = graph.get_node(node_id)
    if isinstance(node, AssetNode):
        child = ctx.parent.add(
            node_id,
            lazy_marker if ctx.lazy_outgoing else eager_marker,
            config.REVISIT_SUFFIX if revisiting else None,
        )
        return TraversalContext(parent=child, lazy_outgoing=False)
    if isinstance(node, DependencyNode):
        if node.value.priority is Priority.lazy:
            return TraversalContext(parent=ctx.parent, lazy_outgoing=True)
        return ctx
    if isinstance(node, NODE_TYPES):
        return ctx
    unknown_node(node)


def find_entries(
    graph: ContentGraph,
    start: NodeId,
    lazy_marker: str = config.LAZY_MARKER,
    eager_marker: str = config.EAGER_MARKER,
) -> PathTree:
    """Build the tree of paths leading from the graph's roots down to *start*.

    The returned root stands for *start* itself and is never rendered; a
    start node without predecessors yields a tree without children.
    """
    root = PathTree(start, label=" ")
    seen: Set[NodeId] = set()
    # Predecessors are pushed reversed so pops follow recursive pre-order
    stack: List[Tuple[NodeId, TraversalContext]] = [(start, TraversalContext(parent=root))]
    while stack:
        node_id, ctx = stack.pop()
        revisiting = node_id in seen
        next_ctx = visit_node(graph, start, node_id, ctx, revisiting, lazy_marker, eager_marker)
        if revisiting:
            continue
        seen.add(node_id)
        for parent_id in reversed(graph.get_node_ids_connected_to(node_id)):
            stack.append((parent_id, next_ctx))
    return root


def render_path_tree(graph: ContentGraph, tree: PathTree) -> List[str]:
    def fmt(node_id: NodeId) -> str:
        node = graph.get_node(node_id)
        if not isinstance(node, AssetNode):
            raise PreconditionError(f"Path tree node {node_id} is not an asset")
        return project_relative(node.value.file_path)

    return tree.render(fmt)
