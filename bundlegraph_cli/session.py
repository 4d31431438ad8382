"""Query session binding loaded graphs to the named query commands.

A :class:`QuerySession` answers one command at a time and is not meant to be
shared between threads; the graphs it holds are never mutated.
Every command takes a single string argument and returns printable lines.
"""

from __future__ import annotations

import logging
import pprint
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from .config_manager import QuerySettings
from .errors import MalformedInputError, NotFoundError, PreconditionError
from .graph import AssetGraph, BundleGraph, ContentGraph
from .inclusion import InclusionReasoner
from .locator import LocatorResolver, compile_locator
from .models import (
    AssetNode,
    Bundle,
    BundleNode,
    Dependency,
    DependencyNode,
    describe_dependency,
    describe_node,
    project_relative,
)
from .path_tree import find_entries, render_path_tree
from .stats import compute_stats
from .storage import load_graphs
from .symbols import SymbolResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueryCommand:
    name: str
    help: str
    method: str
    aliases: Tuple[str, ...] = field(default_factory=tuple)


COMMANDS: List[QueryCommand] = [
    QueryCommand("get-asset", "args: <id | public id | filepath>", "get_asset", ("getAsset",)),
    QueryCommand("find-asset", "args: <regex>. Show the first asset matching the filepath regex",
                 "find_asset", ("findAsset",)),
    QueryCommand("find-asset-with-symbol",
                 "args: <local>. Get the asset that defines the symbol with the given local name",
                 "find_asset_with_symbol", ("findAssetWithSymbol",)),
    QueryCommand("get-node-asset-graph", "args: <content key>. Find node by content key in the asset graph",
                 "get_node_asset_graph", ("getNodeAssetGraph",)),
    QueryCommand("get-node-bundle-graph", "args: <content key>. Find node by content key in the bundle graph",
                 "get_node_bundle_graph", ("getNodeBundleGraph",)),
    QueryCommand("find-entries-asset-graph",
                 "args: <id | public id | filepath>. List paths from an asset to entry points (in asset graph)",
                 "find_entries_asset_graph", ("findEntriesAssetGraph",)),
    QueryCommand("find-entries-bundle-graph",
                 "args: <id | public id | filepath>. List paths from an asset to entry points (in bundle graph)",
                 "find_entries_bundle_graph", ("findEntriesBundleGraph",)),
    QueryCommand("find-entries", "= find-entries-bundle-graph", "find_entries", ("findEntries",)),
    QueryCommand("get-bundles-with-asset", "args: <id | public id | filepath>. Gets bundles containing the asset",
                 "get_bundles_with_asset", ("getBundlesWithAsset",)),
    QueryCommand("get-bundles-with-dependency", "args: <id>. Gets bundles containing the dependency",
                 "get_bundles_with_dependency", ("getBundlesWithDependency",)),
    QueryCommand("get-incoming-dependencies-asset-graph", "args: <asset: id | public id | filepath regex>",
                 "get_incoming_dependencies_asset_graph", ("getIncomingDependenciesAssetGraph",)),
    QueryCommand("get-incoming-dependencies-bundle-graph", "args: <asset: id | public id | filepath regex>",
                 "get_incoming_dependencies_bundle_graph", ("getIncomingDependenciesBundleGraph",)),
    QueryCommand("get-incoming-dependencies", "= get-incoming-dependencies-bundle-graph",
                 "get_incoming_dependencies", ("getIncomingDependencies",)),
    QueryCommand("get-resolved-asset", "args: <dependency id>. Resolve the dependency",
                 "get_resolved_asset", ("getResolvedAsset",)),
    QueryCommand("get-asset-with-dependency", "args: <dependency id>. Show which asset created the dependency",
                 "get_asset_with_dependency", ("getAssetWithDependency",)),
    QueryCommand("traverse-assets", "args: <bundle id>. List assets in bundle", "traverse_assets",
                 ("traverseAssets",)),
    QueryCommand("traverse-bundle", "args: <bundle id>. List assets and dependencies in bundle",
                 "traverse_bundle", ("traverseBundle",)),
    QueryCommand("get-bundle", "args: <name prefix | bundle id>. List matching bundles", "get_bundle",
                 ("getBundle",)),
    QueryCommand("find-bundle-reason", "args: <bundle> <asset>. Why is the asset in the bundle",
                 "find_bundle_reason", ("findBundleReason",)),
    QueryCommand("get-bundles", "List all bundles", "get_bundles", ("getBundles",)),
    QueryCommand("get-referencing-bundles", "args: <bundle>. List bundles that reference the bundle",
                 "get_referencing_bundles", ("getReferencingBundles",)),
    QueryCommand("stats", "Statistics", "stats"),
]

_COMMAND_INDEX: Dict[str, QueryCommand] = {}
for _cmd in COMMANDS:
    _COMMAND_INDEX[_cmd.name] = _cmd
    for _alias in _cmd.aliases:
        _COMMAND_INDEX[_alias] = _cmd


def find_command(name: str) -> Optional[QueryCommand]:
    return _COMMAND_INDEX.get(name.lstrip("."))


def format_payload(value: object) -> List[str]:
    return pprint.pformat(asdict(value), sort_dicts=False).splitlines()


class QuerySession:
    """Answers query commands against one loaded asset graph and bundle graph."""

    def __init__(
        self,
        asset_graph: AssetGraph,
        bundle_graph: BundleGraph,
        settings: Optional[QuerySettings] = None,
    ):
        self.asset_graph = asset_graph
        self.bundle_graph = bundle_graph
        self.settings = settings or QuerySettings()
        self.locator = LocatorResolver(asset_graph, bundle_graph)
        self.symbols = SymbolResolver(asset_graph, bundle_graph, self.locator)
        self.inclusion = InclusionReasoner(bundle_graph, self.locator)

    @classmethod
    def from_cache_dir(cls, cache_dir: Path, settings: Optional[QuerySettings] = None) -> "QuerySession":
        graphs = load_graphs(cache_dir)
        return cls(graphs.asset_graph, graphs.bundle_graph, settings)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def execute(self, name: str, arg: str = "") -> List[str]:
        command = find_command(name)
        if command is None:
            raise NotFoundError(f"Unknown command: {name}")
        logger.debug("Running %s(%r)", command.name, arg)
        handler: Callable[[str], List[str]] = getattr(self, command.method)
        return handler(arg)

    def run_line(self, line: str) -> List[str]:
        """Execute ``<command> <args>`` as typed in the shell."""
        name, _, arg = line.strip().partition(" ")
        return self.execute(name, arg.strip())

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _bundle_line(self, bundle: Bundle) -> str:
        main = f"(main: {bundle.main_entry_id})" if bundle.main_entry_id is not None else ""
        return f"{bundle.id} {self.bundle_graph.get_bundle_file_path(bundle.id)} {main}".rstrip()

    def _require_bundle(self, locator: str) -> BundleNode:
        return self.bundle_graph.get_bundle_node(self.locator.require_bundle(locator))

    def _require_dependency(self, key: str) -> DependencyNode:
        node = self.bundle_graph.graph.get_node_by_content_key(key)
        if node is None:
            raise NotFoundError("Dependency not found")
        if not isinstance(node, DependencyNode):
            raise PreconditionError(f"Node is not a dependency, but a {node.type}")
        return node

    def _asset_line(self, node_id: str, file_path: str) -> str:
        return f"{node_id} {project_relative(file_path)}"

    # ------------------------------------------------------------------
    # Assets
    # ------------------------------------------------------------------

    def get_asset(self, arg: str) -> List[str]:
        asset_id = self.locator.resolve_asset(arg)
        if asset_id is None:
            return ["None"]
        try:
            asset = self.bundle_graph.get_asset_by_id(asset_id)
            public_id = self.bundle_graph.get_asset_public_id(asset)
        except NotFoundError:
            node = self.asset_graph.get_node_by_content_key(asset_id)
            if node is None:
                raise NotFoundError("Asset not found") from None
            if not isinstance(node, AssetNode):
                raise PreconditionError(f"Node is not an asset, but a {node.type}") from None
            return format_payload(node.value)
        return [f"Public id {public_id}"] + format_payload(asset)

    def find_asset(self, arg: str) -> List[str]:
        node = self.locator.find_asset_node(arg)
        if node is None:
            return []
        return [self.symbols.describe_asset(node.value)]

    def find_asset_with_symbol(self, arg: str) -> List[str]:
        return self.symbols.resolve(arg).lines

    def get_node_asset_graph(self, arg: str) -> List[str]:
        return [self._describe_optional(self.asset_graph, arg)]

    def get_node_bundle_graph(self, arg: str) -> List[str]:
        return [self._describe_optional(self.bundle_graph.graph, arg)]

    def _describe_optional(self, graph: ContentGraph, key: str) -> str:
        node = graph.get_node_by_content_key(key)
        return "None" if node is None else describe_node(node)

    # ------------------------------------------------------------------
    # Paths to entries
    # ------------------------------------------------------------------

    def _find_entries(self, graph: ContentGraph, arg: str) -> List[str]:
        asset_id = self.locator.require_asset(arg)
        start = graph.get_node_id_by_content_key(asset_id)
        tree = find_entries(
            graph,
            start,
            lazy_marker=self.settings.lazy_marker,
            eager_marker=self.settings.eager_marker,
        )
        return render_path_tree(graph, tree)

    def find_entries_asset_graph(self, arg: str) -> List[str]:
        return self._find_entries(self.asset_graph, arg)

    def find_entries_bundle_graph(self, arg: str) -> List[str]:
        return self._find_entries(self.bundle_graph.graph, arg)

    def find_entries(self, arg: str) -> List[str]:
        return self.find_entries_bundle_graph(arg)

    # ------------------------------------------------------------------
    # Bundles
    # ------------------------------------------------------------------

    def get_bundles_with_asset(self, arg: str) -> List[str]:
        asset = self.bundle_graph.get_asset_by_id(self.locator.require_asset(arg))
        return [self._bundle_line(b) for b in self.bundle_graph.get_bundles_with_asset(asset)]

    def get_bundles_with_dependency(self, arg: str) -> List[str]:
        node = self._require_dependency(arg)
        return [self._bundle_line(b) for b in self.bundle_graph.get_bundles_with_dependency(node.value)]

    def get_bundles(self, arg: str = "") -> List[str]:
        return [self._bundle_line(b) for b in self.bundle_graph.get_bundles()]

    def get_referencing_bundles(self, arg: str) -> List[str]:
        node = self._require_bundle(arg)
        return [self._bundle_line(b) for b in self.bundle_graph.get_referencing_bundles(node.value)]

    def get_bundle(self, arg: str) -> List[str]:
        regex = compile_locator(arg)
        lines: List[str] = []
        for bundle in self.bundle_graph.get_bundles():
            file_path = self.bundle_graph.bundle_info.get(bundle.id)
            matched = file_path is not None and regex.search(project_relative(file_path))
            if matched or bundle.id == arg:
                lines.append(self.bundle_graph.get_bundle_file_path(bundle.id))
                lines.extend(format_payload(bundle))
        return lines

    def traverse_assets(self, arg: str) -> List[str]:
        node = self._require_bundle(arg)
        lines: List[str] = []
        self.bundle_graph.traverse_assets(
            node.value, lambda asset: lines.append(self._asset_line(asset.id, asset.file_path))
        )
        return lines

    def traverse_bundle(self, arg: str) -> List[str]:
        node = self._require_bundle(arg)
        lines: List[str] = []
        for child in self.bundle_graph.iter_bundle(node.value):
            if isinstance(child, AssetNode):
                lines.append(self._asset_line(child.id, child.value.file_path))
                continue
            dep = child.value
            symbols = f"({','.join(dep.symbols)})" if dep.symbols else ""
            parts = [child.id, dep.source_path or "", "->", dep.specifier, symbols, "- excluded" if child.excluded else ""]
            lines.append(" ".join(p for p in parts if p))
        return lines

    def find_bundle_reason(self, arg: str) -> List[str]:
        parts = arg.split()
        if len(parts) != 2:
            raise MalformedInputError("find-bundle-reason expects two arguments: <bundle> <asset>")
        report = self.inclusion.explain(parts[0], parts[1])
        lines = [
            f"# Asset is main entry of bundle: {report.is_main_entry}",
            f"# Asset is an entry of bundle: {report.is_entry}",
            "# Incoming dependencies contained in the bundle:",
        ]
        lines.extend(describe_node(dep) for dep in report.contained_dependencies)
        lines.append(
            "# Incoming dependencies contained in referencing bundles (using this bundle as a shared bundle)"
        )
        lines.extend(describe_node(dep) for dep in report.shared_bundle_dependencies)
        return lines

    # ------------------------------------------------------------------
    # Dependencies
    # ------------------------------------------------------------------

    def get_incoming_dependencies_asset_graph(self, arg: str) -> List[str]:
        asset_id = self.locator.require_asset(arg)
        node = self.asset_graph.get_node_by_content_key(asset_id)
        if node is None:
            raise NotFoundError("Asset not found")
        if not isinstance(node, AssetNode):
            raise PreconditionError(f"Node is not an asset, but a {node.type}")
        return _dependency_lines(self.asset_graph.get_incoming_dependencies(node.value))

    def get_incoming_dependencies_bundle_graph(self, arg: str) -> List[str]:
        asset = self.bundle_graph.get_asset_by_id(self.locator.require_asset(arg))
        return _dependency_lines(self.bundle_graph.get_incoming_dependencies(asset))

    def get_incoming_dependencies(self, arg: str) -> List[str]:
        return self.get_incoming_dependencies_bundle_graph(arg)

    def get_resolved_asset(self, arg: str) -> List[str]:
        asset = self.bundle_graph.get_resolved_asset(self._require_dependency(arg).value)
        return ["None" if asset is None else self._asset_line(asset.id, asset.file_path)]

    def get_asset_with_dependency(self, arg: str) -> List[str]:
        asset = self.bundle_graph.get_asset_with_dependency(self._require_dependency(arg).value)
        return ["None" if asset is None else self._asset_line(asset.id, asset.file_path)]

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def stats(self, arg: str = "") -> List[str]:
        result = compute_stats(self.asset_graph, self.bundle_graph, self.settings.vendor_marker)
        lines = ["# Asset Graph Node Counts"]
        lines.extend(f"{k} {v}" for k, v in result.asset_graph.items())
        lines.append("")
        lines.append("# Bundle Graph Node Counts")
        lines.extend(f"{k} {v}" for k, v in result.bundle_graph.items())
        return lines


def _dependency_lines(dependencies: List[Dependency]) -> List[str]:
    return [describe_dependency(dep) for dep in dependencies]

