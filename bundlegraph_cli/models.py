"""Core data models shared by the graph facade, the store and the queries.

Graph nodes form a closed sum type: :data:`Node` is the union of the
``*Node`` classes below and :data:`NODE_TYPES` lists them. Consumers dispatch
with ``isinstance`` and call :func:`unknown_node` for anything else.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, ClassVar, Dict, List, NoReturn, Optional, Union

NodeId = int


class Priority(Enum):
    """Loading priority of a dependency."""

    sync = 0
    parallel = 1
    lazy = 2


class BundleGraphEdgeType(IntEnum):
    """Edge types of the bundle graph. The asset graph only uses ``null``."""

    null = 1
    contains = 2
    bundle = 3
    references = 4
    internal_async = 5


def project_relative(file_path: str) -> str:
    """Normalize a stored project path for display and matching."""
    path = file_path.replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return path


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SourceLocation:
    file_path: str
    start_line: int = 0
    end_line: int = 0


@dataclass(frozen=True)
class Symbol:
    """An exported or imported binding with its mangled local name."""

    local: str
    loc: Optional[SourceLocation] = None


@dataclass
class Asset:
    id: str
    file_path: str
    type: str = "js"
    meta: Dict[str, Any] = field(default_factory=dict)
    # Ordered: exported name -> symbol
    symbols: Optional[Dict[str, Symbol]] = None
    bundle_behavior: Optional[str] = None


@dataclass
class Dependency:
    id: str
    specifier: str
    source_path: Optional[str] = None
    source_asset_id: Optional[str] = None
    priority: Priority = Priority.sync
    symbols: Optional[Dict[str, Symbol]] = None
    is_optional: bool = False


@dataclass
class Bundle:
    id: str
    type: str = "js"
    main_entry_id: Optional[str] = None
    entry_asset_ids: List[str] = field(default_factory=list)
    bundle_behavior: Optional[str] = None
    needs_stable_name: bool = False


@dataclass
class AssetGroup:
    file_path: str
    pipeline: Optional[str] = None


@dataclass
class BundleGroup:
    target: str
    entry_asset_id: str


@dataclass
class EntryFile:
    file_path: str
    package_path: str = ""


# ---------------------------------------------------------------------------
# Node variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AssetNode:
    id: str
    value: Asset
    type: ClassVar[str] = "asset"


@dataclass(frozen=True)
class DependencyNode:
    id: str
    value: Dependency
    excluded: bool = False
    type: ClassVar[str] = "dependency"


@dataclass(frozen=True)
class BundleNode:
    id: str
    value: Bundle
    type: ClassVar[str] = "bundle"


@dataclass(frozen=True)
class AssetGroupNode:
    id: str
    value: AssetGroup
    type: ClassVar[str] = "asset_group"


@dataclass(frozen=True)
class BundleGroupNode:
    id: str
    value: BundleGroup
    type: ClassVar[str] = "bundle_group"


@dataclass(frozen=True)
class EntrySpecifierNode:
    id: str
    value: str
    type: ClassVar[str] = "entry_specifier"


@dataclass(frozen=True)
class EntryFileNode:
    id: str
    value: EntryFile
    type: ClassVar[str] = "entry_file"


@dataclass(frozen=True)
class RootNode:
    id: str = "@@root"
    value: None = None
    type: ClassVar[str] = "root"


Node = Union[
    AssetNode,
    DependencyNode,
    BundleNode,
    AssetGroupNode,
    BundleGroupNode,
    EntrySpecifierNode,
    EntryFileNode,
    RootNode,
]

NODE_TYPES = (
    AssetNode,
    DependencyNode,
    BundleNode,
    AssetGroupNode,
    BundleGroupNode,
    EntrySpecifierNode,
    EntryFileNode,
    RootNode,
)


def unknown_node(node: object) -> NoReturn:
    raise TypeError(f"Unknown graph node variant: {type(node).__name__}")


def describe_dependency(dep: Dependency) -> str:
    source = project_relative(dep.source_path) if dep.source_path else "<entry>"
    return f"{dep.id} {source} -> {dep.specifier} ({dep.priority.name})"


def describe_node(node: Node) -> str:
    """One-line human readable description of a graph node."""
    if isinstance(node, AssetNode):
        return f"asset {node.id} {project_relative(node.value.file_path)}"
    if isinstance(node, DependencyNode):
        excluded = " - excluded" if node.excluded else ""
        return f"dependency {describe_dependency(node.value)}{excluded}"
    if isinstance(node, BundleNode):
        main = f" (main: {node.value.main_entry_id})" if node.value.main_entry_id else ""
        return f"bundle {node.id} {node.value.type}{main}"
    if isinstance(node, AssetGroupNode):
        return f"asset_group {node.id} {project_relative(node.value.file_path)}"
    if isinstance(node, BundleGroupNode):
        return f"bundle_group {node.id} {node.value.target} -> {node.value.entry_asset_id}"
    if isinstance(node, EntrySpecifierNode):
        return f"entry_specifier {node.id} {node.value}"
    if isinstance(node, EntryFileNode):
        return f"entry_file {node.id} {project_relative(node.value.file_path)}"
    if isinstance(node, RootNode):
        return f"root {node.id}"
    unknown_node(node)


# ---------------------------------------------------------------------------
# Query results
# ---------------------------------------------------------------------------


@dataclass
class InclusionReport:
    """Why an asset is packaged in a bundle."""

    bundle: Bundle
    asset: Asset
    is_main_entry: bool
    is_entry: bool
    contained_dependencies: List[DependencyNode]
    shared_bundle_dependencies: List[DependencyNode]


@dataclass
class SymbolResolution:
    asset: Asset
    lines: List[str]


@dataclass
class GraphStats:
    asset_graph: Dict[str, int]
    bundle_graph: Dict[str, int]
