"""Pytest configuration and fixtures for bundle graph query tests.

The sample build has one entry (``src/index.js``) that imports
``src/util.js`` synchronously and ``src/lazy.js`` lazily; ``src/lazy.js``
imports ``src/util.js`` too, and ``src/util.js`` pulls in a vendored
``node_modules/lodash/index.js``. Three bundles are emitted: the entry
bundle, the lazy bundle, and a shared bundle holding util and lodash that
both others reference.
"""

import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Generator

import pytest

from bundlegraph_cli.graph import AssetGraph, BundleGraph, ContentGraph
from bundlegraph_cli.models import (
    Asset,
    AssetGroup,
    AssetGroupNode,
    AssetNode,
    Bundle,
    BundleGraphEdgeType,
    BundleGroup,
    BundleGroupNode,
    BundleNode,
    Dependency,
    DependencyNode,
    Priority,
    RootNode,
    SourceLocation,
    Symbol,
)
from bundlegraph_cli.storage import save_graphs

CONTAINS = BundleGraphEdgeType.contains
REFERENCES = BundleGraphEdgeType.references
BUNDLE = BundleGraphEdgeType.bundle


@dataclass
class SampleGraphs:
    asset_graph: AssetGraph
    bundle_graph: BundleGraph

    index_id: str = "a1a1a1a1a1a1a1a1"
    util_id: str = "a2a2a2a2a2a2a2a2"
    lazy_id: str = "a3a3a3a3a3a3a3a3"
    vendor_id: str = "a4a4a4a4a4a4a4a4"
    pruned_id: str = "a5a5a5a5a5a5a5a5"

    main_bundle_id: str = "bundle-main"
    lazy_bundle_id: str = "bundle-lazy"
    shared_bundle_id: str = "bundle-shared"

    dep_index_util: str = "dep:index->util"
    dep_index_lazy: str = "dep:index->lazy"
    dep_lazy_util: str = "dep:lazy->util"
    dep_util_vendor: str = "dep:util->vendor"


def _assets(s: SampleGraphs):
    return {
        "index": Asset(id=s.index_id, file_path="src/index.js", meta={"id": "idx"}),
        "util": Asset(
            id=s.util_id,
            file_path="src/util.js",
            meta={"id": "u1"},
            symbols={
                "helper": Symbol(local="$u1$export$helper"),
                "debounce": Symbol(
                    local="$u1$export$debounce",
                    loc=SourceLocation("node_modules/lodash/index.js", 10, 12),
                ),
                "throttle": Symbol(
                    local="$u1$export$throttle",
                    loc=SourceLocation("vendor/missing.js", 1, 1),
                ),
                "clamp": Symbol(
                    local="$u1$export$clamp",
                    loc=SourceLocation("src/pruned.js", 3, 3),
                ),
            },
        ),
        "lazy": Asset(
            id=s.lazy_id,
            file_path="./src/lazy.js",
            meta={"id": "lz"},
            symbols={"drifted": Symbol(local="$old$export$drifted")},
        ),
        "vendor": Asset(id=s.vendor_id, file_path="node_modules/lodash/index.js", meta={"id": "v1"}),
        "pruned": Asset(id=s.pruned_id, file_path="src/pruned.js", meta={"id": "pr"}),
    }


def _dependencies(s: SampleGraphs):
    return {
        "index_util": Dependency(id=s.dep_index_util, specifier="./util", source_path="src/index.js",
                                 source_asset_id=s.index_id),
        "index_lazy": Dependency(id=s.dep_index_lazy, specifier="./lazy", source_path="src/index.js",
                                 source_asset_id=s.index_id, priority=Priority.lazy),
        "lazy_util": Dependency(id=s.dep_lazy_util, specifier="./util", source_path="src/lazy.js",
                                source_asset_id=s.lazy_id, symbols={"helper": Symbol(local="helper")}),
        "util_vendor": Dependency(id=s.dep_util_vendor, specifier="lodash", source_path="src/util.js",
                                  source_asset_id=s.util_id),
    }


def build_asset_graph(s: SampleGraphs) -> AssetGraph:
    assets = _assets(s)
    deps = _dependencies(s)
    g = AssetGraph()
    root = g.add_node(RootNode())
    group = g.add_node(AssetGroupNode(id="group:index", value=AssetGroup(file_path="src/index.js")))
    ids = {name: g.add_node(AssetNode(id=a.id, value=a)) for name, a in assets.items()}
    dep_ids = {name: g.add_node(DependencyNode(id=d.id, value=d)) for name, d in deps.items()}

    g.add_edge(root, group)
    g.add_edge(group, ids["index"])
    for name, (src, dst) in {
        "index_util": ("index", "util"),
        "index_lazy": ("index", "lazy"),
        "lazy_util": ("lazy", "util"),
        "util_vendor": ("util", "vendor"),
    }.items():
        g.add_edge(ids[src], dep_ids[name])
        g.add_edge(dep_ids[name], ids[dst])
    return g


def build_bundle_graph(s: SampleGraphs) -> BundleGraph:
    assets = _assets(s)
    deps = _dependencies(s)
    g = ContentGraph()
    root = g.add_node(RootNode())
    group = g.add_node(BundleGroupNode(id="bundle_group:index", value=BundleGroup("browser", s.index_id)))
    main = g.add_node(BundleNode(id=s.main_bundle_id, value=Bundle(
        id=s.main_bundle_id, main_entry_id=s.index_id, entry_asset_ids=[s.index_id])))
    lazy = g.add_node(BundleNode(id=s.lazy_bundle_id, value=Bundle(
        id=s.lazy_bundle_id, main_entry_id=s.lazy_id, entry_asset_ids=[s.lazy_id])))
    shared = g.add_node(BundleNode(id=s.shared_bundle_id, value=Bundle(id=s.shared_bundle_id)))

    ids = {
        name: g.add_node(AssetNode(id=a.id, value=a))
        for name, a in assets.items()
        if name != "pruned"
    }
    dep_ids = {name: g.add_node(DependencyNode(id=d.id, value=d)) for name, d in deps.items()}

    g.add_edge(root, group)
    g.add_edge(group, main, BUNDLE)
    g.add_edge(main, ids["index"])
    g.add_edge(lazy, ids["lazy"])
    g.add_edge(shared, ids["util"])
    for name, (src, dst) in {
        "index_util": ("index", "util"),
        "index_lazy": ("index", "lazy"),
        "lazy_util": ("lazy", "util"),
        "util_vendor": ("util", "vendor"),
    }.items():
        g.add_edge(ids[src], dep_ids[name])
        g.add_edge(dep_ids[name], ids[dst])

    for bundle, members in (
        (main, [ids["index"], dep_ids["index_util"], dep_ids["index_lazy"]]),
        (lazy, [ids["lazy"], dep_ids["lazy_util"]]),
        (shared, [ids["util"], dep_ids["util_vendor"], ids["vendor"]]),
    ):
        for member in members:
            g.add_edge(bundle, member, CONTAINS)

    g.add_edge(main, shared, REFERENCES)
    g.add_edge(lazy, shared, REFERENCES)

    return BundleGraph(
        g,
        public_id_by_asset_id={
            s.index_id: "pIdx1",
            s.util_id: "pUtl1",
            s.lazy_id: "pLzy1",
            s.vendor_id: "pVnd1",
        },
        bundle_info={
            s.main_bundle_id: "dist/index.js",
            s.lazy_bundle_id: "dist/lazy.3f2a.js",
            s.shared_bundle_id: "dist/shared.9c1d.js",
        },
    )


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample() -> SampleGraphs:
    """Freshly built sample asset and bundle graphs."""
    s = SampleGraphs(asset_graph=AssetGraph(), bundle_graph=BundleGraph(ContentGraph()))
    s.asset_graph = build_asset_graph(s)
    s.bundle_graph = build_bundle_graph(s)
    return s


@pytest.fixture
def cache_dir(temp_dir: Path, sample: SampleGraphs) -> Path:
    """A cache directory holding a snapshot of the sample graphs."""
    path = temp_dir / ".parcel-cache"
    save_graphs(path, sample.asset_graph, sample.bundle_graph)
    return path


@pytest.fixture(autouse=True)
def _isolated_home(temp_dir: Path, monkeypatch):
    """Keep config and shell history out of the real home directory."""
    monkeypatch.setattr("bundlegraph_cli.config.CONFIG_FILE", temp_dir / "config.toml")
    monkeypatch.setattr("bundlegraph_cli.config.HISTORY_FILE", temp_dir / "query_history")
