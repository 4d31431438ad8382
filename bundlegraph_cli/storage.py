"""Persistence layer for asset and bundle graph snapshots.

Both graphs live in one SQLite file (``graphs.db``) inside the bundler cache
directory. Node payloads are stored as JSON next to their variant tag so that
loading rebuilds the exact node ids, insertion order and typed edges.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from .config import SNAPSHOT_FILENAME
from .errors import SnapshotError
from .graph import AssetGraph, BundleGraph, ContentGraph
from .models import (
    Asset,
    AssetGroup,
    AssetGroupNode,
    AssetNode,
    Bundle,
    BundleGroup,
    BundleGroupNode,
    BundleNode,
    Dependency,
    DependencyNode,
    EntryFile,
    EntryFileNode,
    EntrySpecifierNode,
    Node,
    Priority,
    RootNode,
    SourceLocation,
    Symbol,
    unknown_node,
)

logger = logging.getLogger(__name__)

ASSET_GRAPH = "asset"
BUNDLE_GRAPH = "bundle"


@dataclass
class LoadedGraphs:
    asset_graph: AssetGraph
    bundle_graph: BundleGraph


class SnapshotStore:
    """SQLite store holding one asset graph and one bundle graph.

    With ``read_only`` the file is opened without write access and the
    schema is left untouched.
    """

    def __init__(self, db_path: Path, read_only: bool = False) -> None:
        self.db_path = db_path
        if read_only:
            self.conn = sqlite3.connect(f"{self.db_path.resolve().as_uri()}?mode=ro", uri=True)
        else:
            self.conn = sqlite3.connect(str(self.db_path))
        self.conn.row_factory = sqlite3.Row
        if not read_only:
            self._init_schema()

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "SnapshotStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def _init_schema(self) -> None:
        cur = self.conn.cursor()
        cur.execute("""
            CREATE TABLE IF NOT EXISTS nodes (
                graph       TEXT NOT NULL,
                node_id     INTEGER NOT NULL,
                content_key TEXT NOT NULL,
                node_type   TEXT NOT NULL,
                value       TEXT,
                PRIMARY KEY (graph, node_id)
            )
        """)
        cur.execute("""
            CREATE TABLE IF NOT EXISTS edges (
                graph     TEXT NOT NULL,
                seq       INTEGER NOT NULL,
                src       INTEGER NOT NULL,
                dst       INTEGER NOT NULL,
                edge_type INTEGER NOT NULL
            )
        """)
        cur.execute("""
            CREATE TABLE IF NOT EXISTS public_ids (
                asset_id  TEXT PRIMARY KEY,
                public_id TEXT NOT NULL
            )
        """)
        cur.execute("""
            CREATE TABLE IF NOT EXISTS bundle_info (
                bundle_id TEXT PRIMARY KEY,
                file_path TEXT NOT NULL
            )
        """)
        cur.execute("CREATE INDEX IF NOT EXISTS idx_edges_graph ON edges(graph, seq)")
        self.conn.commit()

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def save_asset_graph(self, graph: AssetGraph) -> None:
        self._save_graph(ASSET_GRAPH, graph)

    def save_bundle_graph(self, bundle_graph: BundleGraph) -> None:
        self._save_graph(BUNDLE_GRAPH, bundle_graph.graph)
        cur = self.conn.cursor()
        cur.execute("DELETE FROM public_ids")
        cur.execute("DELETE FROM bundle_info")
        cur.executemany(
            "INSERT INTO public_ids (asset_id, public_id) VALUES (?, ?)",
            list(bundle_graph.public_id_by_asset_id.items()),
        )
        cur.executemany(
            "INSERT INTO bundle_info (bundle_id, file_path) VALUES (?, ?)",
            list(bundle_graph.bundle_info.items()),
        )
        self.conn.commit()

    def _save_graph(self, name: str, graph: ContentGraph) -> None:
        cur = self.conn.cursor()
        cur.execute("DELETE FROM nodes WHERE graph = ?", (name,))
        cur.execute("DELETE FROM edges WHERE graph = ?", (name,))
        cur.executemany(
            "INSERT INTO nodes (graph, node_id, content_key, node_type, value) VALUES (?, ?, ?, ?, ?)",
            [
                (name, node_id, node.id, node.type, json.dumps(encode_node(node)))
                for node_id, node in graph.nodes.items()
            ],
        )
        cur.executemany(
            "INSERT INTO edges (graph, seq, src, dst, edge_type) VALUES (?, ?, ?, ?, ?)",
            [(name, seq, src, dst, etype) for seq, (src, dst, etype) in enumerate(graph.iter_edges())],
        )
        self.conn.commit()
        logger.info("Saved %s graph: %d nodes", name, len(graph))

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def load_asset_graph(self) -> AssetGraph:
        graph = AssetGraph()
        self._load_graph(ASSET_GRAPH, graph)
        return graph

    def load_bundle_graph(self) -> BundleGraph:
        graph = ContentGraph()
        self._load_graph(BUNDLE_GRAPH, graph)
        public_ids = {
            row["asset_id"]: row["public_id"]
            for row in self.conn.execute("SELECT asset_id, public_id FROM public_ids")
        }
        bundle_info = {
            row["bundle_id"]: row["file_path"]
            for row in self.conn.execute("SELECT bundle_id, file_path FROM bundle_info")
        }
        return BundleGraph(graph, public_id_by_asset_id=public_ids, bundle_info=bundle_info)

    def has_graph(self, name: str) -> bool:
        row = self.conn.execute("SELECT 1 FROM nodes WHERE graph = ? LIMIT 1", (name,)).fetchone()
        return row is not None

    def _load_graph(self, name: str, graph: ContentGraph) -> None:
        rows = self.conn.execute(
            "SELECT node_id, content_key, node_type, value FROM nodes WHERE graph = ? ORDER BY node_id",
            (name,),
        ).fetchall()
        for row in rows:
            payload = json.loads(row["value"]) if row["value"] else None
            graph.add_node(decode_node(row["node_type"], row["content_key"], payload), node_id=row["node_id"])

        dangling = 0
        for row in self.conn.execute(
            "SELECT src, dst, edge_type FROM edges WHERE graph = ? ORDER BY seq", (name,),
        ):
            if not (graph.has_node(row["src"]) and graph.has_node(row["dst"])):
                dangling += 1
                continue
            graph.add_edge(row["src"], row["dst"], row["edge_type"])
        if dangling:
            logger.warning("Skipped %d dangling edges in %s graph", dangling, name)
        logger.info("Loaded %s graph: %d nodes", name, len(graph))


# ===================================================================
# Module-level helpers
# ===================================================================


def snapshot_path(cache_dir: Path) -> Path:
    return cache_dir / SNAPSHOT_FILENAME


def save_graphs(cache_dir: Path, asset_graph: AssetGraph, bundle_graph: BundleGraph) -> Path:
    """Persist both graphs into *cache_dir* and return the snapshot path."""
    cache_dir.mkdir(parents=True, exist_ok=True)
    path = snapshot_path(cache_dir)
    with SnapshotStore(path) as store:
        store.save_asset_graph(asset_graph)
        store.save_bundle_graph(bundle_graph)
    return path


def load_graphs(cache_dir: Path) -> LoadedGraphs:
    """Load both graphs from *cache_dir*.

    Raises:
        SnapshotError: The cache directory, the snapshot file or one of the
            graphs is missing, or the file is not a readable snapshot.
    """
    if not cache_dir.is_dir():
        raise SnapshotError(f"Can't find cache dir {cache_dir}")
    path = snapshot_path(cache_dir)
    if not path.exists():
        raise SnapshotError(f"No graph snapshot found at {path}")
    try:
        with SnapshotStore(path, read_only=True) as store:
            for name in (ASSET_GRAPH, BUNDLE_GRAPH):
                if not store.has_graph(name):
                    raise SnapshotError(f"{name.capitalize()} Graph could not be found")
            return LoadedGraphs(
                asset_graph=store.load_asset_graph(),
                bundle_graph=store.load_bundle_graph(),
            )
    except sqlite3.DatabaseError as exc:
        raise SnapshotError(f"Unreadable graph snapshot {path}: {exc}") from exc


# ===================================================================
# Node codec
# ===================================================================


def _encode_symbols(symbols: Optional[Dict[str, Symbol]]) -> Optional[Dict[str, Any]]:
    if symbols is None:
        return None
    out = {}
    for name, symbol in symbols.items():
        loc = None
        if symbol.loc is not None:
            loc = {
                "file_path": symbol.loc.file_path,
                "start_line": symbol.loc.start_line,
                "end_line": symbol.loc.end_line,
            }
        out[name] = {"local": symbol.local, "loc": loc}
    return out


def _decode_symbols(payload: Optional[Dict[str, Any]]) -> Optional[Dict[str, Symbol]]:
    if payload is None:
        return None
    return {
        name: Symbol(
            local=item["local"],
            loc=SourceLocation(**item["loc"]) if item.get("loc") else None,
        )
        for name, item in payload.items()
    }


def encode_node(node: Node) -> Any:
    """JSON-ready payload of *node* (the content key and tag are stored apart)."""
    if isinstance(node, AssetNode):
        a = node.value
        return {
            "id": a.id,
            "file_path": a.file_path,
            "type": a.type,
            "meta": a.meta,
            "symbols": _encode_symbols(a.symbols),
            "bundle_behavior": a.bundle_behavior,
        }
    if isinstance(node, DependencyNode):
        d = node.value
        return {
            "id": d.id,
            "specifier": d.specifier,
            "source_path": d.source_path,
            "source_asset_id": d.source_asset_id,
            "priority": d.priority.name,
            "symbols": _encode_symbols(d.symbols),
            "is_optional": d.is_optional,
            "excluded": node.excluded,
        }
    if isinstance(node, BundleNode):
        b = node.value
        return {
            "id": b.id,
            "type": b.type,
            "main_entry_id": b.main_entry_id,
            "entry_asset_ids": list(b.entry_asset_ids),
            "bundle_behavior": b.bundle_behavior,
            "needs_stable_name": b.needs_stable_name,
        }
    if isinstance(node, AssetGroupNode):
        return {"file_path": node.value.file_path, "pipeline": node.value.pipeline}
    if isinstance(node, BundleGroupNode):
        return {"target": node.value.target, "entry_asset_id": node.value.entry_asset_id}
    if isinstance(node, EntrySpecifierNode):
        return node.value
    if isinstance(node, EntryFileNode):
        return {"file_path": node.value.file_path, "package_path": node.value.package_path}
    if isinstance(node, RootNode):
        return None
    unknown_node(node)


def decode_node(node_type: str, content_key: str, payload: Any) -> Node:
    """Rebuild a node from its tag, content key and JSON payload."""
    if node_type == AssetNode.type:
        return AssetNode(
            id=content_key,
            value=Asset(
                id=payload["id"],
                file_path=payload["file_path"],
                type=payload.get("type", "js"),
                meta=payload.get("meta") or {},
                symbols=_decode_symbols(payload.get("symbols")),
                bundle_behavior=payload.get("bundle_behavior"),
            ),
        )
    if node_type == DependencyNode.type:
        return DependencyNode(
            id=content_key,
            value=Dependency(
                id=payload["id"],
                specifier=payload["specifier"],
                source_path=payload.get("source_path"),
                source_asset_id=payload.get("source_asset_id"),
                priority=Priority[payload.get("priority", "sync")],
                symbols=_decode_symbols(payload.get("symbols")),
                is_optional=payload.get("is_optional", False),
            ),
            excluded=payload.get("excluded", False),
        )
    if node_type == BundleNode.type:
        return BundleNode(
            id=content_key,
            value=Bundle(
                id=payload["id"],
                type=payload.get("type", "js"),
                main_entry_id=payload.get("main_entry_id"),
                entry_asset_ids=list(payload.get("entry_asset_ids") or []),
                bundle_behavior=payload.get("bundle_behavior"),
                needs_stable_name=payload.get("needs_stable_name", False),
            ),
        )
    if node_type == AssetGroupNode.type:
        return AssetGroupNode(id=content_key, value=AssetGroup(**payload))
    if node_type == BundleGroupNode.type:
        return BundleGroupNode(id=content_key, value=BundleGroup(**payload))
    if node_type == EntrySpecifierNode.type:
        return EntrySpecifierNode(id=content_key, value=payload)
    if node_type == EntryFileNode.type:
        return EntryFileNode(id=content_key, value=EntryFile(**payload))
    if node_type == RootNode.type:
        return RootNode(id=content_key)
    raise SnapshotError(f"Unknown node type '{node_type}' in snapshot")
