"""Trace mangled symbol names back to the asset that defines them."""

from __future__ import annotations

import logging
import re
from typing import List, Optional

from .errors import MalformedInputError, NotFoundError
from .graph import AssetGraph, BundleGraph
from .locator import LocatorResolver
from .models import Asset, AssetNode, SymbolResolution, project_relative

logger = logging.getLogger(__name__)

# $<asset id>$<binding>$<rest>
MANGLED_SYMBOL_RE = re.compile(r"^\$([^$]+)\$([^$]+)\$(.*)$")

EXPORT_BINDING = "export"


class SymbolResolver:
    """Finds the asset behind a scope-hoisted local name."""

    def __init__(self, asset_graph: AssetGraph, bundle_graph: BundleGraph, locator: LocatorResolver):
        self.asset_graph = asset_graph
        self.bundle_graph = bundle_graph
        self.locator = locator

    def resolve(self, local: str) -> SymbolResolution:
        match = MANGLED_SYMBOL_RE.match(local)
        if match is None:
            raise MalformedInputError(f"symbol {local} could not be resolved")
        asset_id, binding, rest = match.groups()

        asset = self._find_by_build_id(asset_id) or self._find_by_local(local)
        if asset is None:
            raise NotFoundError(f"An asset for {asset_id} could not be found")

        lines = [self.describe_asset(asset)]
        if binding == EXPORT_BINDING:
            lines.extend(self._export_origins(asset, local))
        elif rest:
            lines.append(f"possibly defined as {rest}")
        return SymbolResolution(asset=asset, lines=lines)

    def _find_by_build_id(self, asset_id: str) -> Optional[Asset]:
        # The id used while transforming and packaging, not the final asset id
        for node in self.asset_graph.nodes.values():
            if isinstance(node, AssetNode) and node.value.meta.get("id") == asset_id:
                return node.value
        return None

    def _find_by_local(self, local: str) -> Optional[Asset]:
        # Best effort: the first asset listing the whole name as a local
        for node in self.asset_graph.nodes.values():
            if not isinstance(node, AssetNode) or not node.value.symbols:
                continue
            for symbol in node.value.symbols.values():
                if symbol.local == local:
                    logger.debug("Symbol %s found by local name in %s", local, node.value.file_path)
                    return node.value
        return None

    def public_id(self, asset: Asset) -> Optional[str]:
        """Public id of *asset*, or ``None`` if it was pruned from the bundle graph."""
        try:
            return self.bundle_graph.get_asset_public_id(self.bundle_graph.get_asset_by_id(asset.id))
        except NotFoundError:
            return None

    def describe_asset(self, asset: Asset) -> str:
        path = project_relative(asset.file_path)
        public_id = self.public_id(asset)
        return path if public_id is None else f"{public_id} {path}"

    def _export_origins(self, asset: Asset, local: str) -> List[str]:
        lines: List[str] = []
        for name, symbol in (asset.symbols or {}).items():
            if symbol.local != local:
                continue
            if symbol.loc is None:
                lines.append(f"imported as {name}")
                continue
            loc_path = project_relative(symbol.loc.file_path)
            loc_asset = self.locator.find_asset_node(re.escape(loc_path))
            if loc_asset is None:
                lines.append(f"imported as {name} from {loc_path}")
                continue
            if self.public_id(loc_asset.value) is None:
                lines.append(f"imported as {name} from {project_relative(loc_asset.value.file_path)}")
            else:
                lines.append(self.describe_asset(loc_asset.value))
        return lines
