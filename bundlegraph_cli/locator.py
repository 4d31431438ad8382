"""Resolve human-supplied locators to canonical asset and bundle ids."""

from __future__ import annotations

import logging
import re
from typing import Optional, Pattern

from .config import CANONICAL_ID_LENGTH
from .errors import MalformedInputError, NotFoundError
from .graph import AssetGraph, BundleGraph
from .models import AssetNode, project_relative

logger = logging.getLogger(__name__)


def compile_locator(pattern: str) -> Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise MalformedInputError(f"Invalid regular expression '{pattern}': {exc}") from exc


class LocatorResolver:
    """Turns ids, public ids and path patterns into canonical ids.

    Resolution is first-match-wins. Path searches follow the graphs'
    insertion order, which is not sorted, so a broad pattern may match any
    of several assets.
    """

    def __init__(self, asset_graph: AssetGraph, bundle_graph: BundleGraph):
        self.asset_graph = asset_graph
        self.bundle_graph = bundle_graph

    def resolve_asset(self, locator: str) -> Optional[str]:
        """Canonical asset id for *locator*, or ``None``.

        Precedence: a canonical-width id is taken verbatim, then an exact
        public id, then the first asset whose path matches *locator* as a
        regular expression.
        """
        if len(locator) == CANONICAL_ID_LENGTH:
            logger.debug("Locator %r taken as canonical id", locator)
            return locator

        for asset_id, public_id in self.bundle_graph.public_id_by_asset_id.items():
            if public_id == locator:
                logger.debug("Locator %r matched public id of %s", locator, asset_id)
                return asset_id

        if locator:
            node = self.find_asset_node(locator)
            if node is not None:
                logger.debug("Locator %r matched path %s", locator, node.value.file_path)
                return node.id
        return None

    def require_asset(self, locator: str) -> str:
        asset_id = self.resolve_asset(locator)
        if asset_id is None:
            raise NotFoundError("Asset not found")
        return asset_id

    def find_asset_node(self, pattern: str) -> Optional[AssetNode]:
        """First asset node of the asset graph whose path matches *pattern*."""
        regex = compile_locator(pattern)
        for node in self.asset_graph.nodes.values():
            if isinstance(node, AssetNode) and regex.search(project_relative(node.value.file_path)):
                return node
        return None

    def resolve_bundle(self, locator: str) -> Optional[str]:
        """Id of the first bundle whose output path matches *locator* or whose id equals it."""
        regex = compile_locator(locator)
        for bundle in self.bundle_graph.get_bundles():
            file_path = self.bundle_graph.bundle_info.get(bundle.id)
            if file_path is not None and regex.search(project_relative(file_path)):
                return bundle.id
            if bundle.id == locator:
                return bundle.id
        return None

    def require_bundle(self, locator: str) -> str:
        bundle_id = self.resolve_bundle(locator)
        if bundle_id is None:
            raise NotFoundError("Bundle not found")
        return bundle_id
