"""The typed scene graph produced by the parser."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Optional

import numpy as np

from duality_client.data.cache import DataCache
from duality_client.errors import UnknownNodeError

from .datasets import BoundingBox
from .nodes import NodeDispatcher, SceneNode
from .variables import NodeVariables, Variable, VariableRegistry, VariableValue
from .views import View

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SceneMetadata:
    name: str
    description: str = ""


class Scene:
    """Owns the ordered nodes of one scene and the registry of their variables."""

    def __init__(
        self,
        metadata: SceneMetadata,
        nodes: Sequence[SceneNode],
        variables: VariableRegistry,
        web_view_url: Optional[str] = None,
    ) -> None:
        names = [node.name for node in nodes]
        if len(set(names)) != len(names):
            raise ValueError(f"scene {metadata.name!r} has duplicate node names")
        dangling = sorted(set(variables.node_names()) - set(names))
        if dangling:
            raise ValueError(f"variables reference unknown nodes: {', '.join(dangling)}")
        self.metadata = metadata
        self.web_view_url = web_view_url
        self.variables = variables
        self._nodes: tuple[SceneNode, ...] = tuple(nodes)
        self._by_name = {node.name: node for node in self._nodes}
        self._cache: Optional[DataCache] = None

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def nodes(self) -> tuple[SceneNode, ...]:
        return self._nodes

    def __iter__(self) -> Iterator[SceneNode]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def node(self, name: str) -> SceneNode:
        try:
            return self._by_name[name]
        except KeyError:
            raise UnknownNodeError(name) from None

    def dispatch(self, dispatcher: NodeDispatcher, view: View) -> None:
        for node in self._nodes:
            if node.is_visible_in(view):
                node.accept(dispatcher)

    # ------------------------------------------------------------------
    def update_datasets(self, cache: DataCache) -> None:
        """Request every node's payload (and transfer function) from *cache*."""
        self._cache = cache
        for node in self._nodes:
            self._fetch_node(node, cache)

    def detach(self) -> None:
        for node in self._nodes:
            node.dataset.detach()
            if node.transfer_function is not None:
                node.transfer_function.detach()
        self._cache = None

    def _fetch_node(self, node: SceneNode, cache: DataCache) -> None:
        node.dataset.fetch(cache)
        if node.transfer_function is not None:
            node.transfer_function.fetch(cache)

    # ------------------------------------------------------------------
    def variable_map(self, view: View) -> dict[str, NodeVariables]:
        return self.variables.values_for_view(view)

    def set_variable(self, node_name: str, variable_name: str, value: VariableValue) -> Variable:
        """Update a variable and, once datasets are attached, refetch the node's payloads."""
        node = self.node(node_name)
        updated = self.variables.set_variable(node_name, variable_name, value)
        if self._cache is not None:
            self._fetch_node(node, self._cache)
        return updated

    def bounding_box(self, view: View) -> Optional[BoundingBox]:
        lows: list[np.ndarray] = []
        highs: list[np.ndarray] = []
        for node in self._nodes:
            if not node.is_visible_in(view):
                continue
            box = node.dataset.bounding_box()
            if box is None:
                continue
            lows.append(box[0])
            highs.append(box[1])
        if not lows:
            return None
        return np.min(lows, axis=0), np.max(highs, axis=0)

    def __repr__(self) -> str:
        return f"Scene({self.metadata.name!r}, nodes={[n.name for n in self._nodes]})"


__all__ = ["Scene", "SceneMetadata"]
