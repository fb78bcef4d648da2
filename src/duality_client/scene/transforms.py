"""Named and inline 4x4 transforms of one scene description."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

import numpy as np

from duality_client.errors import SceneFormatError, UnresolvedTransformError

from .math3d import matrix_from_sequence


class TransformTable:
    """Resolve transform references during a single parse pass.

    The table is discarded once the scene is built; resolved matrices are
    baked into datasets at load time.
    """

    def __init__(self) -> None:
        self._named: dict[str, np.ndarray] = {}

    @classmethod
    def from_description(cls, root: Mapping[str, Any], path: str = "transforms") -> "TransformTable":
        table = cls()
        node = root.get("transforms")
        if node is None:
            return table
        if not isinstance(node, Mapping):
            raise SceneFormatError("transforms must be an object of name -> 16-element array", path)
        for name, value in node.items():
            table.define(str(name), matrix_from_sequence(value, f"{path}.{name}"))
        return table

    def define(self, name: str, matrix: np.ndarray) -> None:
        # later declarations overwrite earlier ones
        self._named[name] = np.array(matrix, dtype=np.float32).reshape(4, 4)

    def resolve(self, ref: Any, path: str = "") -> np.ndarray:
        if isinstance(ref, str):
            matrix = self._named.get(ref)
            if matrix is None:
                raise UnresolvedTransformError(ref, path)
            return matrix.copy()
        if isinstance(ref, Sequence) and not isinstance(ref, (bytes, bytearray)):
            return matrix_from_sequence(ref, path)
        raise SceneFormatError(f"transform must be a name or a 16-element array, got {type(ref).__name__}", path)

    def names(self) -> tuple[str, ...]:
        return tuple(self._named)

    def __contains__(self, name: object) -> bool:
        return name in self._named

    def __len__(self) -> int:
        return len(self._named)
