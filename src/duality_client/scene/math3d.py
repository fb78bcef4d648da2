"""Matrix helpers for the description format's row-vector convention.

Matrices arrive as 16 numbers in row-major order and are applied to row
vectors: a point ``p`` maps to ``[p, 1] @ M``, so the translation lives in
elements 12..14.
"""

from __future__ import annotations

from collections.abc import Sequence
from numbers import Real
from typing import Any

import numpy as np

from duality_client.errors import SceneFormatError

IDENTITY = np.identity(4, dtype=np.float32)


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _as_array(node: Any, length: int, what: str, path: str) -> np.ndarray:
    if not isinstance(node, Sequence) or isinstance(node, (str, bytes, bytearray)):
        raise SceneFormatError(f"{what} must be an array of {length} numbers", path)
    if len(node) != length:
        raise SceneFormatError(f"{what} must have {length} elements, got {len(node)}", path)
    for i, value in enumerate(node):
        if not _is_number(value):
            raise SceneFormatError(f"{what} element must be a number, got {value!r}", f"{path}[{i}]")
    return np.asarray(node, dtype=np.float32)


def vector_from_sequence(node: Any, length: int, path: str = "") -> np.ndarray:
    return _as_array(node, length, f"{length}D vector", path)


def matrix_from_sequence(node: Any, path: str = "") -> np.ndarray:
    return _as_array(node, 16, "matrix", path).reshape(4, 4)


def color_from_sequence(node: Any, path: str = "") -> np.ndarray:
    return _as_array(node, 4, "color", path)


def transform_points(points: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Apply a 4x4 row-vector matrix to an ``(n, 3)`` array of points."""
    pts = np.asarray(points, dtype=np.float32).reshape(-1, 3)
    homo = np.concatenate([pts, np.ones((pts.shape[0], 1), dtype=np.float32)], axis=1)
    out = homo @ np.asarray(matrix, dtype=np.float32)
    w = out[:, 3:4]
    w = np.where(w == 0.0, 1.0, w)
    return (out[:, :3] / w).astype(np.float32)


def transform_directions(directions: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Apply the linear part of *matrix* to ``(n, 3)`` directions and renormalize."""
    dirs = np.asarray(directions, dtype=np.float32).reshape(-1, 3)
    out = dirs @ np.asarray(matrix, dtype=np.float32)[:3, :3]
    norms = np.linalg.norm(out, axis=1, keepdims=True)
    norms = np.where(norms == 0.0, 1.0, norms)
    return (out / norms).astype(np.float32)


def eye_position(mvp: np.ndarray) -> np.ndarray:
    """Viewer position in the object space of *mvp*."""
    matrix = np.asarray(mvp, dtype=np.float64).reshape(4, 4)
    eye = np.array([0.0, 0.0, 0.0, 1.0]) @ np.linalg.inv(matrix)
    if eye[3] != 0.0:
        return eye[:3] / eye[3]
    return eye[:3]


__all__ = [
    "IDENTITY",
    "color_from_sequence",
    "eye_position",
    "matrix_from_sequence",
    "transform_directions",
    "transform_points",
    "vector_from_sequence",
]
