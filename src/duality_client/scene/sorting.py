"""View-dependent back-to-front ordering of transparent primitives."""

from __future__ import annotations

import numpy as np

from .math3d import eye_position


def primitive_centroids(positions: np.ndarray, indices: np.ndarray, arity: int) -> np.ndarray:
    """Mean vertex position of each primitive in *indices*."""
    if arity < 1:
        raise ValueError(f"primitive arity must be >= 1, got {arity}")
    idx = np.asarray(indices, dtype=np.int64).reshape(-1, arity)
    if idx.shape[0] == 0:
        return np.zeros((0, 3), dtype=np.float32)
    pts = np.asarray(positions, dtype=np.float32).reshape(-1, 3)
    return pts[idx].mean(axis=1).astype(np.float32)


def sort_back_to_front(centroids: np.ndarray, mvp: np.ndarray) -> np.ndarray:
    """Primitive permutation ordered farthest-first from the viewer.

    The viewer sits at the origin of clip space; its object-space position is
    recovered through the inverse of *mvp*. Squared distances suffice because
    only the order matters, and the stable sort keeps ties in load order.
    """
    points = np.asarray(centroids, dtype=np.float64).reshape(-1, 3)
    if points.shape[0] == 0:
        return np.zeros(0, dtype=np.int64)
    eye = eye_position(mvp)
    diff = points - eye
    sq_dist = np.einsum("ij,ij->i", diff, diff)
    return np.argsort(-sq_dist, kind="stable")


def permute_indices(indices: np.ndarray, permutation: np.ndarray, arity: int) -> np.ndarray:
    """Reorder an index buffer primitive-wise, keeping each primitive's vertices together."""
    idx = np.asarray(indices, dtype=np.uint32).reshape(-1, arity)
    perm = np.asarray(permutation, dtype=np.int64)
    if perm.shape[0] != idx.shape[0]:
        raise ValueError(f"permutation covers {perm.shape[0]} primitives, index buffer has {idx.shape[0]}")
    return idx[perm].reshape(-1)


__all__ = ["permute_indices", "primitive_centroids", "sort_back_to_front"]
