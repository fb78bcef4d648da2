"""Renderable datasets and the lazy payload plumbing they share.

Each dataset owns its provider. ``fetch(cache)`` asks the cache for the
provider's current identity and subscribes to the result; the decoded
payload is installed when the owner thread dispatches cache events. A failed
fetch or decode leaves the dataset ``UNAVAILABLE`` with the error kept for
inspection; the rest of the scene is unaffected.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable, Sequence
from enum import Enum
from typing import Optional

import numpy as np

from duality_client.codec.g3d import AttributeSemantic, Geometry, read_geometry
from duality_client.codec.i3m import Volume, read_volume
from duality_client.codec.tf import read_transfer_function
from duality_client.data.cache import CacheEvent, CacheHandle, DataCache
from duality_client.data.providers import DataProvider, ParametrizedProvider, ProviderIdentity

from .math3d import transform_directions, transform_points
from .sorting import permute_indices, primitive_centroids, sort_back_to_front

logger = logging.getLogger(__name__)

BoundingBox = tuple[np.ndarray, np.ndarray]


class DatasetKind(str, Enum):
    GEOMETRY = "geometry"
    VOLUME = "volume"


class PayloadState(str, Enum):
    EMPTY = "empty"
    PENDING = "pending"
    LOADED = "loaded"
    UNAVAILABLE = "unavailable"


class _PayloadSlot:
    """Provider-backed payload with cache subscription and state tracking."""

    def __init__(self, provider: DataProvider) -> None:
        self.provider = provider
        self.state = PayloadState.EMPTY
        self.error: Optional[BaseException] = None
        self._identity: Optional[ProviderIdentity] = None
        self._loaded_identity: Optional[ProviderIdentity] = None
        self._cache: Optional[DataCache] = None
        self._listeners: list[Callable[["_PayloadSlot"], None]] = []

    @property
    def identity(self) -> Optional[ProviderIdentity]:
        """Identity of the most recent fetch request."""
        return self._identity

    def current_identity(self) -> ProviderIdentity:
        return self.provider.identity()

    @property
    def is_loaded(self) -> bool:
        return self.state is PayloadState.LOADED

    def add_listener(self, callback: Callable[["_PayloadSlot"], None]) -> None:
        if callback not in self._listeners:
            self._listeners.append(callback)

    def remove_listener(self, callback: Callable[["_PayloadSlot"], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def fetch(self, cache: DataCache) -> CacheHandle:
        identity = self.provider.identity()
        previous = self._identity
        if previous is not None and self._cache is not None:
            self._cache.unsubscribe(previous, self._on_cache_event)
            if previous != identity and isinstance(self.provider, ParametrizedProvider):
                # other nodes may share the old snapshot's entry
                self._cache.discard(previous)
        self._cache = cache
        self._identity = identity
        fetch = functools.partial(self.provider.fetch, identity)
        if identity == self._loaded_identity and self.state is PayloadState.LOADED:
            return cache.get_or_fetch(identity, fetch)
        self._set_state(PayloadState.PENDING)
        # failed entries are dropped on completion; subscribe before requesting
        cache.subscribe(identity, self._on_cache_event)
        return cache.get_or_fetch(identity, fetch)

    def detach(self) -> None:
        if self._cache is not None and self._identity is not None:
            self._cache.unsubscribe(self._identity, self._on_cache_event)
        self._cache = None

    def load(self, payload: bytes) -> None:
        """Decode *payload* synchronously; decoding errors mark the slot unavailable."""
        try:
            self._decode(payload)
        except ValueError as exc:
            logger.warning("%r: payload could not be decoded: %s", self, exc)
            self.error = exc
            self._set_state(PayloadState.UNAVAILABLE)
            return
        self.error = None
        self._loaded_identity = self._identity
        self._set_state(PayloadState.LOADED)

    def _on_cache_event(self, event: CacheEvent) -> None:
        if event.identity != self._identity:
            return
        if event.ok:
            assert event.payload is not None
            self.load(event.payload)
        elif event.invalidated:
            if self.state is PayloadState.PENDING:
                self._set_state(PayloadState.EMPTY)
        else:
            self.error = event.error
            self._set_state(PayloadState.UNAVAILABLE)

    def _set_state(self, state: PayloadState) -> None:
        self.state = state
        for callback in list(self._listeners):
            try:
                callback(self)
            except Exception:
                logger.warning("dataset listener failed", exc_info=True)

    def _decode(self, payload: bytes) -> None:
        raise NotImplementedError


class GeometryDataset(_PayloadSlot):
    kind = DatasetKind.GEOMETRY

    def __init__(
        self,
        provider: DataProvider,
        transforms: Sequence[np.ndarray] = (),
        color: Optional[np.ndarray] = None,
    ) -> None:
        super().__init__(provider)
        self.transforms = tuple(np.asarray(t, dtype=np.float32).reshape(4, 4) for t in transforms)
        self.color = None if color is None else np.asarray(color, dtype=np.float32).reshape(4)
        self.geometry: Optional[Geometry] = None
        self._indices_opaque = np.zeros(0, dtype=np.uint32)
        self._indices_transparent = np.zeros(0, dtype=np.uint32)
        self._centroids = np.zeros((0, 3), dtype=np.float32)

    def _decode(self, payload: bytes) -> None:
        geometry = read_geometry(payload)
        for matrix in self.transforms:
            geometry = _apply_transform(geometry, matrix)
        if self.color is not None:
            geometry = _apply_color(geometry, self.color)
        opaque, transparent = _split_by_opacity(geometry)
        arity = geometry.primitive_type.arity
        self.geometry = geometry
        self._indices_opaque = opaque
        self._indices_transparent = transparent
        self._centroids = primitive_centroids(geometry.positions, transparent, arity)

    @property
    def arity(self) -> int:
        return 1 if self.geometry is None else self.geometry.primitive_type.arity

    def indices_opaque(self) -> np.ndarray:
        return self._indices_opaque

    def indices_transparent(self) -> np.ndarray:
        return self._indices_transparent

    def centroids(self) -> np.ndarray:
        return self._centroids

    def indices_transparent_sorted(self, mvp: np.ndarray) -> np.ndarray:
        if self._indices_transparent.size == 0:
            return self._indices_transparent
        permutation = sort_back_to_front(self._centroids, mvp)
        return permute_indices(self._indices_transparent, permutation, self.arity)

    def bounding_box(self) -> Optional[BoundingBox]:
        if self.geometry is None or self.geometry.number_vertices == 0:
            return None
        positions = self.geometry.positions
        return positions.min(axis=0), positions.max(axis=0)

    def __repr__(self) -> str:
        return f"GeometryDataset({self.provider!r}, state={self.state.value})"


class VolumeDataset(_PayloadSlot):
    kind = DatasetKind.VOLUME

    def __init__(self, provider: DataProvider) -> None:
        super().__init__(provider)
        self.volume: Optional[Volume] = None

    def _decode(self, payload: bytes) -> None:
        self.volume = read_volume(payload)

    def bounding_box(self) -> Optional[BoundingBox]:
        if self.volume is None:
            return None
        half = self.volume.extent / 2.0
        return -half, half

    def __repr__(self) -> str:
        return f"VolumeDataset({self.provider!r}, state={self.state.value})"


class TransferFunction(_PayloadSlot):
    """Optional RGBA lookup table of a volume; without a provider it is the identity."""

    def __init__(self, provider: Optional[DataProvider] = None) -> None:
        super().__init__(provider)  # type: ignore[arg-type]
        self.table: Optional[np.ndarray] = None

    @property
    def is_identity(self) -> bool:
        return self.provider is None

    def fetch(self, cache: DataCache) -> Optional[CacheHandle]:  # type: ignore[override]
        if self.provider is None:
            return None
        return super().fetch(cache)

    def _decode(self, payload: bytes) -> None:
        self.table = read_transfer_function(payload)

    def apply(self, intensities: np.ndarray) -> np.ndarray:
        """Map normalized intensities in [0, 1] to RGBA8."""
        values = np.clip(np.asarray(intensities, dtype=np.float32), 0.0, 1.0)
        if self.table is None:
            grey = np.round(values * 255.0).astype(np.uint8)
            return np.stack([grey, grey, grey, grey], axis=-1)
        positions = np.round(values * (self.table.shape[0] - 1)).astype(np.int64)
        return self.table[positions]

    def __repr__(self) -> str:
        return f"TransferFunction({self.provider!r}, state={self.state.value})"


Dataset = GeometryDataset | VolumeDataset


def _apply_transform(geometry: Geometry, matrix: np.ndarray) -> Geometry:
    changes = {"position": transform_points(geometry.positions, matrix)}
    for semantic in (AttributeSemantic.NORMAL, AttributeSemantic.TANGENT):
        values = geometry.attribute(semantic)
        if values is not None:
            changes[semantic.name.lower()] = transform_directions(values, matrix)
    return geometry.with_attributes(**changes)


def _apply_color(geometry: Geometry, color: np.ndarray) -> Geometry:
    n = geometry.number_vertices
    changes = {"color": np.tile(color, (n, 1)).astype(np.float32)}
    if geometry.attribute(AttributeSemantic.ALPHA) is not None:
        changes["alpha"] = np.full((n, 1), color[3], dtype=np.float32)
    return geometry.with_attributes(**changes)


def _split_by_opacity(geometry: Geometry) -> tuple[np.ndarray, np.ndarray]:
    arity = geometry.primitive_type.arity
    indices = np.asarray(geometry.indices, dtype=np.uint32)
    alphas = geometry.alphas()
    if geometry.is_opaque or alphas is None or indices.size == 0:
        return indices, np.zeros(0, dtype=np.uint32)
    per_primitive = alphas[indices.astype(np.int64)].reshape(-1, arity)
    transparent = (per_primitive < 1.0).any(axis=1)
    primitives = indices.reshape(-1, arity)
    return primitives[~transparent].reshape(-1), primitives[transparent].reshape(-1)


__all__ = [
    "BoundingBox",
    "Dataset",
    "DatasetKind",
    "GeometryDataset",
    "PayloadState",
    "TransferFunction",
    "VolumeDataset",
]
