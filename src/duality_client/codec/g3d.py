"""G3D structure-of-arrays geometry payloads.

Layout (little-endian)::

    magic            4s   b"G3DS"
    version          u32  1
    is_opaque        u32  0 or 1
    primitive_type   u32  0 point, 1 line, 2 triangle
    number_indices   u32
    number_vertices  u32
    attribute_count  u32
    semantics        u32 x attribute_count
    indices          u32 x number_indices
    attributes       f32 x number_vertices x width, one block per semantic
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field, replace
from enum import IntEnum
from typing import Mapping, Optional

import numpy as np

from duality_client.errors import PayloadFormatError

MAGIC = b"G3DS"
VERSION = 1
_HEADER = struct.Struct("<4sIIIIII")


class PrimitiveType(IntEnum):
    POINT = 0
    LINE = 1
    TRIANGLE = 2

    @property
    def arity(self) -> int:
        return int(self) + 1


class AttributeSemantic(IntEnum):
    POSITION = 0
    NORMAL = 1
    TANGENT = 2
    COLOR = 3
    TEXCOORD = 4
    ALPHA = 5

    @property
    def width(self) -> int:
        return _WIDTHS[self]


_WIDTHS = {
    AttributeSemantic.POSITION: 3,
    AttributeSemantic.NORMAL: 3,
    AttributeSemantic.TANGENT: 3,
    AttributeSemantic.COLOR: 4,
    AttributeSemantic.TEXCOORD: 2,
    AttributeSemantic.ALPHA: 1,
}


@dataclass(frozen=True)
class Geometry:
    primitive_type: PrimitiveType
    is_opaque: bool
    indices: np.ndarray
    attributes: Mapping[AttributeSemantic, np.ndarray] = field(default_factory=dict)

    @property
    def number_vertices(self) -> int:
        positions = self.attributes.get(AttributeSemantic.POSITION)
        return 0 if positions is None else int(positions.shape[0])

    @property
    def number_primitives(self) -> int:
        return int(self.indices.size // self.primitive_type.arity)

    @property
    def positions(self) -> np.ndarray:
        return self.attributes[AttributeSemantic.POSITION]

    def attribute(self, semantic: AttributeSemantic) -> Optional[np.ndarray]:
        return self.attributes.get(semantic)

    def alphas(self) -> Optional[np.ndarray]:
        """Per-vertex alpha from the alpha attribute, else from the colour's fourth channel."""
        alpha = self.attributes.get(AttributeSemantic.ALPHA)
        if alpha is not None:
            return alpha.reshape(-1)
        color = self.attributes.get(AttributeSemantic.COLOR)
        if color is not None:
            return color[:, 3]
        return None

    def with_attributes(self, **changes: np.ndarray) -> "Geometry":
        attrs = dict(self.attributes)
        for key, value in changes.items():
            attrs[AttributeSemantic[key.upper()]] = value
        return replace(self, attributes=attrs)


def read_geometry(data: bytes) -> Geometry:
    buf = memoryview(data)
    if len(buf) < _HEADER.size:
        raise PayloadFormatError(f"geometry payload too short ({len(buf)} bytes)")
    magic, version, is_opaque, prim_raw, n_indices, n_vertices, n_attrs = _HEADER.unpack_from(buf, 0)
    if magic != MAGIC:
        raise PayloadFormatError(f"geometry payload has bad magic {magic!r}")
    if version != VERSION:
        raise PayloadFormatError(f"unsupported geometry version {version}")
    try:
        primitive_type = PrimitiveType(prim_raw)
    except ValueError as exc:
        raise PayloadFormatError(f"unknown primitive type {prim_raw}") from exc
    if n_indices % primitive_type.arity:
        raise PayloadFormatError(
            f"{n_indices} indices is not a multiple of {primitive_type.name.lower()} arity {primitive_type.arity}"
        )

    offset = _HEADER.size
    semantics_raw = _take(buf, offset, np.uint32, n_attrs, "attribute semantics")
    offset += 4 * n_attrs
    semantics: list[AttributeSemantic] = []
    for raw in semantics_raw:
        try:
            semantics.append(AttributeSemantic(int(raw)))
        except ValueError as exc:
            raise PayloadFormatError(f"unknown attribute semantic {int(raw)}") from exc
    if AttributeSemantic.POSITION not in semantics:
        raise PayloadFormatError("geometry payload has no position attribute")
    if len(set(semantics)) != len(semantics):
        raise PayloadFormatError("geometry payload repeats an attribute semantic")

    indices = _take(buf, offset, np.uint32, n_indices, "indices")
    offset += 4 * n_indices
    if indices.size and int(indices.max()) >= n_vertices:
        raise PayloadFormatError("geometry index out of range")

    attributes: dict[AttributeSemantic, np.ndarray] = {}
    for semantic in semantics:
        count = n_vertices * semantic.width
        values = _take(buf, offset, np.float32, count, semantic.name.lower())
        offset += 4 * count
        attributes[semantic] = values.reshape(n_vertices, semantic.width)
    if offset != len(buf):
        raise PayloadFormatError(f"geometry payload has {len(buf) - offset} trailing bytes")

    return Geometry(
        primitive_type=primitive_type,
        is_opaque=bool(is_opaque),
        indices=indices,
        attributes=attributes,
    )


def write_geometry(geometry: Geometry) -> bytes:
    semantics = list(geometry.attributes)
    n_vertices = geometry.number_vertices
    parts = [
        _HEADER.pack(
            MAGIC,
            VERSION,
            int(geometry.is_opaque),
            int(geometry.primitive_type),
            int(geometry.indices.size),
            n_vertices,
            len(semantics),
        ),
        np.asarray([int(s) for s in semantics], dtype="<u4").tobytes(),
        np.asarray(geometry.indices, dtype="<u4").tobytes(),
    ]
    for semantic in semantics:
        values = np.asarray(geometry.attributes[semantic], dtype="<f4").reshape(n_vertices, semantic.width)
        parts.append(values.tobytes())
    return b"".join(parts)


def _take(buf: memoryview, offset: int, dtype: type, count: int, what: str) -> np.ndarray:
    itemsize = np.dtype(dtype).itemsize
    end = offset + itemsize * count
    if end > len(buf):
        raise PayloadFormatError(f"geometry payload truncated while reading {what}")
    le = np.dtype(dtype).newbyteorder("<")
    return np.frombuffer(buf, dtype=le, count=count, offset=offset).astype(dtype)


__all__ = [
    "AttributeSemantic",
    "Geometry",
    "PrimitiveType",
    "read_geometry",
    "write_geometry",
]
