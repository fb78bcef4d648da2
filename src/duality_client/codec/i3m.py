"""I3M volume payloads: a voxel grid of packed RGBA8 values.

Layout (little-endian)::

    magic    4s   b"I3M\0"
    version  u32  1
    size     u32 x 3   (x, y, z)
    scale    f32 x 3
    voxels   u32 x size.x * size.y * size.z, x fastest
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

import numpy as np

from duality_client.errors import PayloadFormatError

MAGIC = b"I3M\0"
VERSION = 1
_HEADER = struct.Struct("<4sI3I3f")


@dataclass(frozen=True)
class Volume:
    size: tuple[int, int, int]
    scale: tuple[float, float, float]
    voxels: np.ndarray  # (z, y, x, 4) uint8

    @property
    def extent(self) -> np.ndarray:
        return np.asarray(self.size, dtype=np.float32) * np.asarray(self.scale, dtype=np.float32)


def read_volume(data: bytes) -> Volume:
    if len(data) < _HEADER.size:
        raise PayloadFormatError(f"volume payload too short ({len(data)} bytes)")
    magic, version, sx, sy, sz, cx, cy, cz = _HEADER.unpack_from(data, 0)
    if magic != MAGIC:
        raise PayloadFormatError(f"volume payload has bad magic {magic!r}")
    if version != VERSION:
        raise PayloadFormatError(f"unsupported volume version {version}")
    count = sx * sy * sz
    expected = _HEADER.size + 4 * count
    if len(data) != expected:
        raise PayloadFormatError(f"volume payload is {len(data)} bytes, expected {expected}")
    voxels = np.frombuffer(data, dtype=np.uint8, count=4 * count, offset=_HEADER.size)
    return Volume(
        size=(sx, sy, sz),
        scale=(float(cx), float(cy), float(cz)),
        voxels=voxels.reshape(sz, sy, sx, 4).copy(),
    )


def write_volume(volume: Volume) -> bytes:
    sx, sy, sz = volume.size
    voxels = np.asarray(volume.voxels, dtype=np.uint8).reshape(sz, sy, sx, 4)
    return _HEADER.pack(MAGIC, VERSION, sx, sy, sz, *volume.scale) + voxels.tobytes()


__all__ = ["Volume", "read_volume", "write_volume"]
