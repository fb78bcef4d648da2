"""1D transfer function lookup tables: ``u32 n`` followed by ``n`` RGBA8 entries."""

from __future__ import annotations

import struct

import numpy as np

from duality_client.errors import PayloadFormatError

_COUNT = struct.Struct("<I")


def read_transfer_function(data: bytes) -> np.ndarray:
    if len(data) < _COUNT.size:
        raise PayloadFormatError("transfer function payload too short")
    (count,) = _COUNT.unpack_from(data, 0)
    if count == 0:
        raise PayloadFormatError("transfer function has no entries")
    if len(data) != _COUNT.size + 4 * count:
        raise PayloadFormatError(f"transfer function payload size does not match {count} entries")
    table = np.frombuffer(data, dtype=np.uint8, count=4 * count, offset=_COUNT.size)
    return table.reshape(count, 4).copy()


def write_transfer_function(table: np.ndarray) -> bytes:
    entries = np.asarray(table, dtype=np.uint8).reshape(-1, 4)
    return _COUNT.pack(entries.shape[0]) + entries.tobytes()


__all__ = ["read_transfer_function", "write_transfer_function"]
