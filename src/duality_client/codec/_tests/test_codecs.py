from __future__ import annotations

import struct

import numpy as np
import pytest

from duality_client.codec.g3d import (
    AttributeSemantic,
    Geometry,
    PrimitiveType,
    read_geometry,
    write_geometry,
)
from duality_client.codec.i3m import Volume, read_volume, write_volume
from duality_client.codec.tf import read_transfer_function, write_transfer_function
from duality_client.errors import PayloadFormatError


def _triangle(**attrs: np.ndarray) -> Geometry:
    attributes = {AttributeSemantic.POSITION: np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0]], dtype=np.float32)}
    for key, value in attrs.items():
        attributes[AttributeSemantic[key.upper()]] = value
    return Geometry(
        primitive_type=PrimitiveType.TRIANGLE,
        is_opaque=False,
        indices=np.array([0, 1, 2], dtype=np.uint32),
        attributes=attributes,
    )


def _header(magic=b"G3DS", version=1, opaque=0, prim=2, n_indices=3, n_vertices=3, n_attrs=1) -> bytes:
    return struct.pack("<4sIIIIII", magic, version, opaque, prim, n_indices, n_vertices, n_attrs)


def test_geometry_decode() -> None:
    color = np.array([[1, 0, 0, 0.5]] * 3, dtype=np.float32)
    geometry = read_geometry(write_geometry(_triangle(color=color)))
    assert geometry.primitive_type is PrimitiveType.TRIANGLE
    assert geometry.number_vertices == 3
    assert geometry.number_primitives == 1
    np.testing.assert_allclose(geometry.alphas(), [0.5, 0.5, 0.5])
    assert geometry.attribute(AttributeSemantic.NORMAL) is None


def test_alpha_attribute_takes_precedence_over_color() -> None:
    geometry = _triangle(
        color=np.ones((3, 4), dtype=np.float32),
        alpha=np.array([[0.2], [0.3], [0.4]], dtype=np.float32),
    )
    np.testing.assert_allclose(geometry.alphas(), [0.2, 0.3, 0.4])


def test_primitive_arity() -> None:
    assert [p.arity for p in PrimitiveType] == [1, 2, 3]


@pytest.mark.parametrize(
    "payload",
    [
        b"",
        _header(magic=b"XXXX"),
        _header(version=9),
        _header(prim=7),
        _header(n_indices=4),
        # header promises data that never arrives
        _header() + struct.pack("<I", 0),
        # no position attribute
        _header(n_attrs=1) + struct.pack("<I", 1) + struct.pack("<3I", 0, 1, 2) + b"\0" * 36,
        # unknown semantic
        _header(n_attrs=1) + struct.pack("<I", 42) + struct.pack("<3I", 0, 1, 2) + b"\0" * 36,
        # index out of range
        _header() + struct.pack("<I", 0) + struct.pack("<3I", 0, 1, 9) + b"\0" * 36,
        # trailing garbage
        _header() + struct.pack("<I", 0) + struct.pack("<3I", 0, 1, 2) + b"\0" * 40,
    ],
)
def test_malformed_geometry(payload: bytes) -> None:
    with pytest.raises(PayloadFormatError):
        read_geometry(payload)


def test_repeated_semantic_is_rejected() -> None:
    payload = _header(n_attrs=2) + struct.pack("<2I", 0, 0) + struct.pack("<3I", 0, 1, 2) + b"\0" * 72
    with pytest.raises(PayloadFormatError, match="repeats"):
        read_geometry(payload)


def test_volume_decode() -> None:
    voxels = np.arange(2 * 3 * 4 * 4, dtype=np.uint32).astype(np.uint8).reshape(4, 3, 2, 4)
    volume = read_volume(write_volume(Volume(size=(2, 3, 4), scale=(1.0, 0.5, 0.25), voxels=voxels)))
    assert volume.size == (2, 3, 4)
    assert volume.scale == (1.0, 0.5, 0.25)
    np.testing.assert_array_equal(volume.voxels, voxels)
    np.testing.assert_allclose(volume.extent, [2.0, 1.5, 1.0])


def test_malformed_volume() -> None:
    good = write_volume(Volume(size=(1, 1, 1), scale=(1.0, 1.0, 1.0), voxels=np.zeros((1, 1, 1, 4), np.uint8)))
    with pytest.raises(PayloadFormatError):
        read_volume(good[:-1])
    with pytest.raises(PayloadFormatError):
        read_volume(b"BAD!" + good[4:])
    with pytest.raises(PayloadFormatError):
        read_volume(good[:8])


def test_transfer_function_decode() -> None:
    table = np.array([[0, 0, 0, 0], [255, 128, 64, 32]], dtype=np.uint8)
    decoded = read_transfer_function(write_transfer_function(table))
    assert decoded.shape == (2, 4)
    np.testing.assert_array_equal(decoded, table)


@pytest.mark.parametrize("payload", [b"", struct.pack("<I", 0), struct.pack("<I", 2) + b"\0" * 4])
def test_malformed_transfer_function(payload: bytes) -> None:
    with pytest.raises(PayloadFormatError):
        read_transfer_function(payload)
