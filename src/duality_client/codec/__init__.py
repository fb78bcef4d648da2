"""Decoders for the binary dataset payloads served by the scene server."""

from .g3d import AttributeSemantic, Geometry, PrimitiveType, read_geometry, write_geometry
from .i3m import Volume, read_volume, write_volume
from .tf import read_transfer_function, write_transfer_function

__all__ = [
    "AttributeSemantic",
    "Geometry",
    "PrimitiveType",
    "Volume",
    "read_geometry",
    "read_transfer_function",
    "read_volume",
    "write_geometry",
    "write_transfer_function",
    "write_volume",
]
