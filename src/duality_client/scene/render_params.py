"""Initial 2D/3D view parameters carried by a scene description."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import numpy as np


class CoordinateAxis(str, Enum):
    X = "x"
    Y = "y"
    Z = "z"

    def next(self) -> "CoordinateAxis":
        order = (CoordinateAxis.X, CoordinateAxis.Y, CoordinateAxis.Z)
        return order[(order.index(self) + 1) % len(order)]


@dataclass(frozen=True)
class RenderParameters3D:
    translation: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0, -3.0], dtype=np.float32))
    rotation: np.ndarray = field(default_factory=lambda: np.identity(4, dtype=np.float32))


@dataclass(frozen=True)
class RenderParameters2D:
    translation: np.ndarray = field(default_factory=lambda: np.zeros(2, dtype=np.float32))
    rotation: float = 0.0
    zoom: float = 1.0
    axis: CoordinateAxis = CoordinateAxis.Z
    slice: float = 0.0


__all__ = ["CoordinateAxis", "RenderParameters2D", "RenderParameters3D"]
