"""Typed scene graph, its parser and the per-frame transparency sort."""

from __future__ import annotations

from .datasets import DatasetKind, GeometryDataset, PayloadState, TransferFunction, VolumeDataset
from .loader import SceneLoader
from .nodes import NodeDispatcher, SceneNode
from .parser import SceneParser, parse_scene
from .render_params import CoordinateAxis, RenderParameters2D, RenderParameters3D
from .scene import Scene, SceneMetadata
from .transforms import TransformTable
from .variables import EnumVariable, FloatVariable, NodeVariables, VariableRegistry
from .views import View, Visibility

__all__ = [
    "CoordinateAxis",
    "DatasetKind",
    "EnumVariable",
    "FloatVariable",
    "GeometryDataset",
    "NodeDispatcher",
    "NodeVariables",
    "PayloadState",
    "RenderParameters2D",
    "RenderParameters3D",
    "Scene",
    "SceneLoader",
    "SceneMetadata",
    "SceneNode",
    "SceneParser",
    "TransferFunction",
    "TransformTable",
    "VariableRegistry",
    "View",
    "Visibility",
    "VolumeDataset",
    "parse_scene",
]
