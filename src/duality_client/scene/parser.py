"""Strict parser from an untyped scene description tree to a :class:`Scene`.

The walk is metadata -> named transforms (one complete pre-pass) -> nodes
(visibility, provider, variables, transforms, dataset) -> initial view
parameters. Any failure raises :class:`SceneFormatError` naming the offending
field path, and no partial scene is returned.
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Mapping, Sequence
from numbers import Real
from typing import Any, Optional

import numpy as np

from duality_client.data.cache import DataCache
from duality_client.data.providers import DataProvider, DownloadProvider, ParametrizedProvider, ProviderKind
from duality_client.errors import SceneFormatError, VisibilityWarning
from duality_client.transport.rpc import RpcClient
from duality_client.utils.debug_logging import enable_debug_logger

from .datasets import DatasetKind, GeometryDataset, TransferFunction, VolumeDataset
from .math3d import color_from_sequence, vector_from_sequence
from .nodes import SceneNode
from .render_params import CoordinateAxis, RenderParameters2D, RenderParameters3D
from .scene import Scene, SceneMetadata
from .transforms import TransformTable
from .variables import VariableRegistry
from .views import Visibility

logger = logging.getLogger(__name__)
_PARSER_DEBUG = enable_debug_logger(logger, "DUALITY_PARSER_DEBUG")

_NODE_TYPES = {kind.value: kind for kind in DatasetKind}
_SOURCE_TYPES = {kind.value: kind for kind in ProviderKind}
_VARIABLE_TYPES = ("float", "enum")


def _as_mapping(value: Any, path: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise SceneFormatError(f"expected an object, got {type(value).__name__}", path)
    return value


def _as_array(value: Any, path: str) -> Sequence[Any]:
    if not isinstance(value, Sequence) or isinstance(value, (str, bytes, bytearray)):
        raise SceneFormatError(f"expected an array, got {type(value).__name__}", path)
    return value


def _require(mapping: Mapping[str, Any], key: str, path: str) -> Any:
    if key not in mapping:
        raise SceneFormatError("missing required field", f"{path}.{key}" if path else key)
    return mapping[key]


def _string(mapping: Mapping[str, Any], key: str, path: str, *, allow_empty: bool = False) -> str:
    field_path = f"{path}.{key}" if path else key
    value = _require(mapping, key, path)
    if not isinstance(value, str):
        raise SceneFormatError(f"expected a string, got {type(value).__name__}", field_path)
    if not allow_empty and not value:
        raise SceneFormatError("must not be empty", field_path)
    return value


def _optional_string(mapping: Mapping[str, Any], key: str, path: str) -> Optional[str]:
    if mapping.get(key) is None:
        return None
    return _string(mapping, key, path, allow_empty=True)


def _number(mapping: Mapping[str, Any], key: str, path: str) -> float:
    value = _require(mapping, key, path)
    if not isinstance(value, Real) or isinstance(value, bool):
        raise SceneFormatError(f"expected a number, got {value!r}", f"{path}.{key}")
    return float(value)


def _optional_bool(mapping: Mapping[str, Any], key: str, path: str) -> Optional[bool]:
    if key not in mapping:
        return None
    value = mapping[key]
    if not isinstance(value, bool):
        raise SceneFormatError(f"expected a boolean, got {value!r}", f"{path}.{key}")
    return value


class SceneParser:
    """Parse one scene description into a :class:`Scene`."""

    def __init__(self, root: Any, rpc: RpcClient, cache: Optional[DataCache] = None) -> None:
        self._root = _as_mapping(root, "<root>")
        self._rpc = rpc
        self._cache = cache
        self._transforms: Optional[TransformTable] = None
        self._variables = VariableRegistry()
        self._scene_name = ""
        self._initial_3d: Optional[RenderParameters3D] = None
        self._initial_2d: Optional[RenderParameters2D] = None
        self.warnings: list[str] = []

    @staticmethod
    def parse_metadata(root: Any) -> SceneMetadata:
        mapping = _as_mapping(root, "<root>")
        metadata = _as_mapping(_require(mapping, "metadata", ""), "metadata")
        name = _string(metadata, "name", "metadata")
        description = metadata.get("description", "")
        if not isinstance(description, str):
            raise SceneFormatError("expected a string", "metadata.description")
        return SceneMetadata(name=name, description=description)

    # ------------------------------------------------------------------
    def parse_scene(self) -> Scene:
        """Build a fresh scene; every call starts from an empty variable registry."""
        self._variables = VariableRegistry()
        self.warnings = []
        metadata = self.parse_metadata(self._root)
        self._scene_name = metadata.name
        web_view_url = _optional_string(self._root, "webViewURL", "")
        self._transforms = TransformTable.from_description(self._root)

        nodes_json = _as_array(_require(self._root, "scene", ""), "scene")
        nodes: list[SceneNode] = []
        for i, node_json in enumerate(nodes_json):
            path = f"scene[{i}]"
            nodes.append(self._parse_node(_as_mapping(node_json, path), path))

        self._initial_3d = self._parse_initial_3d()
        self._initial_2d = self._parse_initial_2d()

        scene = Scene(metadata, nodes, self._variables, web_view_url)
        if _PARSER_DEBUG:
            logger.debug(
                "parsed scene %r: nodes=%s transforms=%d", metadata.name, [n.name for n in nodes], len(self._transforms)
            )
        if self._cache is not None:
            scene.update_datasets(self._cache)
        return scene

    def initial_parameters_3d(self) -> Optional[RenderParameters3D]:
        if self._initial_3d is None:
            self._initial_3d = self._parse_initial_3d()
        return self._initial_3d

    def initial_parameters_2d(self) -> Optional[RenderParameters2D]:
        if self._initial_2d is None:
            self._initial_2d = self._parse_initial_2d()
        return self._initial_2d

    # ------------------------------------------------------------------
    def _parse_node(self, node: Mapping[str, Any], path: str) -> SceneNode:
        type_name = _string(node, "type", path)
        kind = _NODE_TYPES.get(type_name)
        if kind is None:
            raise SceneFormatError(f"invalid node type {type_name!r}", f"{path}.type")
        name = _string(node, "name", path)
        if self._variables.has_node(name):
            raise SceneFormatError(f"duplicate node name {name!r}", f"{path}.name")
        visibility = self._parse_visibility(node, name, path)
        self._variables.add_node(name, visibility)

        dataset_path = f"{path}.dataset"
        dataset_json = _as_mapping(_require(node, "dataset", path), dataset_path)
        provider = self._parse_provider(dataset_json, name, dataset_path)

        if kind is DatasetKind.GEOMETRY:
            transforms = self._parse_transform_list(dataset_json, dataset_path)
            color = None
            if dataset_json.get("color") is not None:
                color = color_from_sequence(dataset_json["color"], f"{dataset_path}.color")
            dataset = GeometryDataset(provider, transforms, color)
            transfer_function = None
        else:
            dataset = VolumeDataset(provider)
            transfer_function = TransferFunction()
            if node.get("tf") is not None:
                tf_path = f"{path}.tf"
                tf_json = _as_mapping(node["tf"], tf_path)
                transfer_function = TransferFunction(self._parse_provider(tf_json, name, tf_path))

        scene_node = SceneNode(name=name, visibility=visibility, dataset=dataset, transfer_function=transfer_function)
        if visibility is Visibility.VISIBLE_NONE:
            scene_node.warnings.append(self.warnings[-1])
        return scene_node

    def _parse_visibility(self, node: Mapping[str, Any], name: str, path: str) -> Visibility:
        view2d = _optional_bool(node, "view2d", path)
        view3d = _optional_bool(node, "view3d", path)
        visibility = Visibility.from_flags(view2d is not False, view3d is not False)
        if visibility is Visibility.VISIBLE_NONE:
            message = f"node {name!r} is invisible in 2d-view and 3d-view"
            logger.warning("node %r is invisible in 2d-view and 3d-view", name)
            warnings.warn(message, VisibilityWarning, stacklevel=3)
            self.warnings.append(message)
        return visibility

    def _parse_provider(self, owner: Mapping[str, Any], node_name: str, path: str) -> DataProvider:
        source_path = f"{path}.source"
        source = _as_mapping(_require(owner, "source", path), source_path)
        type_name = _string(source, "type", source_path)
        kind = _SOURCE_TYPES.get(type_name)
        if kind is None:
            raise SceneFormatError(f"invalid data source type {type_name!r}", f"{source_path}.type")
        filename = _string(source, "filename", source_path)
        if kind is ProviderKind.DOWNLOAD:
            return DownloadProvider(self._scene_name, filename, self._rpc)
        self._parse_variables(source.get("variables"), node_name, f"{source_path}.variables")
        return ParametrizedProvider(self._scene_name, filename, self._rpc, self._variables, node_name)

    def _parse_variables(self, node: Any, node_name: str, path: str) -> None:
        if node is None:
            return
        for i, entry in enumerate(_as_array(node, path)):
            var_path = f"{path}[{i}]"
            var = _as_mapping(entry, var_path)
            var_type = _string(var, "type", var_path)
            if var_type not in _VARIABLE_TYPES:
                raise SceneFormatError(f"invalid variable type {var_type!r}", f"{var_path}.type")
            name = _string(var, "name", var_path)
            label = _optional_string(var, "label", var_path)
            try:
                if var_type == "float":
                    self._variables.declare_float(
                        node_name,
                        name,
                        lower_bound=_number(var, "lowerBound", var_path),
                        upper_bound=_number(var, "upperBound", var_path),
                        step_size=_number(var, "stepSize", var_path),
                        default_value=_number(var, "defaultValue", var_path),
                        label=label,
                    )
                else:
                    values = self._enum_values(var, var_path)
                    self._variables.declare_enum(
                        node_name,
                        name,
                        values=values,
                        default_value=_string(var, "defaultValue", var_path, allow_empty=True),
                        label=label,
                    )
            except SceneFormatError:
                raise
            except ValueError as exc:
                raise SceneFormatError(str(exc), var_path) from exc

    @staticmethod
    def _enum_values(var: Mapping[str, Any], path: str) -> list[str]:
        values_path = f"{path}.values"
        values = _as_array(_require(var, "values", path), values_path)
        for j, value in enumerate(values):
            if not isinstance(value, str):
                raise SceneFormatError(f"expected a string, got {value!r}", f"{values_path}[{j}]")
        return list(values)

    def _parse_transform_list(self, dataset: Mapping[str, Any], path: str) -> list[np.ndarray]:
        assert self._transforms is not None
        if dataset.get("transforms") is None:
            return []
        list_path = f"{path}.transforms"
        return [
            self._transforms.resolve(ref, f"{list_path}[{i}]")
            for i, ref in enumerate(_as_array(dataset["transforms"], list_path))
        ]

    # ------------------------------------------------------------------
    def _initial_view(self, key: str) -> Optional[Mapping[str, Any]]:
        view = self._root.get("initialView")
        if view is None:
            return None
        view = _as_mapping(view, "initialView")
        if view.get(key) is None:
            return None
        return _as_mapping(view[key], f"initialView.{key}")

    def _parse_initial_3d(self) -> Optional[RenderParameters3D]:
        node = self._initial_view("3d")
        if node is None:
            return None
        path = "initialView.3d"
        transforms = self._transforms or TransformTable.from_description(self._root)
        translation = vector_from_sequence(_require(node, "translation", path), 3, f"{path}.translation")
        rotation = transforms.resolve(_require(node, "rotation", path), f"{path}.rotation")
        return RenderParameters3D(translation=translation, rotation=rotation)

    def _parse_initial_2d(self) -> Optional[RenderParameters2D]:
        node = self._initial_view("2d")
        if node is None:
            return None
        path = "initialView.2d"
        axis_name = _string(node, "axis", path)
        try:
            axis = CoordinateAxis(axis_name.lower())
        except ValueError:
            raise SceneFormatError(f"invalid axis {axis_name!r}", f"{path}.axis") from None
        return RenderParameters2D(
            translation=vector_from_sequence(_require(node, "translation", path), 2, f"{path}.translation"),
            rotation=_number(node, "rotation", path),
            zoom=_number(node, "zoom", path),
            axis=axis,
            slice=_number(node, "depth", path),
        )


def parse_scene(root: Any, rpc: RpcClient, cache: Optional[DataCache] = None) -> Scene:
    return SceneParser(root, rpc, cache).parse_scene()


__all__ = ["SceneParser", "parse_scene"]
