from __future__ import annotations

import numpy as np
import pytest

from duality_client._tests._helpers.fakes import ImmediateExecutor, fake_rpc, geometry_payload, volume_payload
from duality_client.data.cache import DataCache
from duality_client.data.providers import DownloadProvider
from duality_client.errors import UnknownNodeError
from duality_client.scene.datasets import DatasetKind, GeometryDataset, VolumeDataset
from duality_client.scene.nodes import SceneNode
from duality_client.scene.scene import Scene, SceneMetadata
from duality_client.scene.variables import VariableRegistry
from duality_client.scene.views import View, Visibility


class _Recorder:
    def __init__(self) -> None:
        self.seen: list[tuple[str, str]] = []

    def dispatch_geometry(self, node: SceneNode) -> None:
        self.seen.append(("geometry", node.name))

    def dispatch_volume(self, node: SceneNode) -> None:
        self.seen.append(("volume", node.name))


def _scene() -> tuple[Scene, DataCache]:
    payloads = {
        "s/mesh": geometry_payload([[0, 0, 0], [4, 0, 0], [0, 4, 0]], [0, 1, 2]),
        "s/head": volume_payload((2, 2, 2), (1.0, 1.0, 1.0)),
    }
    rpc, _ = fake_rpc(lambda method, params: ({}, [payloads[params["path"]]]))
    registry = VariableRegistry()
    nodes = [
        SceneNode("mesh", Visibility.VISIBLE_3D, GeometryDataset(DownloadProvider("s", "mesh", rpc))),
        SceneNode("head", Visibility.VISIBLE_BOTH, VolumeDataset(DownloadProvider("s", "head", rpc))),
        SceneNode("hidden", Visibility.VISIBLE_NONE, GeometryDataset(DownloadProvider("s", "mesh", rpc))),
    ]
    for node in nodes:
        registry.add_node(node.name, node.visibility)
    return Scene(SceneMetadata("s"), nodes, registry), DataCache(executor=ImmediateExecutor())


def test_dispatch_respects_view_and_order() -> None:
    scene, _ = _scene()
    recorder = _Recorder()
    scene.dispatch(recorder, View.VIEW_3D)
    assert recorder.seen == [("geometry", "mesh"), ("volume", "head")]
    recorder.seen.clear()
    scene.dispatch(recorder, View.VIEW_2D)
    assert recorder.seen == [("volume", "head")]


def test_node_accessors() -> None:
    scene, _ = _scene()
    assert scene.node("head").kind is DatasetKind.VOLUME
    assert scene.node("head").transfer_function.is_identity
    with pytest.raises(TypeError):
        _ = scene.node("head").geometry
    with pytest.raises(UnknownNodeError):
        scene.node("nope")
    assert len(scene) == 3


def test_shared_file_is_fetched_once() -> None:
    scene, cache = _scene()
    scene.update_datasets(cache)
    cache.dispatch_events()
    assert cache.stats().fetches == 2
    assert scene.node("hidden").dataset.geometry is not None


def test_bounding_box_covers_visible_nodes() -> None:
    scene, cache = _scene()
    assert scene.bounding_box(View.VIEW_3D) is None
    scene.update_datasets(cache)
    cache.dispatch_events()
    low, high = scene.bounding_box(View.VIEW_3D)
    np.testing.assert_allclose(low, [-1, -1, -1])
    np.testing.assert_allclose(high, [4, 4, 1])
    low, high = scene.bounding_box(View.VIEW_2D)
    np.testing.assert_allclose(high, [1, 1, 1])


def test_duplicate_names_rejected() -> None:
    rpc, _ = fake_rpc()
    provider = DownloadProvider("s", "mesh", rpc)
    nodes = [
        SceneNode("a", Visibility.VISIBLE_BOTH, GeometryDataset(provider)),
        SceneNode("a", Visibility.VISIBLE_BOTH, GeometryDataset(provider)),
    ]
    with pytest.raises(ValueError):
        Scene(SceneMetadata("s"), nodes, VariableRegistry())


def test_variables_must_reference_nodes() -> None:
    registry = VariableRegistry()
    registry.add_node("ghost")
    with pytest.raises(ValueError):
        Scene(SceneMetadata("s"), [], registry)
