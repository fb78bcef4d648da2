"""Fakes and payload builders shared by the duality-client tests."""

from __future__ import annotations

import functools
import threading
from collections import defaultdict
from collections.abc import Callable, Mapping
from concurrent.futures import Executor, Future
from typing import Any, Optional, Sequence

import numpy as np

from duality_client.codec.g3d import AttributeSemantic, Geometry, PrimitiveType, write_geometry
from duality_client.codec.i3m import Volume, write_volume
from duality_client.transport.rpc import RpcClient

Reply = tuple[Any, Sequence[bytes]]
Responder = Callable[[str, Mapping[str, Any]], Reply]


class ImmediateExecutor(Executor):
    """Run submitted work inline on the calling thread."""

    def submit(self, fn, /, *args, **kwargs):  # type: ignore[override]
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except BaseException as exc:  # pragma: no cover - surfaced through the future
            future.set_exception(exc)
        return future


class ManualExecutor(Executor):
    """Queue submitted work until the test runs it on the calling thread."""

    def __init__(self) -> None:
        self.queued: list[tuple[Future, Callable[[], Any]]] = []

    def submit(self, fn, /, *args, **kwargs):  # type: ignore[override]
        future: Future = Future()
        self.queued.append((future, functools.partial(fn, *args, **kwargs)))
        return future

    def run_all(self) -> int:
        ran = 0
        while self.queued:
            future, call = self.queued.pop(0)
            try:
                future.set_result(call())
            except BaseException as exc:  # pragma: no cover - surfaced through the future
                future.set_exception(exc)
            ran += 1
        return ran


class FakeTransport:
    """Scripted RPC endpoint recording every request."""

    def __init__(self, responder: Optional[Responder] = None) -> None:
        self.responder = responder or (lambda method, params: ({}, [b"payload"]))
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.counts: dict[str, int] = defaultdict(int)
        self.closed = False
        self._pending: Optional[Reply] = None
        self._lock = threading.Lock()

    def send(self, method: str, params: Mapping[str, Any] | None) -> None:
        params = dict(params or {})
        with self._lock:
            self.calls.append((method, params))
            self.counts[method] += 1
        self._pending = self.responder(method, params)

    def receive(self) -> Reply:
        reply, self._pending = self._pending, None
        assert reply is not None, "receive() without send()"
        return reply

    def close(self) -> None:
        self.closed = True


def fake_rpc(responder: Optional[Responder] = None) -> tuple[RpcClient, FakeTransport]:
    transport = FakeTransport(responder)
    return RpcClient(lambda: transport), transport


def geometry_payload(
    positions: Sequence[Sequence[float]],
    indices: Sequence[int],
    *,
    primitive: PrimitiveType = PrimitiveType.TRIANGLE,
    alphas: Optional[Sequence[float]] = None,
    normals: Optional[Sequence[Sequence[float]]] = None,
    opaque: bool = False,
) -> bytes:
    attributes = {AttributeSemantic.POSITION: np.asarray(positions, dtype=np.float32).reshape(-1, 3)}
    if normals is not None:
        attributes[AttributeSemantic.NORMAL] = np.asarray(normals, dtype=np.float32).reshape(-1, 3)
    if alphas is not None:
        attributes[AttributeSemantic.ALPHA] = np.asarray(alphas, dtype=np.float32).reshape(-1, 1)
    geometry = Geometry(
        primitive_type=primitive,
        is_opaque=opaque,
        indices=np.asarray(indices, dtype=np.uint32),
        attributes=attributes,
    )
    return write_geometry(geometry)


def volume_payload(size: tuple[int, int, int] = (2, 2, 2), scale: tuple[float, float, float] = (1.0, 1.0, 1.0)) -> bytes:
    sx, sy, sz = size
    voxels = np.arange(sx * sy * sz * 4, dtype=np.uint32).astype(np.uint8).reshape(sz, sy, sx, 4)
    return write_volume(Volume(size=size, scale=scale, voxels=voxels))


def identity_matrix() -> list[float]:
    return [float(v) for v in np.identity(4).reshape(-1)]


def translation_matrix(x: float, y: float, z: float) -> list[float]:
    m = np.identity(4)
    m[3, :3] = (x, y, z)
    return [float(v) for v in m.reshape(-1)]


def geometry_node(name: str, filename: str = "mesh.g3d", **extra: Any) -> dict[str, Any]:
    node: dict[str, Any] = {
        "type": "geometry",
        "name": name,
        "dataset": {"source": {"type": "download", "filename": filename}},
    }
    dataset_extra = extra.pop("dataset", None)
    if dataset_extra:
        node["dataset"].update(dataset_extra)
    node.update(extra)
    return node


def python_node(name: str, variables: Sequence[Mapping[str, Any]], filename: str = "gen.py", **extra: Any) -> dict[str, Any]:
    node: dict[str, Any] = {
        "type": "geometry",
        "name": name,
        "dataset": {"source": {"type": "python", "filename": filename, "variables": list(variables)}},
    }
    node.update(extra)
    return node


def float_var(name: str, lower: float = 0.0, upper: float = 1.0, step: float = 0.1, default: float = 0.5) -> dict[str, Any]:
    return {
        "type": "float",
        "name": name,
        "lowerBound": lower,
        "upperBound": upper,
        "stepSize": step,
        "defaultValue": default,
    }


def enum_var(name: str, values: Sequence[str], default: Optional[str] = None) -> dict[str, Any]:
    return {"type": "enum", "name": name, "values": list(values), "defaultValue": default or values[0]}


def description(name: str = "demo", nodes: Sequence[Mapping[str, Any]] = (), **extra: Any) -> dict[str, Any]:
    root: dict[str, Any] = {
        "metadata": {"name": name, "description": f"{name} scene"},
        "scene": [dict(node) for node in nodes],
    }
    root.update(extra)
    return root
