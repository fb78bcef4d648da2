"""Sources of raw dataset payloads and the identities that key them in the cache."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional, Union

from duality_client.transport.rpc import DOWNLOAD_METHOD, PYTHON_METHOD, RpcClient

if TYPE_CHECKING:  # pragma: no cover - typing aid only
    from duality_client.scene.variables import Snapshot, VariableRegistry

logger = logging.getLogger(__name__)


class ProviderKind(str, Enum):
    DOWNLOAD = "download"
    PYTHON = "python"


@dataclass(frozen=True)
class DownloadIdentity:
    scene: str
    filename: str

    def cache_key(self) -> str:
        return json.dumps(["download", self.scene, self.filename])


@dataclass(frozen=True)
class ParametrizedIdentity:
    scene: str
    filename: str
    snapshot: "Snapshot"

    def cache_key(self) -> str:
        return json.dumps(["python", self.scene, self.filename, [list(item) for item in self.snapshot]])


ProviderIdentity = Union[DownloadIdentity, ParametrizedIdentity]


class DownloadProvider:
    """Static remote file; content is immutable and cacheable indefinitely."""

    kind = ProviderKind.DOWNLOAD

    def __init__(self, scene_name: str, filename: str, rpc: RpcClient) -> None:
        self.scene_name = scene_name
        self.filename = filename
        self._rpc = rpc

    def identity(self) -> DownloadIdentity:
        return DownloadIdentity(self.scene_name, self.filename)

    def fetch(self, identity: Optional[DownloadIdentity] = None) -> bytes:
        ident = identity or self.identity()
        path = f"{ident.scene}/{ident.filename}"
        logger.debug("download: path=%s", path)
        reply = self._rpc.call(DOWNLOAD_METHOD, {"path": path})
        return reply.single_payload(f"download {path}")

    def __repr__(self) -> str:
        return f"DownloadProvider(scene={self.scene_name!r}, filename={self.filename!r})"


class ParametrizedProvider:
    """Server-computed payload keyed by the owning node's current variable values.

    The provider holds the registry and its node name as a lookup key; the
    registry stays the single owner of the values.
    """

    kind = ProviderKind.PYTHON

    def __init__(
        self,
        scene_name: str,
        filename: str,
        rpc: RpcClient,
        registry: "VariableRegistry",
        node_name: str,
    ) -> None:
        self.scene_name = scene_name
        self.filename = filename
        self.node_name = node_name
        self._rpc = rpc
        self._registry = registry

    def identity(self) -> ParametrizedIdentity:
        return ParametrizedIdentity(self.scene_name, self.filename, self._registry.snapshot(self.node_name))

    def fetch(self, identity: Optional[ParametrizedIdentity] = None) -> bytes:
        # The identity pins the snapshot taken when the fetch was requested.
        ident = identity or self.identity()
        params = {
            "scene": ident.scene,
            "filename": ident.filename,
            "variables": {name: value for name, value in ident.snapshot},
        }
        logger.debug("python: scene=%s filename=%s variables=%s", ident.scene, ident.filename, params["variables"])
        reply = self._rpc.call(PYTHON_METHOD, params)
        return reply.single_payload(f"python {ident.scene}/{ident.filename}")

    def __repr__(self) -> str:
        return (
            f"ParametrizedProvider(scene={self.scene_name!r}, filename={self.filename!r}, "
            f"node={self.node_name!r})"
        )


DataProvider = Union[DownloadProvider, ParametrizedProvider]


__all__ = [
    "DataProvider",
    "DownloadIdentity",
    "DownloadProvider",
    "ParametrizedIdentity",
    "ParametrizedProvider",
    "ProviderIdentity",
    "ProviderKind",
]
