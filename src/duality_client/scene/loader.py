"""Scene listing, loading and unloading against the remote scene server."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from typing import Any, Optional

from duality_client.config import RELOAD_REFETCH, ClientConfig
from duality_client.data.cache import DataCache
from duality_client.data.store import DirectoryCacheStore
from duality_client.errors import NoSceneLoadedError, RemoteFetchError, SceneFormatError, SceneNotFoundError
from duality_client.transport.rpc import LIST_SCENES_METHOD, RpcClient, TransportFactory

from .parser import SceneParser
from .render_params import RenderParameters2D, RenderParameters3D
from .scene import Scene, SceneMetadata

logger = logging.getLogger(__name__)


def websocket_factory(config: ClientConfig) -> TransportFactory:
    def factory():
        from duality_client.transport.websocket import WebSocketTransport

        return WebSocketTransport(config.endpoint_url(), timeout_s=config.rpc_timeout_s)

    return factory


class SceneLoader:
    """Own the current scene, the shared RPC client and the data cache."""

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        rpc: Optional[RpcClient] = None,
        cache: Optional[DataCache] = None,
    ) -> None:
        self.config = config or ClientConfig.from_env()
        self.rpc = rpc or RpcClient(websocket_factory(self.config))
        if cache is None:
            store = DirectoryCacheStore(self.config.cache_dir) if self.config.cache_dir is not None else None
            cache = DataCache(max_workers=self.config.fetch_workers, store=store)
        self.cache = cache
        self._scene: Optional[Scene] = None
        self._initial_2d = RenderParameters2D()
        self._initial_3d = RenderParameters3D()
        self.warnings: list[str] = []

    # ------------------------------------------------------------------
    def update_endpoint(self, host: Optional[str] = None, port: Optional[int] = None) -> None:
        if host is not None:
            self.config.server_host = host
        if port is not None:
            self.config.server_port = int(port)
        logger.info("scene server endpoint set to %s", self.config.endpoint_url())
        self.rpc.update_endpoint(websocket_factory(self.config))

    def clear_cache(self) -> None:
        self.cache.clear()

    def _list_descriptions(self) -> Sequence[Any]:
        reply = self.rpc.call(LIST_SCENES_METHOD, None)
        result = reply.result
        if not isinstance(result, Sequence) or isinstance(result, (str, bytes, bytearray)):
            raise RemoteFetchError(f"{LIST_SCENES_METHOD}: expected an array of scene descriptions")
        return result

    def _listed(self) -> Iterator[tuple[Any, SceneMetadata]]:
        for index, root in enumerate(self._list_descriptions()):
            try:
                metadata = SceneParser.parse_metadata(root)
            except SceneFormatError as exc:
                logger.warning("skipping scene description %d: %s", index, exc)
                continue
            yield root, metadata

    def list_metadata(self) -> list[SceneMetadata]:
        return [metadata for _root, metadata in self._listed()]

    def load_scene(self, name: str) -> Scene:
        """Parse and publish the scene called *name*.

        Parsing completes before anything is replaced, so a failure leaves the
        previously loaded scene in place. Listed descriptions with unreadable
        metadata are skipped.
        """
        for root, metadata in self._listed():
            if metadata.name != name:
                continue
            parser = SceneParser(root, self.rpc)
            scene = parser.parse_scene()
            initial_3d = parser.initial_parameters_3d() or RenderParameters3D()
            initial_2d = parser.initial_parameters_2d() or RenderParameters2D()

            if self._scene is not None:
                self._scene.detach()
            if self.config.reload_policy == RELOAD_REFETCH:
                self.cache.clear()
            else:
                self.cache.clear_observers()
            self._scene = scene
            self._initial_3d = initial_3d
            self._initial_2d = initial_2d
            self.warnings = list(parser.warnings)
            logger.info("loaded scene %r (%d nodes)", name, len(scene))
            scene.update_datasets(self.cache)
            return scene
        raise SceneNotFoundError(f"scene named {name!r} does not exist")

    def unload_scene(self) -> None:
        if self._scene is not None:
            self._scene.detach()
            logger.info("unloaded scene %r", self._scene.name)
        self._scene = None
        # in-flight fetches of the dropped scene complete against a stale generation
        self.cache.clear_observers()
        self.cache.invalidate_all()

    def is_scene_loaded(self) -> bool:
        return self._scene is not None

    @property
    def scene(self) -> Scene:
        if self._scene is None:
            raise NoSceneLoadedError("no scene loaded")
        return self._scene

    def metadata(self) -> SceneMetadata:
        return self.scene.metadata

    def web_view_url(self) -> Optional[str]:
        return self.scene.web_view_url

    @property
    def initial_parameters_2d(self) -> RenderParameters2D:
        return self._initial_2d

    @property
    def initial_parameters_3d(self) -> RenderParameters3D:
        return self._initial_3d

    def process_events(self) -> int:
        """Deliver completed fetches to datasets; call from the owner thread."""
        return self.cache.dispatch_events()

    def close(self) -> None:
        self.unload_scene()
        self.cache.close()
        self.rpc.close()


__all__ = ["SceneLoader", "websocket_factory"]
