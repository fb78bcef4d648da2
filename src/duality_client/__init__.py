"""duality-client: scene descriptions and cached dataset retrieval for a remote viewer.

The client turns a server-supplied scene description into a typed scene
graph, fetches each dataset's payload once per distinct identity, and keeps
transparent geometry sorted back-to-front for the current view.
"""

from importlib import import_module
from typing import Any

__version__ = "0.1.0"

__all__ = [
    "ClientConfig",
    "DataCache",
    "Scene",
    "SceneLoader",
    "SceneParser",
    "View",
    "Visibility",
    "__version__",
]


def __getattr__(name: str) -> Any:
    module_map = {
        "ClientConfig": ("duality_client.config", "ClientConfig"),
        "DataCache": ("duality_client.data.cache", "DataCache"),
        "Scene": ("duality_client.scene.scene", "Scene"),
        "SceneLoader": ("duality_client.scene.loader", "SceneLoader"),
        "SceneParser": ("duality_client.scene.parser", "SceneParser"),
        "View": ("duality_client.scene.views", "View"),
        "Visibility": ("duality_client.scene.views", "Visibility"),
    }
    if name not in module_map:
        raise AttributeError(name)
    module_path, attr = module_map[name]
    return getattr(import_module(module_path), attr)
