"""Exception taxonomy shared by the parser, the variable API and the data layer."""

from __future__ import annotations


class DualityError(Exception):
    """Base class for every error raised by duality-client."""


class SceneFormatError(DualityError, ValueError):
    """A scene description is malformed or incomplete.

    ``path`` names the offending field, e.g. ``scene[1].dataset.source.filename``.
    """

    def __init__(self, message: str, path: str = "") -> None:
        self.path = path
        self.reason = message
        text = f"{path}: {message}" if path else message
        super().__init__(text)


class UnresolvedTransformError(SceneFormatError):
    """A named transform reference has no matching declaration."""

    def __init__(self, name: str, path: str = "") -> None:
        self.name = name
        super().__init__(f"transform {name!r} does not exist", path)


class UnknownNodeError(DualityError, KeyError):
    def __init__(self, node_name: str) -> None:
        self.node_name = node_name
        super().__init__(f"unknown scene node {node_name!r}")

    def __str__(self) -> str:
        return str(self.args[0])


class UnknownVariableError(DualityError, KeyError):
    def __init__(self, node_name: str, variable_name: str) -> None:
        self.node_name = node_name
        self.variable_name = variable_name
        super().__init__(f"node {node_name!r} has no variable {variable_name!r}")

    def __str__(self) -> str:
        return str(self.args[0])


class TypeMismatchError(DualityError, TypeError):
    """A float value was set on an enum variable or vice versa."""


class RemoteFetchError(DualityError):
    """Transport or protocol failure while fetching a payload."""


class NotFoundError(RemoteFetchError):
    """The server reported that the requested resource does not exist."""


class CacheInvalidatedError(DualityError):
    """Delivered to subscribers whose cache entry was invalidated before completion."""


class PayloadFormatError(DualityError, ValueError):
    """A binary dataset payload could not be decoded."""


class SceneNotFoundError(DualityError, LookupError):
    pass


class NoSceneLoadedError(DualityError):
    pass


class VisibilityWarning(UserWarning):
    """A scene node is hidden in both the 2D and the 3D view."""


__all__ = [
    "CacheInvalidatedError",
    "DualityError",
    "NoSceneLoadedError",
    "NotFoundError",
    "PayloadFormatError",
    "RemoteFetchError",
    "SceneFormatError",
    "SceneNotFoundError",
    "TypeMismatchError",
    "UnknownNodeError",
    "UnknownVariableError",
    "UnresolvedTransformError",
    "VisibilityWarning",
]
