"""Scene nodes and the dispatcher interface rendering code implements."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol

from .datasets import Dataset, DatasetKind, GeometryDataset, TransferFunction, VolumeDataset
from .views import View, Visibility


class NodeDispatcher(Protocol):
    def dispatch_geometry(self, node: "SceneNode") -> None: ...

    def dispatch_volume(self, node: "SceneNode") -> None: ...


@dataclass(eq=False)
class SceneNode:
    name: str
    visibility: Visibility
    dataset: Dataset
    transfer_function: Optional[TransferFunction] = None
    warnings: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.dataset.kind is DatasetKind.VOLUME and self.transfer_function is None:
            self.transfer_function = TransferFunction()

    @property
    def kind(self) -> DatasetKind:
        return self.dataset.kind

    @property
    def geometry(self) -> GeometryDataset:
        if not isinstance(self.dataset, GeometryDataset):
            raise TypeError(f"node {self.name!r} is a {self.kind.value} node")
        return self.dataset

    @property
    def volume(self) -> VolumeDataset:
        if not isinstance(self.dataset, VolumeDataset):
            raise TypeError(f"node {self.name!r} is a {self.kind.value} node")
        return self.dataset

    def is_visible_in(self, view: View) -> bool:
        return self.visibility.is_visible_in(view)

    def accept(self, dispatcher: NodeDispatcher) -> None:
        if self.kind is DatasetKind.GEOMETRY:
            dispatcher.dispatch_geometry(self)
        elif self.kind is DatasetKind.VOLUME:
            dispatcher.dispatch_volume(self)
        else:  # pragma: no cover - exhaustive over DatasetKind
            raise AssertionError(f"unhandled dataset kind {self.kind!r}")

    def __repr__(self) -> str:
        return f"SceneNode({self.name!r}, {self.kind.value}, {self.visibility.value})"


__all__ = ["NodeDispatcher", "SceneNode"]
