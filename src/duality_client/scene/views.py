"""View and visibility enums shared by the scene graph and the variable registry."""

from __future__ import annotations

from enum import Enum


class View(str, Enum):
    VIEW_2D = "2d"
    VIEW_3D = "3d"


class Visibility(str, Enum):
    VISIBLE_2D = "visible_2d"
    VISIBLE_3D = "visible_3d"
    VISIBLE_BOTH = "visible_both"
    VISIBLE_NONE = "visible_none"

    @classmethod
    def from_flags(cls, view2d: bool, view3d: bool) -> "Visibility":
        if view2d and view3d:
            return cls.VISIBLE_BOTH
        if view2d:
            return cls.VISIBLE_2D
        if view3d:
            return cls.VISIBLE_3D
        return cls.VISIBLE_NONE

    def is_visible_in(self, view: View) -> bool:
        if self is Visibility.VISIBLE_BOTH:
            return True
        if self is Visibility.VISIBLE_2D:
            return view is View.VIEW_2D
        if self is Visibility.VISIBLE_3D:
            return view is View.VIEW_3D
        return False


__all__ = ["View", "Visibility"]
