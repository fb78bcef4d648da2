"""Per-node float/enum variables with stable declaration-order indices."""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from typing import Optional, Union

from duality_client.errors import TypeMismatchError, UnknownNodeError, UnknownVariableError

from .views import View, Visibility

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FloatVariable:
    name: str
    index: int
    lower_bound: float
    upper_bound: float
    step_size: float
    default_value: float
    value: float
    label: Optional[str] = None

    @property
    def display_label(self) -> str:
        return self.label if self.label is not None else self.name

    def accepts(self, value: float) -> bool:
        return self.lower_bound <= value <= self.upper_bound


@dataclass(frozen=True)
class EnumVariable:
    name: str
    index: int
    values: tuple[str, ...]
    default_value: str
    value: str
    label: Optional[str] = None

    @property
    def display_label(self) -> str:
        return self.label if self.label is not None else self.name

    def accepts(self, value: str) -> bool:
        return value in self.values


Variable = Union[FloatVariable, EnumVariable]
VariableValue = Union[float, str]
VariableListener = Callable[[str, Variable], None]
Snapshot = tuple[tuple[str, VariableValue], ...]


@dataclass(frozen=True)
class NodeVariables:
    node_name: str
    variables: tuple[Variable, ...]

    @property
    def float_variables(self) -> tuple[FloatVariable, ...]:
        return tuple(v for v in self.variables if isinstance(v, FloatVariable))

    @property
    def enum_variables(self) -> tuple[EnumVariable, ...]:
        return tuple(v for v in self.variables if isinstance(v, EnumVariable))


class VariableRegistry:
    """Authoritative store of variable values keyed by node name.

    Indices are assigned per node starting at 0 in declaration order and never
    change afterwards; UI controls and provider identities correlate by index.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._visibility: dict[str, Visibility] = {}
        self._variables: dict[str, list[Variable]] = {}
        self._listeners: list[VariableListener] = []

    # ------------------------------------------------------------------
    def add_node(self, node_name: str, visibility: Visibility = Visibility.VISIBLE_BOTH) -> None:
        with self._lock:
            self._visibility[node_name] = visibility
            self._variables.setdefault(node_name, [])

    def has_node(self, node_name: str) -> bool:
        with self._lock:
            return node_name in self._variables

    def node_names(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._variables)

    def declare_float(
        self,
        node_name: str,
        name: str,
        *,
        lower_bound: float,
        upper_bound: float,
        step_size: float,
        default_value: float,
        label: Optional[str] = None,
    ) -> FloatVariable:
        lower, upper = float(lower_bound), float(upper_bound)
        default = float(default_value)
        if not all(math.isfinite(v) for v in (lower, upper, float(step_size), default)):
            raise ValueError(f"float variable {name!r} requires finite numbers")
        if lower > upper:
            raise ValueError(f"float variable {name!r} has lowerBound {lower} > upperBound {upper}")
        if not lower <= default <= upper:
            raise ValueError(f"float variable {name!r} default {default} outside [{lower}, {upper}]")
        with self._lock:
            variables = self._declared(node_name, name)
            var = FloatVariable(
                name=name,
                index=len(variables),
                lower_bound=lower,
                upper_bound=upper,
                step_size=float(step_size),
                default_value=default,
                value=default,
                label=label,
            )
            variables.append(var)
        return var

    def declare_enum(
        self,
        node_name: str,
        name: str,
        *,
        values: Sequence[str],
        default_value: str,
        label: Optional[str] = None,
    ) -> EnumVariable:
        allowed = tuple(str(v) for v in values)
        if not allowed:
            raise ValueError(f"enum variable {name!r} requires at least one value")
        if default_value not in allowed:
            raise ValueError(f"enum variable {name!r} default {default_value!r} not in {list(allowed)}")
        with self._lock:
            variables = self._declared(node_name, name)
            var = EnumVariable(
                name=name,
                index=len(variables),
                values=allowed,
                default_value=default_value,
                value=default_value,
                label=label,
            )
            variables.append(var)
        return var

    def _declared(self, node_name: str, name: str) -> list[Variable]:
        variables = self._variables.get(node_name)
        if variables is None:
            raise UnknownNodeError(node_name)
        if any(v.name == name for v in variables):
            raise ValueError(f"node {node_name!r} declares variable {name!r} twice")
        return variables

    # ------------------------------------------------------------------
    def variables(self, node_name: str) -> NodeVariables:
        with self._lock:
            variables = self._variables.get(node_name)
            if variables is None:
                raise UnknownNodeError(node_name)
            return NodeVariables(node_name=node_name, variables=tuple(variables))

    def get(self, node_name: str, variable_name: str) -> Variable:
        with self._lock:
            variables = self._variables.get(node_name)
            if variables is None:
                raise UnknownNodeError(node_name)
            for var in variables:
                if var.name == variable_name:
                    return var
        raise UnknownVariableError(node_name, variable_name)

    def set_variable(self, node_name: str, variable_name: str, value: VariableValue) -> Variable:
        with self._lock:
            variables = self._variables.get(node_name)
            if variables is None:
                raise UnknownNodeError(node_name)
            for pos, var in enumerate(variables):
                if var.name == variable_name:
                    break
            else:
                raise UnknownVariableError(node_name, variable_name)

            if isinstance(var, FloatVariable):
                if isinstance(value, (str, bool)) or not isinstance(value, (int, float)):
                    raise TypeMismatchError(
                        f"variable {node_name}.{variable_name} is a float, got {type(value).__name__}"
                    )
                new_value: VariableValue = float(value)
            else:
                if not isinstance(value, str):
                    raise TypeMismatchError(
                        f"variable {node_name}.{variable_name} is an enum, got {type(value).__name__}"
                    )
                new_value = value
            if not var.accepts(new_value):  # type: ignore[arg-type]
                raise ValueError(f"value {new_value!r} not allowed for {node_name}.{variable_name}")
            updated = replace(var, value=new_value)
            variables[pos] = updated
            listeners = list(self._listeners)

        logger.debug("variable set: %s.%s=%r", node_name, variable_name, new_value)
        for callback in listeners:
            try:
                callback(node_name, updated)
            except Exception:
                logger.warning("variable listener failed", exc_info=True)
        return updated

    def snapshot(self, node_name: str) -> Snapshot:
        """Current ``(name, value)`` pairs of *node_name* in index order."""
        with self._lock:
            variables = self._variables.get(node_name)
            if variables is None:
                raise UnknownNodeError(node_name)
            return tuple((v.name, v.value) for v in variables)

    def values_for_view(self, view: View) -> dict[str, NodeVariables]:
        with self._lock:
            result: dict[str, NodeVariables] = {}
            for node_name, variables in self._variables.items():
                visibility = self._visibility.get(node_name, Visibility.VISIBLE_BOTH)
                if visibility.is_visible_in(view):
                    result[node_name] = NodeVariables(node_name=node_name, variables=tuple(variables))
            return result

    # ------------------------------------------------------------------
    def add_listener(self, callback: VariableListener) -> None:
        with self._lock:
            if callback not in self._listeners:
                self._listeners.append(callback)

    def remove_listener(self, callback: VariableListener) -> None:
        with self._lock:
            if callback in self._listeners:
                self._listeners.remove(callback)


__all__ = [
    "EnumVariable",
    "FloatVariable",
    "NodeVariables",
    "Snapshot",
    "Variable",
    "VariableRegistry",
    "VariableValue",
]
