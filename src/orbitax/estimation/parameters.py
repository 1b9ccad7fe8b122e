"""Estimable scalar parameters.

A :class:`ParameterDriver` is one scalar with its reference value, scale
and bounds; a :class:`ParameterSet` is an immutable ordered collection of
them.  The optimizer works on *normalized* values,
``(value - reference) / scale``, so parameters of very different
magnitudes (metres, radians, drag coefficients) are comparable.

Every update returns a new set: a propagator built from a set snapshots
the values it was built with.
"""

from __future__ import annotations

import dataclasses
import math
from collections.abc import Iterable, Iterator, Sequence

import numpy as np

from orbitax.errors import ConfigurationError


@dataclasses.dataclass(frozen=True)
class ParameterDriver:
    """One estimable scalar.

    Attributes:
        name: Unique name within a set.
        value: Current value, in physical units.
        reference: Value at which the normalized value is zero.  Defaults
            to the initial *value*.
        scale: Normalization scale, in physical units.
        min_value: Lower bound.
        max_value: Upper bound.
        selected: Whether the estimator adjusts this parameter.

    Raises:
        ConfigurationError: On a non-positive scale, inverted bounds, or
            a value outside the bounds.
    """

    name: str
    value: float
    reference: float | None = None
    scale: float = 1.0
    min_value: float = -math.inf
    max_value: float = math.inf
    selected: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", float(self.value))
        if self.reference is None:
            object.__setattr__(self, "reference", self.value)
        if not (self.scale > 0.0 and math.isfinite(self.scale)):
            raise ConfigurationError(f"parameter '{self.name}': scale must be positive, got {self.scale}")
        if self.min_value > self.max_value:
            raise ConfigurationError(
                f"parameter '{self.name}': min_value {self.min_value} > max_value {self.max_value}"
            )
        if not self.min_value <= self.value <= self.max_value:
            raise ConfigurationError(
                f"parameter '{self.name}': value {self.value} outside "
                f"[{self.min_value}, {self.max_value}]"
            )

    @property
    def normalized(self) -> float:
        return (self.value - self.reference) / self.scale

    def with_value(self, value: float) -> ParameterDriver:
        return dataclasses.replace(self, value=float(value))

    def with_normalized(self, normalized: float) -> ParameterDriver:
        return self.with_value(self.reference + self.scale * float(normalized))

    def with_selected(self, selected: bool = True) -> ParameterDriver:
        return dataclasses.replace(self, selected=selected)

    def with_name(self, name: str) -> ParameterDriver:
        return dataclasses.replace(self, name=name)


class ParameterSet:
    """Immutable ordered collection of :class:`ParameterDriver`.

    Array views (:attr:`values`, :attr:`normalized`, :attr:`scales`) only
    cover the selected drivers, in order.

    Raises:
        ConfigurationError: If two drivers share a name.

    Examples:
        ```python
        from orbitax.estimation import ParameterDriver, ParameterSet
        params = ParameterSet([ParameterDriver("cd", 2.2, scale=0.1),
                               ParameterDriver("bias", 0.0, selected=False)])
        params.selected_names          # ('cd',)
        params.with_normalized([1.0])["cd"].value  # 2.3
        ```
    """

    def __init__(self, drivers: Iterable[ParameterDriver] = ()) -> None:
        self._drivers = tuple(drivers)
        self._index = {d.name: i for i, d in enumerate(self._drivers)}
        if len(self._index) != len(self._drivers):
            names = [d.name for d in self._drivers]
            duplicates = sorted({n for n in names if names.count(n) > 1})
            raise ConfigurationError(f"duplicate parameter names: {duplicates}")

    def __iter__(self) -> Iterator[ParameterDriver]:
        return iter(self._drivers)

    def __len__(self) -> int:
        return len(self._drivers)

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __getitem__(self, key: str | int) -> ParameterDriver:
        if isinstance(key, str):
            try:
                return self._drivers[self._index[key]]
            except KeyError:
                raise KeyError(f"no parameter named '{key}'") from None
        return self._drivers[key]

    def __add__(self, other: ParameterSet) -> ParameterSet:
        return ParameterSet(self._drivers + tuple(other))

    def __repr__(self) -> str:
        inner = ", ".join(f"{d.name}={d.value:.12g}{'' if d.selected else ' (fixed)'}"
                          for d in self._drivers)
        return f"ParameterSet({inner})"

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(d.name for d in self._drivers)

    @property
    def selected(self) -> tuple[ParameterDriver, ...]:
        return tuple(d for d in self._drivers if d.selected)

    @property
    def selected_names(self) -> tuple[str, ...]:
        return tuple(d.name for d in self._drivers if d.selected)

    @property
    def values(self) -> np.ndarray:
        return np.array([d.value for d in self.selected], dtype=np.float64)

    @property
    def normalized(self) -> np.ndarray:
        return np.array([d.normalized for d in self.selected], dtype=np.float64)

    @property
    def scales(self) -> np.ndarray:
        return np.array([d.scale for d in self.selected], dtype=np.float64)

    def value(self, name: str) -> float:
        return self[name].value

    def as_dict(self) -> dict[str, float]:
        """Values of all drivers, selected or not, by name."""
        return {d.name: d.value for d in self._drivers}

    def _replace_selected(self, drivers: Sequence[ParameterDriver]) -> ParameterSet:
        it = iter(drivers)
        return ParameterSet(next(it) if d.selected else d for d in self._drivers)

    def with_values(self, values: Sequence[float]) -> ParameterSet:
        """New set with the selected drivers set to *values*."""
        values = np.asarray(values, dtype=np.float64)
        selected = self.selected
        if values.shape != (len(selected),):
            raise ConfigurationError(f"expected {len(selected)} values, got shape {values.shape}")
        return self._replace_selected([d.with_value(v) for d, v in zip(selected, values)])

    def with_normalized(self, normalized: Sequence[float]) -> ParameterSet:
        """New set with the selected drivers set from normalized values.

        Raises:
            ConfigurationError: If a value falls outside its bounds; use
                :meth:`clip` to project onto them instead.
        """
        normalized = np.asarray(normalized, dtype=np.float64)
        selected = self.selected
        if normalized.shape != (len(selected),):
            raise ConfigurationError(
                f"expected {len(selected)} values, got shape {normalized.shape}"
            )
        return self._replace_selected([d.with_normalized(x) for d, x in zip(selected, normalized)])

    def clip(self, normalized: Sequence[float]) -> tuple[ParameterSet, bool]:
        """Apply *normalized* values, clipping each to its driver's bounds.

        Returns:
            The new set, and whether any value was clipped.
        """
        normalized = np.asarray(normalized, dtype=np.float64)
        selected = self.selected
        if normalized.shape != (len(selected),):
            raise ConfigurationError(
                f"expected {len(selected)} values, got shape {normalized.shape}"
            )
        values = np.array([d.reference + d.scale * x for d, x in zip(selected, normalized)])
        lower = np.array([d.min_value for d in selected])
        upper = np.array([d.max_value for d in selected])
        clipped = np.clip(values, lower, upper)
        return self.with_values(clipped), bool(np.any(clipped != values))

    def with_selected(self, name: str, selected: bool = True) -> ParameterSet:
        return ParameterSet(d.with_selected(selected) if d.name == name else d
                            for d in self._drivers)

    def with_driver(self, driver: ParameterDriver) -> ParameterSet:
        """Replace the driver of the same name, or append *driver*."""
        if driver.name in self._index:
            return ParameterSet(driver if d.name == driver.name else d for d in self._drivers)
        return ParameterSet(self._drivers + (driver,))
