"""Monitoring side-channel for selection QA.

Selectors only ever write to a sink; nothing here is read back by the
selection logic. `Monitor` is meant to be event- or worker-local and merged
afterwards.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass
from typing import Protocol

import numpy as np

from .enums import BeautyParticle, CharmParticle


class MonitoringSink(Protocol):
    """Anything accepting `(series name, values...)` fills."""

    def fill(self, name: str, *values: float) -> None:
        ...


@dataclass(frozen=True)
class AxisSpec:
    """Uniform binning of one histogram axis."""

    n_bins: int
    low: float
    high: float

    def edges(self) -> np.ndarray:
        return np.linspace(self.low, self.high, self.n_bins + 1)


CHARM_MASS_AXES = {
    CharmParticle.D0: AxisSpec(100, 1.65, 2.05),
    CharmParticle.DPLUS: AxisSpec(100, 1.65, 2.05),
    CharmParticle.DS: AxisSpec(100, 1.75, 2.15),
    CharmParticle.LC: AxisSpec(100, 2.05, 2.45),
    CharmParticle.XIC: AxisSpec(100, 2.25, 2.65),
}
BEAUTY_MASS_AXES = {
    BeautyParticle.BPLUS: AxisSpec(100, 5.0, 5.6),
    BeautyParticle.B0_TO_DSTAR: AxisSpec(100, 5.0, 5.6),
    BeautyParticle.B0: AxisSpec(100, 5.0, 5.6),
    BeautyParticle.BS: AxisSpec(100, 5.0, 5.6),
    BeautyParticle.LB: AxisSpec(100, 5.3, 5.9),
    BeautyParticle.XIB: AxisSpec(100, 5.3, 5.9),
}


class Monitor:
    """In-memory append-only store of filled values, keyed by series name."""

    def __init__(self) -> None:
        self._series: dict[str, list[tuple[float, ...]]] = defaultdict(list)

    def fill(self, name: str, *values: float) -> None:
        """Record one entry for a series (1 value for 1D, 2 for 2D...)."""
        self._series[name].append(tuple(float(v) for v in values))

    def names(self) -> list[str]:
        return sorted(self._series)

    def entries(self, name: str) -> list[tuple[float, ...]]:
        """Return a copy of all entries of one series."""
        return list(self._series.get(name, ()))

    def counts(self, name: str) -> Counter:
        """Count entries of a 1D counter series by (integer) value."""
        return Counter(int(entry[0]) for entry in self._series.get(name, ()))

    def histogram(self, name: str, axis: AxisSpec, dim: int = 0) -> np.ndarray:
        """Bin one coordinate of a series on a uniform axis."""
        values = np.asarray([entry[dim] for entry in self._series.get(name, ())], dtype=float)
        hist, _ = np.histogram(values, bins=axis.edges())
        return hist

    def histogram2d(self, name: str, x_axis: AxisSpec, y_axis: AxisSpec) -> np.ndarray:
        """Bin a 2D series on two uniform axes."""
        entries = self._series.get(name, ())
        x = np.asarray([entry[0] for entry in entries], dtype=float)
        y = np.asarray([entry[1] for entry in entries], dtype=float)
        hist, _, _ = np.histogram2d(x, y, bins=(x_axis.edges(), y_axis.edges()))
        return hist

    def merge(self, other: "Monitor") -> "Monitor":
        """Append all entries of `other` into this monitor and return it."""
        for name, entries in other._series.items():
            self._series[name].extend(entries)
        return self

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._series.values())
