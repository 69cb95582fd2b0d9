"""TPC n-sigma post-calibration from 3D (clusters, p_in, eta) lookup maps.

The maps are supplied by an external provider and are only read here: each
query finds one bin per axis, clamping out-of-range coordinates onto the
first/last bin instead of extrapolating.
"""

from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Mapping, Protocol, Sequence

import numpy as np

from .config import ConfigurationError
from .enums import PIDSpecies
from .logger import logger
from .models import TrackState

SUPPORTED_SPECIES = (PIDSpecies.KAON, PIDSpecies.PION, PIDSpecies.PROTON)


class CalibrationError(RuntimeError):
    """Calibration maps could not be fetched or decoded."""


class CalibrationMap:
    """Read-only 3D grid of calibration values with explicit bin edges.

    Axes are, in order, the number of TPC clusters, the momentum at the TPC
    inner wall and the pseudorapidity.
    """

    axis_names = ("tpc_n_cls", "tpc_inner_param", "eta")

    def __init__(self, edges: Sequence[Sequence[float]], values) -> None:
        if len(edges) != 3:
            raise ConfigurationError(f"Calibration map needs 3 axes, got {len(edges)}.")
        self.edges = tuple(np.array(e, dtype=float) for e in edges)
        for name, axis in zip(self.axis_names, self.edges, strict=True):
            if axis.ndim != 1 or axis.size < 2:
                raise ConfigurationError(f"Axis '{name}' needs at least two bin edges.")
            if np.any(np.diff(axis) <= 0.0):
                raise ConfigurationError(f"Axis '{name}' bin edges must be strictly increasing.")
        self.values = np.array(values, dtype=float)
        expected = tuple(axis.size - 1 for axis in self.edges)
        if self.values.shape != expected:
            raise ConfigurationError(
                f"Calibration values have shape {self.values.shape}, expected {expected}."
            )
        for axis in self.edges:
            axis.setflags(write=False)
        self.values.setflags(write=False)

    @property
    def shape(self) -> tuple[int, ...]:
        return self.values.shape

    def find_bin(self, axis: int, value: float) -> int:
        """Zero-based bin index on one axis, clamped to the valid range."""
        edges = self.edges[axis]
        idx = int(np.searchsorted(edges, value, side="right")) - 1
        return min(max(idx, 0), edges.size - 2)

    def bin_indices(self, n_cls: float, p_in: float, eta: float) -> tuple[int, int, int]:
        return (
            self.find_bin(0, n_cls),
            self.find_bin(1, p_in),
            self.find_bin(2, eta),
        )

    def lookup(self, n_cls: float, p_in: float, eta: float) -> float:
        """Value of the (clamped) bin containing the coordinate triple."""
        return float(self.values[self.bin_indices(n_cls, p_in, eta)])

    def same_binning(self, other: "CalibrationMap") -> bool:
        return all(np.array_equal(a, b) for a, b in zip(self.edges, other.edges, strict=True))

    @classmethod
    def from_dict(cls, data: Mapping) -> "CalibrationMap":
        """Build a map from `{"edges": [[...], [...], [...]], "values": [[[...]]]}`."""
        try:
            return cls(edges=data["edges"], values=data["values"])
        except KeyError as exc:
            raise ConfigurationError(f"Calibration map document misses key {exc}.") from exc


def corrected_nsigma(
    mean_map: CalibrationMap,
    sigma_map: CalibrationMap,
    track: TrackState,
    species: PIDSpecies,
) -> float:
    """Post-calibrated TPC n-sigma: `(raw - mean) / sigma` at the track's bin."""
    if not isinstance(species, PIDSpecies) or species not in SUPPORTED_SPECIES:
        raise ConfigurationError(
            f"Wrong PID species {species!r} for TPC post-calibration. "
            f"Supported: {[s.name for s in SUPPORTED_SPECIES]}"
        )
    raw = track.nsigma_tpc(species)
    coords = (track.tpc_n_cls_found, track.tpc_inner_param, track.eta)
    mean = mean_map.lookup(*coords)
    width = sigma_map.lookup(*coords)
    # Empty bins carry no width; the track then fails any n-sigma cut.
    if not width > 0.0:
        return math.inf
    return (raw - mean) / width


class PidPostCalibration:
    """Mean/sigma map pairs per species.

    Kaons fall back to the pion maps when no dedicated kaon maps exist.
    """

    def __init__(self, maps: Mapping[PIDSpecies, tuple[CalibrationMap, CalibrationMap]]) -> None:
        for species, (mean_map, sigma_map) in maps.items():
            if species not in SUPPORTED_SPECIES:
                raise ConfigurationError(f"No TPC post-calibration available for {species!r}.")
            if not mean_map.same_binning(sigma_map):
                raise ConfigurationError(
                    f"Mean and sigma maps for {PIDSpecies(species).name} have different binning."
                )
        self._maps = dict(maps)

    def maps_for(self, species: PIDSpecies) -> tuple[CalibrationMap, CalibrationMap]:
        if species in self._maps:
            return self._maps[species]
        if species == PIDSpecies.KAON and PIDSpecies.PION in self._maps:
            return self._maps[PIDSpecies.PION]
        raise ConfigurationError(f"No TPC post-calibration maps loaded for {species!r}.")

    def corrected_tpc_nsigma(self, track: TrackState, species: PIDSpecies) -> float:
        mean_map, sigma_map = self.maps_for(species)
        return corrected_nsigma(mean_map, sigma_map, track, species)


def tpc_nsigma(
    track: TrackState,
    species: PIDSpecies,
    post_calibration: PidPostCalibration | None = None,
) -> float:
    """TPC n-sigma of a track, post-calibrated when maps are supplied."""
    if post_calibration is None:
        return track.nsigma_tpc(species)
    return post_calibration.corrected_tpc_nsigma(track, species)


class CalibrationProvider(Protocol):
    """Source of calibration maps valid at a given timestamp."""

    def fetch(self, path: str, timestamp: int) -> CalibrationMap:
        ...


class JsonCalibrationProvider:
    """Reads `<directory>/<path>.json` map documents.

    The timestamp is accepted for interface compatibility; local documents
    carry no validity interval.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def fetch(self, path: str, timestamp: int) -> CalibrationMap:
        file_path = self.directory / f"{path}.json"
        try:
            data = json.loads(file_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise CalibrationError(
                f"Cannot fetch calibration '{path}' for timestamp {timestamp} from {file_path}."
            ) from exc
        return CalibrationMap.from_dict(data)


CALIBRATION_PATHS = {
    PIDSpecies.PION: ("pion_mean", "pion_sigma"),
    PIDSpecies.PROTON: ("proton_mean", "proton_sigma"),
}


def load_post_calibration(
    provider: CalibrationProvider,
    timestamp: int,
    paths: Mapping[PIDSpecies, tuple[str, str]] = CALIBRATION_PATHS,
) -> PidPostCalibration:
    """Fetch the mean/sigma maps of every configured species from a provider."""
    maps = {}
    for species, (mean_path, sigma_path) in paths.items():
        try:
            maps[species] = (provider.fetch(mean_path, timestamp), provider.fetch(sigma_path, timestamp))
        except CalibrationError:
            raise
        except Exception as exc:
            raise CalibrationError(
                f"Error while fetching TPC post-calibration for {PIDSpecies(species).name}."
            ) from exc
        logger.info("Loaded TPC post-calibration maps for %s (timestamp %d)", PIDSpecies(species).name, timestamp)
    return PidPostCalibration(maps)
