"""Configurable selection thresholds for the filtering engine.

Every container here is a frozen dataclass built once at startup; `validate`
runs before any event is processed and raises `ConfigurationError` on
inconsistent inputs (e.g. mismatched cut-list cardinalities).
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import IntEnum
from types import MappingProxyType
from typing import Any, Mapping

from .enums import BeautyParticle, CharmParticle


class ConfigurationError(ValueError):
    """Fatal configuration problem detected before processing events."""


@dataclass(frozen=True)
class SingleTrackBeautyCuts:
    """Bachelor-track cuts for beauty candidates, binned in track pT.

    `min_dca_xy[i]` and `max_dca_xy[i]` apply to tracks in
    `[pt_bins[i], pt_bins[i + 1])`.
    """

    pt_bins: tuple[float, ...] = (0.0, 0.5, 1.0, 1.5, 2.0, 3.0, 1000.0)
    min_dca_xy: tuple[float, ...] = (0.0025, 0.0025, 0.0025, 0.0, 0.0, 0.0)
    max_dca_xy: tuple[float, ...] = (10.0, 10.0, 10.0, 10.0, 10.0, 10.0)
    pt_min_soft_pion: float = 0.1
    pt_min_beauty_bachelor: float = 0.5
    max_dca_z: float = 2.0

    def validate(self) -> None:
        n_bins = len(self.pt_bins) - 1
        if n_bins < 1:
            raise ConfigurationError("Beauty track cuts need at least one pT bin.")
        if any(hi <= lo for lo, hi in zip(self.pt_bins[:-1], self.pt_bins[1:])):
            raise ConfigurationError(f"pT bins must be strictly increasing, got {self.pt_bins}.")
        if len(self.min_dca_xy) != n_bins or len(self.max_dca_xy) != n_bins:
            raise ConfigurationError(
                f"Beauty DCAxy cuts must have one entry per pT bin ({n_bins}), got "
                f"{len(self.min_dca_xy)} minima and {len(self.max_dca_xy)} maxima."
            )
        if self.pt_min_beauty_bachelor < self.pt_min_soft_pion:
            raise ConfigurationError("Beauty bachelor pT floor must not be below the soft-pion floor.")

    def dca_xy_window(self, pt_bin: int) -> tuple[float, float]:
        """Return the `(min, max)` DCAxy window for one pT bin."""
        return self.min_dca_xy[pt_bin], self.max_dca_xy[pt_bin]


@dataclass(frozen=True)
class CharmPidCuts:
    """Maximum n-sigma values for charm-daughter PID."""

    nsigma_tpc_pion_kaon_dzero: float = 3.0
    nsigma_tof_pion_kaon_dzero: float = 3.0
    nsigma_tpc_kaon_3prong: float = 3.0
    nsigma_tof_kaon_3prong: float = 3.0
    nsigma_tpc_proton_lc: float = 3.0
    nsigma_tof_proton_lc: float = 3.0


@dataclass(frozen=True)
class FemtoCuts:
    """Proton selection and pair cut for the femtoscopic triggers."""

    min_proton_pt: float = 0.5
    max_nsigma_proton: float = 3.0
    proton_only_tof: bool = False
    max_kstar: float = 1.0


@dataclass(frozen=True)
class HighPtCuts:
    """Minimum charm-candidate pT for the high-pT triggers."""

    min_pt_2prong: float = 8.0
    min_pt_3prong: float = 8.0


@dataclass(frozen=True)
class GammaCharmCuts:
    """Tolerance on the (charm + photon) - charm mass difference."""

    delta_mass_tolerance: float = 0.03


@dataclass(frozen=True)
class BDTThresholds:
    """Cut values on the three ML output scores."""

    max_background: float = 1.0
    min_prompt: float = 0.0
    min_nonprompt: float = 0.0


def _per_species(value: float, enum: type[IntEnum]) -> Mapping[Any, float]:
    return MappingProxyType({member: value for member in enum})


@dataclass(frozen=True)
class MassWindowCuts:
    """Per-species mass tolerances.

    `charm` gates charm-candidate reconstruction, `charm_for_beauty` applies
    when the charm candidate is a beauty-decay daughter, `beauty` gates the
    beauty candidate itself. `dstar` is the tolerance on the D*+ - D0 mass
    difference used to tag soft pions.
    """

    charm: Mapping[CharmParticle, float] = field(
        default_factory=lambda: _per_species(0.04, CharmParticle)
    )
    charm_for_beauty: Mapping[CharmParticle, float] = field(
        default_factory=lambda: _per_species(0.04, CharmParticle)
    )
    beauty: Mapping[BeautyParticle, float] = field(
        default_factory=lambda: _per_species(0.4, BeautyParticle)
    )
    dstar: float = 0.01

    def validate(self) -> None:
        for name, table, enum in (
            ("charm", self.charm, CharmParticle),
            ("charm_for_beauty", self.charm_for_beauty, CharmParticle),
            ("beauty", self.beauty, BeautyParticle),
        ):
            missing = [member.name for member in enum if member not in table]
            if missing:
                raise ConfigurationError(f"Mass window set '{name}' misses tolerances for {missing}.")
            negative = [member.name for member, value in table.items() if value < 0.0]
            if negative:
                raise ConfigurationError(f"Mass window set '{name}' has negative tolerances for {negative}.")
        if self.dstar < 0.0:
            raise ConfigurationError("D* mass-difference tolerance must not be negative.")


@dataclass(frozen=True)
class FilterConfig:
    """Complete, read-only configuration of the filtering engine."""

    beauty_track: SingleTrackBeautyCuts = field(default_factory=SingleTrackBeautyCuts)
    pid: CharmPidCuts = field(default_factory=CharmPidCuts)
    femto: FemtoCuts = field(default_factory=FemtoCuts)
    high_pt: HighPtCuts = field(default_factory=HighPtCuts)
    gamma_charm: GammaCharmCuts = field(default_factory=GammaCharmCuts)
    mass_windows: MassWindowCuts = field(default_factory=MassWindowCuts)
    bdt_thresholds: Mapping[CharmParticle, BDTThresholds] = field(
        default_factory=lambda: MappingProxyType({})
    )
    compute_tpc_post_calib: bool = False
    activate_qa: int = 0

    def validate(self) -> "FilterConfig":
        """Check internal consistency; return `self` to allow chaining."""
        self.beauty_track.validate()
        self.mass_windows.validate()
        if self.activate_qa < 0:
            raise ConfigurationError("activate_qa must be 0 (off), 1 or 2.")
        return self

    def summary(self) -> list[str]:
        """Return human-readable `key: value` lines for logging."""
        lines = []
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Mapping):
                value = {getattr(k, "name", k): v for k, v in value.items()}
            lines.append(f"{f.name:<24}: {value}")
        return lines

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FilterConfig":
        """Build and validate a configuration from a nested mapping (e.g. JSON)."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {unknown}")
        kwargs: dict[str, Any] = {}
        if "beauty_track" in data:
            raw = dict(data["beauty_track"])
            for key in ("pt_bins", "min_dca_xy", "max_dca_xy"):
                if key in raw:
                    raw[key] = tuple(float(x) for x in raw[key])
            kwargs["beauty_track"] = _build(SingleTrackBeautyCuts, raw)
        for key, section in (
            ("pid", CharmPidCuts),
            ("femto", FemtoCuts),
            ("high_pt", HighPtCuts),
            ("gamma_charm", GammaCharmCuts),
        ):
            if key in data:
                kwargs[key] = _build(section, data[key])
        if "mass_windows" in data:
            raw = dict(data["mass_windows"])
            defaults = MassWindowCuts()
            kwargs["mass_windows"] = MassWindowCuts(
                charm=_merge_species(defaults.charm, raw.pop("charm", {}), CharmParticle),
                charm_for_beauty=_merge_species(
                    defaults.charm_for_beauty, raw.pop("charm_for_beauty", {}), CharmParticle
                ),
                beauty=_merge_species(defaults.beauty, raw.pop("beauty", {}), BeautyParticle),
                dstar=float(raw.pop("dstar", defaults.dstar)),
            )
            if raw:
                raise ConfigurationError(f"Unknown mass-window keys: {sorted(raw)}")
        if "bdt_thresholds" in data:
            kwargs["bdt_thresholds"] = MappingProxyType(
                {
                    parse_enum(CharmParticle, name): _build(BDTThresholds, values)
                    for name, values in data["bdt_thresholds"].items()
                }
            )
        if "compute_tpc_post_calib" in data:
            kwargs["compute_tpc_post_calib"] = bool(data["compute_tpc_post_calib"])
        if "activate_qa" in data:
            kwargs["activate_qa"] = int(data["activate_qa"])
        return cls(**kwargs).validate()


def parse_enum(enum: type[IntEnum], name: str | int) -> Any:
    """Translate a configuration name (case-insensitive) into an enum member."""
    if isinstance(name, int):
        try:
            return enum(name)
        except ValueError as exc:
            raise ConfigurationError(f"{enum.__name__} has no value {name}.") from exc
    key = str(name).strip().upper()
    try:
        return enum[key]
    except KeyError as exc:
        raise ConfigurationError(
            f"Enumerated object not recognized: {name}. Must be one of {[e.name for e in enum]}."
        ) from exc


def _build(cls: type, values: Mapping[str, Any]) -> Any:
    """Instantiate a flat section dataclass, rejecting unknown keys."""
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigurationError(f"Unknown keys for {cls.__name__}: {unknown}")
    return cls(**values)


def _merge_species(
    defaults: Mapping[Any, float], overrides: Mapping[str, float], enum: type[IntEnum]
) -> Mapping[Any, float]:
    merged = dict(defaults)
    for name, value in overrides.items():
        merged[parse_enum(enum, name)] = float(value)
    return MappingProxyType(merged)
