"""Core data models used by the filtering engine.

This module defines:
- immutable per-event inputs (`TrackState`, `GammaCandidate`, `CaloCluster`)
- candidate containers (`TwoProngCandidate`, `ThreeProngCandidate`, `EventInput`)
- particle-mass assignment objects (`ParticleHypothesis`)
- four-vector arithmetic including rest-frame boosts (`LorentzVector`)
- filter outputs (`CandidateResult`, `EventDecision`).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from .enums import CharmParticle, PIDSpecies

Vector3 = tuple[float, float, float]

_TPC_NSIGMA_FIELDS = {
    PIDSpecies.ELECTRON: "tpc_nsigma_el",
    PIDSpecies.KAON: "tpc_nsigma_ka",
    PIDSpecies.PION: "tpc_nsigma_pi",
    PIDSpecies.PROTON: "tpc_nsigma_pr",
}
_TOF_NSIGMA_FIELDS = {
    PIDSpecies.ELECTRON: "tof_nsigma_el",
    PIDSpecies.KAON: "tof_nsigma_ka",
    PIDSpecies.PION: "tof_nsigma_pi",
    PIDSpecies.PROTON: "tof_nsigma_pr",
}


def pseudorapidity(px: float, py: float, pz: float) -> float:
    """Pseudorapidity of a 3-momentum, saturated along the beam axis."""
    p = math.sqrt(px * px + py * py + pz * pz)
    if p == abs(pz):
        return 1e9 if pz >= 0 else -1e9
    return 0.5 * math.log((p + pz) / (p - pz))


@dataclass(frozen=True)
class TrackState:
    """Single reconstructed charged track with impact parameters and PID response.

    `tpc_inner_param` is the momentum measured at the TPC inner wall and,
    together with `tpc_n_cls_found` and `eta`, addresses the post-calibration
    maps. TOF n-sigma values are only meaningful when `has_tof` is set.
    """

    track_index: int
    px: float
    py: float
    pz: float
    charge: int = 0
    dca_xy: float = 0.0
    dca_z: float = 0.0
    tpc_nsigma_el: float = 0.0
    tpc_nsigma_pi: float = 0.0
    tpc_nsigma_ka: float = 0.0
    tpc_nsigma_pr: float = 0.0
    tof_nsigma_el: float = 0.0
    tof_nsigma_pi: float = 0.0
    tof_nsigma_ka: float = 0.0
    tof_nsigma_pr: float = 0.0
    has_tof: bool = False
    tpc_n_cls_found: int = 0
    tpc_inner_param: float = 0.0
    is_global_track: bool = True

    def momentum(self) -> Vector3:
        """Return the 3-momentum `(px, py, pz)`."""
        return self.px, self.py, self.pz

    @property
    def p(self) -> float:
        """Momentum magnitude."""
        return math.sqrt(self.px * self.px + self.py * self.py + self.pz * self.pz)

    @property
    def pt(self) -> float:
        """Transverse momentum."""
        return math.sqrt(self.px * self.px + self.py * self.py)

    @property
    def eta(self) -> float:
        """Pseudorapidity computed from the momentum direction."""
        return pseudorapidity(self.px, self.py, self.pz)

    def nsigma_tpc(self, species: PIDSpecies) -> float:
        """Raw TPC n-sigma for one species."""
        return getattr(self, _TPC_NSIGMA_FIELDS[PIDSpecies(species)])

    def nsigma_tof(self, species: PIDSpecies) -> float:
        """Raw TOF n-sigma for one species."""
        return getattr(self, _TOF_NSIGMA_FIELDS[PIDSpecies(species)])


@dataclass(frozen=True)
class TwoProngCandidate:
    """Pre-built two-prong vertex given by the indices of its prongs."""

    pos_index: int
    neg_index: int

    @property
    def indices(self) -> tuple[int, int]:
        return self.pos_index, self.neg_index


@dataclass(frozen=True)
class ThreeProngCandidate:
    """Pre-built three-prong vertex.

    The two same-charge prongs surround the opposite-charge prong, following
    the positional convention `(first, opposite, second)`.
    """

    first_index: int
    opposite_index: int
    second_index: int

    @property
    def indices(self) -> tuple[int, int, int]:
        return self.first_index, self.opposite_index, self.second_index


@dataclass(frozen=True)
class GammaCandidate:
    """Photon-conversion (V0) candidate with its shape and geometry variables."""

    eta: float
    v0_radius: float
    alpha: float
    qt_arm: float
    psi_pair: float
    cos_pa: float = 1.0
    px: float = 0.0
    py: float = 0.0
    pz: float = 0.0

    def momentum(self) -> Vector3:
        return self.px, self.py, self.pz


@dataclass(frozen=True)
class CaloCluster:
    """Calorimeter cluster considered as a photon candidate."""

    cluster_index: int
    energy: float
    eta: float
    phi: float
    time: float
    m02: float


@dataclass(frozen=True)
class EventInput:
    """One event payload: tracks plus the candidates built from them."""

    event_id: str
    tracks: tuple[TrackState, ...]
    two_prongs: tuple[TwoProngCandidate, ...] = ()
    three_prongs: tuple[ThreeProngCandidate, ...] = ()
    gammas: tuple[GammaCandidate, ...] = ()


@dataclass(frozen=True)
class ParticleHypothesis:
    """Named particle hypothesis used to derive mass-dependent observables."""

    name: str
    mass: float
    pdg_id: int | None = None


@dataclass(frozen=True)
class LorentzVector:
    """Simple 4-vector with convenience properties, arithmetic and boosts."""

    px: float
    py: float
    pz: float
    e: float

    @classmethod
    def from_momentum(cls, momentum: Vector3, mass: float) -> "LorentzVector":
        """Build an on-shell 4-vector from a 3-momentum and a mass."""
        px, py, pz = momentum
        energy = math.sqrt(px * px + py * py + pz * pz + mass * mass)
        return cls(px=px, py=py, pz=pz, e=energy)

    def __add__(self, other: "LorentzVector") -> "LorentzVector":
        """Component-wise 4-vector addition."""
        return LorentzVector(
            self.px + other.px,
            self.py + other.py,
            self.pz + other.pz,
            self.e + other.e,
        )

    def __sub__(self, other: "LorentzVector") -> "LorentzVector":
        """Component-wise 4-vector subtraction."""
        return LorentzVector(
            self.px - other.px,
            self.py - other.py,
            self.pz - other.pz,
            self.e - other.e,
        )

    @property
    def p2(self) -> float:
        """Squared 3-momentum magnitude."""
        return self.px * self.px + self.py * self.py + self.pz * self.pz

    @property
    def p(self) -> float:
        """3-momentum magnitude."""
        return math.sqrt(self.p2)

    @property
    def pt(self) -> float:
        """Transverse momentum."""
        return math.sqrt(self.px * self.px + self.py * self.py)

    @property
    def mass2(self) -> float:
        """Invariant mass squared."""
        return self.e * self.e - self.p2

    @property
    def mass(self) -> float:
        """Invariant mass with signed handling for small negative mass2 values."""
        m2 = self.mass2
        return m2**0.5 if m2 >= 0.0 else -((-m2) ** 0.5)

    def boost_vector_to_rest_frame(self) -> Vector3:
        """Velocity `beta` of the boost that brings this vector to rest."""
        if self.e <= 0.0:
            raise ValueError("Cannot build a rest-frame boost for non-positive energy.")
        return -self.px / self.e, -self.py / self.e, -self.pz / self.e

    def boost(self, bx: float, by: float, bz: float) -> "LorentzVector":
        """Apply a pure Lorentz boost with velocity `(bx, by, bz)`."""
        b2 = bx * bx + by * by + bz * bz
        if b2 >= 1.0:
            raise ValueError("Boost velocity must be smaller than the speed of light.")
        if b2 == 0.0:
            return self
        gamma = 1.0 / math.sqrt(1.0 - b2)
        bp = bx * self.px + by * self.py + bz * self.pz
        gamma2 = (gamma - 1.0) / b2
        return LorentzVector(
            px=self.px + gamma2 * bp * bx + gamma * bx * self.e,
            py=self.py + gamma2 * bp * by + gamma * by * self.e,
            pz=self.pz + gamma2 * bp * bz + gamma * bz * self.e,
            e=gamma * (self.e + bp),
        )


@dataclass(frozen=True)
class CandidateResult:
    """Outcome of the charm selection for one 2- or 3-prong candidate."""

    particle: CharmParticle
    prong_indices: tuple[int, ...]
    preselection_bits: int
    hypothesis_bits: int
    origin_bits: int
    pt: float
    p4: LorentzVector
    masses: Mapping[int, float] = field(default_factory=dict)
    scores: tuple[float, ...] = ()

    def __post_init__(self) -> None:
        # Read-only view over a private copy of the hypothesis masses.
        object.__setattr__(self, "masses", MappingProxyType(dict(self.masses)))

    @property
    def accepted(self) -> bool:
        return self.hypothesis_bits != 0


@dataclass(frozen=True)
class EventDecision:
    """Per-event trigger bitmap and the charm candidates that survived."""

    event_id: str
    triggers: int
    candidates: tuple[CandidateResult, ...] = ()
