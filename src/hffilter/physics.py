"""Physics/math helpers: invariant masses, pair relative momentum, binning."""

from __future__ import annotations

import bisect
from typing import Iterable, Sequence

from .models import LorentzVector, Vector3
from .pid import PROTON


def sum_lorentz(vectors: Iterable[LorentzVector]) -> LorentzVector:
    """Sum an iterable of Lorentz vectors."""
    total = LorentzVector(0.0, 0.0, 0.0, 0.0)
    for vec in vectors:
        total = total + vec
    return total


def invariant_mass(momenta: Sequence[Vector3], masses: Sequence[float]) -> float:
    """Invariant mass of a set of daughters with positional mass assignment."""
    if len(momenta) != len(masses):
        raise ValueError("Mass list length must match the number of daughters.")
    return sum_lorentz(
        LorentzVector.from_momentum(p, m) for p, m in zip(momenta, masses, strict=True)
    ).mass


def sum_momenta(momenta: Iterable[Vector3]) -> Vector3:
    """Component-wise sum of 3-momenta."""
    px = py = pz = 0.0
    for p in momenta:
        px += p[0]
        py += p[1]
        pz += p[2]
    return px, py, pz


def find_bin(edges: Sequence[float], value: float) -> int:
    """Index of the bin `[edges[i], edges[i+1])` holding `value`, -1 if outside."""
    if not edges or value < edges[0] or value >= edges[-1]:
        return -1
    return bisect.bisect_right(edges, value) - 1


def compute_relative_momentum(
    track_momentum: Vector3,
    charm_momentum: Vector3,
    charm_mass: float,
    track_mass: float = PROTON.mass,
) -> float:
    """Relative momentum kstar of a (track, charm candidate) pair.

    Both four-vectors are boosted into the rest frame of their sum and
    kstar is half the magnitude of their difference there.
    """
    part1 = LorentzVector.from_momentum(track_momentum, track_mass)
    part2 = LorentzVector.from_momentum(charm_momentum, charm_mass)
    boost = (part1 + part2).boost_vector_to_rest_frame()
    part1_cm = part1.boost(*boost)
    part2_cm = part2.boost(*boost)
    return 0.5 * (part1_cm - part2_cm).p


def compute_number_of_candidates(indices: Sequence[Sequence[int]]) -> int:
    """Count candidates not sharing daughter tracks, coarsened to 0, 1 or 2.

    With fewer than two candidates the count itself is returned. Otherwise
    the result is 0 when every candidate overlaps with every other one and 2
    as soon as any independent pair exists.
    """
    if len(indices) < 2:
        return len(indices)

    daughters = [set(cand) for cand in indices]
    num_independent = []
    for i_cand, first in enumerate(daughters):
        n_independent = 0
        for i_second, second in enumerate(daughters):
            if i_cand == i_second:
                continue
            if first.isdisjoint(second):
                n_independent += 1
        num_independent.append(n_independent)

    if max(num_independent) == 0:
        return 0
    return 2
