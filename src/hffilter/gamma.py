"""Photon selections: conversion (V0) photons and calorimeter clusters.

Both selectors apply their vetoes in a fixed order and, when a monitoring
sink is given, record the index of the stage that rejected each candidate.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .config import ConfigurationError
from .models import CaloCluster, GammaCandidate
from .monitoring import MonitoringSink

MAX_GAMMA_ETA = 0.8
MIN_V0_RADIUS = 0.0
MAX_V0_RADIUS = 180.0
ARMENTEROS_ALPHA_SCALE = 0.95
ARMENTEROS_QT_SCALE = 0.05
MAX_PSI_PAIR = 0.1
MIN_GAMMA_COS_PA = 0.85

# Stage indices of the conversion-photon counter.
GAMMA_ENTRY = 0
GAMMA_ETA_VETO = 1
GAMMA_RADIUS_VETO = 2
GAMMA_ARMENTEROS_VETO = 3
GAMMA_PSI_PAIR_VETO = 4
GAMMA_COS_PA_VETO = 5
GAMMA_ACCEPTED = 6


def _gamma_veto(gamma: GammaCandidate, cos_pa: float) -> int:
    """Index of the first failing veto, or `GAMMA_ACCEPTED`."""
    if abs(gamma.eta) > MAX_GAMMA_ETA:
        return GAMMA_ETA_VETO
    if gamma.v0_radius < MIN_V0_RADIUS or gamma.v0_radius > MAX_V0_RADIUS:
        return GAMMA_RADIUS_VETO
    ellipse = (gamma.alpha / ARMENTEROS_ALPHA_SCALE) ** 2 + (gamma.qt_arm / ARMENTEROS_QT_SCALE) ** 2
    if ellipse >= 1.0:
        return GAMMA_ARMENTEROS_VETO
    if abs(gamma.psi_pair) > MAX_PSI_PAIR:
        return GAMMA_PSI_PAIR_VETO
    if cos_pa < MIN_GAMMA_COS_PA:
        return GAMMA_COS_PA_VETO
    return GAMMA_ACCEPTED


def is_selected_gamma(
    gamma: GammaCandidate,
    cos_pa: float | None = None,
    monitor: MonitoringSink | None = None,
) -> bool:
    """Photon-conversion selection.

    `cos_pa` is the cosine of the pointing angle with respect to the
    collision the photon is paired with; it defaults to the value stored on
    the candidate.
    """
    if cos_pa is None:
        cos_pa = gamma.cos_pa
    stage = _gamma_veto(gamma, cos_pa)

    if monitor is not None:
        monitor.fill("gamma/selected", GAMMA_ENTRY)
        monitor.fill("gamma/eta_before", gamma.eta)
        monitor.fill("gamma/armenteros_before", gamma.alpha, gamma.qt_arm)
        monitor.fill("gamma/selected", stage)
        if stage == GAMMA_ACCEPTED:
            monitor.fill("gamma/eta_after", gamma.eta)
            monitor.fill("gamma/armenteros_after", gamma.alpha, gamma.qt_arm)
    return stage == GAMMA_ACCEPTED


CALO_ENTRY = 0
CALO_TIME_VETO = 1
CALO_M02_VETO = 2
CALO_ACCEPTED = 3


@dataclass(frozen=True)
class CaloClusterCuts:
    """Timing (ns) and shower-shape windows for calorimeter photons."""

    min_time: float = -200.0
    max_time: float = 200.0
    min_m02: float = 0.0
    max_m02: float = 1.0

    def validate(self) -> None:
        if self.min_time > self.max_time:
            raise ConfigurationError(f"Cluster time window is empty: [{self.min_time}, {self.max_time}].")
        if self.min_m02 > self.max_m02:
            raise ConfigurationError(f"Cluster M02 window is empty: [{self.min_m02}, {self.max_m02}].")

    def summary(self) -> list[str]:
        return [
            f"Timing cut: {self.min_time} < t < {self.max_time}",
            f"M02 cut: {self.min_m02} < M02 < {self.max_m02}",
        ]


def select_calo_clusters(
    clusters: Iterable[CaloCluster],
    cuts: CaloClusterCuts,
    monitor: MonitoringSink | None = None,
) -> list[CaloCluster]:
    """Keep the clusters passing the time and M02 windows, in input order."""
    selected = []
    for cluster in clusters:
        if monitor is not None:
            monitor.fill("calo/energy_in", cluster.energy)
            monitor.fill("calo/filter", CALO_ENTRY)
        if cluster.time > cuts.max_time or cluster.time < cuts.min_time:
            if monitor is not None:
                monitor.fill("calo/filter", CALO_TIME_VETO)
            continue
        if cluster.m02 > cuts.max_m02 or cluster.m02 < cuts.min_m02:
            if monitor is not None:
                monitor.fill("calo/filter", CALO_M02_VETO)
            continue
        if monitor is not None:
            monitor.fill("calo/energy_out", cluster.energy)
            monitor.fill("calo/filter", CALO_ACCEPTED)
        selected.append(cluster)
    return selected
