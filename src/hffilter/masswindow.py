"""Invariant-mass window selections for charm and beauty candidates.

Only hypotheses whose bit is set in the incoming mask are evaluated, so a
bit can be kept but never introduced here. Daughter masses are assigned
positionally: 2-prong momenta are `(pos, neg)`, 3-prong momenta are
`(first same-charge, opposite, second same-charge)`.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Callable, Mapping, Sequence

from .enums import BeautyParticle, CharmParticle, bit, is_bit_set
from .models import Vector3
from .monitoring import MonitoringSink
from .physics import invariant_mass
from .pid import (
    BEAUTY_HYPOTHESES,
    CHARM_HYPOTHESES,
    D0,
    DSTAR,
    KAON,
    PION,
    PROTON,
)

MASS_ASSIGNMENTS: Mapping[CharmParticle, Mapping[int, tuple[float, ...]]] = MappingProxyType(
    {
        CharmParticle.D0: {0: (PION.mass, KAON.mass), 1: (KAON.mass, PION.mass)},
        CharmParticle.DPLUS: {0: (PION.mass, KAON.mass, PION.mass)},
        CharmParticle.DS: {0: (KAON.mass, KAON.mass, PION.mass), 1: (PION.mass, KAON.mass, KAON.mass)},
        CharmParticle.LC: {0: (PROTON.mass, KAON.mass, PION.mass), 1: (PION.mass, KAON.mass, PROTON.mass)},
        CharmParticle.XIC: {0: (PROTON.mass, KAON.mass, PION.mass), 1: (PION.mass, KAON.mass, PROTON.mass)},
    }
)


def hypothesis_masses(
    particle: CharmParticle,
    momenta: Sequence[Vector3],
    is_selected: int,
) -> dict[int, float]:
    """Invariant mass of every hypothesis bit set in `is_selected`."""
    out: dict[int, float] = {}
    for hyp_bit, masses in MASS_ASSIGNMENTS[particle].items():
        if is_bit_set(is_selected, hyp_bit):
            out[hyp_bit] = invariant_mass(momenta, masses)
    return out


def evaluate_charm_mass_window(
    particle: CharmParticle,
    momenta: Sequence[Vector3],
    pt: float,
    is_selected: int,
    delta_mass: float,
    monitor: MonitoringSink | None = None,
    series: str | None = None,
) -> tuple[int, dict[int, float]]:
    """Return the surviving hypothesis bits and the masses that were computed."""
    nominal = CHARM_HYPOTHESES[particle].mass
    masses = hypothesis_masses(particle, momenta, is_selected)
    ret_value = 0
    for hyp_bit, mass in masses.items():
        if monitor is not None:
            monitor.fill(series or f"mass/{particle.name}", pt, mass)
        if abs(mass - nominal) < delta_mass:
            ret_value |= bit(hyp_bit)
    return ret_value, masses


def is_selected_d0_in_mass_range(
    p_pos: Vector3,
    p_neg: Vector3,
    pt: float,
    is_selected: int,
    delta_mass: float,
    monitor: MonitoringSink | None = None,
    series: str | None = None,
) -> int:
    """1 for D0, 2 for D0bar, 3 for both."""
    ret_value, _ = evaluate_charm_mass_window(
        CharmParticle.D0, (p_pos, p_neg), pt, is_selected, delta_mass, monitor, series
    )
    return ret_value


def is_selected_dplus_in_mass_range(
    p_first: Vector3,
    p_opposite: Vector3,
    p_second: Vector3,
    pt: float,
    is_selected: int,
    delta_mass: float,
    monitor: MonitoringSink | None = None,
    series: str | None = None,
) -> int:
    """bit0 for D+ -> K pi pi inside the window."""
    ret_value, _ = evaluate_charm_mass_window(
        CharmParticle.DPLUS, (p_first, p_opposite, p_second), pt, is_selected, delta_mass, monitor, series
    )
    return ret_value


def is_selected_ds_in_mass_range(
    p_first: Vector3,
    p_opposite: Vector3,
    p_second: Vector3,
    pt: float,
    is_selected: int,
    delta_mass: float,
    monitor: MonitoringSink | None = None,
    series: str | None = None,
) -> int:
    """bit0 for K K pi, bit1 for pi K K."""
    ret_value, _ = evaluate_charm_mass_window(
        CharmParticle.DS, (p_first, p_opposite, p_second), pt, is_selected, delta_mass, monitor, series
    )
    return ret_value


def is_selected_lc_in_mass_range(
    p_first: Vector3,
    p_opposite: Vector3,
    p_second: Vector3,
    pt: float,
    is_selected: int,
    delta_mass: float,
    monitor: MonitoringSink | None = None,
    series: str | None = None,
) -> int:
    """bit0 for p K pi, bit1 for pi K p."""
    ret_value, _ = evaluate_charm_mass_window(
        CharmParticle.LC, (p_first, p_opposite, p_second), pt, is_selected, delta_mass, monitor, series
    )
    return ret_value


def is_selected_xic_in_mass_range(
    p_first: Vector3,
    p_opposite: Vector3,
    p_second: Vector3,
    pt: float,
    is_selected: int,
    delta_mass: float,
    monitor: MonitoringSink | None = None,
    series: str | None = None,
) -> int:
    """bit0 for p K pi, bit1 for pi K p."""
    ret_value, _ = evaluate_charm_mass_window(
        CharmParticle.XIC, (p_first, p_opposite, p_second), pt, is_selected, delta_mass, monitor, series
    )
    return ret_value


_CHARM_SELECTORS: Mapping[CharmParticle, Callable[..., int]] = MappingProxyType(
    {
        CharmParticle.D0: is_selected_d0_in_mass_range,
        CharmParticle.DPLUS: is_selected_dplus_in_mass_range,
        CharmParticle.DS: is_selected_ds_in_mass_range,
        CharmParticle.LC: is_selected_lc_in_mass_range,
        CharmParticle.XIC: is_selected_xic_in_mass_range,
    }
)
if set(_CHARM_SELECTORS) != set(CharmParticle) or set(MASS_ASSIGNMENTS) != set(CharmParticle):
    raise RuntimeError("Every charm species needs a mass-window selector and mass assignment.")


def select_charm_in_mass_range(
    particle: CharmParticle,
    momenta: Sequence[Vector3],
    pt: float,
    is_selected: int,
    delta_mass: float,
    monitor: MonitoringSink | None = None,
    series: str | None = None,
) -> int:
    """Dispatch to the mass-window selector of one charm species."""
    expected = len(next(iter(MASS_ASSIGNMENTS[particle].values())))
    if len(momenta) != expected:
        raise ValueError(f"{particle.name} candidates need {expected} prong momenta, got {len(momenta)}.")
    return _CHARM_SELECTORS[particle](*momenta, pt, is_selected, delta_mass, monitor, series)


def is_selected_beauty_in_mass_range(
    particle: BeautyParticle,
    momenta: Sequence[Vector3],
    masses: Sequence[float],
    delta_mass: float,
    pt: float | None = None,
    monitor: MonitoringSink | None = None,
) -> bool:
    """Whether a beauty candidate built from `momenta` lies inside its window."""
    mass = invariant_mass(momenta, masses)
    if monitor is not None and pt is not None:
        monitor.fill(f"mass/{particle.name}", pt, mass)
    return abs(mass - BEAUTY_HYPOTHESES[particle].mass) < delta_mass


def is_selected_dstar(
    p_pos: Vector3,
    p_neg: Vector3,
    p_soft_pion: Vector3,
    is_selected: int,
    delta_mass: float,
) -> int:
    """Tag D*+ -> D0 pi+ candidates via the D* - D0 mass difference.

    Bits follow the D0 contract: bit0 keeps D0 (paired with a positive soft
    pion), bit1 keeps D0bar (negative soft pion). Charges are the caller's
    responsibility.
    """
    nominal = DSTAR.mass - D0.mass
    ret_value = 0
    for hyp_bit, masses in MASS_ASSIGNMENTS[CharmParticle.D0].items():
        if not is_bit_set(is_selected, hyp_bit):
            continue
        m_d0 = invariant_mass((p_pos, p_neg), masses)
        m_dstar = invariant_mass((p_pos, p_neg, p_soft_pion), (*masses, PION.mass))
        if abs(m_dstar - m_d0 - nominal) < delta_mass:
            ret_value |= bit(hyp_bit)
    return ret_value
