"""PID preselection of 2- and 3-prong charm candidates.

Each function returns a bitmask over the charge/mass-assignment variants of
one decay channel, evaluated before any invariant mass is computed.

Bit contract:
- D0: bit0 = D0 (pos -> pi, neg -> K), bit1 = D0bar (pos -> K, neg -> pi)
- D+: bit0 = K pi pi
- Ds: bit0 = K K pi, bit1 = pi K K
- Lc / Xic: bit0 = p K pi, bit1 = pi K p
"""

from __future__ import annotations

from .calibration import PidPostCalibration
from .config import CharmPidCuts
from .enums import bit
from .models import TrackState, Vector3
from .physics import invariant_mass
from .pid import KAON, PHI
from .selectors import (
    is_selected_kaon_for_charm,
    is_selected_kaon_for_charm_3prong,
    is_selected_pion_for_charm,
    is_selected_proton_for_charm_baryons,
)

PHI_MASS_TOLERANCE = 0.02


def is_dzero_preselected(
    track_pos: TrackState,
    track_neg: TrackState,
    cuts: CharmPidCuts,
    post_calibration: PidPostCalibration | None = None,
) -> int:
    """Evaluate both charge assignments of a D0 candidate independently."""
    tpc = cuts.nsigma_tpc_pion_kaon_dzero
    tof = cuts.nsigma_tof_pion_kaon_dzero
    ret_value = 0
    if is_selected_pion_for_charm(track_pos, tpc, tof, post_calibration) and is_selected_kaon_for_charm(
        track_neg, tpc, tof, post_calibration
    ):
        ret_value |= bit(0)
    if is_selected_pion_for_charm(track_neg, tpc, tof, post_calibration) and is_selected_kaon_for_charm(
        track_pos, tpc, tof, post_calibration
    ):
        ret_value |= bit(1)
    return ret_value


def _opposite_is_kaon(
    track_opposite: TrackState,
    cuts: CharmPidCuts,
    post_calibration: PidPostCalibration | None,
) -> bool:
    return is_selected_kaon_for_charm_3prong(
        track_opposite,
        cuts.nsigma_tpc_kaon_3prong,
        cuts.nsigma_tof_kaon_3prong,
        post_calibration,
    )


def is_dplus_preselected(
    track_opposite: TrackState,
    cuts: CharmPidCuts,
    post_calibration: PidPostCalibration | None = None,
) -> int:
    """D+ -> K pi pi: only the opposite-charge kaon is identified."""
    if not _opposite_is_kaon(track_opposite, cuts, post_calibration):
        return 0
    return bit(0)


def is_ds_preselected(
    p_same_first: Vector3,
    p_same_second: Vector3,
    p_opposite: Vector3,
    track_opposite: TrackState,
    cuts: CharmPidCuts,
    post_calibration: PidPostCalibration | None = None,
) -> int:
    """Ds -> phi pi: kaon PID on the opposite prong plus a KK mass near the phi."""
    if not _opposite_is_kaon(track_opposite, cuts, post_calibration):
        return 0

    ret_value = 0
    inv_mass_kk_first = invariant_mass((p_same_first, p_opposite), (KAON.mass, KAON.mass))
    inv_mass_kk_second = invariant_mass((p_same_second, p_opposite), (KAON.mass, KAON.mass))
    if abs(inv_mass_kk_first - PHI.mass) < PHI_MASS_TOLERANCE:
        ret_value |= bit(0)
    if abs(inv_mass_kk_second - PHI.mass) < PHI_MASS_TOLERANCE:
        ret_value |= bit(1)
    return ret_value


def is_charm_baryon_preselected(
    track_same_first: TrackState,
    track_same_second: TrackState,
    track_opposite: TrackState,
    cuts: CharmPidCuts,
    post_calibration: PidPostCalibration | None = None,
) -> int:
    """Lc/Xic -> p K pi: each same-charge prong is tested as the proton."""
    if not _opposite_is_kaon(track_opposite, cuts, post_calibration):
        return 0

    ret_value = 0
    if is_selected_proton_for_charm_baryons(
        track_same_first, cuts.nsigma_tpc_proton_lc, cuts.nsigma_tof_proton_lc, post_calibration
    ):
        ret_value |= bit(0)
    if is_selected_proton_for_charm_baryons(
        track_same_second, cuts.nsigma_tpc_proton_lc, cuts.nsigma_tof_proton_lc, post_calibration
    ):
        ret_value |= bit(1)
    return ret_value
