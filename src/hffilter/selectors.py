"""Single-track selections for particle-species hypotheses.

Every selector rejects tracks outside the central-barrel acceptance
(|eta| > 0.8) before looking at anything else.
"""

from __future__ import annotations

import math

from .calibration import PidPostCalibration, tpc_nsigma
from .config import SingleTrackBeautyCuts
from .enums import BeautyTrackSelection, PIDSpecies
from .models import TrackState
from .monitoring import MonitoringSink
from .physics import find_bin

MAX_ABS_ETA = 0.8


def in_acceptance(eta: float) -> bool:
    """Whether a pseudorapidity lies inside the barrel acceptance."""
    return abs(eta) <= MAX_ABS_ETA


def is_selected_track_for_beauty(
    track: TrackState,
    cuts: SingleTrackBeautyCuts,
) -> BeautyTrackSelection:
    """Classify a bachelor-track candidate for beauty decays.

    Soft pions are a looser tier nested inside the regular acceptance: both
    must pass the pT-bin, acceptance and impact-parameter cuts, and only
    tracks above `pt_min_beauty_bachelor` are regular bachelors.
    """
    pt = track.pt
    pt_bin = find_bin(cuts.pt_bins, pt)
    if pt_bin == -1:
        return BeautyTrackSelection.REJECTED
    if pt < cuts.pt_min_soft_pion:
        return BeautyTrackSelection.REJECTED
    if not in_acceptance(track.eta):
        return BeautyTrackSelection.REJECTED
    if abs(track.dca_z) > cuts.max_dca_z:
        return BeautyTrackSelection.REJECTED

    min_dca_xy, max_dca_xy = cuts.dca_xy_window(pt_bin)
    if abs(track.dca_xy) < min_dca_xy:
        return BeautyTrackSelection.REJECTED
    if abs(track.dca_xy) > max_dca_xy:
        return BeautyTrackSelection.REJECTED

    if pt < cuts.pt_min_beauty_bachelor:
        return BeautyTrackSelection.SOFT_PION
    return BeautyTrackSelection.REGULAR


def is_selected_proton_for_femto(
    track: TrackState,
    min_pt: float,
    max_nsigma: float,
    only_tof: bool,
    post_calibration: PidPostCalibration | None = None,
    monitor: MonitoringSink | None = None,
) -> bool:
    """Loose proton selection for femtoscopic pairs.

    The TOF n-sigma is used alone with `only_tof`, otherwise TPC and TOF are
    combined in quadrature.
    """
    if track.pt < min_pt:
        return False
    if not in_acceptance(track.eta):
        return False
    if not track.is_global_track:
        return False

    nsigma_tpc = tpc_nsigma(track, PIDSpecies.PROTON, post_calibration)
    nsigma_tof = track.nsigma_tof(PIDSpecies.PROTON)
    if only_tof:
        nsigma = abs(nsigma_tof)
    else:
        nsigma = math.sqrt(nsigma_tpc * nsigma_tpc + nsigma_tof * nsigma_tof)
    if nsigma > max_nsigma:
        return False

    if monitor is not None:
        monitor.fill("femto/proton_tpc_pid", track.p, nsigma_tpc)
        monitor.fill("femto/proton_tof_pid", track.p, nsigma_tof)
    return True


def is_compatible_with_species(
    track: TrackState,
    species: PIDSpecies,
    max_nsigma_tpc: float,
    max_nsigma_tof: float,
    post_calibration: PidPostCalibration | None = None,
) -> bool:
    """TPC n-sigma window, plus the TOF window for tracks with a TOF match."""
    if not in_acceptance(track.eta):
        return False
    if abs(tpc_nsigma(track, species, post_calibration)) > max_nsigma_tpc:
        return False
    if track.has_tof and abs(track.nsigma_tof(species)) > max_nsigma_tof:
        return False
    return True


def is_selected_proton_for_charm_baryons(
    track: TrackState,
    max_nsigma_tpc: float,
    max_nsigma_tof: float,
    post_calibration: PidPostCalibration | None = None,
) -> bool:
    """Proton hypothesis for Lc/Xic daughters."""
    return is_compatible_with_species(
        track, PIDSpecies.PROTON, max_nsigma_tpc, max_nsigma_tof, post_calibration
    )


def is_selected_kaon_for_charm_3prong(
    track: TrackState,
    max_nsigma_tpc: float,
    max_nsigma_tof: float,
    post_calibration: PidPostCalibration | None = None,
) -> bool:
    """Kaon hypothesis for the opposite-charge prong of 3-prong candidates."""
    return is_compatible_with_species(
        track, PIDSpecies.KAON, max_nsigma_tpc, max_nsigma_tof, post_calibration
    )


def is_selected_pion_for_charm(
    track: TrackState,
    max_nsigma_tpc: float,
    max_nsigma_tof: float,
    post_calibration: PidPostCalibration | None = None,
) -> bool:
    """Pion hypothesis for D0 daughters."""
    return is_compatible_with_species(
        track, PIDSpecies.PION, max_nsigma_tpc, max_nsigma_tof, post_calibration
    )


def is_selected_kaon_for_charm(
    track: TrackState,
    max_nsigma_tpc: float,
    max_nsigma_tof: float,
    post_calibration: PidPostCalibration | None = None,
) -> bool:
    """Kaon hypothesis for D0 daughters."""
    return is_compatible_with_species(
        track, PIDSpecies.KAON, max_nsigma_tpc, max_nsigma_tof, post_calibration
    )
