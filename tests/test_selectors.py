"""Unit tests for single-track selections."""

from __future__ import annotations

import math
import unittest

import numpy as np

from hffilter import BeautyTrackSelection, CalibrationMap, Monitor, PidPostCalibration, SingleTrackBeautyCuts, TrackState
from hffilter.enums import PIDSpecies
from hffilter.selectors import (
    is_compatible_with_species,
    is_selected_kaon_for_charm,
    is_selected_proton_for_femto,
    is_selected_track_for_beauty,
)


def _track(pt: float = 1.0, eta: float = 0.0, **kwargs) -> TrackState:
    """Track along x with the requested pT and pseudorapidity."""
    return TrackState(track_index=kwargs.pop("track_index", 0), px=pt, py=0.0, pz=pt * math.sinh(eta), **kwargs)


class TestBeautyTrackSelection(unittest.TestCase):
    """Tiered bachelor classification."""

    cuts = SingleTrackBeautyCuts()

    def test_regular_bachelor(self) -> None:
        """A displaced track above the bachelor floor is a regular bachelor."""
        track = _track(pt=1.2, dca_xy=0.01)
        self.assertEqual(is_selected_track_for_beauty(track, self.cuts), BeautyTrackSelection.REGULAR)

    def test_soft_pion_tier_below_bachelor_threshold(self) -> None:
        """A displaced track below the bachelor floor is a soft pion."""
        track = _track(pt=0.3, dca_xy=0.01)
        self.assertEqual(is_selected_track_for_beauty(track, self.cuts), BeautyTrackSelection.SOFT_PION)

    def test_rejections(self) -> None:
        """Tracks failing pT, dca or acceptance cuts are rejected."""
        rejected = {
            "below soft-pion pT": _track(pt=0.05, dca_xy=0.01),
            "outside pT bins": _track(pt=2000.0, dca_xy=0.01),
            "small dcaXY": _track(pt=1.2, dca_xy=0.001),
            "large dcaXY": _track(pt=1.2, dca_xy=11.0),
            "outside acceptance": _track(pt=1.2, eta=1.0, dca_xy=0.01),
            "large dcaZ": _track(pt=1.2, dca_xy=0.01, dca_z=3.0),
        }
        for label, track in rejected.items():
            with self.subTest(label):
                self.assertEqual(is_selected_track_for_beauty(track, self.cuts), BeautyTrackSelection.REJECTED)

    def test_dcaxy_window_depends_on_pt_bin(self) -> None:
        """The minimum dcaXY follows the track pT bin."""
        # Minimum dcaXY is 0 above 1.5 GeV/c with the default cuts.
        track = _track(pt=2.5, dca_xy=0.0)
        self.assertEqual(is_selected_track_for_beauty(track, self.cuts), BeautyTrackSelection.REGULAR)


class TestFemtoProtonSelection(unittest.TestCase):
    """Proton selection combining TPC and TOF in quadrature."""

    def test_combined_nsigma_inside_limit(self) -> None:
        """TPC and TOF n-sigma combined in quadrature pass below the limit."""
        track = _track(pt=1.0, tpc_nsigma_pr=1.0, tof_nsigma_pr=1.0)
        self.assertTrue(is_selected_proton_for_femto(track, 0.5, 3.0, False))

    def test_combined_nsigma_above_limit(self) -> None:
        """A combined n-sigma above the limit is rejected."""
        track = _track(pt=1.0, tpc_nsigma_pr=1.0, tof_nsigma_pr=3.0)
        self.assertFalse(is_selected_proton_for_femto(track, 0.5, 3.0, False))

    def test_tof_only_mode_ignores_tpc(self) -> None:
        """In TOF-only mode the TPC response is ignored."""
        track = _track(pt=1.0, tpc_nsigma_pr=5.0, tof_nsigma_pr=2.0)
        self.assertTrue(is_selected_proton_for_femto(track, 0.5, 3.0, True))

    def test_requires_global_track_and_minimum_pt(self) -> None:
        """Non-global tracks and soft tracks are not femto protons."""
        self.assertFalse(is_selected_proton_for_femto(_track(pt=1.0, is_global_track=False), 0.5, 3.0, False))
        self.assertFalse(is_selected_proton_for_femto(_track(pt=0.4), 0.5, 3.0, False))

    def test_rejects_protons_outside_acceptance(self) -> None:
        """Protons beyond |eta| = 0.8 are rejected, even with perfect PID."""
        self.assertTrue(is_selected_proton_for_femto(_track(pt=1.0, eta=0.79), 0.5, 3.0, False))
        self.assertFalse(is_selected_proton_for_femto(_track(pt=1.0, eta=0.9), 0.5, 3.0, False))
        self.assertFalse(is_selected_proton_for_femto(_track(pt=1.0, eta=-0.9), 0.5, 3.0, True))

    def test_accepted_protons_are_monitored(self) -> None:
        """Only accepted protons fill the PID monitor."""
        monitor = Monitor()
        is_selected_proton_for_femto(_track(pt=1.0, tpc_nsigma_pr=0.5), 0.5, 3.0, False, monitor=monitor)
        is_selected_proton_for_femto(_track(pt=1.0, tpc_nsigma_pr=9.0), 0.5, 3.0, False, monitor=monitor)
        self.assertEqual(len(monitor.entries("femto/proton_tpc_pid")), 1)
        self.assertEqual(monitor.entries("femto/proton_tpc_pid")[0], (1.0, 0.5))

    def test_post_calibration_is_applied_to_tpc(self) -> None:
        """Post-calibration maps shift the TPC n-sigma before the cut."""
        edges = ([0.0, 200.0], [0.0, 10.0], [-1.0, 1.0])
        calib = PidPostCalibration(
            {
                PIDSpecies.PROTON: (
                    CalibrationMap(edges, np.full((1, 1, 1), 4.0)),
                    CalibrationMap(edges, np.ones((1, 1, 1))),
                )
            }
        )
        track = _track(pt=1.0, tpc_nsigma_pr=4.5, tpc_inner_param=1.0, tpc_n_cls_found=120)
        self.assertFalse(is_selected_proton_for_femto(track, 0.5, 3.0, False))
        self.assertTrue(is_selected_proton_for_femto(track, 0.5, 3.0, False, post_calibration=calib))

    def test_zero_width_calibration_bin_rejects_the_proton(self) -> None:
        """A track falling in an empty sigma bin is rejected rather than crashing."""
        edges = ([0.0, 200.0], [0.0, 10.0], [-1.0, 1.0])
        calib = PidPostCalibration(
            {
                PIDSpecies.PROTON: (
                    CalibrationMap(edges, np.zeros((1, 1, 1))),
                    CalibrationMap(edges, np.zeros((1, 1, 1))),
                )
            }
        )
        track = _track(pt=1.0, tpc_nsigma_pr=0.0, tpc_inner_param=1.0, tpc_n_cls_found=120)
        self.assertFalse(is_selected_proton_for_femto(track, 0.5, 3.0, False, post_calibration=calib))


class TestSpeciesCompatibility(unittest.TestCase):
    """TPC window, plus TOF only for matched tracks."""

    def test_tof_is_ignored_without_match(self) -> None:
        """TOF n-sigma is not used for tracks without a TOF match."""
        track = _track(tof_nsigma_ka=10.0, has_tof=False)
        self.assertTrue(is_selected_kaon_for_charm(track, 3.0, 3.0))

    def test_tof_applies_with_match(self) -> None:
        """TOF n-sigma applies when the track has a TOF match."""
        track = _track(tof_nsigma_ka=10.0, has_tof=True)
        self.assertFalse(is_selected_kaon_for_charm(track, 3.0, 3.0))

    def test_tpc_window_and_acceptance(self) -> None:
        """Species compatibility needs the TPC window and acceptance."""
        self.assertFalse(is_compatible_with_species(_track(tpc_nsigma_pi=3.5), PIDSpecies.PION, 3.0, 3.0))
        self.assertFalse(is_compatible_with_species(_track(eta=0.9), PIDSpecies.PION, 3.0, 3.0))
        self.assertTrue(is_compatible_with_species(_track(tpc_nsigma_pi=-2.9), PIDSpecies.PION, 3.0, 3.0))


if __name__ == "__main__":
    unittest.main()
