"""Unit tests for the photon-conversion and calorimeter-cluster selections."""

from __future__ import annotations

import dataclasses
import unittest

from hffilter import CaloCluster, CaloClusterCuts, ConfigurationError, GammaCandidate, Monitor
from hffilter.gamma import is_selected_gamma, select_calo_clusters

GOOD_GAMMA = GammaCandidate(eta=0.1, v0_radius=50.0, alpha=0.1, qt_arm=0.01, psi_pair=0.01, cos_pa=0.99)


class TestGammaSelection(unittest.TestCase):
    """Sequential vetoes and their stage counters."""

    def test_good_candidate_is_accepted(self) -> None:
        """A clean conversion passes every stage and is monitored after the cuts."""
        monitor = Monitor()
        self.assertTrue(is_selected_gamma(GOOD_GAMMA, monitor=monitor))
        self.assertEqual(monitor.counts("gamma/selected"), {0: 1, 6: 1})
        self.assertEqual(monitor.entries("gamma/eta_after"), [(0.1,)])
        self.assertEqual(monitor.entries("gamma/armenteros_after"), [(0.1, 0.01)])

    def test_large_radius_is_rejected_at_the_radius_stage(self) -> None:
        """A conversion too far out stops at the radius stage."""
        monitor = Monitor()
        gamma = dataclasses.replace(GOOD_GAMMA, v0_radius=200.0)
        self.assertFalse(is_selected_gamma(gamma, monitor=monitor))
        self.assertEqual(monitor.counts("gamma/selected"), {0: 1, 2: 1})
        self.assertEqual(monitor.entries("gamma/eta_before"), [(0.1,)])
        self.assertEqual(monitor.entries("gamma/eta_after"), [])

    def test_each_veto_reports_its_stage(self) -> None:
        """Each veto records the stage at which the photon was dropped."""
        cases = {
            1: dataclasses.replace(GOOD_GAMMA, eta=0.9),
            2: dataclasses.replace(GOOD_GAMMA, v0_radius=-1.0),
            3: dataclasses.replace(GOOD_GAMMA, alpha=0.95, qt_arm=0.0),
            4: dataclasses.replace(GOOD_GAMMA, psi_pair=-0.2),
            5: dataclasses.replace(GOOD_GAMMA, cos_pa=0.8),
        }
        for stage, gamma in cases.items():
            with self.subTest(stage=stage):
                monitor = Monitor()
                self.assertFalse(is_selected_gamma(gamma, monitor=monitor))
                self.assertEqual(monitor.counts("gamma/selected")[stage], 1)

    def test_explicit_cos_pa_overrides_candidate_value(self) -> None:
        """A pointing angle passed by the caller replaces the stored one."""
        self.assertFalse(is_selected_gamma(GOOD_GAMMA, cos_pa=0.5))
        self.assertTrue(is_selected_gamma(dataclasses.replace(GOOD_GAMMA, cos_pa=0.1), cos_pa=0.9))

    def test_monitoring_does_not_change_the_outcome(self) -> None:
        """Selection results are the same with and without a monitor."""
        for gamma in (GOOD_GAMMA, dataclasses.replace(GOOD_GAMMA, psi_pair=0.5)):
            self.assertEqual(is_selected_gamma(gamma), is_selected_gamma(gamma, monitor=Monitor()))


class TestCaloClusterSkim(unittest.TestCase):
    """Time and shower-shape windows for calorimeter photons."""

    def test_clusters_are_filtered_in_order(self) -> None:
        """Clusters outside the time or shape windows are dropped in order."""
        clusters = [
            CaloCluster(cluster_index=0, energy=2.0, eta=0.1, phi=1.0, time=0.0, m02=0.5),
            CaloCluster(cluster_index=1, energy=3.0, eta=0.2, phi=1.5, time=300.0, m02=0.5),
            CaloCluster(cluster_index=2, energy=4.0, eta=0.3, phi=2.0, time=10.0, m02=2.0),
            CaloCluster(cluster_index=3, energy=5.0, eta=0.4, phi=2.5, time=-50.0, m02=0.2),
        ]
        monitor = Monitor()
        selected = select_calo_clusters(clusters, CaloClusterCuts(), monitor)
        self.assertEqual([c.cluster_index for c in selected], [0, 3])
        self.assertEqual(monitor.counts("calo/filter"), {0: 4, 1: 1, 2: 1, 3: 2})
        self.assertEqual(monitor.entries("calo/energy_out"), [(2.0,), (5.0,)])

    def test_empty_windows_are_rejected(self) -> None:
        """Windows with the lower edge above the upper edge are invalid."""
        with self.assertRaises(ConfigurationError):
            CaloClusterCuts(min_time=10.0, max_time=-10.0).validate()
        with self.assertRaises(ConfigurationError):
            CaloClusterCuts(min_m02=1.0, max_m02=0.5).validate()


if __name__ == "__main__":
    unittest.main()
