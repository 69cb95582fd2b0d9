"""Unit tests for ML origin tagging and the scorer wrapper."""

from __future__ import annotations

import unittest

import numpy as np

from hffilter import BDTThresholds, CharmParticle, ConfigurationError, MLScorer, TrackState, is_bdt_selected, load_scorers
from hffilter.enums import OriginType, bit
from hffilter.ml import PRONG_FEATURES, features_2prong, features_3prong


class FakeModel:
    """Deterministic stand-in for an inference session."""

    def __init__(self, input_shape=(1, 19), output=(0.1, 0.8, 0.3), error: Exception | None = None) -> None:
        self.input_shape = input_shape
        self.output = output
        self.error = error
        self.calls: list[np.ndarray] = []

    def run(self, features: np.ndarray):
        self.calls.append(features)
        if self.error is not None:
            raise self.error
        return self.output


class FakeProvider:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail

    def load(self, particle: CharmParticle, timestamp: int) -> FakeModel:
        if self.fail:
            raise OSError("model not found")
        return FakeModel()


class TestBDTSelection(unittest.TestCase):
    """Origin bitmap from the three scores."""

    thresholds = BDTThresholds(max_background=0.5, min_prompt=0.5, min_nonprompt=0.5)

    def test_prompt_and_non_prompt_bits(self) -> None:
        """Prompt and non-prompt scores set their own origin bits."""
        self.assertEqual(
            is_bdt_selected((0.1, 0.9, 0.9), self.thresholds),
            bit(OriginType.PROMPT) | bit(OriginType.NON_PROMPT),
        )
        self.assertEqual(is_bdt_selected((0.1, 0.9, 0.2), self.thresholds), bit(OriginType.PROMPT))
        self.assertEqual(is_bdt_selected((0.1, 0.2, 0.9), self.thresholds), bit(OriginType.NON_PROMPT))

    def test_background_veto(self) -> None:
        """A high background score clears every origin bit."""
        self.assertEqual(is_bdt_selected((0.6, 0.9, 0.9), self.thresholds), 0)

    def test_missing_scores_mean_rejection(self) -> None:
        """Empty or short score vectors select nothing."""
        self.assertEqual(is_bdt_selected((), self.thresholds), 0)
        self.assertEqual(is_bdt_selected((0.1, 0.9), self.thresholds), 0)

    def test_origin_bit_values(self) -> None:
        """Origin bits sit at positions 1 and 2."""
        self.assertEqual(bit(OriginType.PROMPT), 2)
        self.assertEqual(bit(OriginType.NON_PROMPT), 4)


class TestMLScorer(unittest.TestCase):
    """Shape handling and failure modes of model inference."""

    def test_negative_leading_dimension_is_pinned_with_warning(self) -> None:
        """A dynamic batch dimension is pinned to 1 with a warning."""
        with self.assertLogs("hffilter", level="WARNING"):
            scorer = MLScorer(FakeModel(input_shape=(-1, 19)), name="D0")
        self.assertEqual(scorer.input_shape, (1, 19))

    def test_predict_returns_scores_and_reshapes_input(self) -> None:
        """Features are reshaped to the model input and scores returned."""
        model = FakeModel()
        scores = MLScorer(model).predict(np.zeros(19))
        self.assertEqual(len(scores), 3)
        self.assertAlmostEqual(scores[1], 0.8, places=6)
        self.assertEqual(model.calls[0].shape, (1, 19))

    def test_feature_count_mismatch_is_fatal(self) -> None:
        """A wrong feature count raises a configuration error."""
        with self.assertRaises(ConfigurationError):
            MLScorer(FakeModel()).predict(np.zeros(5))
        self.assertTrue(issubclass(ConfigurationError, ValueError))

    def test_inference_error_yields_no_score(self) -> None:
        """A failing model is logged and returns no score."""
        scorer = MLScorer(FakeModel(error=RuntimeError("boom")), name="D0")
        with self.assertLogs("hffilter", level="ERROR"):
            self.assertEqual(scorer.predict(np.zeros(19)), ())

    def test_wrong_output_count_yields_no_score(self) -> None:
        """A model output of the wrong length is logged and discarded."""
        scorer = MLScorer(FakeModel(output=(0.1, 0.9)))
        with self.assertLogs("hffilter", level="ERROR"):
            self.assertEqual(scorer.predict(np.zeros(19)), ())

    def test_load_scorers(self) -> None:
        """One scorer is built per species and provider errors propagate."""
        scorers = load_scorers(FakeProvider(), [CharmParticle.D0, CharmParticle.LC], timestamp=10)
        self.assertEqual(set(scorers), {CharmParticle.D0, CharmParticle.LC})
        with self.assertRaises(RuntimeError):
            load_scorers(FakeProvider(fail=True), [CharmParticle.D0])


class TestFeatureBuilders(unittest.TestCase):
    """Training-variable vectors."""

    def test_lengths_and_ordering(self) -> None:
        """Feature vectors hold pT first, then each prong's features in order."""
        track = TrackState(track_index=0, px=3.0, py=4.0, pz=0.0, dca_xy=0.01, tpc_nsigma_ka=1.5, tof_nsigma_pr=-2.0)
        two = features_2prong(7.0, track, track)
        three = features_3prong(7.0, track, track, track)
        self.assertEqual(two.shape, (1 + 2 * len(PRONG_FEATURES),))
        self.assertEqual(three.shape, (1 + 3 * len(PRONG_FEATURES),))
        self.assertEqual(two[0], 7.0)
        self.assertAlmostEqual(float(two[1]), 5.0, places=5)
        self.assertAlmostEqual(float(two[1 + PRONG_FEATURES.index("tpc_nsigma_ka")]), 1.5, places=5)
        self.assertAlmostEqual(float(two[1 + PRONG_FEATURES.index("tof_nsigma_pr")]), -2.0, places=5)


if __name__ == "__main__":
    unittest.main()
