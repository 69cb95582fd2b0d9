"""ML-based origin tagging of charm candidates.

Models are opaque: anything exposing `input_shape` and `run(features)`
(e.g. a thin wrapper around an ONNX runtime session) can be plugged in.
Each model returns three scores ordered as (background, prompt, non-prompt).
"""

from __future__ import annotations

from typing import Mapping, Protocol, Sequence

import numpy as np

from .calibration import PidPostCalibration, tpc_nsigma
from .config import BDTThresholds, ConfigurationError
from .enums import CharmParticle, OriginType, PIDSpecies, bit
from .logger import logger
from .models import TrackState

N_SCORES = 3
PRONG_FEATURES = (
    "pt",
    "dca_xy",
    "dca_z",
    "tpc_nsigma_pi",
    "tpc_nsigma_ka",
    "tpc_nsigma_pr",
    "tof_nsigma_pi",
    "tof_nsigma_ka",
    "tof_nsigma_pr",
)
_PID_ORDER = (PIDSpecies.PION, PIDSpecies.KAON, PIDSpecies.PROTON)


def is_bdt_selected(scores: Sequence[float], thresholds: BDTThresholds) -> int:
    """Origin bitmap from (background, prompt, non-prompt) scores.

    0 means rejected: either no usable score or a background score above
    its maximum. Otherwise the prompt and non-prompt bits are set
    independently.
    """
    if len(scores) < N_SCORES:
        return 0
    if scores[0] > thresholds.max_background:
        return 0
    ret_value = 0
    if scores[1] > thresholds.min_prompt:
        ret_value |= bit(OriginType.PROMPT)
    if scores[2] > thresholds.min_nonprompt:
        ret_value |= bit(OriginType.NON_PROMPT)
    return ret_value


class ScoreModel(Protocol):
    """Inference backend of one charm species."""

    input_shape: tuple[int, ...]

    def run(self, features: np.ndarray) -> Sequence[float]:
        ...


class MLScorer:
    """Validating wrapper around a `ScoreModel`.

    A negative leading input dimension (dynamic batch size) is pinned to 1.
    """

    def __init__(self, model: ScoreModel, name: str = "") -> None:
        self.model = model
        self.name = name
        shape = [int(x) for x in model.input_shape]
        if not shape:
            raise ConfigurationError(f"Model for {name or 'candidate'} declares an empty input shape.")
        if shape[0] < 0:
            logger.warning(
                "Model for %s with negative input shape likely because converted with hummingbird, "
                "setting it to 1.",
                name or "candidate",
            )
            shape[0] = 1
        self.input_shape = tuple(shape)

    @property
    def n_features(self) -> int:
        return int(np.prod(self.input_shape))

    def predict(self, features: Sequence[float]) -> tuple[float, ...]:
        """Return the three scores, or `()` when inference yields no usable output.

        A feature count incompatible with the declared input shape is a
        configuration mistake and raises `ConfigurationError`.
        """
        arr = np.asarray(features, dtype=np.float32)
        if arr.size != self.n_features:
            raise ConfigurationError(
                f"Model for {self.name or 'candidate'} expects {self.n_features} features, got {arr.size}."
            )
        try:
            output = self.model.run(arr.reshape(self.input_shape))
            scores = np.asarray(output, dtype=float).ravel()
        except Exception as exc:
            logger.error("Error running model inference for %s: %s", self.name or "candidate", exc)
            return ()
        if scores.size != N_SCORES:
            logger.error(
                "Model for %s returned %d scores, expected %d.", self.name or "candidate", scores.size, N_SCORES
            )
            return ()
        return tuple(float(s) for s in scores)


class ModelProvider(Protocol):
    """Source of trained models valid at a given timestamp."""

    def load(self, particle: CharmParticle, timestamp: int) -> ScoreModel:
        ...


def load_scorers(
    provider: ModelProvider,
    particles: Sequence[CharmParticle],
    timestamp: int = 0,
) -> Mapping[CharmParticle, MLScorer]:
    """Load one scorer per requested species; any failure is fatal."""
    scorers = {}
    for particle in particles:
        particle = CharmParticle(particle)
        try:
            model = provider.load(particle, timestamp)
        except Exception as exc:
            raise RuntimeError(
                f"Error encountered while loading the ML model for {particle.name} (timestamp {timestamp})."
            ) from exc
        scorers[particle] = MLScorer(model, name=particle.name)
        logger.info("Loaded ML model for %s with input shape %s", particle.name, scorers[particle].input_shape)
    return scorers


def prong_features(track: TrackState, post_calibration: PidPostCalibration | None = None) -> list[float]:
    """Per-prong training variables in `PRONG_FEATURES` order."""
    values = [track.pt, track.dca_xy, track.dca_z]
    values.extend(tpc_nsigma(track, species, post_calibration) for species in _PID_ORDER)
    values.extend(track.nsigma_tof(species) for species in _PID_ORDER)
    return values


def _candidate_features(
    pt: float,
    prongs: Sequence[TrackState],
    post_calibration: PidPostCalibration | None,
) -> np.ndarray:
    values = [pt]
    for track in prongs:
        values.extend(prong_features(track, post_calibration))
    return np.asarray(values, dtype=np.float32)


def features_2prong(
    pt: float,
    track_pos: TrackState,
    track_neg: TrackState,
    post_calibration: PidPostCalibration | None = None,
) -> np.ndarray:
    """Candidate pT followed by the variables of both prongs."""
    return _candidate_features(pt, (track_pos, track_neg), post_calibration)


def features_3prong(
    pt: float,
    track_first: TrackState,
    track_opposite: TrackState,
    track_second: TrackState,
    post_calibration: PidPostCalibration | None = None,
) -> np.ndarray:
    """Candidate pT followed by the variables of the three prongs."""
    return _candidate_features(pt, (track_first, track_opposite, track_second), post_calibration)
