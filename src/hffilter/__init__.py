"""Public package exports for the heavy-flavour candidate filter."""

from .calibration import CalibrationError, CalibrationMap, PidPostCalibration, load_post_calibration
from .config import (
    BDTThresholds,
    CharmPidCuts,
    ConfigurationError,
    FemtoCuts,
    FilterConfig,
    GammaCharmCuts,
    HighPtCuts,
    MassWindowCuts,
    SingleTrackBeautyCuts,
)
from .dalitz import DalitzSelection, NamedCut, electron_track_cut, pair_mass_cut
from .enums import (
    BeautyParticle,
    BeautyTrackSelection,
    CharmParticle,
    HfTrigger,
    OriginType,
    PIDSpecies,
    trigger_names,
)
from .filter import HeavyFlavourFilter
from .gamma import CaloClusterCuts, is_selected_gamma, select_calo_clusters
from .ml import MLScorer, is_bdt_selected, load_scorers
from .models import (
    CaloCluster,
    CandidateResult,
    EventDecision,
    EventInput,
    GammaCandidate,
    LorentzVector,
    ParticleHypothesis,
    ThreeProngCandidate,
    TrackState,
    TwoProngCandidate,
)
from .monitoring import Monitor
from .physics import compute_number_of_candidates, compute_relative_momentum, invariant_mass

__all__ = [
    "HeavyFlavourFilter",
    "FilterConfig",
    "SingleTrackBeautyCuts",
    "CharmPidCuts",
    "FemtoCuts",
    "HighPtCuts",
    "GammaCharmCuts",
    "MassWindowCuts",
    "BDTThresholds",
    "ConfigurationError",
    "CalibrationError",
    "CalibrationMap",
    "PidPostCalibration",
    "load_post_calibration",
    "TrackState",
    "TwoProngCandidate",
    "ThreeProngCandidate",
    "GammaCandidate",
    "CaloCluster",
    "EventInput",
    "EventDecision",
    "CandidateResult",
    "LorentzVector",
    "ParticleHypothesis",
    "PIDSpecies",
    "CharmParticle",
    "BeautyParticle",
    "BeautyTrackSelection",
    "OriginType",
    "HfTrigger",
    "trigger_names",
    "MLScorer",
    "is_bdt_selected",
    "load_scorers",
    "is_selected_gamma",
    "CaloClusterCuts",
    "select_calo_clusters",
    "DalitzSelection",
    "NamedCut",
    "electron_track_cut",
    "pair_mass_cut",
    "Monitor",
    "invariant_mass",
    "compute_relative_momentum",
    "compute_number_of_candidates",
]
