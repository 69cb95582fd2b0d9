"""Event-level heavy-flavour trigger engine.

`HeavyFlavourFilter` runs the charm candidate selection (PID preselection,
mass windows, optional ML origin tagging) and derives the per-event trigger
bitmap from the accepted candidates: high-pT charm, beauty, femtoscopic
proton-charm pairs, double charm and charm-photon combinations.
"""

from __future__ import annotations

import math
from typing import Iterable, Mapping, Sequence

from .calibration import PidPostCalibration
from .config import ConfigurationError, FilterConfig
from .enums import BeautyParticle, BeautyTrackSelection, CharmParticle, HfTrigger, bit, is_bit_set
from .gamma import is_selected_gamma
from .logger import logger
from .masswindow import (
    MASS_ASSIGNMENTS,
    evaluate_charm_mass_window,
    is_selected_beauty_in_mass_range,
    is_selected_dstar,
    select_charm_in_mass_range,
)
from .ml import MLScorer, features_2prong, features_3prong, is_bdt_selected
from .models import (
    CandidateResult,
    EventDecision,
    EventInput,
    GammaCandidate,
    LorentzVector,
    ThreeProngCandidate,
    TrackState,
    TwoProngCandidate,
    Vector3,
)
from .monitoring import MonitoringSink
from .physics import compute_number_of_candidates, compute_relative_momentum, invariant_mass, sum_momenta
from .pid import BEAUTY_FROM_CHARM, CHARM_HYPOTHESES, D0, DS, DSSTAR, DSTAR, DSTAR0, GAMMA, PION
from .preselection import (
    is_charm_baryon_preselected,
    is_ds_preselected,
    is_dplus_preselected,
    is_dzero_preselected,
)
from .selectors import is_selected_proton_for_femto, is_selected_track_for_beauty

THREE_PRONG_SPECIES = (CharmParticle.DPLUS, CharmParticle.DS, CharmParticle.LC, CharmParticle.XIC)

# Mass difference of the excited state used by the charm-photon triggers.
GAMMA_CHARM_DELTA_MASS = {
    CharmParticle.D0: DSTAR0.mass - D0.mass,
    CharmParticle.DS: DSSTAR.mass - DS.mass,
}


def _pt(momentum: Vector3) -> float:
    return math.hypot(momentum[0], momentum[1])


class HeavyFlavourFilter:
    """Apply the heavy-flavour selections to events and build trigger bitmaps.

    `monitor` receives candidate-level QA when `activate_qa > 0` and the PID
    and photon QA when `activate_qa > 1`.
    """

    def __init__(
        self,
        config: FilterConfig | None = None,
        post_calibration: PidPostCalibration | None = None,
        scorers: Mapping[CharmParticle, MLScorer] | None = None,
        monitor: MonitoringSink | None = None,
    ) -> None:
        self.config = (config or FilterConfig()).validate()
        if self.config.compute_tpc_post_calib and post_calibration is None:
            raise ConfigurationError("TPC post-calibration is enabled but no calibration maps were provided.")
        if post_calibration is not None and not self.config.compute_tpc_post_calib:
            logger.warning("TPC post-calibration maps provided but compute_tpc_post_calib is off, ignoring them.")
            post_calibration = None
        self.post_calibration = post_calibration

        self.scorers = dict(scorers or {})
        missing = [p.name for p in self.scorers if p not in self.config.bdt_thresholds]
        if missing:
            raise ConfigurationError(f"No BDT thresholds configured for ML-scored species {missing}.")

        self.monitor = monitor if self.config.activate_qa > 0 else None
        self.qa_monitor = monitor if self.config.activate_qa > 1 else None

        for line in self.config.summary():
            logger.info(line)

    # Candidate level

    def _tag_origin(self, particle: CharmParticle, features) -> tuple[int, tuple[float, ...]]:
        """Return `(origin bits, scores)`; origin bits are 0 when no model is loaded."""
        scorer = self.scorers.get(particle)
        if scorer is None:
            return 0, ()
        scores = scorer.predict(features)
        if self.monitor is not None and scores:
            self.monitor.fill(f"bdt/{particle.name}", *scores)
        return is_bdt_selected(scores, self.config.bdt_thresholds[particle]), scores

    def evaluate_2prong(
        self,
        candidate: TwoProngCandidate,
        tracks: Mapping[int, TrackState],
    ) -> CandidateResult:
        """D0 selection of one 2-prong candidate.

        A candidate scored by a model and rejected by its thresholds keeps
        its masses but gets empty hypothesis bits.
        """
        track_pos = tracks[candidate.pos_index]
        track_neg = tracks[candidate.neg_index]
        momenta = (track_pos.momentum(), track_neg.momentum())
        p_cand = sum_momenta(momenta)
        pt = _pt(p_cand)
        particle = CharmParticle.D0

        presel = is_dzero_preselected(track_pos, track_neg, self.config.pid, self.post_calibration)
        bits, masses = 0, {}
        if presel:
            bits, masses = evaluate_charm_mass_window(
                particle, momenta, pt, presel, self.config.mass_windows.charm[particle], self.monitor
            )
        origin, scores = 0, ()
        if bits and particle in self.scorers:
            origin, scores = self._tag_origin(
                particle, features_2prong(pt, track_pos, track_neg, self.post_calibration)
            )
            if not origin:
                bits = 0
        return CandidateResult(
            particle=particle,
            prong_indices=candidate.indices,
            preselection_bits=presel,
            hypothesis_bits=bits,
            origin_bits=origin,
            pt=pt,
            p4=LorentzVector.from_momentum(p_cand, D0.mass),
            masses=masses,
            scores=scores,
        )

    def _preselect_3prong(
        self,
        particle: CharmParticle,
        prongs: tuple[TrackState, TrackState, TrackState],
        momenta: tuple[Vector3, Vector3, Vector3],
    ) -> int:
        first, opposite, second = prongs
        if particle == CharmParticle.DPLUS:
            return is_dplus_preselected(opposite, self.config.pid, self.post_calibration)
        if particle == CharmParticle.DS:
            return is_ds_preselected(
                momenta[0], momenta[2], momenta[1], opposite, self.config.pid, self.post_calibration
            )
        return is_charm_baryon_preselected(first, second, opposite, self.config.pid, self.post_calibration)

    def evaluate_3prong(
        self,
        candidate: ThreeProngCandidate,
        tracks: Mapping[int, TrackState],
    ) -> list[CandidateResult]:
        """D+, Ds, Lc and Xic selections of one 3-prong candidate, one result per species."""
        prongs = (
            tracks[candidate.first_index],
            tracks[candidate.opposite_index],
            tracks[candidate.second_index],
        )
        momenta = tuple(t.momentum() for t in prongs)
        p_cand = sum_momenta(momenta)
        pt = _pt(p_cand)

        features = None
        results = []
        for particle in THREE_PRONG_SPECIES:
            presel = self._preselect_3prong(particle, prongs, momenta)
            bits, masses = 0, {}
            if presel:
                bits, masses = evaluate_charm_mass_window(
                    particle, momenta, pt, presel, self.config.mass_windows.charm[particle], self.monitor
                )
            origin, scores = 0, ()
            if bits and particle in self.scorers:
                if features is None:
                    features = features_3prong(pt, *prongs, post_calibration=self.post_calibration)
                origin, scores = self._tag_origin(particle, features)
                if not origin:
                    bits = 0
            results.append(
                CandidateResult(
                    particle=particle,
                    prong_indices=candidate.indices,
                    preselection_bits=presel,
                    hypothesis_bits=bits,
                    origin_bits=origin,
                    pt=pt,
                    p4=LorentzVector.from_momentum(p_cand, CHARM_HYPOTHESES[particle].mass),
                    masses=masses,
                    scores=scores,
                )
            )
        return results

    # Event level

    def _beauty_from_dzero(
        self,
        result: CandidateResult,
        tracks: Mapping[int, TrackState],
        bachelors: Mapping[int, BeautyTrackSelection],
    ) -> int:
        """Trigger bits of the B+ -> D0bar pi+ and B0 -> D*- pi+ searches."""
        windows = self.config.mass_windows
        track_pos = tracks[result.prong_indices[0]]
        track_neg = tracks[result.prong_indices[1]]
        p_pos, p_neg = track_pos.momentum(), track_neg.momentum()
        p_dzero = sum_momenta((p_pos, p_neg))
        bits_for_beauty = select_charm_in_mass_range(
            CharmParticle.D0,
            (p_pos, p_neg),
            result.pt,
            result.preselection_bits,
            windows.charm_for_beauty[CharmParticle.D0],
        )
        if not bits_for_beauty:
            return 0

        triggers = 0
        for index, selection in bachelors.items():
            if index in result.prong_indices:
                continue
            track = tracks[index]
            p_track = track.momentum()
            # D0 goes with negative bachelors, D0bar with positive ones.
            charge_bits = bit(0) if track.charge < 0 else bit(1)
            if (
                selection == BeautyTrackSelection.REGULAR
                and bits_for_beauty & charge_bits
                and is_selected_beauty_in_mass_range(
                    BeautyParticle.BPLUS,
                    (p_dzero, p_track),
                    (D0.mass, PION.mass),
                    windows.beauty[BeautyParticle.BPLUS],
                    pt=_pt(sum_momenta((p_dzero, p_track))),
                    monitor=self.monitor,
                )
            ):
                triggers |= bit(HfTrigger.BEAUTY_3P)

            # The soft pion of D*+ -> D0 pi+ carries the opposite charge of the B0 bachelor.
            dstar_bits = is_selected_dstar(
                p_pos, p_neg, p_track, bits_for_beauty & (bit(1) if track.charge < 0 else bit(0)), windows.dstar
            )
            if not dstar_bits:
                continue
            p_dstar = sum_momenta((p_dzero, p_track))
            for index_fourth, selection_fourth in bachelors.items():
                if selection_fourth != BeautyTrackSelection.REGULAR:
                    continue
                if index_fourth == index or index_fourth in result.prong_indices:
                    continue
                fourth = tracks[index_fourth]
                if fourth.charge * track.charge >= 0:
                    continue
                p_fourth = fourth.momentum()
                if is_selected_beauty_in_mass_range(
                    BeautyParticle.B0_TO_DSTAR,
                    (p_dstar, p_fourth),
                    (DSTAR.mass, PION.mass),
                    windows.beauty[BeautyParticle.B0_TO_DSTAR],
                    pt=_pt(sum_momenta((p_dstar, p_fourth))),
                    monitor=self.monitor,
                ):
                    triggers |= bit(HfTrigger.BEAUTY_4P)
        return triggers

    def _beauty_from_3prong(
        self,
        result: CandidateResult,
        tracks: Mapping[int, TrackState],
        bachelors: Mapping[int, BeautyTrackSelection],
    ) -> bool:
        """Whether a D+/Ds/Lc/Xic plus an opposite-charge bachelor forms a beauty hadron."""
        particle = result.particle
        windows = self.config.mass_windows
        prongs = [tracks[i] for i in result.prong_indices]
        momenta = tuple(t.momentum() for t in prongs)
        if not select_charm_in_mass_range(
            particle, momenta, result.pt, result.preselection_bits, windows.charm_for_beauty[particle]
        ):
            return False

        beauty = BEAUTY_FROM_CHARM[particle]
        charm_charge = prongs[0].charge
        p_charm = sum_momenta(momenta)
        for index, selection in bachelors.items():
            if selection != BeautyTrackSelection.REGULAR or index in result.prong_indices:
                continue
            track = tracks[index]
            if track.charge * charm_charge >= 0:
                continue
            p_track = track.momentum()
            if is_selected_beauty_in_mass_range(
                beauty,
                (p_charm, p_track),
                (CHARM_HYPOTHESES[particle].mass, PION.mass),
                windows.beauty[beauty],
                pt=_pt(sum_momenta((p_charm, p_track))),
                monitor=self.monitor,
            ):
                return True
        return False

    def _has_femto_pair(self, result: CandidateResult, protons: Sequence[TrackState]) -> bool:
        """Whether any selected proton, not a daughter, sits below the kstar cut."""
        p_charm = (result.p4.px, result.p4.py, result.p4.pz)
        charm_mass = CHARM_HYPOTHESES[result.particle].mass
        for proton in protons:
            if proton.track_index in result.prong_indices:
                continue
            kstar = compute_relative_momentum(proton.momentum(), p_charm, charm_mass)
            if self.monitor is not None:
                self.monitor.fill(f"kstar/{result.particle.name}", kstar)
            if kstar < self.config.femto.max_kstar:
                return True
        return False

    def _has_gamma_partner(
        self,
        result: CandidateResult,
        tracks: Mapping[int, TrackState],
        gammas: Sequence[GammaCandidate],
    ) -> bool:
        """Whether a selected photon turns the candidate into its excited state."""
        nominal = GAMMA_CHARM_DELTA_MASS[result.particle]
        momenta = tuple(tracks[i].momentum() for i in result.prong_indices)
        for gamma in gammas:
            for hyp_bit, masses in MASS_ASSIGNMENTS[result.particle].items():
                if not is_bit_set(result.hypothesis_bits, hyp_bit):
                    continue
                mass_excited = invariant_mass((*momenta, gamma.momentum()), (*masses, GAMMA.mass))
                delta = mass_excited - result.masses[hyp_bit]
                if self.monitor is not None:
                    self.monitor.fill(f"gamma_charm/{result.particle.name}", result.pt, delta)
                if abs(delta - nominal) < self.config.gamma_charm.delta_mass_tolerance:
                    return True
        return False

    def filter_event(self, event: EventInput) -> EventDecision:
        """Evaluate every candidate of one event and build its trigger bitmap.

        A candidate whose inputs are inconsistent (e.g. it refers to a track
        that is not in the event) is logged and skipped.
        """
        tracks = {t.track_index: t for t in event.tracks}
        cfg = self.config

        bachelors = {}
        protons = []
        for track in event.tracks:
            try:
                selection = is_selected_track_for_beauty(track, cfg.beauty_track)
                is_proton = is_selected_proton_for_femto(
                    track,
                    cfg.femto.min_proton_pt,
                    cfg.femto.max_nsigma_proton,
                    cfg.femto.proton_only_tof,
                    self.post_calibration,
                    self.qa_monitor,
                )
            except ConfigurationError:
                raise
            except (KeyError, ValueError, ArithmeticError) as exc:
                logger.warning("Event %s: skipping track %s (%s)", event.event_id, track.track_index, exc)
                continue
            if selection != BeautyTrackSelection.REJECTED:
                bachelors[track.track_index] = selection
            if is_proton:
                protons.append(track)
        gammas = [g for g in event.gammas if is_selected_gamma(g, monitor=self.qa_monitor)]

        triggers = 0
        accepted: list[CandidateResult] = []
        indices_2prong: list[tuple[int, ...]] = []
        indices_3prong: list[tuple[int, ...]] = []

        for candidate in event.two_prongs:
            try:
                result = self.evaluate_2prong(candidate, tracks)
                if not result.accepted:
                    continue
                candidate_triggers = self._beauty_from_dzero(result, tracks, bachelors)
                if result.pt >= cfg.high_pt.min_pt_2prong:
                    candidate_triggers |= bit(HfTrigger.HIGH_PT_2P)
                if self._has_femto_pair(result, protons):
                    candidate_triggers |= bit(HfTrigger.FEMTO_2P)
                if self._has_gamma_partner(result, tracks, gammas):
                    candidate_triggers |= bit(HfTrigger.GAMMA_CHARM_2P)
            except ConfigurationError:
                raise
            except (KeyError, ValueError, ArithmeticError) as exc:
                logger.warning("Event %s: skipping 2-prong candidate %s (%s)", event.event_id, candidate.indices, exc)
                continue
            triggers |= candidate_triggers
            accepted.append(result)
            indices_2prong.append(result.prong_indices)

        for candidate in event.three_prongs:
            try:
                results = [r for r in self.evaluate_3prong(candidate, tracks) if r.accepted]
                candidate_triggers = 0
                for result in results:
                    if result.pt >= cfg.high_pt.min_pt_3prong:
                        candidate_triggers |= bit(HfTrigger.HIGH_PT_3P)
                    if self._beauty_from_3prong(result, tracks, bachelors):
                        candidate_triggers |= bit(HfTrigger.BEAUTY_4P)
                    if self._has_femto_pair(result, protons):
                        candidate_triggers |= bit(HfTrigger.FEMTO_3P)
                    if result.particle in GAMMA_CHARM_DELTA_MASS and self._has_gamma_partner(
                        result, tracks, gammas
                    ):
                        candidate_triggers |= bit(HfTrigger.GAMMA_CHARM_3P)
            except ConfigurationError:
                raise
            except (KeyError, ValueError, ArithmeticError) as exc:
                logger.warning("Event %s: skipping 3-prong candidate %s (%s)", event.event_id, candidate.indices, exc)
                continue
            if not results:
                continue
            triggers |= candidate_triggers
            accepted.extend(results)
            indices_3prong.append(candidate.indices)

        if compute_number_of_candidates(indices_2prong) > 1:
            triggers |= bit(HfTrigger.DOUBLE_CHARM_2P)
        if compute_number_of_candidates(indices_3prong) > 1:
            triggers |= bit(HfTrigger.DOUBLE_CHARM_3P)
        if compute_number_of_candidates(indices_2prong + indices_3prong) > 1:
            triggers |= bit(HfTrigger.DOUBLE_CHARM_MIX)

        if self.monitor is not None:
            self.monitor.fill("events/processed", 0)
            for trigger in HfTrigger:
                if is_bit_set(triggers, trigger):
                    self.monitor.fill("events/triggers", trigger)
        return EventDecision(event_id=event.event_id, triggers=triggers, candidates=tuple(accepted))

    def filter_events(self, events: Iterable[EventInput]) -> list[EventDecision]:
        """Run `filter_event` on each event independently."""
        return [self.filter_event(event) for event in events]
