"""Dalitz-electron tagging.

Tracks are tested against a list of track cuts; opposite-sign pairs that
share a track-cut bit are then tested with the pair cut of the same index,
and a passing pair flags that bit on both of its tracks. Cut `i` of the
track list always goes together with cut `i` of the pair list.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence

from .config import ConfigurationError
from .enums import PIDSpecies, bit
from .models import TrackState
from .monitoring import MonitoringSink
from .physics import invariant_mass
from .pid import ELECTRON

MAX_DALITZ_CUTS = 8


@dataclass(frozen=True)
class NamedCut:
    """Predicate on one track (track cuts) or on a track pair (pair cuts)."""

    name: str
    predicate: Callable[..., bool]

    def __call__(self, *tracks: TrackState) -> bool:
        return bool(self.predicate(*tracks))


def electron_track_cut(
    min_pin: float = 0.1,
    max_eta: float = 0.9,
    nsigma_low: float = -3.0,
    nsigma_high: float = 3.0,
    name: str = "dalitzElectron",
) -> NamedCut:
    """Barrel electron candidate: TPC inner-wall momentum, acceptance and TPC n-sigma."""

    def _select(track: TrackState) -> bool:
        if track.tpc_inner_param < min_pin:
            return False
        if abs(track.eta) > max_eta:
            return False
        nsigma = track.nsigma_tpc(PIDSpecies.ELECTRON)
        return nsigma_low <= nsigma <= nsigma_high

    return NamedCut(name, _select)


def pair_mass_cut(max_mass: float, name: str | None = None) -> NamedCut:
    """e+e- pairs with invariant mass below `max_mass`."""

    def _select(first: TrackState, second: TrackState) -> bool:
        mass = invariant_mass((first.momentum(), second.momentum()), (ELECTRON.mass, ELECTRON.mass))
        return mass < max_mass

    return NamedCut(name or f"pairMassLow{max_mass:g}", _select)


class DalitzSelection:
    """Per-track Dalitz bitmaps for the tracks of one collision.

    `preselection` plays the role of the loose barrel filter applied before
    any track cut; tracks failing it never receive bits.
    """

    def __init__(
        self,
        track_cuts: Sequence[NamedCut],
        pair_cuts: Sequence[NamedCut],
        preselection: NamedCut | None = None,
    ) -> None:
        if len(track_cuts) != len(pair_cuts):
            raise ConfigurationError(
                f"The same number of Dalitz track and pair cuts is needed, got {len(track_cuts)} "
                f"track cuts and {len(pair_cuts)} pair cuts."
            )
        if len(track_cuts) > MAX_DALITZ_CUTS:
            raise ConfigurationError(f"At most {MAX_DALITZ_CUTS} Dalitz cut combinations fit in the bitmap.")
        self.track_cuts = tuple(track_cuts)
        self.pair_cuts = tuple(pair_cuts)
        self.preselection = preselection or electron_track_cut()

    @property
    def labels(self) -> tuple[str, ...]:
        """`<track cut>_<pair cut>` label of every bit."""
        return tuple(f"{t.name}_{p.name}" for t, p in zip(self.track_cuts, self.pair_cuts, strict=True))

    def track_bits(self, tracks: Sequence[TrackState]) -> dict[int, int]:
        """Track-cut bitmap per track index; tracks passing no cut are left out."""
        out = {}
        for track in tracks:
            if not self.preselection(track):
                continue
            filter_map = 0
            for i_cut, cut in enumerate(self.track_cuts):
                if cut(track):
                    filter_map |= bit(i_cut)
            if filter_map:
                out[track.track_index] = filter_map
        return out

    def pair_bits(
        self,
        tracks: Sequence[TrackState],
        monitor: MonitoringSink | None = None,
    ) -> dict[int, int]:
        """Dalitz bitmap per track index, from all opposite-sign pairs `i < j`."""
        track_map = self.track_bits(tracks)
        selected = [t for t in tracks if t.track_index in track_map]
        dalitz_map: dict[int, int] = {}
        for i, first in enumerate(selected):
            for second in selected[i + 1 :]:
                if first.charge * second.charge > 0:
                    continue
                shared = track_map[first.track_index] & track_map[second.track_index]
                if not shared:
                    continue
                for i_cut, cut in enumerate(self.pair_cuts):
                    if not shared & bit(i_cut):
                        continue
                    if cut(first, second):
                        for track in (first, second):
                            dalitz_map[track.track_index] = dalitz_map.get(track.track_index, 0) | bit(i_cut)

        if monitor is not None:
            for filter_map in dalitz_map.values():
                for i_cut in range(len(self.pair_cuts)):
                    if filter_map & bit(i_cut):
                        monitor.fill("dalitz/track_stats", i_cut)
        return dalitz_map

    def dalitz_bits(
        self,
        tracks: Sequence[TrackState],
        monitor: MonitoringSink | None = None,
    ) -> tuple[int, ...]:
        """One bitmap per input track, in input order (0 when not tagged)."""
        dalitz_map = self.pair_bits(tracks, monitor)
        return tuple(dalitz_map.get(track.track_index, 0) for track in tracks)
