"""Multi-event API example with a configured filter and QA monitoring.

Run from repository root without installation:
    PYTHONPATH=src python examples/multi_event_api.py
"""

from __future__ import annotations

import math
from pathlib import Path

from hffilter import (
    CharmParticle,
    EventInput,
    FilterConfig,
    HeavyFlavourFilter,
    HighPtCuts,
    LorentzVector,
    Monitor,
    TrackState,
    TwoProngCandidate,
    trigger_names,
)
from hffilter.io import write_decisions_table
from hffilter.monitoring import CHARM_MASS_AXES
from hffilter.pid import D0, KAON, PION


def make_dzero_event(event_id: str, beta: float) -> EventInput:
    """D0 -> K- pi+ decaying transverse to a boost of velocity `beta` along x."""
    m2 = D0.mass**2
    q = math.sqrt((m2 - (PION.mass + KAON.mass) ** 2) * (m2 - (KAON.mass - PION.mass) ** 2)) / (2.0 * D0.mass)
    pion = LorentzVector.from_momentum((0.0, q, 0.0), PION.mass).boost(beta, 0.0, 0.0)
    kaon = LorentzVector.from_momentum((0.0, -q, 0.0), KAON.mass).boost(beta, 0.0, 0.0)
    tracks = (
        TrackState(track_index=0, px=pion.px, py=pion.py, pz=pion.pz, charge=1),
        TrackState(track_index=1, px=kaon.px, py=kaon.py, pz=kaon.pz, charge=-1),
    )
    return EventInput(event_id=event_id, tracks=tracks, two_prongs=(TwoProngCandidate(0, 1),))


def main() -> int:
    """Filter a few synthetic events and write the decision table."""
    events = [make_dzero_event(f"evt{i}", beta) for i, beta in enumerate((0.0, 0.9, 0.99))]
    config = FilterConfig(high_pt=HighPtCuts(min_pt_2prong=5.0), activate_qa=1)
    monitor = Monitor()
    decisions = HeavyFlavourFilter(config, monitor=monitor).filter_events(events)
    for decision in decisions:
        print(decision.event_id, trigger_names(decision.triggers) or "-")
    print("D0 mass histogram:", monitor.histogram("mass/D0", CHARM_MASS_AXES[CharmParticle.D0], dim=1).sum(), "entries")

    out_path = Path("examples/multi_event_output.csv")
    write_decisions_table(out_path, decisions)
    print(f"Wrote {len(decisions)} events to {out_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
