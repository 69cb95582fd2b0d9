"""Particle-hypothesis constants used by PID and mass-window selections.

All masses are PDG values in GeV/c^2. The tables below are built once at
import time and never mutated afterwards.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from .enums import BeautyParticle, CharmParticle
from .models import ParticleHypothesis

PION = ParticleHypothesis(name="pi", mass=0.13957039, pdg_id=211)
KAON = ParticleHypothesis(name="K", mass=0.493677, pdg_id=321)
PROTON = ParticleHypothesis(name="p", mass=0.93827208816, pdg_id=2212)
ELECTRON = ParticleHypothesis(name="e", mass=0.00051099895, pdg_id=11)
GAMMA = ParticleHypothesis(name="gamma", mass=0.0, pdg_id=22)
PHI = ParticleHypothesis(name="phi", mass=1.019461, pdg_id=333)

D0 = ParticleHypothesis(name="D0", mass=1.86484, pdg_id=421)
DPLUS = ParticleHypothesis(name="Dplus", mass=1.86966, pdg_id=411)
DS = ParticleHypothesis(name="Ds", mass=1.96835, pdg_id=431)
LC = ParticleHypothesis(name="Lc", mass=2.28646, pdg_id=4122)
XIC = ParticleHypothesis(name="Xic", mass=2.46771, pdg_id=4232)
DSTAR = ParticleHypothesis(name="Dstar", mass=2.01026, pdg_id=413)
DSTAR0 = ParticleHypothesis(name="Dstar0", mass=2.00685, pdg_id=423)
DSSTAR = ParticleHypothesis(name="Dsstar", mass=2.1122, pdg_id=433)

BPLUS = ParticleHypothesis(name="Bplus", mass=5.27934, pdg_id=521)
B0 = ParticleHypothesis(name="B0", mass=5.27965, pdg_id=511)
BS = ParticleHypothesis(name="Bs", mass=5.36688, pdg_id=531)
LB = ParticleHypothesis(name="Lb", mass=5.61960, pdg_id=5122)
XIB = ParticleHypothesis(name="Xib", mass=5.7919, pdg_id=5232)

CHARM_HYPOTHESES: Mapping[CharmParticle, ParticleHypothesis] = MappingProxyType(
    {
        CharmParticle.D0: D0,
        CharmParticle.DPLUS: DPLUS,
        CharmParticle.DS: DS,
        CharmParticle.LC: LC,
        CharmParticle.XIC: XIC,
    }
)

BEAUTY_HYPOTHESES: Mapping[BeautyParticle, ParticleHypothesis] = MappingProxyType(
    {
        BeautyParticle.BPLUS: BPLUS,
        BeautyParticle.B0_TO_DSTAR: B0,
        BeautyParticle.B0: B0,
        BeautyParticle.BS: BS,
        BeautyParticle.LB: LB,
        BeautyParticle.XIB: XIB,
    }
)

# Beauty hadron reached from each charm species with one extra bachelor pion.
BEAUTY_FROM_CHARM: Mapping[CharmParticle, BeautyParticle] = MappingProxyType(
    {
        CharmParticle.D0: BeautyParticle.BPLUS,
        CharmParticle.DPLUS: BeautyParticle.B0,
        CharmParticle.DS: BeautyParticle.BS,
        CharmParticle.LC: BeautyParticle.LB,
        CharmParticle.XIC: BeautyParticle.XIB,
    }
)
