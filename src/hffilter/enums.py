"""Closed enumerations shared across the filtering engine.

The integer values are part of the output contract: trigger bitmaps, origin
bitmaps and hypothesis bitmasks are decoded positionally downstream.
"""

from __future__ import annotations

from enum import IntEnum


class PIDSpecies(IntEnum):
    """Particle species with detector-response n-sigma values on tracks."""

    ELECTRON = 0
    KAON = 1
    PION = 2
    PROTON = 3


class CharmParticle(IntEnum):
    """Charm hadrons reconstructed from 2- and 3-prong candidates."""

    D0 = 0
    DPLUS = 1
    DS = 2
    LC = 3
    XIC = 4


class BeautyParticle(IntEnum):
    """Beauty hadrons built from a charm candidate and bachelor track(s)."""

    BPLUS = 0
    B0_TO_DSTAR = 1
    B0 = 2
    BS = 3
    LB = 4
    XIB = 5


class BeautyTrackSelection(IntEnum):
    """Outcome tiers of the beauty-bachelor track classifier."""

    REJECTED = 0
    SOFT_PION = 1
    REGULAR = 2


class OriginType(IntEnum):
    """Charm-hadron origin; values are used as bit positions."""

    NONE = 0
    PROMPT = 1
    NON_PROMPT = 2


class HfTrigger(IntEnum):
    """Event-level trigger bits."""

    HIGH_PT_2P = 0
    HIGH_PT_3P = 1
    BEAUTY_3P = 2
    BEAUTY_4P = 3
    FEMTO_2P = 4
    FEMTO_3P = 5
    DOUBLE_CHARM_2P = 6
    DOUBLE_CHARM_3P = 7
    DOUBLE_CHARM_MIX = 8
    GAMMA_CHARM_2P = 9
    GAMMA_CHARM_3P = 10


def bit(index: int) -> int:
    """Return the integer with only bit `index` set."""
    return 1 << int(index)


def is_bit_set(mask: int, index: int) -> bool:
    """Return whether bit `index` is set in `mask`."""
    return bool(mask & (1 << int(index)))


def trigger_names(mask: int) -> tuple[str, ...]:
    """Decode a trigger bitmap into the names of the fired triggers."""
    return tuple(t.name for t in HfTrigger if is_bit_set(mask, t))
