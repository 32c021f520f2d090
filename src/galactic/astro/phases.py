"""Moon phase classification from the Moon-Sun elongation.

Canonical boundary table: each principal phase (New, First Quarter, Full,
Last Quarter) owns a window of 1/16 of the cycle centred on its exact
instant (+/- 1/32), and the intermediate phases fill the gaps. New Moon wraps
around the end of the cycle.
"""

from galactic.astro.angles import FULL_CIRCLE, normalize
from galactic.models import MoonPhase

#: (exclusive upper bound of phase value, phase), evaluated in order.
PHASE_BOUNDARIES: tuple[tuple[float, MoonPhase], ...] = (
    (0.03125, MoonPhase.NEW),
    (0.21875, MoonPhase.WAXING_CRESCENT),
    (0.28125, MoonPhase.FIRST_QUARTER),
    (0.46875, MoonPhase.WAXING_GIBBOUS),
    (0.53125, MoonPhase.FULL),
    (0.71875, MoonPhase.WANING_GIBBOUS),
    (0.78125, MoonPhase.LAST_QUARTER),
    (0.96875, MoonPhase.WANING_CRESCENT),
    (1.0, MoonPhase.NEW),
)


def phase_value(moon_longitude: float, sun_longitude: float) -> float:
    """Fraction of the synodic cycle elapsed: 0 = new, 0.5 = full. In [0, 1)."""
    return normalize(moon_longitude - sun_longitude) / FULL_CIRCLE


def classify_phase(value: float) -> MoonPhase:
    """Map a phase value to one of the eight named phases.

    Values outside [0, 1) are folded back into the cycle.
    """
    folded = value % 1.0
    for upper, phase in PHASE_BOUNDARIES:
        if folded < upper:
            return phase
    return MoonPhase.NEW
