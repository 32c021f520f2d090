"""Astronomical conditions -- moon phase, Mercury retrograde, Jupiter-Mars conjunction, rating."""

from galactic.astro.angles import angular_distance, is_retrograde, normalize, wrap_delta
from galactic.astro.engine import AstroEngine, AstroSummary, iter_dates, summarize
from galactic.astro.ephemeris import Body, Ephemeris, PyEphemEphemeris
from galactic.astro.julian import calendar_to_jd, date_to_jd
from galactic.astro.phases import PHASE_BOUNDARIES, classify_phase, phase_value
from galactic.astro.rating import RATING_RULES, Conditions, rate

__all__ = [
    "AstroEngine",
    "AstroSummary",
    "Body",
    "Conditions",
    "Ephemeris",
    "PHASE_BOUNDARIES",
    "PyEphemEphemeris",
    "RATING_RULES",
    "angular_distance",
    "calendar_to_jd",
    "classify_phase",
    "date_to_jd",
    "is_retrograde",
    "iter_dates",
    "normalize",
    "phase_value",
    "rate",
    "summarize",
    "wrap_delta",
]
