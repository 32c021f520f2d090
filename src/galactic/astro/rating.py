"""Astro rating policy: an ordered (predicate, label) table, first match wins.

Labels are opaque strings for display; the trailing glyph is decoration and
must not be parsed.
"""

from collections.abc import Callable
from dataclasses import dataclass

from galactic.models import MoonPhase


@dataclass(frozen=True)
class Conditions:
    """The inputs a rating rule may look at."""

    moon_phase: MoonPhase
    mercury_retrograde: bool
    jupiter_mars_conjunction: bool


RatingRule = tuple[Callable[[Conditions], bool], str]

DEFAULT_RATING = "Moderate Energy 🌗"

RATING_RULES: tuple[RatingRule, ...] = (
    (
        lambda c: c.moon_phase == MoonPhase.FULL
        and c.mercury_retrograde
        and c.jupiter_mars_conjunction,
        "Chaotic Neutral 🌕",
    ),
    (
        lambda c: c.moon_phase == MoonPhase.FULL and c.mercury_retrograde,
        "Volatile Energy 🌕",
    ),
    (
        lambda c: c.moon_phase == MoonPhase.NEW
        and not c.mercury_retrograde
        and not c.jupiter_mars_conjunction,
        "Calm and Collected 🌑",
    ),
    (lambda c: c.mercury_retrograde, "Retrograde Turbulence 🔁"),
    (lambda c: c.jupiter_mars_conjunction, "Amplified Forces 🪐"),
    (lambda c: c.moon_phase.is_waning, "Releasing Energy 🌘"),
    (lambda c: c.moon_phase.is_waxing, "Building Energy 🌒"),
)


def rate(
    conditions: Conditions,
    rules: tuple[RatingRule, ...] = RATING_RULES,
    default: str = DEFAULT_RATING,
) -> str:
    """Return the label of the first rule whose predicate holds."""
    for predicate, label in rules:
        if predicate(conditions):
            return label
    return default
