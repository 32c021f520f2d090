"""Astronomical conditions engine.

For a UTC calendar date, computes the Julian Day at 0h UT and derives:
- the moon phase from the Moon-Sun elongation,
- Mercury retrograde from longitudes at day-1, day, day+1 (both wrapped
  day-to-day deltas negative),
- a Jupiter-Mars conjunction when their longitudes are within the orb,
- a rating label from the ordered rule table.

Results are a pure function of the date and are memoised per engine.
"""

import datetime as dt
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from galactic.astro.angles import angular_distance, is_retrograde
from galactic.astro.ephemeris import Body, Ephemeris, PyEphemEphemeris
from galactic.astro.julian import date_to_jd
from galactic.astro.phases import classify_phase, phase_value
from galactic.astro.rating import Conditions, rate
from galactic.exceptions import InvalidArguments
from galactic.logging import get_logger
from galactic.models import AstroRecord, MoonPhase

logger = get_logger(__name__)

DEFAULT_CONJUNCTION_ORB = 10.0


def iter_dates(start: dt.date, end: dt.date) -> Iterator[dt.date]:
    """Every calendar date from start through end (inclusive)."""
    day = start
    while day <= end:
        yield day
        day += dt.timedelta(days=1)


class AstroEngine:
    """Computes and memoises AstroRecords per date.

    Usage:
        engine = AstroEngine()
        record = engine.conditions(date(2024, 1, 1))
    """

    def __init__(
        self,
        ephemeris: Ephemeris | None = None,
        conjunction_orb: float = DEFAULT_CONJUNCTION_ORB,
    ) -> None:
        self._ephemeris = ephemeris or PyEphemEphemeris()
        self._conjunction_orb = conjunction_orb
        self._cache: dict[dt.date, AstroRecord] = {}

    @property
    def cached_dates(self) -> int:
        return len(self._cache)

    # ──────────────────────────────────────────────
    # Individual conditions
    # ──────────────────────────────────────────────

    def moon_phase(self, jd: float) -> MoonPhase:
        moon = self._ephemeris.longitude(Body.MOON, jd)
        sun = self._ephemeris.longitude(Body.SUN, jd)
        return classify_phase(phase_value(moon, sun))

    def mercury_retrograde(self, jd: float) -> bool:
        samples = (
            self._ephemeris.longitude(Body.MERCURY, jd - 1),
            self._ephemeris.longitude(Body.MERCURY, jd),
            self._ephemeris.longitude(Body.MERCURY, jd + 1),
        )
        return is_retrograde(samples)

    def jupiter_mars_conjunction(self, jd: float) -> bool:
        jupiter = self._ephemeris.longitude(Body.JUPITER, jd)
        mars = self._ephemeris.longitude(Body.MARS, jd)
        return angular_distance(jupiter, mars) <= self._conjunction_orb

    # ──────────────────────────────────────────────
    # Records
    # ──────────────────────────────────────────────

    def conditions(self, day: dt.date) -> AstroRecord:
        """AstroRecord for ``day``, computed on first use and cached."""
        cached = self._cache.get(day)
        if cached is not None:
            return cached

        jd = date_to_jd(day)
        moon_phase = self.moon_phase(jd)
        retrograde = self.mercury_retrograde(jd)
        conjunction = self.jupiter_mars_conjunction(jd)

        record = AstroRecord(
            date=day,
            moon_phase=moon_phase,
            mercury_retrograde=retrograde,
            jupiter_mars_conjunction=conjunction,
            astro_rating=rate(Conditions(moon_phase, retrograde, conjunction)),
        )
        self._cache[day] = record
        return record

    def conditions_between(self, start: dt.date, end: dt.date) -> list[AstroRecord]:
        """One AstroRecord per date from start through end (inclusive)."""
        if start > end:
            raise InvalidArguments(f"start date {start} is after end date {end}")

        records = []
        for i, day in enumerate(iter_dates(start, end), 1):
            records.append(self.conditions(day))
            if i % 30 == 0:
                logger.info("astro_dates_processed", processed=i, last_date=day.isoformat())
        return records

    def today(self) -> AstroRecord:
        """Conditions for the current UTC date."""
        return self.conditions(dt.datetime.now(dt.timezone.utc).date())


@dataclass
class AstroSummary:
    """Counts of notable conditions across a set of dates."""

    dates: int
    full_moons: int
    new_moons: int
    mercury_retrograde_days: int
    jupiter_mars_conjunctions: int


def summarize(records: Iterable[AstroRecord]) -> AstroSummary:
    items = list(records)
    return AstroSummary(
        dates=len(items),
        full_moons=sum(1 for r in items if r.moon_phase == MoonPhase.FULL),
        new_moons=sum(1 for r in items if r.moon_phase == MoonPhase.NEW),
        mercury_retrograde_days=sum(1 for r in items if r.mercury_retrograde),
        jupiter_mars_conjunctions=sum(1 for r in items if r.jupiter_mars_conjunction),
    )
