"""Geocentric ecliptic longitudes from a single ephemeris model (PyEphem).

PyEphem bundles VSOP87 planetary theory and an ELP-based lunar theory, so no
ephemeris files are downloaded. Longitudes are in the J2000 ecliptic frame;
moon phase and conjunction tests only use differences between bodies, and
retrograde detection only uses day-to-day motion, so the common frame is
all that matters.
"""

import math
from enum import Enum
from typing import Protocol

import ephem

from galactic.astro.julian import DUBLIN_JD_OFFSET


class Body(str, Enum):
    """Bodies the conditions engine samples."""

    SUN = "Sun"
    MOON = "Moon"
    MERCURY = "Mercury"
    MARS = "Mars"
    JUPITER = "Jupiter"


class Ephemeris(Protocol):
    """Source of geocentric ecliptic longitudes."""

    def longitude(self, body: Body, jd: float) -> float:
        """Longitude of ``body`` in degrees at Julian Day ``jd``."""
        ...


_BODY_FACTORIES = {
    Body.SUN: ephem.Sun,
    Body.MOON: ephem.Moon,
    Body.MERCURY: ephem.Mercury,
    Body.MARS: ephem.Mars,
    Body.JUPITER: ephem.Jupiter,
}


class PyEphemEphemeris:
    """Ephemeris implementation backed by PyEphem."""

    def longitude(self, body: Body, jd: float) -> float:
        target = _BODY_FACTORIES[body]()
        # compute() with a bare date (no Observer) gives geocentric positions
        target.compute(ephem.Date(jd - DUBLIN_JD_OFFSET))
        return math.degrees(float(ephem.Ecliptic(target).lon))
