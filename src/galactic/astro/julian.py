"""Calendar date to Julian Day conversion (Meeus, Astronomical Algorithms ch. 7)."""

import datetime as dt
import math

#: Offset between Julian Day and PyEphem's Dublin Julian Day (epoch 1899-12-31 12:00 UT).
DUBLIN_JD_OFFSET = 2415020.0


def calendar_to_jd(year: int, month: int, day: float) -> float:
    """Julian Day of a proleptic Gregorian calendar date (day may be fractional).

    Whole days give 0h UT, e.g. 2000-01-01 -> 2451544.5.
    """
    if month <= 2:
        year -= 1
        month += 12
    a = math.floor(year / 100)
    b = 2 - a + math.floor(a / 4)
    return (
        math.floor(365.25 * (year + 4716))
        + math.floor(30.6001 * (month + 1))
        + day
        + b
        - 1524.5
    )


def date_to_jd(day: dt.date) -> float:
    return calendar_to_jd(day.year, day.month, day.day)
