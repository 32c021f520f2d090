"""Angle arithmetic on ecliptic longitudes (degrees)."""

FULL_CIRCLE = 360.0
HALF_CIRCLE = 180.0


def normalize(angle: float) -> float:
    """Map any angle into [0, 360)."""
    result = ((angle % FULL_CIRCLE) + FULL_CIRCLE) % FULL_CIRCLE
    # float modulo can round a tiny negative input up to exactly 360.0
    return 0.0 if result >= FULL_CIRCLE else result


def angular_distance(a: float, b: float) -> float:
    """Smallest separation between two longitudes, in [0, 180]. Symmetric."""
    diff = abs(normalize(a) - normalize(b))
    return min(diff, FULL_CIRCLE - diff)


def wrap_delta(delta: float) -> float:
    """Correct a longitude difference for the 360/0 seam."""
    if delta > HALF_CIRCLE:
        return delta - FULL_CIRCLE
    if delta < -HALF_CIRCLE:
        return delta + FULL_CIRCLE
    return delta


def is_retrograde(samples: tuple[float, float, float]) -> bool:
    """True if longitude moves backward across both steps of a 3-sample window.

    Args:
        samples: Longitudes at day-1, day, day+1.
    """
    previous, current, following = (normalize(lon) for lon in samples)
    first = wrap_delta(current - previous)
    second = wrap_delta(following - current)
    return first < 0 and second < 0
