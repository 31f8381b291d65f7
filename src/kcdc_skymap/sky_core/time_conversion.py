from __future__ import annotations

"""
time_conversion.py
==================
Civil timestamp -> Julian date -> Greenwich sidereal time.

KCDC records carry the observation instant as two packed integers:
``YMD`` (e.g. ``19980702``) and ``HMS`` (e.g. ``145647``). The functions
here turn them into a continuous Julian date and from there into the mean
sidereal time at Greenwich, following the low-order series of Meeus,
*Astronomical Algorithms* (ch. 7 and 12).

Both functions accept Python scalars or numpy arrays. Scalars in, floats
out; arrays in, arrays out.

Packed integers are decomposed by place value only. Out-of-range parts
(month 0, hour 25, ...) are not validated and give whatever the formula
yields.
"""

from typing import Union

import numpy as np

ArrayLike = Union[float, int, np.ndarray]

# Julian date of the J2000.0 epoch.
J2000_JD = 2451545.0
DAYS_PER_JULIAN_CENTURY = 36525.0
SECONDS_PER_DAY = 86400.0
# Mean sidereal day / mean solar day.
SIDEREAL_RATIO = 1.00273790935
# GMST at 0h UT in seconds, ascending powers of Julian centuries (IAU 1982).
GST_COEFFS = (24110.54841, 8640184.812866, 0.093104, 0.0000062)


def _as_output(x: np.ndarray):
    return float(x) if np.ndim(x) == 0 else x


def julian_date(ymd: ArrayLike, hms: ArrayLike, subsecond_ns: ArrayLike = 0):
    """Return the Julian date of a packed ``YYYYMMDD`` / ``HHMMSS`` instant.

    Parameters
    ----------
    ymd : int or array of int
        Civil date as ``year * 10000 + month * 100 + day``.
    hms : int or array of int
        Time of day (UTC) as ``hour * 10000 + minute * 100 + second``.
    subsecond_ns : int or array of int, default 0
        Nanoseconds to add to the seconds field.

    Returns
    -------
    float or numpy.ndarray
        Julian date in days. ``julian_date(20000101, 120000)`` is
        ``2451545.0``.
    """
    ymd = np.asarray(ymd, dtype=np.int64)
    hms = np.asarray(hms, dtype=np.int64)

    years = (ymd // 10000).astype(float)
    months = ((ymd // 100) % 100).astype(float)
    days = (ymd % 100).astype(float)

    # January and February belong to the previous year.
    early = months <= 2
    months = np.where(early, months + 12.0, months)
    years = np.where(early, years - 1.0, years)

    hours = (hms // 10000).astype(float)
    minutes = ((hms // 100) % 100).astype(float)
    seconds = (hms % 100).astype(float) + np.asarray(subsecond_ns, dtype=float) * 1e-9

    days = days + (hours + (minutes + seconds / 60.0) / 60.0) / 24.0

    # Gregorian calendar correction.
    a = np.floor(years / 100.0)
    b = 2.0 - a + np.floor(a / 4.0)

    jd = (
        np.floor(365.25 * (years + 4716.0))
        + np.floor(306.0 * (months + 1.0) / 10.0)
        + b
        + days
        - 1524.5
    )
    return _as_output(jd)


def greenwich_sidereal_time(jd: ArrayLike):
    """Return the Greenwich mean sidereal time, in seconds, at Julian date ``jd``.

    The day is split at 0h UT: the polynomial gives GMST at midnight and the
    elapsed fraction of the day is added at the sidereal rate. The result is
    not reduced to one sidereal day.
    """
    jd = np.asarray(jd, dtype=float)
    day_fraction, day_part = np.modf(jd + 0.5)
    # 0h UT of the day expressed in Julian centuries since J2000.0.
    centuries = (day_part - (J2000_JD + 0.5)) / DAYS_PER_JULIAN_CENTURY

    gst0 = GST_COEFFS[3]
    for coeff in reversed(GST_COEFFS[:3]):
        gst0 = gst0 * centuries + coeff

    gst = gst0 + day_fraction * SIDEREAL_RATIO * SECONDS_PER_DAY
    return _as_output(gst)


def gst_to_radians(seconds: ArrayLike):
    """Sidereal seconds -> hours -> radians."""
    return seconds * (np.pi / 12.0 / 3600.0)


def gst_to_degrees(seconds: ArrayLike):
    """Sidereal seconds -> hours -> degrees."""
    return seconds / 3600.0 * 15.0


__all__ = [
    "J2000_JD",
    "SIDEREAL_RATIO",
    "GST_COEFFS",
    "julian_date",
    "greenwich_sidereal_time",
    "gst_to_radians",
    "gst_to_degrees",
]
