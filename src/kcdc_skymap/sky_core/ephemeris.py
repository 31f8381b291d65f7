from __future__ import annotations

"""
ephemeris.py
============
Backend facade for the frame conversions of the pipeline.

``"native"`` evaluates the closed-form rotations of ``coordinates`` with the
configured site and pole constants. For the equatorial -> galactic step
``"astropy"`` delegates to ``SkyCoord(..., frame="icrs").galactic``; it
ignores the pole constants and agrees with the native result to about
1e-3 degrees.

The horizontal -> equatorial step has no astropy backend: the native formula
applies the site longitude with the sign convention of the sidereal-time
series, which ``AltAz`` does not reproduce.
"""

from typing import Tuple

import numpy as np
import astropy.units as u
from astropy.coordinates import SkyCoord

from .coordinates import ArrayLike, equatorial_to_galactic, horizontal_to_equatorial
from .model import GalacticFrame, Site

BACKENDS = ("native", "astropy")
EQUATORIAL_BACKENDS = ("native",)


def _galactic_astropy(ra_deg: ArrayLike, dec_deg: ArrayLike):
    coord = SkyCoord(
        ra=np.asarray(ra_deg, dtype=float) * u.deg,
        dec=np.asarray(dec_deg, dtype=float) * u.deg,
        frame="icrs",
    )
    gal = coord.galactic
    lon = gal.l.wrap_at(360.0 * u.deg).deg
    lat = gal.b.deg
    if np.ndim(lon) == 0:
        return float(lon), float(lat)
    return lon, lat


def equatorial_position(
    az_deg: ArrayLike,
    ze_deg: ArrayLike,
    julian_date: ArrayLike,
    site: Site,
    backend: str = "native",
) -> Tuple[ArrayLike, ArrayLike]:
    """Return equatorial ``(ra, dec)`` in degrees, ``ra`` in [0, 360)."""
    if backend not in EQUATORIAL_BACKENDS:
        raise ValueError(f"Unsupported ephemeris backend: {backend}")
    return horizontal_to_equatorial(az_deg, ze_deg, julian_date, site)


def galactic_position(
    ra_deg: ArrayLike,
    dec_deg: ArrayLike,
    frame: GalacticFrame = GalacticFrame(),
    backend: str = "native",
) -> Tuple[ArrayLike, ArrayLike]:
    """Return galactic ``(lon, lat)`` in degrees, ``lon`` in [0, 360)."""
    if backend not in BACKENDS:
        raise ValueError(f"Unsupported ephemeris backend: {backend}")
    if backend == "astropy":
        return _galactic_astropy(ra_deg, dec_deg)
    return equatorial_to_galactic(ra_deg, dec_deg, frame)


__all__ = [
    "BACKENDS",
    "EQUATORIAL_BACKENDS",
    "equatorial_position",
    "galactic_position",
]
