from __future__ import annotations

"""
coordinates.py
==============
Spherical-trigonometry conversions between the frames used by the pipeline.

- Horizontal (azimuth, zenith angle) at the detector site and a Julian date
  -> equatorial (right ascension, declination).
- Equatorial -> galactic (longitude, latitude).
- Angle canonicalization into [0, 360) and [-180, 180).

All public functions take and return degrees and work element-wise on numpy
arrays as well as on scalars.

Azimuth convention
------------------
``horizontal_to_equatorial`` expects azimuth measured from the south towards
the west (0 = south, 90 = west). KCDC azimuths are measured from the north;
``detector_to_horizontal_azimuth`` performs the 180 degree rotation.

Numeric edge cases
------------------
Nothing is guarded at the poles: ``tan(dec)`` diverges at dec = +-90 and the
resulting NaN/Inf propagate to the caller. The histogram accumulator drops
such values.
"""

from typing import Tuple, Union

import numpy as np

from .model import GalacticFrame, Site
from .time_conversion import greenwich_sidereal_time, gst_to_radians

ArrayLike = Union[float, np.ndarray]

DEG2RAD = np.pi / 180.0
RAD2DEG = 180.0 / np.pi
PI_2 = np.pi * 0.5


def _as_output(x):
    return float(x) if np.ndim(x) == 0 else x


# =============================================================================
# Angle normalization
# =============================================================================


def normalize_to_360(angle: ArrayLike):
    """Reduce ``angle`` into [0, 360).

    The whole turns are removed by truncation toward zero and negative
    inputs take one extra turn, which is floor division for every input
    that is not a negative multiple of 360. Those (and negative values
    within float resolution of one) would land on 360 exactly and are
    folded onto 0.
    """
    a = np.asarray(angle, dtype=float)
    with np.errstate(invalid="ignore"):
        wrapped = np.fmod(a, 360.0)
        wrapped = np.where(a < 0.0, wrapped + 360.0, wrapped)
        wrapped = np.where(wrapped >= 360.0, wrapped - 360.0, wrapped)
    return _as_output(wrapped)


def convert_range_to_180(angle: ArrayLike):
    """Map [0, 360) onto [-180, 180)."""
    a = np.asarray(angle, dtype=float)
    return _as_output(np.where(a >= 180.0, a - 360.0, a))


def detector_to_horizontal_azimuth(az_deg: ArrayLike):
    """KCDC azimuth (from north) -> azimuth from south toward west, in [0, 360)."""
    return normalize_to_360(np.asarray(az_deg, dtype=float) + 180.0)


# =============================================================================
# Frame conversions
# =============================================================================


def horizontal_to_equatorial(
    az_deg: ArrayLike,
    ze_deg: ArrayLike,
    julian_date: ArrayLike,
    site: Site,
) -> Tuple[ArrayLike, ArrayLike]:
    """Convert horizontal coordinates to equatorial ``(ra, dec)``.

    Parameters
    ----------
    az_deg : float or array
        Azimuth from the south toward the west [deg].
    ze_deg : float or array
        Zenith angle [deg].
    julian_date : float or array
        Observation instant (UT) as a Julian date.
    site : Site
        Observer position.

    Returns
    -------
    (ra, dec)
        ``ra`` in [0, 360), ``dec`` in [-90, 90], degrees.
    """
    az = np.asarray(az_deg, dtype=float) * DEG2RAD
    height = PI_2 - np.asarray(ze_deg, dtype=float) * DEG2RAD
    latitude = site.latitude_deg * DEG2RAD
    longitude = site.longitude_deg * DEG2RAD

    hour_angle = np.arctan2(
        np.sin(az),
        np.cos(az) * np.sin(latitude) + np.tan(height) * np.cos(latitude),
    )
    gst = gst_to_radians(greenwich_sidereal_time(julian_date))

    ra = normalize_to_360((gst - hour_angle - longitude) * RAD2DEG)
    with np.errstate(invalid="ignore"):
        dec = (
            np.arcsin(
                np.sin(latitude) * np.sin(height)
                - np.cos(latitude) * np.cos(height) * np.cos(az)
            )
            * RAD2DEG
        )
    # dec does not depend on the time; both outputs share the broadcast shape.
    ra, dec = np.broadcast_arrays(ra, dec)
    return _as_output(ra), _as_output(dec)


def equatorial_to_galactic(
    ra_deg: ArrayLike,
    dec_deg: ArrayLike,
    frame: GalacticFrame = GalacticFrame(),
) -> Tuple[ArrayLike, ArrayLike]:
    """Convert equatorial ``(ra, dec)`` to galactic ``(lon, lat)``.

    ``lon`` is returned in [0, 360), ``lat`` in [-90, 90].
    """
    d_ra = (frame.pole_ra_deg - np.asarray(ra_deg, dtype=float)) * DEG2RAD
    dec = np.asarray(dec_deg, dtype=float) * DEG2RAD
    pole_dec = frame.pole_dec_deg * DEG2RAD

    x = np.arctan2(
        np.sin(d_ra),
        np.cos(d_ra) * np.sin(pole_dec) - np.tan(dec) * np.cos(pole_dec),
    )
    with np.errstate(invalid="ignore"):
        lat = (
            np.arcsin(
                np.sin(dec) * np.sin(pole_dec)
                + np.cos(dec) * np.cos(pole_dec) * np.cos(d_ra)
            )
            * RAD2DEG
        )
    lon = np.fmod(np.pi + frame.lon0_deg * DEG2RAD - x, 2.0 * np.pi) * RAD2DEG
    # fmod just below 2 pi can round up to 360 after the unit conversion.
    return normalize_to_360(lon), _as_output(lat)


# =============================================================================
# Derived quantities
# =============================================================================


def angular_distance_score(
    ra_deg: ArrayLike,
    dec_deg: ArrayLike,
    target_ra_deg: float,
    target_dec_deg: float,
):
    """Distance to a target direction with the RA offset scaled by 1/cos(dec_t).

    Both right ascensions must use the same convention ([-180, 180) in the
    augmentation output). No wrap-around is applied to the RA difference.
    """
    ra = np.asarray(ra_deg, dtype=float)
    dec = np.asarray(dec_deg, dtype=float)
    scale = np.cos(target_dec_deg * DEG2RAD) ** 2
    dist = np.sqrt((dec - target_dec_deg) ** 2 + (ra - target_ra_deg) ** 2 / scale)
    return _as_output(dist)


def project_hammer_aitoff(lon_deg: ArrayLike, lat_deg: ArrayLike):
    """Hammer-Aitoff equal-area projection.

    ``lon`` in [-180, 180) and ``lat`` in [-90, 90] map onto an ellipse with
    semi-axes 180 (x) and 90 (y).
    """
    lon = np.asarray(lon_deg, dtype=float) * DEG2RAD
    lat = np.asarray(lat_deg, dtype=float) * DEG2RAD
    z = np.sqrt(1.0 + np.cos(lat) * np.cos(lon / 2.0))
    x = 180.0 * np.cos(lat) * np.sin(lon / 2.0) / z
    y = 90.0 * np.sin(lat) / z
    return _as_output(x), _as_output(y)


__all__ = [
    "DEG2RAD",
    "RAD2DEG",
    "normalize_to_360",
    "convert_range_to_180",
    "detector_to_horizontal_azimuth",
    "horizontal_to_equatorial",
    "equatorial_to_galactic",
    "angular_distance_score",
    "project_hammer_aitoff",
]
