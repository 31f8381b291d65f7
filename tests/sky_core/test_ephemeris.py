# tests/sky_core/test_ephemeris.py
"""Backend selection and native/astropy agreement of the galactic step."""

from __future__ import annotations

import numpy as np
import pytest

from kcdc_skymap.sky_core.coordinates import horizontal_to_equatorial
from kcdc_skymap.sky_core.ephemeris import (
    BACKENDS,
    equatorial_position,
    galactic_position,
)
from kcdc_skymap.sky_core.model import KASCADE_SITE


def _lon_diff(a, b):
    d = np.mod(np.asarray(a) - np.asarray(b), 360.0)
    return np.minimum(d, 360.0 - d)


POINTS = [
    (0.0, 0.0),
    (83.63, 22.01),
    (266.40499, -28.93617),
    (12.86064938, 49.0994),
    (300.0, -60.0),
    (150.0, 70.0),
]


@pytest.mark.parametrize("ra,dec", POINTS)
def test_native_and_astropy_agree(ra, dec):
    lon_n, lat_n = galactic_position(ra, dec, backend="native")
    lon_a, lat_a = galactic_position(ra, dec, backend="astropy")
    assert isinstance(lon_a, float)
    assert _lon_diff(lon_n, lon_a) < 2e-3
    assert lat_n == pytest.approx(lat_a, abs=2e-3)


def test_astropy_backend_arrays():
    ra = np.array([p[0] for p in POINTS])
    dec = np.array([p[1] for p in POINTS])
    lon_n, lat_n = galactic_position(ra, dec)
    lon_a, lat_a = galactic_position(ra, dec, backend="astropy")
    assert lon_a.shape == ra.shape
    assert np.all((lon_a >= 0.0) & (lon_a < 360.0))
    assert np.all(_lon_diff(lon_n, lon_a) < 2e-3)
    np.testing.assert_allclose(lat_n, lat_a, atol=2e-3)


def test_unknown_galactic_backend():
    with pytest.raises(ValueError, match="Unsupported ephemeris backend"):
        galactic_position(0.0, 0.0, backend="pysofa")


def test_equatorial_native_matches_transformer():
    jd = 2451545.279340278
    assert equatorial_position(10.0, 20.0, jd, KASCADE_SITE) == (
        horizontal_to_equatorial(10.0, 20.0, jd, KASCADE_SITE)
    )


def test_equatorial_has_no_astropy_backend():
    assert "astropy" in BACKENDS
    with pytest.raises(ValueError):
        equatorial_position(10.0, 20.0, 2451545.0, KASCADE_SITE, backend="astropy")
