# tests/sky_core/test_time_conversion.py
"""
Julian date and Greenwich sidereal time.

Reference values come from Meeus, *Astronomical Algorithms* (examples 7.a,
12.a, 12.b) and from astropy's calendar conversion.
"""

from __future__ import annotations

import numpy as np
import pytest
from astropy.time import Time
from hypothesis import given, strategies as st

from kcdc_skymap.sky_core.time_conversion import (
    greenwich_sidereal_time,
    gst_to_degrees,
    gst_to_radians,
    julian_date,
)


def test_j2000_epoch():
    assert julian_date(20000101, 120000) == pytest.approx(2451545.0, abs=1e-9)


def test_meeus_sputnik_launch():
    # 1957 October 4.81 = 19:26:24 UT
    assert julian_date(19571004, 192624) == pytest.approx(2436116.31, abs=1e-6)


@pytest.mark.parametrize(
    "ymd,hms,iso",
    [
        (20000101, 184215, "2000-01-01T18:42:15"),
        (19980702, 145647, "1998-07-02T14:56:47"),
        (20040229, 235959, "2004-02-29T23:59:59"),
        (19990115, 0, "1999-01-15T00:00:00"),
        (20120301, 61530, "2012-03-01T06:15:30"),
        (19961231, 120001, "1996-12-31T12:00:01"),
    ],
)
def test_julian_date_matches_astropy(ymd, hms, iso):
    expected = Time(iso, format="isot", scale="utc").jd
    assert julian_date(ymd, hms) == pytest.approx(expected, abs=1e-8)


def test_january_and_february_use_previous_year():
    # Consecutive days across the Feb/Mar boundary of a leap year.
    feb29 = julian_date(20000229, 0)
    mar01 = julian_date(20000301, 0)
    jan31 = julian_date(20000131, 0)
    feb01 = julian_date(20000201, 0)
    assert mar01 - feb29 == pytest.approx(1.0)
    assert feb01 - jan31 == pytest.approx(1.0)


def test_subsecond_nanoseconds():
    base = julian_date(20000101, 120000)
    shifted = julian_date(20000101, 120000, subsecond_ns=500_000_000)
    assert (shifted - base) * 86400.0 == pytest.approx(0.5, abs=1e-4)


def test_array_input_matches_scalar():
    ymd = np.array([20000101, 19980702, 20040229])
    hms = np.array([184215, 145647, 235959])
    jd = julian_date(ymd, hms)
    assert isinstance(jd, np.ndarray)
    for i in range(3):
        assert jd[i] == pytest.approx(julian_date(int(ymd[i]), int(hms[i])), abs=1e-9)


def test_scalar_returns_float():
    assert isinstance(julian_date(20000101, 0), float)
    assert isinstance(greenwich_sidereal_time(2451545.0), float)


@given(st.integers(min_value=0, max_value=86398))
def test_julian_date_strictly_increases_within_a_day(sec):
    hms_a = (sec // 3600) * 10000 + (sec // 60 % 60) * 100 + sec % 60
    nxt = sec + 1
    hms_b = (nxt // 3600) * 10000 + (nxt // 60 % 60) * 100 + nxt % 60
    assert julian_date(19980702, hms_b) > julian_date(19980702, hms_a)


def test_gst_at_j2000_noon():
    gst = greenwich_sidereal_time(2451545.0)
    assert gst_to_degrees(gst) == pytest.approx(280.46061837, abs=1e-6)


def test_gst_meeus_midnight():
    # 1987 April 10, 0h UT: 13h10m46.3668s
    gst = greenwich_sidereal_time(2446895.5)
    assert np.mod(gst, 86400.0) == pytest.approx(47446.3668, abs=2e-3)


def test_gst_meeus_evening():
    # 1987 April 10, 19h21m UT: 8h34m57.0896s
    jd = julian_date(19870410, 192100)
    gst = greenwich_sidereal_time(jd)
    assert np.mod(gst, 86400.0) == pytest.approx(30897.0896, abs=2e-3)


def test_gst_is_not_reduced_to_one_day():
    # Late in the day the sum exceeds one sidereal day.
    gst = greenwich_sidereal_time(julian_date(20000101, 184215))
    assert gst > 86400.0


def test_gst_unit_conversions():
    assert gst_to_degrees(3600.0) == pytest.approx(15.0)
    assert gst_to_radians(43200.0) == pytest.approx(np.pi)
    assert gst_to_radians(86400.0) == pytest.approx(np.radians(gst_to_degrees(86400.0)))
