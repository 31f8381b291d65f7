# tests/sky_maps/test_histogram.py
"""Binning, out-of-range handling, export layout and relative intensity."""

from __future__ import annotations

import logging

import numpy as np
import pytest

from kcdc_skymap.sky_core.model import SkyGrid
from kcdc_skymap.sky_maps.histogram import SkyHistogram, relative_intensity


def test_default_grid_shape():
    h = SkyHistogram()
    assert h.counts.shape == (360, 720)
    assert h.counts.dtype == np.int64
    assert h.total() == 0


@pytest.mark.parametrize(
    "dec,ra,idx",
    [
        (-90.0, -180.0, (0, 0)),
        (0.0, 0.0, (180, 360)),
        (49.0994, 12.8606, (278, 385)),
        (89.9, 179.9, (359, 719)),
        (-0.25, -0.25, (179, 359)),
    ],
)
def test_increment_bins(dec, ra, idx):
    h = SkyHistogram()
    assert h.increment(dec, ra) is True
    assert h.counts[idx] == 1
    assert h.total() == 1


@pytest.mark.parametrize(
    "dec,ra",
    [(90.0, 0.0), (0.0, 180.0), (-90.5, 0.0), (0.0, 250.0), (np.nan, 0.0), (0.0, np.inf)],
)
def test_out_of_range_is_dropped_and_logged(dec, ra, caplog):
    h = SkyHistogram(name="real")
    with caplog.at_level(logging.WARNING, logger="kcdc_skymap.sky_maps.histogram"):
        assert h.increment(dec, ra) is False
    assert h.total() == 0
    assert h.dropped == 1
    assert "real map" in caplog.text


def test_increment_many_matches_increment():
    rng = np.random.default_rng(3)
    dec = rng.uniform(-95.0, 95.0, size=500)
    ra = rng.uniform(-185.0, 185.0, size=500)
    a, b = SkyHistogram(), SkyHistogram()
    accepted = a.increment_many(dec, ra)
    for d, r in zip(dec, ra):
        b.increment(d, r)
    np.testing.assert_array_equal(a.counts, b.counts)
    assert a.dropped == b.dropped
    assert accepted == a.total()
    assert accepted + a.dropped == 500


def test_increment_many_repeated_cell():
    h = SkyHistogram()
    assert h.increment_many(np.full(7, 10.1), np.full(7, -3.3)) == 7
    assert h.counts.max() == 7


def test_export_first_line_is_north(tmp_path):
    h = SkyHistogram()
    h.increment(89.9, -180.0)
    h.increment(-89.9, 179.9)
    h.increment(-89.9, 179.9)
    path = tmp_path / "m.dat"
    h.export(path)
    lines = path.read_text().splitlines()
    assert len(lines) == 360
    first = lines[0].split(" ")
    last = lines[-1].split(" ")
    assert len(first) == 720
    assert first[0] == "1"
    assert last[-1] == "2"
    assert sum(int(v) for ln in lines for v in ln.split()) == 3


def test_export_divisor_is_integer_division(tmp_path):
    h = SkyHistogram()
    h.increment_many(np.full(45, 1.0), np.full(45, 1.0))
    path = tmp_path / "fake.dat"
    h.export(path, divisor=20)
    rows = np.loadtxt(path, dtype=np.int64)
    assert rows.sum() == 2


def test_rows_rejects_bad_divisor():
    with pytest.raises(ValueError):
        SkyHistogram().rows(0)


def test_from_file_roundtrip(tmp_path):
    grid = SkyGrid(bin_size_deg=1.0, n_dec_bins=180, n_ra_bins=360)
    h = SkyHistogram(grid)
    h.increment_many([10.0, 10.0, -45.0], [100.0, 100.0, -170.0])
    h.export(tmp_path / "g.dat")
    back = SkyHistogram.from_file(tmp_path / "g.dat", grid)
    np.testing.assert_array_equal(back.counts, h.counts)


def test_from_file_shape_mismatch(tmp_path):
    SkyHistogram(SkyGrid(1.0, 180, 360)).export(tmp_path / "g.dat")
    with pytest.raises(ValueError, match="expected 360x720"):
        SkyHistogram.from_file(tmp_path / "g.dat")


def test_merge():
    a, b = SkyHistogram(), SkyHistogram()
    a.increment(0.0, 0.0)
    b.increment(0.0, 0.0)
    b.increment(90.0, 0.0)
    a.merge(b)
    assert a.counts[180, 360] == 2
    assert a.dropped == 1
    with pytest.raises(ValueError):
        a.merge(SkyHistogram(SkyGrid(1.0, 180, 360)))


def test_relative_intensity():
    grid = SkyGrid(bin_size_deg=90.0, n_dec_bins=2, n_ra_bins=4)
    real, bg = SkyHistogram(grid), SkyHistogram(grid)
    real.counts[:] = [[3, 0, 1, 0], [2, 2, 2, 2]]
    bg.counts[:] = [[20, 0, 40, 10], [40, 40, 40, 40]]
    ri = relative_intensity(real, bg, oversampling=20)
    assert ri[0, 0] == pytest.approx(2.0)
    assert np.isnan(ri[0, 1])
    assert ri[0, 2] == pytest.approx(-0.5)
    assert ri[0, 3] == pytest.approx(-1.0)
    np.testing.assert_allclose(ri[1], 0.0)
