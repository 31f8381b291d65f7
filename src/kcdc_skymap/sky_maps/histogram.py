"""
sky_maps.histogram
==================

Fixed-resolution declination / right-ascension histogram.

Layout
------
``counts[dec_idx, ra_idx]`` with

- ``dec_idx = floor((dec + 90) / bin)`` in ``[0, n_dec_bins)``
- ``ra_idx  = floor((ra + 180) / bin)`` in ``[0, n_ra_bins)``

so that row 0 of the in-memory array is the south pole. The exported text
grid is flipped: its first line is the northernmost declination band.

Out-of-range entries
--------------------
Positions whose indices fall outside the grid (dec = +90 exactly, an RA not
reduced to [-180, 180), NaN from a pole singularity, ...) are dropped from
the map, counted in ``dropped`` and reported through ``logging``. They never
abort a run.

Text format
-----------
``export`` writes ``n_dec_bins`` lines of ``n_ra_bins`` space-separated
integers. The optional ``divisor`` is applied with integer division, which is
how the background map is normalized by the oversampling factor.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

import numpy as np

from kcdc_skymap.sky_core.model import SkyGrid

__all__ = [
    "SkyHistogram",
    "relative_intensity",
]

logger = logging.getLogger(__name__)


class SkyHistogram:
    """Dense event-count grid over the celestial sphere.

    Parameters
    ----------
    grid : SkyGrid
        Bin width and grid dimensions.
    name : str
        Label used in log messages (e.g. ``"real"``, ``"fake"``).
    """

    def __init__(self, grid: SkyGrid = SkyGrid(), name: str = "sky") -> None:
        self.grid = grid
        self.name = name
        self.counts = np.zeros((grid.n_dec_bins, grid.n_ra_bins), dtype=np.int64)
        self.dropped = 0

    def __repr__(self) -> str:
        return (
            f"SkyHistogram(name={self.name!r}, shape={self.counts.shape}, "
            f"total={self.total()}, dropped={self.dropped})"
        )

    def _indices(self, dec, ra):
        bin_size = self.grid.bin_size_deg
        dec = np.asarray(dec, dtype=float)
        ra = np.asarray(ra, dtype=float)
        with np.errstate(invalid="ignore"):
            dec_idx = np.floor((dec + 90.0) / bin_size)
            ra_idx = np.floor((ra + 180.0) / bin_size)
            valid = (
                np.isfinite(dec_idx)
                & np.isfinite(ra_idx)
                & (dec_idx >= 0)
                & (dec_idx < self.grid.n_dec_bins)
                & (ra_idx >= 0)
                & (ra_idx < self.grid.n_ra_bins)
            )
        return dec_idx, ra_idx, valid

    def increment(self, dec: float, ra: float) -> bool:
        """Count one event at ``(dec, ra)``; return False when it was dropped."""
        dec_idx, ra_idx, valid = self._indices(dec, ra)
        if not valid:
            self.dropped += 1
            logger.warning(
                "%s map: dec=%s ra=%s maps to bin (%s, %s) outside %dx%d; "
                "event dropped",
                self.name,
                dec,
                ra,
                dec_idx,
                ra_idx,
                self.grid.n_dec_bins,
                self.grid.n_ra_bins,
            )
            return False
        self.counts[int(dec_idx), int(ra_idx)] += 1
        return True

    def increment_many(self, dec, ra) -> int:
        """Vectorized ``increment``; return the number of accepted entries."""
        dec_idx, ra_idx, valid = self._indices(np.ravel(dec), np.ravel(ra))
        n_bad = int(valid.size - np.count_nonzero(valid))
        if n_bad:
            self.dropped += n_bad
            logger.warning(
                "%s map: %d of %d entries outside the grid; dropped",
                self.name,
                n_bad,
                valid.size,
            )
        np.add.at(
            self.counts,
            (dec_idx[valid].astype(np.intp), ra_idx[valid].astype(np.intp)),
            1,
        )
        return int(valid.size - n_bad)

    def merge(self, other: "SkyHistogram") -> None:
        """Add the counts of ``other`` (same grid) into this histogram."""
        if other.counts.shape != self.counts.shape:
            raise ValueError(
                f"Cannot merge {other.counts.shape} grid into {self.counts.shape}"
            )
        self.counts += other.counts
        self.dropped += other.dropped

    def total(self) -> int:
        return int(self.counts.sum())

    def rows(self, divisor: int = 1) -> np.ndarray:
        """North-to-south view of the counts, integer-divided by ``divisor``."""
        if divisor < 1:
            raise ValueError("divisor must be >= 1")
        return self.counts[::-1] // divisor

    def export(self, path: Union[str, Path], divisor: int = 1) -> None:
        """Write the grid as text, first line = northernmost band."""
        np.savetxt(path, self.rows(divisor), fmt="%d", delimiter=" ")

    @classmethod
    def from_file(
        cls, path: Union[str, Path], grid: SkyGrid = SkyGrid(), name: str = "sky"
    ) -> "SkyHistogram":
        """Read a grid written by ``export`` (divisor already applied)."""
        rows = np.loadtxt(path, dtype=np.int64, ndmin=2)
        if rows.shape != (grid.n_dec_bins, grid.n_ra_bins):
            raise ValueError(
                f"{path}: expected {grid.n_dec_bins}x{grid.n_ra_bins} grid, "
                f"found {rows.shape[0]}x{rows.shape[1]}"
            )
        hist = cls(grid, name)
        hist.counts[:] = rows[::-1]
        return hist


def relative_intensity(
    real: SkyHistogram, background: SkyHistogram, oversampling: int = 1
) -> np.ndarray:
    """Per-cell ``(N_real - N_bg/K) / (N_bg/K)``; NaN where the background is empty.

    The result uses the in-memory row order (row 0 = south).
    """
    expected = background.counts / float(oversampling)
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.where(expected > 0, (real.counts - expected) / expected, np.nan)
