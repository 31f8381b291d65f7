"""
sky_maps.scrambling
===================

Time-scrambling estimate of the isotropic ("fake") sky.

Accepted events are buffered in an ``EventBlock`` of detector-frame samples
(azimuth, zenith angle, Julian date). When the block is full, each event
``i`` is re-projected ``K`` times onto the sky with its own azimuth and
zenith angle but with the Julian date of an event ``j`` drawn uniformly from
the same block. The ``n * K`` equatorial positions go into the background
histogram, and the block is reset once, after the whole pass.

Because arrival directions keep the detector geometry while losing their
true sidereal phase, the background has the exposure of the real data and no
genuine anisotropy. Exporting it with ``divisor=K`` puts it on the scale of
the real map.

Determinism
-----------
The generator is seeded once per scrambler. With ``n_jobs == 1`` every pass
draws an ``(n, K)`` index matrix from that single stream, so equal seeds,
inputs and ``K`` give bit-identical maps. With ``n_jobs > 1`` the block is
split into ``n_jobs`` partitions, each drawing from a child stream spawned
from the seed; the summed map is reproducible for a fixed ``(seed, n_jobs)``
but differs from the single-stream map.
"""

from __future__ import annotations

import logging
from typing import Tuple

import numpy as np
from joblib import Parallel, delayed

from kcdc_skymap.sky_core.coordinates import (
    convert_range_to_180,
    horizontal_to_equatorial,
)
from kcdc_skymap.sky_core.model import ScramblingConfig, Site
from kcdc_skymap.sky_maps.histogram import SkyHistogram

__all__ = [
    "EventBlock",
    "TimeScrambler",
    "scramble_events",
]

logger = logging.getLogger(__name__)


class EventBlock:
    """Fixed-capacity buffer of detector-frame samples."""

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self.capacity = capacity
        self.az = np.empty(capacity, dtype=float)
        self.ze = np.empty(capacity, dtype=float)
        self.jd = np.empty(capacity, dtype=float)
        self.size = 0

    def __len__(self) -> int:
        return self.size

    def append(self, az_deg: float, ze_deg: float, jd: float) -> None:
        if self.size >= self.capacity:
            raise OverflowError(f"EventBlock is full ({self.capacity} events)")
        self.az[self.size] = az_deg
        self.ze[self.size] = ze_deg
        self.jd[self.size] = jd
        self.size += 1

    def extend(self, az_deg, ze_deg, jd) -> int:
        """Append as many samples as fit; return how many were taken."""
        take = min(self.capacity - self.size, len(az_deg))
        window = slice(self.size, self.size + take)
        self.az[window] = az_deg[:take]
        self.ze[window] = ze_deg[:take]
        self.jd[window] = jd[:take]
        self.size += take
        return take

    def is_full(self) -> bool:
        return self.size >= self.capacity

    def view(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        n = self.size
        return self.az[:n], self.ze[:n], self.jd[:n]

    def reset(self) -> None:
        self.size = 0


def scramble_events(
    hist: SkyHistogram,
    az_deg: np.ndarray,
    ze_deg: np.ndarray,
    times: np.ndarray,
    draws: np.ndarray,
    site: Site,
) -> int:
    """Accumulate re-timed positions of ``(az, ze)`` into ``hist``.

    ``draws`` has shape ``(len(az_deg), K)`` and indexes ``times``. Returns
    the number of positions that landed inside the grid.
    """
    ra, dec = horizontal_to_equatorial(
        az_deg[:, np.newaxis], ze_deg[:, np.newaxis], times[draws], site
    )
    return hist.increment_many(dec, convert_range_to_180(ra))


def _scramble_partition(az, ze, times, n_draws, seed_seq, site, grid, name):
    rng = np.random.default_rng(seed_seq)
    draws = rng.integers(0, times.size, size=(az.size, n_draws))
    hist = SkyHistogram(grid, name)
    scramble_events(hist, az, ze, times, draws, site)
    return hist


class TimeScrambler:
    """Buffer accepted events and fill ``background`` block by block.

    Parameters
    ----------
    site : Site
        Observer position used for the re-projection.
    config : ScramblingConfig
        Seed, block size N, oversampling K, parallelism.
    background : SkyHistogram
        Histogram receiving the scrambled positions (not normalized).
    """

    def __init__(
        self, site: Site, config: ScramblingConfig, background: SkyHistogram
    ) -> None:
        self.site = site
        self.config = config
        self.background = background
        self.block = EventBlock(config.block_size)
        self._seed_seq = np.random.SeedSequence(config.seed)
        self.rng = np.random.default_rng(self._seed_seq)
        self.passes = 0
        self.resampled_events = 0

    def add(self, az_deg: float, ze_deg: float, jd: float) -> None:
        """Buffer one accepted event; resample when the block becomes full."""
        self.block.append(az_deg, ze_deg, jd)
        if self.block.is_full():
            self.resample_block()

    def add_many(self, az_deg, ze_deg, jd) -> None:
        """Buffer a batch of accepted events in input order.

        Equivalent to calling ``add`` once per event: a pass runs each time
        the block fills up, possibly several times within one batch.
        """
        az_deg = np.asarray(az_deg, dtype=float).ravel()
        ze_deg = np.asarray(ze_deg, dtype=float).ravel()
        jd = np.broadcast_to(np.asarray(jd, dtype=float), az_deg.shape).ravel()
        start = 0
        while start < az_deg.size:
            start += self.block.extend(az_deg[start:], ze_deg[start:], jd[start:])
            if self.block.is_full():
                self.resample_block()

    def resample_block(self) -> int:
        """Resample the buffered events, then reset the block.

        Returns the number of events resampled.
        """
        n = self.block.size
        if n == 0:
            return 0
        az, ze, jd = self.block.view()
        k = self.config.oversampling

        if self.config.n_jobs == 1:
            draws = self.rng.integers(0, n, size=(n, k))
            scramble_events(self.background, az, ze, jd, draws, self.site)
        else:
            parts = np.array_split(np.arange(n), self.config.n_jobs)
            children = self._seed_seq.spawn(len(parts))
            partials = Parallel(n_jobs=self.config.n_jobs, prefer="threads")(
                delayed(_scramble_partition)(
                    az[idx],
                    ze[idx],
                    jd,
                    k,
                    child,
                    self.site,
                    self.background.grid,
                    f"{self.background.name}[{i}]",
                )
                for i, (idx, child) in enumerate(zip(parts, children))
            )
            for partial in partials:
                self.background.merge(partial)

        self.passes += 1
        self.resampled_events += n
        logger.info(
            "Resampling pass %d: %d events x %d draws (background total %d)",
            self.passes,
            n,
            k,
            self.background.total(),
        )
        self.block.reset()
        return n

    def flush(self) -> int:
        """Handle the trailing partial block at end of input."""
        n = self.block.size
        if n == 0:
            return 0
        if self.config.flush_partial_block:
            return self.resample_block()
        logger.info("Discarding %d events of the incomplete last block", n)
        self.block.reset()
        return 0
