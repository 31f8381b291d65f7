from __future__ import annotations

"""
model.py
========
Data models shared across the sky-map pipeline.

This module is intentionally small and stable. The coordinate functions, the
histogram accumulator and the time scrambler rely on these types without
importing readers, writers or the CLI.

All angles are in decimal degrees unless the field name says otherwise.
"""

from dataclasses import dataclass, field
from typing import Optional


# The observing site of a detector array.
@dataclass(frozen=True)
class Site:
    # Human readable site name.
    name: str
    # Latitude in decimal degrees (south negative).
    latitude_deg: float
    # Longitude in decimal degrees, as consumed by the sidereal-time formula.
    longitude_deg: float


KASCADE_SITE = Site(name="KASCADE", latitude_deg=49.0994, longitude_deg=8.4378)


# Reference values of the galactic frame in equatorial coordinates.
@dataclass(frozen=True)
class GalacticFrame:
    # Right ascension of the north galactic pole.
    pole_ra_deg: float = 192.859508
    # Declination of the north galactic pole.
    pole_dec_deg: float = 27.128336
    # Galactic longitude of the north celestial pole.
    lon0_deg: float = 122.932


# Binning of the declination / right-ascension histogram.
@dataclass(frozen=True)
class SkyGrid:
    # Bin width on both axes.
    bin_size_deg: float = 0.5
    # Declination bins covering dec + 90 in [0, 180).
    n_dec_bins: int = 360
    # Right-ascension bins covering ra + 180 in [0, 360).
    n_ra_bins: int = 720


# Time-scrambling settings.
@dataclass(frozen=True)
class ScramblingConfig:
    # Seed of the pseudo-random generator, fixed once per run.
    seed: int = 12345
    # Number of accepted events buffered before one resampling pass.
    block_size: int = 100000
    # Alternate observation times drawn per event (K).
    oversampling: int = 20
    # Partitions resampled in parallel; 1 keeps a single random stream.
    n_jobs: int = 1
    # Resample the trailing, incomplete block at end of input.
    flush_partial_block: bool = True


# Inclusive energy acceptance window of the event-statistics mode.
@dataclass(frozen=True)
class EnergyWindow:
    emin: float = float("-inf")
    emax: float = float("inf")

    # Scalars give a bool, arrays an element-wise mask.
    def accepts(self, energy):
        return (energy >= self.emin) & (energy <= self.emax)


# Reference direction of the DIST column and its output filter.
@dataclass(frozen=True)
class DistanceFilter:
    # Target right ascension in the [-180, 180) convention.
    target_ra_deg: float = -52.0
    # Target declination.
    target_dec_deg: float = 40.95
    # Records with DIST above this value are dropped; <= 0 disables it.
    max_distance: float = 0.0

    def keeps(self, dist):
        return (dist <= self.max_distance) | (self.max_distance <= 0.0)


# One KCDC air-shower record, in input column order.
@dataclass
class EventRecord:
    e: float = 0.0
    yc: float = 0.0
    xc: float = 0.0
    ze: float = 0.0
    az: float = 0.0
    ne: float = 0.0
    nmu: float = 0.0
    esumhad: float = 0.0
    nhad: int = 0
    t: float = 0.0
    p: float = 0.0
    gt: int = 0
    mt: int = 0
    ymd: int = 0
    hms: int = 0
    r: int = 0
    ev: int = 0
    age: float = 0.0
    # Sub-second part of the timestamp; KCDC exports do not carry it.
    subsecond_ns: int = 0


# Values derived for one record by the coordinate pipeline.
@dataclass
class SkyPosition:
    ra: float
    dec: float
    lon: float
    lat: float
    jdays: float
    dist: Optional[float] = None


# Effective configuration of one run.
@dataclass(frozen=True)
class RunConfig:
    site: Site = KASCADE_SITE
    galactic: GalacticFrame = field(default_factory=GalacticFrame)
    grid: SkyGrid = field(default_factory=SkyGrid)
    scrambling: ScramblingConfig = field(default_factory=ScramblingConfig)
    energy: EnergyWindow = field(default_factory=EnergyWindow)
    distance: DistanceFilter = field(default_factory=DistanceFilter)
    # "native" or "astropy".
    galactic_backend: str = "native"


__all__ = [
    "Site",
    "KASCADE_SITE",
    "GalacticFrame",
    "SkyGrid",
    "ScramblingConfig",
    "EnergyWindow",
    "DistanceFilter",
    "EventRecord",
    "SkyPosition",
    "RunConfig",
]
