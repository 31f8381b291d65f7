from __future__ import annotations

"""
pipeline.py
===========
The two processing modes over a KCDC event file.

- ``add_fields``: streaming field augmentation. Every record is echoed with
  its equatorial and galactic position, Julian date and distance score.
- ``event_statistics``: energy selection, real sky histogram and the
  time-scrambled background, written as two text grids.

Both read the input in pandas chunks and evaluate the coordinate chain on
whole columns; the per-event order of the accumulation is preserved, so the
resampling blocks contain exactly the accepted events in input order.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from kcdc_skymap.sky_io.kcdc import (
    format_header,
    format_record,
    iter_chunks,
    read_header,
    records_from_chunk,
)
from kcdc_skymap.sky_maps.histogram import SkyHistogram
from kcdc_skymap.sky_maps.scrambling import TimeScrambler

from .coordinates import (
    angular_distance_score,
    convert_range_to_180,
    detector_to_horizontal_azimuth,
)
from .ephemeris import equatorial_position, galactic_position
from .model import EventRecord, RunConfig, SkyPosition
from .time_conversion import julian_date

logger = logging.getLogger(__name__)

# Debug tick and info report intervals, in input records.
PROGRESS_TICK = 50000
PROGRESS_REPORT = 1000000
DEFAULT_CHUNKSIZE = 50000
# Upper bound on the RA/DEC pairs kept for the add-fields scatter plot.
MAX_COLLECTED_POSITIONS = 1000000
_DERIVED_KEYS = ("RA", "DEC", "LON", "LAT", "JDAYS", "DIST")


@dataclass
class AddFieldsSummary:
    output_path: str
    records_read: int = 0
    records_written: int = 0
    # Filled only when positions are collected for plotting: every
    # ``position_stride``-th written record, in output order.
    ra: np.ndarray = field(default_factory=lambda: np.empty(0))
    dec: np.ndarray = field(default_factory=lambda: np.empty(0))
    position_stride: int = 1


@dataclass
class StatisticsSummary:
    real_path: str
    fake_path: str
    records_read: int = 0
    records_accepted: int = 0
    real_total: int = 0
    real_dropped: int = 0
    fake_total: int = 0
    fake_dropped: int = 0
    resampling_passes: int = 0
    resampled_events: int = 0
    plot_path: Optional[str] = None


def _report_progress(before: int, after: int) -> None:
    if after // PROGRESS_REPORT > before // PROGRESS_REPORT:
        logger.info("%d records processed", after)
    elif after // PROGRESS_TICK > before // PROGRESS_TICK:
        logger.debug("... %d records", after)


# =============================================================================
# Coordinate chain
# =============================================================================


def compute_sky_positions(
    chunk: pd.DataFrame, config: RunConfig
) -> Dict[str, np.ndarray]:
    """Evaluate the coordinate chain for every row of a KCDC chunk.

    Returns a dict of arrays ``RA DEC LON LAT JDAYS DIST`` with ``RA`` and
    ``LON`` in [-180, 180).
    """
    az = detector_to_horizontal_azimuth(chunk["AZ"].to_numpy(dtype=float))
    ze = chunk["ZE"].to_numpy(dtype=float)
    jd = np.asarray(
        julian_date(chunk["YMD"].to_numpy(), chunk["HMS"].to_numpy()), dtype=float
    )

    ra360, dec = equatorial_position(az, ze, jd, config.site)
    lon360, lat = galactic_position(
        ra360, dec, config.galactic, backend=config.galactic_backend
    )
    ra = np.asarray(convert_range_to_180(ra360), dtype=float)
    dist = angular_distance_score(
        ra, dec, config.distance.target_ra_deg, config.distance.target_dec_deg
    )
    return {
        "RA": ra,
        "DEC": np.asarray(dec, dtype=float),
        "LON": np.asarray(convert_range_to_180(lon360), dtype=float),
        "LAT": np.asarray(lat, dtype=float),
        "JDAYS": jd,
        "DIST": np.asarray(dist, dtype=float),
    }


def compute_sky_position(
    record: EventRecord, config: RunConfig = RunConfig()
) -> SkyPosition:
    """Single-record form of ``compute_sky_positions``."""
    az = detector_to_horizontal_azimuth(record.az)
    jd = julian_date(record.ymd, record.hms, record.subsecond_ns)
    ra360, dec = equatorial_position(az, record.ze, jd, config.site)
    lon360, lat = galactic_position(
        ra360, dec, config.galactic, backend=config.galactic_backend
    )
    ra = convert_range_to_180(ra360)
    return SkyPosition(
        ra=ra,
        dec=dec,
        lon=convert_range_to_180(lon360),
        lat=lat,
        jdays=jd,
        dist=angular_distance_score(
            ra, dec, config.distance.target_ra_deg, config.distance.target_dec_deg
        ),
    )


# =============================================================================
# Field augmentation
# =============================================================================


def add_fields(
    input_path: str,
    output_path: str,
    config: RunConfig = RunConfig(),
    chunksize: int = DEFAULT_CHUNKSIZE,
    collect_positions: bool = False,
    max_positions: int = MAX_COLLECTED_POSITIONS,
) -> AddFieldsSummary:
    """Echo every record of ``input_path`` with ``RA DEC LON LAT JDAYS DIST``.

    Records whose ``DIST`` exceeds ``config.distance.max_distance`` are not
    written unless the limit is <= 0. With ``collect_positions`` the RA/DEC
    of the written records are returned in the summary. Beyond
    ``max_positions`` the collected sample is thinned by doubling the stride,
    so memory stays bounded on full exports.
    """
    if collect_positions and max_positions < 1:
        raise ValueError("max_positions must be >= 1")
    logger.info("Processing input (%s) output (%s)", input_path, output_path)
    header = read_header(input_path)
    summary = AddFieldsSummary(output_path=str(output_path))
    ra_parts: List[np.ndarray] = []
    dec_parts: List[np.ndarray] = []
    n_collected = 0

    with open(output_path, "w", encoding="utf-8", newline="") as out:
        out.write(format_header(header))
        for chunk in iter_chunks(input_path, chunksize):
            pos = compute_sky_positions(chunk, config)
            keep = config.distance.keeps(pos["DIST"])

            kept = chunk[keep]
            columns = zip(*(pos[k][keep] for k in _DERIVED_KEYS))
            for record, values in zip(records_from_chunk(kept), columns):
                out.write(format_record(record, SkyPosition(*values)))

            n_kept = int(np.count_nonzero(keep))
            if collect_positions:
                index = np.arange(
                    summary.records_written, summary.records_written + n_kept
                )
                take = index % summary.position_stride == 0
                ra_parts.append(pos["RA"][keep][take])
                dec_parts.append(pos["DEC"][keep][take])
                n_collected += int(np.count_nonzero(take))
                while n_collected > max_positions:
                    ra_parts = [np.concatenate(ra_parts)[::2]]
                    dec_parts = [np.concatenate(dec_parts)[::2]]
                    n_collected = ra_parts[0].size
                    summary.position_stride *= 2

            before = summary.records_read
            summary.records_read += len(chunk)
            summary.records_written += n_kept
            _report_progress(before, summary.records_read)

    if ra_parts:
        summary.ra = np.concatenate(ra_parts)
        summary.dec = np.concatenate(dec_parts)

    logger.info(
        "Done: %d records read, %d written to %s",
        summary.records_read,
        summary.records_written,
        output_path,
    )
    return summary


# =============================================================================
# Event statistics
# =============================================================================


def event_statistics(
    input_path: str,
    output_base: str,
    config: RunConfig = RunConfig(),
    chunksize: int = DEFAULT_CHUNKSIZE,
    plot: bool = False,
) -> StatisticsSummary:
    """Fill the real and time-scrambled sky maps and write them to disk.

    Writes ``<output_base>.nreal.dat`` and ``<output_base>.nfake.dat``; the
    background is divided by the oversampling factor on export. With
    ``plot`` a Hammer projection of both maps and their relative intensity
    is saved as ``<output_base>.png``.
    """
    summary = StatisticsSummary(
        real_path=f"{output_base}.nreal.dat",
        fake_path=f"{output_base}.nfake.dat",
    )
    logger.info(
        "Processing input (%s) output (%s, %s)",
        input_path,
        summary.real_path,
        summary.fake_path,
    )
    if not os.path.exists(input_path):
        raise FileNotFoundError(f"Input file not found: {input_path}")

    real = SkyHistogram(config.grid, "real")
    fake = SkyHistogram(config.grid, "fake")
    scrambler = TimeScrambler(config.site, config.scrambling, fake)
    energy = config.energy

    for chunk in iter_chunks(input_path, chunksize):
        e = chunk["E"].to_numpy(dtype=float)
        selected = chunk[energy.accepts(e)]

        az = np.asarray(
            detector_to_horizontal_azimuth(selected["AZ"].to_numpy(dtype=float)),
            dtype=float,
        )
        ze = selected["ZE"].to_numpy(dtype=float)
        jd = np.asarray(
            julian_date(selected["YMD"].to_numpy(), selected["HMS"].to_numpy()),
            dtype=float,
        )
        ra, dec = equatorial_position(az, ze, jd, config.site)
        real.increment_many(dec, convert_range_to_180(ra))
        scrambler.add_many(az, ze, jd)

        before = summary.records_read
        summary.records_read += len(chunk)
        summary.records_accepted += len(selected)
        _report_progress(before, summary.records_read)

    scrambler.flush()

    real.export(summary.real_path)
    fake.export(summary.fake_path, divisor=config.scrambling.oversampling)

    summary.real_total = real.total()
    summary.real_dropped = real.dropped
    summary.fake_total = fake.total()
    summary.fake_dropped = fake.dropped
    summary.resampling_passes = scrambler.passes
    summary.resampled_events = scrambler.resampled_events

    if plot:
        from kcdc_skymap.sky_maps.plotting import plot_sky_maps

        summary.plot_path = f"{output_base}.png"
        plot_sky_maps(
            real,
            fake,
            config.scrambling.oversampling,
            summary.plot_path,
            title=os.path.basename(str(output_base)),
        )

    logger.info(
        "Done: %d records read, %d accepted, %d resampling passes",
        summary.records_read,
        summary.records_accepted,
        summary.resampling_passes,
    )
    return summary


__all__ = [
    "AddFieldsSummary",
    "StatisticsSummary",
    "compute_sky_positions",
    "compute_sky_position",
    "add_fields",
    "event_statistics",
]
