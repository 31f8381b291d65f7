"""
sky_map_example.py
==================

Purpose
-------
This script demonstrates the library API of `kcdc_skymap` on a handful of
synthetic KCDC events: it computes the sky position of one record, augments
a small event file with RA/DEC/LON/LAT/JDAYS/DIST and builds the real and
time-scrambled sky maps.

Requirements
------------
- Install the project (``pip install -e .``) so that ``kcdc_skymap`` is
  importable.
- No KCDC download is needed; the input file is generated on the fly.

What this example does
----------------------
1. Writes ``example_kcdc.txt`` with one header line and 500 events observed
   during one night of July 1998.
2. Prints the sky position of the first event with
   ``compute_sky_position``.
3. Calls ``add_fields`` to write ``example_kcdc_radec.txt``.
4. Calls ``event_statistics`` with a small resampling block to write
   ``example_map.nreal.dat`` and ``example_map.nfake.dat`` and a PNG.

How to run
----------
Navigate to the directory where the script is located and run:

    python sky_map_example.py
"""

import logging

import numpy as np

from kcdc_skymap.sky_core.model import EventRecord, RunConfig, ScramblingConfig
from kcdc_skymap.sky_core.pipeline import (
    add_fields,
    compute_sky_position,
    event_statistics,
)

HEADER = "E YC XC ZE AZ NE NMU ESUMHAD NHAD T P GT MT YMD HMS R EV AGE"


def write_events(path: str, n: int = 500, seed: int = 1) -> None:
    rng = np.random.default_rng(seed)
    with open(path, "w", encoding="utf-8") as f:
        f.write(HEADER + "\n")
        for i in range(n):
            sec = int(rng.integers(20 * 3600, 24 * 3600))
            hms = (sec // 3600) * 10000 + (sec // 60 % 60) * 100 + sec % 60
            f.write(
                f"{rng.uniform(14.5, 16.5):.4f} 0.0 0.0 "
                f"{np.degrees(np.arccos(rng.uniform(0.77, 1.0))):.4f} "
                f"{rng.uniform(0.0, 360.0):.4f} 5.0 4.0 -1.0 -1 15.0 1000.0 "
                f"{900000000 + i} 0 19980702 {hms} 1 {i} 1.0\n"
            )


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")

    write_events("example_kcdc.txt")

    pos = compute_sky_position(EventRecord(ze=20.0, az=45.0, ymd=19980702, hms=220000))
    print(f"RA={pos.ra:.4f} DEC={pos.dec:.4f} LON={pos.lon:.4f} LAT={pos.lat:.4f}")

    summary = add_fields("example_kcdc.txt", "example_kcdc_radec.txt")
    print(f"Augmented {summary.records_written} records")

    config = RunConfig(scrambling=ScramblingConfig(seed=4242, block_size=200))
    stats = event_statistics("example_kcdc.txt", "example_map", config, plot=True)
    print(f"Maps: {stats.real_path}, {stats.fake_path}, {stats.plot_path}")


if __name__ == "__main__":
    main()
