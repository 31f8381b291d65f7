#!/usr/bin/env python3
"""
kcdc_skymap_cli.py
==================
Sky maps and sky positions of KCDC air-shower events.

Sub-commands
------------
add-fields INPUT OUTPUT
    Echo every record of INPUT with RA, DEC, LON, LAT, JDAYS and DIST
    appended. With ``--max-distance D`` (D > 0) only records with
    DIST <= D are written.

sky-map INPUT OUTPUT_BASE
    Select events with EMIN <= E <= EMAX, fill the real sky map and the
    time-scrambled background, and write OUTPUT_BASE.nreal.dat and
    OUTPUT_BASE.nfake.dat (360 x 720 integers, north to south).

Configuration
-------------
Every value has a default (KASCADE site, 0.5 deg bins, K = 20, N = 100000).
A TOML run file (``--run-config``) can override them, optionally including a
site file through ``include_site``; ``--set section.key=value`` and the
dedicated options below are applied last.

Examples
--------
Augment a KCDC export, keeping events within 10 units of the target::

    python scripts/kcdc_skymap_cli.py add-fields data/kcdc.txt out/kcdc_radec.txt \\
        --max-distance 10

Sky maps for 10^15 - 10^16.5 eV with a custom seed::

    python scripts/kcdc_skymap_cli.py sky-map data/kcdc.txt out/map \\
        --emin 15 --emax 16.5 --set scrambling.seed=4242 --plot

Print the effective configuration and exit::

    python scripts/kcdc_skymap_cli.py sky-map data/kcdc.txt out/map \\
        --run-config config/runs/default.toml --dump-effective-config
"""

from __future__ import annotations

import argparse
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

from kcdc_skymap.sky_core.config_loader import (
    SkyMapConfigError,
    build_run_config,
    dump_effective_config,
    load_run_config,
    run_config_to_dict,
)
from kcdc_skymap.sky_core.model import RunConfig
from kcdc_skymap.sky_core.pipeline import add_fields, event_statistics

LOGGER_NAME = "kcdc_skymap"
logger = logging.getLogger(LOGGER_NAME)


def _common_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("--run-config", help="Run file path (TOML)")
    p.add_argument(
        "--set",
        action="append",
        default=[],
        help="Override config key=value, e.g. scrambling.seed=7 (repeatable).",
    )
    p.add_argument(
        "--dump-effective-config",
        action="store_true",
        help="Print final merged config and exit.",
    )
    p.add_argument(
        "--log-dir",
        default="logs",
        help="Directory where the run log will be created.",
    )
    p.add_argument(
        "--chunksize",
        type=int,
        default=50000,
        help="Input lines read per chunk (default: 50000).",
    )
    p.add_argument(
        "-v", "--verbose", action="store_true", help="Log debug messages to console."
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="kcdc_skymap_cli",
        description="Sky positions and time-scrambled sky maps of KCDC events.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = p.add_subparsers(dest="command", required=True)

    pa = sub.add_parser("add-fields", help="Append RA DEC LON LAT JDAYS DIST.")
    pa.add_argument("input", help="KCDC event file")
    pa.add_argument("output", help="Augmented output file")
    pa.add_argument(
        "--max-distance",
        type=float,
        help="Write only records with DIST <= this value (<= 0 writes all).",
    )
    pa.add_argument(
        "--plot",
        metavar="PNG",
        help="Also save the written positions as a Hammer-Aitoff scatter.",
    )
    _common_options(pa)

    ps = sub.add_parser("sky-map", help="Real and time-scrambled sky maps.")
    ps.add_argument("input", help="KCDC event file")
    ps.add_argument("output_base", help="Output base name (.nreal.dat/.nfake.dat)")
    ps.add_argument("--emin", type=float, help="Lower energy bound (inclusive)")
    ps.add_argument("--emax", type=float, help="Upper energy bound (inclusive)")
    ps.add_argument("--seed", type=int, help="Resampling seed")
    ps.add_argument("--oversampling", type=int, help="Draws per event (K)")
    ps.add_argument("--block-size", type=int, help="Events per resampling block (N)")
    ps.add_argument("--n-jobs", type=int, help="Parallel resampling partitions")
    ps.add_argument(
        "--plot", action="store_true", help="Also save OUTPUT_BASE.png."
    )
    _common_options(ps)
    return p


# Option name -> config key; applied after --set.
_OPTION_KEYS = {
    "max_distance": "distance.max_distance",
    "emin": "selection.emin",
    "emax": "selection.emax",
    "seed": "scrambling.seed",
    "oversampling": "scrambling.oversampling",
    "block_size": "scrambling.block_size",
    "n_jobs": "scrambling.n_jobs",
}


def _option_overrides(args: argparse.Namespace) -> List[str]:
    sets = list(args.set)
    for attr, key in _OPTION_KEYS.items():
        value = getattr(args, attr, None)
        if value is not None:
            sets.append(f"{key}={value}")
    return sets


def _init_logger(project_root: str, log_dir: str, verbose: bool) -> Tuple[str, List]:
    os.makedirs(os.path.join(project_root, log_dir), exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%SZ")
    path = os.path.join(project_root, log_dir, f"run_{stamp}.log")

    root = logging.getLogger(LOGGER_NAME)
    root.setLevel(logging.DEBUG)
    console = logging.StreamHandler()
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    console.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    logfile = logging.FileHandler(path, encoding="utf-8")
    logfile.setLevel(logging.DEBUG)
    logfile.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    handlers = [console, logfile]
    for h in handlers:
        root.addHandler(h)
    return path, handlers


def _close_logger(handlers: List) -> None:
    root = logging.getLogger(LOGGER_NAME)
    for h in handlers:
        root.removeHandler(h)
        h.close()


def _log_header(project_root: str, paths: Dict[str, Any], effective: Dict[str, Any]):
    logger.info("Run started")
    logger.info("Project root: %s", project_root)
    if paths.get("run_path"):
        logger.info("Run config: %s", os.path.relpath(paths["run_path"], project_root))
    if paths.get("site_path"):
        logger.info(
            "Site config: %s", os.path.relpath(paths["site_path"], project_root)
        )
    logger.debug(
        "Effective configuration:\n%s", dump_effective_config(effective).rstrip()
    )


def _ensure_parent(path: str) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)


def _run(args: argparse.Namespace, run_config: RunConfig) -> None:
    if args.command == "add-fields":
        _ensure_parent(args.output)
        summary = add_fields(
            args.input,
            args.output,
            run_config,
            chunksize=args.chunksize,
            collect_positions=bool(args.plot),
        )
        print(
            f"[OK] {summary.records_written}/{summary.records_read} records "
            f"written to {summary.output_path}"
        )
        if args.plot:
            from kcdc_skymap.sky_maps.plotting import plot_event_positions

            plot_event_positions(summary.ra, summary.dec, args.plot)
            print(f"[OK] Saved plot: {args.plot}")
        return

    _ensure_parent(args.output_base)
    summary = event_statistics(
        args.input,
        args.output_base,
        run_config,
        chunksize=args.chunksize,
        plot=args.plot,
    )
    print(
        f"[OK] {summary.records_accepted}/{summary.records_read} events accepted, "
        f"{summary.resampling_passes} resampling passes"
    )
    print(f"[OK] Real map: {summary.real_path}")
    print(f"[OK] Background map: {summary.fake_path}")
    if summary.real_dropped or summary.fake_dropped:
        print(
            f"[WARN] Dropped outside the grid: real={summary.real_dropped}, "
            f"background={summary.fake_dropped}"
        )
    if summary.plot_path:
        print(f"[OK] Saved plot: {summary.plot_path}")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    project_root = os.getcwd()
    try:
        cfg, paths = load_run_config(
            args.run_config,
            set_overrides=_option_overrides(args),
            project_root=project_root,
        )
        run_config = build_run_config(cfg)
    except (OSError, SkyMapConfigError) as e:
        raise SystemExit(f"[ERROR] {e}")

    effective = run_config_to_dict(run_config)
    if args.dump_effective_config:
        print("----- Effective configuration -----")
        print(dump_effective_config(effective).rstrip())
        print("-----------------------------------")
        return 0

    log_path, handlers = _init_logger(project_root, args.log_dir, args.verbose)
    try:
        print(f"[INFO] Log file: {os.path.relpath(log_path, project_root)}")
        _log_header(project_root, paths, effective)
        _run(args, run_config)
    except OSError as e:
        logger.error("%s", e)
        raise SystemExit(f"[ERROR] {e}")
    finally:
        _close_logger(handlers)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
