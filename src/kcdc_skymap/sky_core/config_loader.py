from __future__ import annotations

"""
config_loader.py
================
TOML configuration for sky-map runs.

A run file may name a site file through ``include_site``. The two are merged
(site first, run on top), ``--set section.key=value`` overrides are applied
last, and ``build_run_config`` turns the resulting dict into the frozen
dataclasses of ``model``.

Example run file::

    include_site = "config/sites/kascade.toml"

    [selection]
    emin = 15.0
    emax = 16.5

    [scrambling]
    seed = 4242
    oversampling = 20
"""

import math
import os
from dataclasses import asdict
from typing import Any, Dict, Iterable, Optional, Tuple

import tomllib
import tomli_w

from .ephemeris import BACKENDS
from .model import (
    DistanceFilter,
    EnergyWindow,
    GalacticFrame,
    KASCADE_SITE,
    RunConfig,
    ScramblingConfig,
    Site,
    SkyGrid,
)


class SkyMapConfigError(ValueError):
    """Raised when a configuration value is missing, malformed or inconsistent."""


def load_toml(path: str) -> Dict[str, Any]:
    with open(path, "rb") as f:
        return tomllib.load(f)


def merge_dicts(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(a)
    for k, v in b.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = merge_dicts(out[k], v)
        else:
            out[k] = v
    return out


def apply_sets(cfg: Dict[str, Any], sets: Iterable[str]) -> Dict[str, Any]:
    for item in sets:
        if "=" not in item:
            raise SkyMapConfigError(f"--set requires key=value, got: {item}")
        key, val = item.split("=", 1)
        path = key.strip().split(".")
        cursor = cfg
        for p in path[:-1]:
            if p not in cursor or not isinstance(cursor[p], dict):
                cursor[p] = {}
            cursor = cursor[p]
        cursor[path[-1]] = parse_scalar(val.strip())
    return cfg


def parse_scalar(s: str):
    sl = s.lower()
    if sl in ("true", "false"):
        return sl == "true"
    try:
        return int(s)
    except ValueError:
        pass
    try:
        return float(s)
    except ValueError:
        return s


def load_run_config(
    run_path: Optional[str],
    set_overrides: Iterable[str] = (),
    project_root: Optional[str] = None,
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Load a run file (and its ``include_site``), then apply ``--set``.

    Returns ``(cfg, summary_paths)``; ``summary_paths`` has keys ``run_path``
    and ``site_path``. Without a run file the result holds only the
    overrides, so every value falls back to its default.
    """
    project_root = project_root or os.getcwd()
    summary: Dict[str, Any] = {"run_path": None, "site_path": None}

    run_cfg: Dict[str, Any] = {}
    if run_path:
        if not os.path.isabs(run_path):
            run_path = os.path.normpath(os.path.join(project_root, run_path))
        if not os.path.exists(run_path):
            raise FileNotFoundError(f"Run file not found: {run_path}")
        run_cfg = load_toml(run_path)
        summary["run_path"] = run_path

    site_cfg: Dict[str, Any] = {}
    site_ref = run_cfg.pop("include_site", None)
    if site_ref:
        site_path = site_ref
        if not os.path.isabs(site_path):
            site_path = os.path.join(project_root, site_path)
        if not os.path.exists(site_path):
            raise FileNotFoundError(f"Site file not found: {site_path}")
        site_cfg = load_toml(site_path)
        summary["site_path"] = site_path

    cfg = merge_dicts(site_cfg, run_cfg)
    cfg = apply_sets(cfg, set_overrides)
    return cfg, summary


def dump_effective_config(cfg: Dict[str, Any]) -> str:
    return tomli_w.dumps(cfg)


# =============================================================================
# Dict -> dataclasses
# =============================================================================


def _number(section: Dict[str, Any], key: str, default, kind=float):
    value = section.get(key, default)
    try:
        return kind(value)
    except (TypeError, ValueError):
        raise SkyMapConfigError(f"{key} must be {kind.__name__}, got {value!r}")


def _build_grid(sec: Dict[str, Any]) -> SkyGrid:
    bin_size = _number(sec, "bin_size_deg", 0.5)
    if bin_size <= 0:
        raise SkyMapConfigError("sky_map.bin_size_deg must be > 0")
    n_dec = _number(sec, "n_dec_bins", round(180.0 / bin_size), int)
    n_ra = _number(sec, "n_ra_bins", round(360.0 / bin_size), int)
    if not math.isclose(n_dec * bin_size, 180.0) or not math.isclose(
        n_ra * bin_size, 360.0
    ):
        raise SkyMapConfigError(
            f"sky_map grid {n_dec}x{n_ra} with {bin_size} deg bins does not "
            "cover 180 x 360 degrees"
        )
    return SkyGrid(bin_size_deg=bin_size, n_dec_bins=n_dec, n_ra_bins=n_ra)


def _build_scrambling(sec: Dict[str, Any]) -> ScramblingConfig:
    defaults = ScramblingConfig()
    sc = ScramblingConfig(
        seed=_number(sec, "seed", defaults.seed, int),
        block_size=_number(sec, "block_size", defaults.block_size, int),
        oversampling=_number(sec, "oversampling", defaults.oversampling, int),
        n_jobs=_number(sec, "n_jobs", defaults.n_jobs, int),
        flush_partial_block=bool(
            sec.get("flush_partial_block", defaults.flush_partial_block)
        ),
    )
    if sc.block_size <= 0:
        raise SkyMapConfigError("scrambling.block_size must be > 0")
    if sc.oversampling <= 0:
        raise SkyMapConfigError("scrambling.oversampling must be > 0")
    if sc.n_jobs < 1:
        raise SkyMapConfigError("scrambling.n_jobs must be >= 1")
    return sc


def build_run_config(cfg: Dict[str, Any]) -> RunConfig:
    """Validate a merged config dict and return a ``RunConfig``."""
    site_sec = cfg.get("site", {})
    site = Site(
        name=str(site_sec.get("name", KASCADE_SITE.name)),
        latitude_deg=_number(site_sec, "latitude_deg", KASCADE_SITE.latitude_deg),
        longitude_deg=_number(site_sec, "longitude_deg", KASCADE_SITE.longitude_deg),
    )

    gal_sec = cfg.get("galactic", {})
    gal_defaults = GalacticFrame()
    galactic = GalacticFrame(
        pole_ra_deg=_number(gal_sec, "pole_ra_deg", gal_defaults.pole_ra_deg),
        pole_dec_deg=_number(gal_sec, "pole_dec_deg", gal_defaults.pole_dec_deg),
        lon0_deg=_number(gal_sec, "lon0_deg", gal_defaults.lon0_deg),
    )

    sel = cfg.get("selection", {})
    energy = EnergyWindow(
        emin=_number(sel, "emin", float("-inf")),
        emax=_number(sel, "emax", float("inf")),
    )
    if energy.emin > energy.emax:
        raise SkyMapConfigError(
            f"selection.emin ({energy.emin}) is larger than emax ({energy.emax})"
        )

    dist_sec = cfg.get("distance", {})
    dist_defaults = DistanceFilter()
    distance = DistanceFilter(
        target_ra_deg=_number(dist_sec, "target_ra_deg", dist_defaults.target_ra_deg),
        target_dec_deg=_number(
            dist_sec, "target_dec_deg", dist_defaults.target_dec_deg
        ),
        max_distance=_number(dist_sec, "max_distance", dist_defaults.max_distance),
    )

    backend = str(cfg.get("ephemeris", {}).get("galactic_backend", "native"))
    if backend not in BACKENDS:
        raise SkyMapConfigError(
            f"ephemeris.galactic_backend must be one of {BACKENDS}, got {backend!r}"
        )

    return RunConfig(
        site=site,
        galactic=galactic,
        grid=_build_grid(cfg.get("sky_map", {})),
        scrambling=_build_scrambling(cfg.get("scrambling", {})),
        energy=energy,
        distance=distance,
        galactic_backend=backend,
    )


def run_config_to_dict(rc: RunConfig) -> Dict[str, Any]:
    """Inverse of ``build_run_config``: one TOML section per dataclass."""
    return {
        "site": asdict(rc.site),
        "galactic": asdict(rc.galactic),
        "selection": asdict(rc.energy),
        "distance": asdict(rc.distance),
        "sky_map": asdict(rc.grid),
        "scrambling": asdict(rc.scrambling),
        "ephemeris": {"galactic_backend": rc.galactic_backend},
    }


__all__ = [
    "SkyMapConfigError",
    "load_toml",
    "merge_dicts",
    "apply_sets",
    "parse_scalar",
    "load_run_config",
    "dump_effective_config",
    "build_run_config",
    "run_config_to_dict",
]
