# tests/sky_core/test_config_loader.py
"""TOML loading, --set overrides and validation of the run configuration."""

from __future__ import annotations

import math

import pytest
import tomllib

from kcdc_skymap.sky_core.config_loader import (
    SkyMapConfigError,
    apply_sets,
    build_run_config,
    dump_effective_config,
    load_run_config,
    merge_dicts,
    parse_scalar,
    run_config_to_dict,
)
from kcdc_skymap.sky_core.model import KASCADE_SITE, RunConfig


def _write_configs(root):
    (root / "config" / "sites").mkdir(parents=True)
    (root / "config" / "runs").mkdir(parents=True)
    (root / "config" / "sites" / "test.toml").write_text(
        '[site]\nname = "Test site"\nlatitude_deg = 10.5\nlongitude_deg = -3.25\n'
    )
    run = root / "config" / "runs" / "r.toml"
    run.write_text(
        'include_site = "config/sites/test.toml"\n'
        "[site]\nlongitude_deg = 4.0\n"
        "[selection]\nemin = 15.0\nemax = 16.5\n"
        "[scrambling]\nseed = 4242\noversampling = 5\n"
    )
    return run


def test_defaults_without_files(tmp_path):
    cfg, paths = load_run_config(None, project_root=str(tmp_path))
    assert cfg == {}
    assert paths == {"run_path": None, "site_path": None}
    assert build_run_config(cfg) == RunConfig()


def test_site_then_run_then_sets(tmp_path):
    _write_configs(tmp_path)
    cfg, paths = load_run_config(
        "config/runs/r.toml",
        set_overrides=["scrambling.seed=7", "distance.max_distance=12.5"],
        project_root=str(tmp_path),
    )
    assert paths["run_path"].endswith("r.toml")
    assert paths["site_path"].endswith("test.toml")
    assert "include_site" not in cfg

    rc = build_run_config(cfg)
    assert rc.site.name == "Test site"
    assert rc.site.latitude_deg == 10.5
    assert rc.site.longitude_deg == 4.0
    assert rc.energy.emin == 15.0 and rc.energy.emax == 16.5
    assert rc.scrambling.seed == 7
    assert rc.scrambling.oversampling == 5
    assert rc.scrambling.block_size == 100000
    assert rc.distance.max_distance == 12.5


def test_missing_run_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_run_config("nope.toml", project_root=str(tmp_path))


def test_missing_site_file(tmp_path):
    run = tmp_path / "r.toml"
    run.write_text('include_site = "missing.toml"\n')
    with pytest.raises(FileNotFoundError, match="Site file not found"):
        load_run_config(str(run), project_root=str(tmp_path))


def test_merge_dicts_is_recursive():
    out = merge_dicts({"a": {"x": 1, "y": 2}, "b": 1}, {"a": {"y": 3}, "c": 4})
    assert out == {"a": {"x": 1, "y": 3}, "b": 1, "c": 4}


@pytest.mark.parametrize(
    "text,value",
    [("true", True), ("False", False), ("12", 12), ("1.5", 1.5), ("inf", math.inf),
     ("astropy", "astropy")],
)
def test_parse_scalar(text, value):
    assert parse_scalar(text) == value


def test_apply_sets_creates_sections():
    sets = ["ephemeris.galactic_backend=astropy", "sky_map.bin_size_deg=1"]
    cfg = apply_sets({}, sets)
    assert cfg == {
        "ephemeris": {"galactic_backend": "astropy"},
        "sky_map": {"bin_size_deg": 1},
    }


def test_apply_sets_requires_equals():
    with pytest.raises(SkyMapConfigError):
        apply_sets({}, ["scrambling.seed"])


def test_coarser_grid_is_derived():
    rc = build_run_config({"sky_map": {"bin_size_deg": 1.0}})
    assert (rc.grid.n_dec_bins, rc.grid.n_ra_bins) == (180, 360)


@pytest.mark.parametrize(
    "cfg",
    [
        {"sky_map": {"bin_size_deg": 0.5, "n_dec_bins": 100}},
        {"sky_map": {"bin_size_deg": 0.0}},
        {"selection": {"emin": 17.0, "emax": 16.0}},
        {"scrambling": {"block_size": 0}},
        {"scrambling": {"oversampling": -1}},
        {"scrambling": {"n_jobs": 0}},
        {"scrambling": {"seed": "abc"}},
        {"ephemeris": {"galactic_backend": "pysofa"}},
    ],
)
def test_invalid_configs(cfg):
    with pytest.raises(SkyMapConfigError):
        build_run_config(cfg)


def test_config_error_is_value_error():
    assert issubclass(SkyMapConfigError, ValueError)


def test_effective_config_roundtrip():
    rc = build_run_config(
        {"selection": {"emin": 15.5}, "scrambling": {"n_jobs": 2, "seed": 3}}
    )
    text = dump_effective_config(run_config_to_dict(rc))
    again = build_run_config(tomllib.loads(text))
    assert again == rc
    assert again.site == KASCADE_SITE
    assert again.energy.emax == math.inf
