"""
sky_maps.plotting
=================

PNG rendering of sky maps in equal-area projections.

- ``plot_sky_maps``: real counts, normalized background and relative
  intensity side by side on matplotlib's ``"hammer"`` axes.
- ``plot_event_positions``: scatter of individual events projected with
  ``project_hammer_aitoff`` on ordinary axes, with the outline of the sky.

Right ascension runs from -180 to 180 degrees, left to right. Figures are
closed after saving so the functions can be called in long loops.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

import matplotlib.pyplot as plt
import numpy as np

from kcdc_skymap.sky_core.coordinates import project_hammer_aitoff
from kcdc_skymap.sky_maps.histogram import SkyHistogram, relative_intensity

__all__ = ["plot_sky_maps", "plot_event_positions"]

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _bin_edges_rad(hist: SkyHistogram):
    grid = hist.grid
    ra_edges = np.radians(np.linspace(-180.0, 180.0, grid.n_ra_bins + 1))
    dec_edges = np.radians(np.linspace(-90.0, 90.0, grid.n_dec_bins + 1))
    return ra_edges, dec_edges


def _panel(fig, ax, ra_edges, dec_edges, values, title, label, **kwargs):
    mesh = ax.pcolormesh(ra_edges, dec_edges, values, shading="flat", **kwargs)
    ax.set_title(title, fontsize=9, pad=12)
    ax.grid(True, alpha=0.4)
    ax.tick_params(labelsize=7)
    cbar = fig.colorbar(mesh, ax=ax, orientation="horizontal", pad=0.08, shrink=0.8)
    cbar.set_label(label, fontsize=8)


def plot_sky_maps(
    real: SkyHistogram,
    background: SkyHistogram,
    oversampling: int,
    out_path: PathLike,
    title: Optional[str] = None,
    dpi: int = 150,
) -> Path:
    """Save real, background (divided by ``oversampling``) and relative intensity."""
    ra_edges, dec_edges = _bin_edges_rad(real)
    expected = background.counts / float(oversampling)
    ri = np.ma.masked_invalid(relative_intensity(real, background, oversampling))
    limit = float(np.max(np.abs(ri))) if ri.count() else 1.0
    limit = limit or 1.0

    fig, axes = plt.subplots(
        1, 3, figsize=(18, 4.8), subplot_kw={"projection": "hammer"}
    )
    _panel(fig, axes[0], ra_edges, dec_edges, real.counts, "Real events", "counts")
    _panel(
        fig,
        axes[1],
        ra_edges,
        dec_edges,
        expected,
        f"Time-scrambled background (/{oversampling})",
        "counts",
    )
    _panel(
        fig,
        axes[2],
        ra_edges,
        dec_edges,
        ri,
        "Relative intensity",
        "(N - B) / B",
        cmap="RdBu_r",
        vmin=-limit,
        vmax=limit,
    )
    if title:
        fig.suptitle(title, fontsize=10)

    out_path = Path(out_path)
    fig.savefig(out_path, dpi=dpi, bbox_inches="tight")
    plt.close(fig)
    logger.info("Saved sky-map figure: %s", out_path)
    return out_path


def plot_event_positions(
    ra_deg,
    dec_deg,
    out_path: PathLike,
    title: Optional[str] = None,
    dpi: int = 150,
) -> Path:
    """Scatter events in the Hammer-Aitoff projection (RA in [-180, 180))."""
    x, y = project_hammer_aitoff(np.asarray(ra_deg, float), np.asarray(dec_deg, float))

    fig, ax = plt.subplots(figsize=(10, 5))
    lat = np.linspace(-90.0, 90.0, 181)
    for edge in (-180.0, 180.0):
        bx, by = project_hammer_aitoff(np.full_like(lat, edge), lat)
        ax.plot(bx, by, color="0.3", linewidth=0.8)
    for meridian in (-120.0, -60.0, 0.0, 60.0, 120.0):
        gx, gy = project_hammer_aitoff(np.full_like(lat, meridian), lat)
        ax.plot(gx, gy, color="0.8", linewidth=0.5)
    lon = np.linspace(-180.0, 180.0, 361)
    for parallel in (-60.0, -30.0, 0.0, 30.0, 60.0):
        px, py = project_hammer_aitoff(lon, np.full_like(lon, parallel))
        ax.plot(px, py, color="0.8", linewidth=0.5)

    ax.scatter(x, y, s=1.0, alpha=0.6, marker=".")
    ax.set_aspect("equal")
    ax.set_xlim(-185.0, 185.0)
    ax.set_ylim(-95.0, 95.0)
    ax.set_axis_off()
    ax.set_title(title or f"{np.size(x)} events", fontsize=10)

    out_path = Path(out_path)
    fig.savefig(out_path, dpi=dpi, bbox_inches="tight")
    plt.close(fig)
    logger.info("Saved event-position figure: %s", out_path)
    return out_path
