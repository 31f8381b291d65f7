from __future__ import annotations
from pathlib import Path
from typing import Callable, Iterable

import pytest

from kcdc_skymap.sky_core.model import RunConfig, ScramblingConfig

# ---------- Shared fixtures ----------

KCDC_HEADER = (
    "         E          YC          XC          ZE          AZ          NE"
    "         NMU     ESUMHAD        NHAD           T           P          GT"
    "          MT         YMD         HMS           R          EV         AGE"
)

# Zenith events at 2000-01-01 18:42:15 and 12:00:00 UT.
GOLDEN_LINE_A = (
    "15.0428 43.7400 79.5148 0.0 7.4743 3.9608 3.8254 -1.0000 -1 20.2800 "
    "1001.3107 899391407 756894400 20000101 184215 1000 10007 1.1117"
)
GOLDEN_LINE_B = (
    "15.5000 10.0000 -20.0000 0.0 120.0000 4.1000 3.9000 -1.0000 -1 12.5000 "
    "1003.2000 946728000 0 20000101 120000 1001 20001 1.2000"
)

# Off-zenith event from the KCDC sample export, 1998-07-02 14:56:47 UT.
GOLDEN_LINE_C = (
    "15.0428 43.7400 79.5148 44.2007 7.4743 3.9608 3.8254 -1.0000 -1 20.2800 "
    "1001.3107 899391407 756894400 19980702 145647 1000 10007 1.1117"
)


@pytest.fixture
def kcdc_header() -> str:
    return KCDC_HEADER


@pytest.fixture
def golden_lines() -> tuple[str, str]:
    return GOLDEN_LINE_A, GOLDEN_LINE_B


@pytest.fixture
def off_zenith_line() -> str:
    return GOLDEN_LINE_C


@pytest.fixture
def write_kcdc(tmp_path) -> Callable[..., Path]:
    """Write a KCDC file (header + given lines) under tmp_path."""

    def _write(lines: Iterable[str], name: str = "kcdc.txt") -> Path:
        path = tmp_path / name
        body = "\n".join(lines)
        path.write_text(KCDC_HEADER + "\n" + body + ("\n" if body else ""))
        return path

    return _write


@pytest.fixture
def synthetic_lines() -> Callable[..., list[str]]:
    """Deterministic KCDC lines spread over one night and all azimuths."""

    def _make(n: int, energy: float = 15.0) -> list[str]:
        lines = []
        for i in range(n):
            ze = 5.0 + (i * 7) % 35
            az = (i * 37.5) % 360.0
            hh = 18 + (i * 3) % 6
            mm = (i * 11) % 60
            ss = (i * 17) % 60
            hms = hh * 10000 + mm * 100 + ss
            lines.append(
                f"{energy + (i % 5) * 0.25:.4f} 1.0 2.0 {ze:.4f} {az:.4f} 4.0 3.5 "
                f"-1.0 -1 15.0 1000.0 {900000000 + i} 0 19980702 {hms} {i} {i} 1.0"
            )
        return lines

    return _make


@pytest.fixture
def small_run_config() -> RunConfig:
    """Default geometry with a small resampling block."""
    return RunConfig(
        scrambling=ScramblingConfig(seed=7, block_size=8, oversampling=4, n_jobs=1)
    )


@pytest.fixture
def mpl_agg():
    """Force a non-interactive Matplotlib backend."""
    import matplotlib

    matplotlib.use("Agg", force=True)
    import matplotlib.pyplot as plt

    plt.switch_backend("Agg")
    yield

