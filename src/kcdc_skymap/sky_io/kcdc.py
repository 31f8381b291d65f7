"""
sky_io.kcdc
===========

Reader and fixed-width writer for KASCADE Cosmic Ray Data Centre (KCDC)
event exports.

Input format
------------
One header line, then one event per line with 18 whitespace-separated
numeric fields, in this order:

    E  YC  XC  ZE  AZ  NE  NMU  ESUMHAD  NHAD  T  P  GT  MT  YMD  HMS  R  EV  AGE

Example::

         E          YC          XC          ZE          AZ  ...         YMD         HMS  ...
   15.0428     43.7400     79.5148     44.2007      7.4743  ...    19980702      145647  ...

To get data in this format from https://kcdc.ikp.kit.edu/, deselect electron
number, hadron energy, air temperature, age, core position, muon number,
hadron number and air pressure before submitting the request.

Leniency
--------
- Fields that cannot be parsed as numbers, and fields missing from short
  lines, are read as 0.
- Lines with more than 18 fields keep their first 18; the extra fields are
  ignored and a warning is logged.
- Blank lines are ignored.

Output format (field augmentation)
----------------------------------
The header is echoed and extended with ``RA DEC LON LAT JDAYS DIST``. Every
record is echoed in fixed-width columns followed by the derived values:

- ``E``: ``%11.4f``; other float fields: ``%12.4f``
- ``NHAD GT MT YMD HMS R EV``: ``%12d``
- ``RA``: ``%13.4f``; ``DEC LON LAT``: ``%12.4f``
- ``JDAYS``: ``%20.6f``; ``DIST``: ``%12.4f``
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, List, Union

import numpy as np
import pandas as pd

from kcdc_skymap.sky_core.model import EventRecord, SkyPosition

__all__ = [
    "KCDC_COLUMNS",
    "INTEGER_COLUMNS",
    "DERIVED_COLUMNS",
    "read_header",
    "iter_chunks",
    "records_from_chunk",
    "format_header",
    "format_record",
]

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

KCDC_COLUMNS = (
    "E",
    "YC",
    "XC",
    "ZE",
    "AZ",
    "NE",
    "NMU",
    "ESUMHAD",
    "NHAD",
    "T",
    "P",
    "GT",
    "MT",
    "YMD",
    "HMS",
    "R",
    "EV",
    "AGE",
)
INTEGER_COLUMNS = frozenset({"NHAD", "GT", "MT", "YMD", "HMS", "R", "EV"})
DERIVED_COLUMNS = ("RA", "DEC", "LON", "LAT", "JDAYS", "DIST")

# Column widths of the derived block, in DERIVED_COLUMNS order.
_DERIVED_HEADER_WIDTHS = (12, 12, 12, 12, 20, 12)


# =============================================================================
# Reading
# =============================================================================


def read_header(path: PathLike) -> str:
    """Return the first line of ``path`` without its line terminator."""
    with open(path, "r", encoding="utf-8", newline="") as f:
        return f.readline().rstrip("\r\n")


def iter_chunks(path: PathLike, chunksize: int = 50000) -> Iterator[pd.DataFrame]:
    """Yield the records of ``path`` as DataFrames of at most ``chunksize`` rows.

    The header line is skipped. Columns are named after ``KCDC_COLUMNS``;
    integer columns are ``int64``, the others ``float64``. Lines with extra
    fields are truncated to the first 18.
    """
    try:
        reader = pd.read_csv(
            path,
            sep=r"\s+",
            engine="python",
            header=None,
            names=list(KCDC_COLUMNS),
            skiprows=1,
            dtype=str,
            chunksize=chunksize,
            on_bad_lines=_truncate_long_line,
        )
    except pd.errors.EmptyDataError:
        return
    with reader:
        for chunk in reader:
            if len(chunk):
                yield _coerce_numeric(chunk)


def _truncate_long_line(fields: List[str]) -> List[str]:
    logger.warning(
        "Record with %d fields, expected %d; extra fields ignored: %s",
        len(fields),
        len(KCDC_COLUMNS),
        " ".join(fields[len(KCDC_COLUMNS):]),
    )
    return fields[: len(KCDC_COLUMNS)]


def _coerce_numeric(chunk: pd.DataFrame) -> pd.DataFrame:
    out = pd.DataFrame(index=chunk.index)
    for name in KCDC_COLUMNS:
        values = pd.to_numeric(chunk[name], errors="coerce").fillna(0)
        if name in INTEGER_COLUMNS:
            out[name] = values.astype(np.int64)
        else:
            out[name] = values.astype(np.float64)
    return out.reset_index(drop=True)


def records_from_chunk(chunk: pd.DataFrame) -> Iterator[EventRecord]:
    """Yield one ``EventRecord`` per row of a chunk from ``iter_chunks``."""
    for row in chunk.loc[:, list(KCDC_COLUMNS)].itertuples(index=False, name=None):
        yield EventRecord(*row)


# =============================================================================
# Writing
# =============================================================================


def format_header(header: str) -> str:
    """Input header followed by the right-aligned derived column names."""
    suffix = "".join(
        f"{name:>{width}}"
        for name, width in zip(DERIVED_COLUMNS, _DERIVED_HEADER_WIDTHS)
    )
    return f"{header}{suffix}\n"


def _fmt_field(name: str, value) -> str:
    if name in INTEGER_COLUMNS:
        return f"{int(value):12d}"
    return f"{float(value):12.4f}"


def format_record(record: EventRecord, position: SkyPosition) -> str:
    """Fixed-width line: the 18 input fields, then RA DEC LON LAT JDAYS DIST."""
    fields = [f"{float(record.e):11.4f}"]
    fields.extend(
        _fmt_field(name, getattr(record, name.lower())) for name in KCDC_COLUMNS[1:]
    )
    fields.extend(
        [
            f"{position.ra:13.4f}",
            f"{position.dec:12.4f}",
            f"{position.lon:12.4f}",
            f"{position.lat:12.4f}",
            f"{position.jdays:20.6f}",
            f"{position.dist:12.4f}",
        ]
    )
    return "".join(fields) + "\n"
