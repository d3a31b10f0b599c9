# src/DeerDensityPy/data.py
# SPDX-License-Identifier: MIT
"""
Sample table loading and validation.

The reference dataset is a small delimited file (51 rows) with a header
row naming ``logDD, DistanceLC, NewDBH, NewBA, LCProp, SnowDepth``. The
library works on a plain :class:`pandas.DataFrame`; functions never mutate
the table they receive.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

import pandas as pd

from .config import COVARIATE_COLS, RESPONSE_COL


__all__ = [
    "load_sample_table",
    "validate_sample_table",
]


def validate_sample_table(
    table: pd.DataFrame,
    *,
    response_col: str = RESPONSE_COL,
    covariate_cols: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """Return a numeric copy of the required columns of *table*.

    Parameters
    ----------
    table :
        Sample table.
    response_col :
        Response column name.
    covariate_cols :
        Covariate column names (defaults to :data:`config.COVARIATE_COLS`).

    Returns
    -------
    DataFrame
        Copy with ``[response_col, *covariate_cols]`` as ``float64`` and a
        fresh ``RangeIndex``.

    Raises
    ------
    KeyError
        If a required column is missing.
    ValueError
        If the table is empty or any required value is missing or
        non-numeric.
    """
    if covariate_cols is None:
        covariate_cols = COVARIATE_COLS
    cols: List[str] = [response_col, *covariate_cols]
    missing = [c for c in cols if c not in table.columns]
    if missing:
        raise KeyError(f"Sample table is missing required columns: {missing}")

    out = table[cols].apply(pd.to_numeric, errors="coerce").astype(float)
    if out.empty:
        raise ValueError("Sample table is empty.")

    na_counts = out.isna().sum()
    bad = na_counts[na_counts > 0]
    if not bad.empty:
        raise ValueError(
            "Sample table has missing or non-numeric values: "
            + ", ".join(f"{c}={int(n)}" for c, n in bad.items())
        )
    return out.reset_index(drop=True)


def load_sample_table(
    path: str,
    *,
    response_col: str = RESPONSE_COL,
    covariate_cols: Optional[Sequence[str]] = None,
    sep: Optional[str] = None,
) -> pd.DataFrame:
    """Load the point-sample table from a delimited text file.

    Parameters
    ----------
    path :
        CSV (or other delimited) file with a header row.
    response_col, covariate_cols :
        Columns to keep; see :func:`validate_sample_table`.
    sep :
        Field delimiter. ``None`` lets pandas sniff it (comma, tab, ...).

    Returns
    -------
    DataFrame
        Validated numeric table.
    """
    raw = pd.read_csv(path, sep=sep, engine="python")
    raw.columns = [str(c).strip() for c in raw.columns]
    return validate_sample_table(
        raw,
        response_col=response_col,
        covariate_cols=covariate_cols,
    )
