# src/DeerDensityPy/metrics.py
# SPDX-License-Identifier: MIT
"""
Correlation and accuracy metrics for DeerDensityPy.

This module provides the small set of statistics used to validate the
deer-density models, both directly (observed vs. fitted) and through
repeated cross-validation:

- :func:`pearson` — Pearson product-moment correlation *r*.
- :func:`kendall` — Kendall rank correlation *tau* (tau-b).
- :func:`pearson_test`, :func:`kendall_test` — the same statistics together
  with their two-sided p-values.
- :func:`regression_metrics` — MAE, RMSE, r, R² and tau in a single dict.

Key design choices
------------------
* Inputs are accepted as any iterable (lists, NumPy arrays, pandas Series).
* Unlike a forgiving metric suite, degenerate inputs are **errors** here:
  unequal lengths raise :class:`~DeerDensityPy.errors.DimensionMismatchError`
  and empty, single-valued or constant inputs raise
  :class:`~DeerDensityPy.errors.DegenerateInputError`.
* R² is **not** ``sklearn.metrics.r2_score``. It is the square of the
  Pearson correlation between observations and predictions, which is the
  accuracy statistic reported by Millington et al. (2010). :func:`pearson`
  itself returns the signed *r*; squaring is left to the caller.
"""

from __future__ import annotations

from typing import Dict, Iterable, Tuple

import numpy as np
from scipy import stats
from sklearn.metrics import mean_absolute_error, mean_squared_error

from .errors import DegenerateInputError, DimensionMismatchError


# ---------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------


def _as_arrays(
    x: Iterable[float],
    y: Iterable[float],
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Convert *x* and *y* to 1-D float arrays and validate them for correlation.

    Raises
    ------
    DimensionMismatchError
        If the lengths of *x* and *y* differ.
    DegenerateInputError
        If fewer than two values are given or either input is constant.
    """
    xa = np.asarray(x, dtype=float).ravel()
    ya = np.asarray(y, dtype=float).ravel()

    if xa.shape != ya.shape:
        raise DimensionMismatchError(
            f"Lengths of x ({xa.size}) and y ({ya.size}) do not match."
        )
    if xa.size < 2:
        raise DegenerateInputError(
            f"Correlation needs at least 2 paired values, got {xa.size}."
        )
    if np.ptp(xa) == 0.0 or np.ptp(ya) == 0.0:
        raise DegenerateInputError(
            "Correlation is undefined for a constant sequence (zero variance)."
        )
    return xa, ya


# ---------------------------------------------------------------------
# Pearson and Kendall
# ---------------------------------------------------------------------


def pearson_test(x: Iterable[float], y: Iterable[float]) -> Tuple[float, float]:
    """
    Pearson correlation with its two-sided p-value.

    Returns
    -------
    r, p_value : float
    """
    xa, ya = _as_arrays(x, y)
    res = stats.pearsonr(xa, ya)
    r = float(np.clip(res[0], -1.0, 1.0))
    return r, float(res[1])


def pearson(x: Iterable[float], y: Iterable[float]) -> float:
    """
    Pearson product-moment correlation coefficient.

    Parameters
    ----------
    x, y
        Paired numeric sequences of equal length.

    Returns
    -------
    float
        *r* in [-1, 1].
    """
    return pearson_test(x, y)[0]


def kendall_test(x: Iterable[float], y: Iterable[float]) -> Tuple[float, float]:
    """
    Kendall tau-b with its two-sided p-value.

    Returns
    -------
    tau, p_value : float
    """
    xa, ya = _as_arrays(x, y)
    res = stats.kendalltau(xa, ya)
    return float(res[0]), float(res[1])


def kendall(x: Iterable[float], y: Iterable[float]) -> float:
    """
    Kendall rank correlation (tau-b), in [-1, 1].

    Ties are handled by the tau-b adjustment.
    """
    return kendall_test(x, y)[0]


# ---------------------------------------------------------------------
# Combined regression metrics
# ---------------------------------------------------------------------


def regression_metrics(y_true: Iterable[float], y_pred: Iterable[float]) -> Dict[str, float]:
    """
    Compute the accuracy statistics reported for a set of predictions:

    - Mean Absolute Error (MAE)
    - Root Mean Squared Error (RMSE)
    - Pearson *r* and R² (= r²)
    - Kendall tau

    Raises
    ------
    DimensionMismatchError, DegenerateInputError
        See :func:`pearson`.
    """
    yt, yp = _as_arrays(y_true, y_pred)

    mae = float(mean_absolute_error(yt, yp))
    # RMSE from MSE; the `squared` keyword is gone from recent scikit-learn.
    rmse = float(np.sqrt(mean_squared_error(yt, yp)))
    r = pearson(yt, yp)
    tau = kendall(yt, yp)

    return {
        "MAE": mae,
        "RMSE": rmse,
        "r": r,
        "R2": float(r ** 2),
        "tau": tau,
    }


__all__ = [
    "pearson",
    "pearson_test",
    "kendall",
    "kendall_test",
    "regression_metrics",
]
