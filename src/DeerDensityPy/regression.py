# src/DeerDensityPy/regression.py
# SPDX-License-Identifier: MIT
"""
Ordinary least squares fitting for the deer-density models.

The heavy lifting is delegated to :class:`statsmodels.api.OLS`. This module
adds the checks the analysis relies on (aligned lengths, full-rank design)
and freezes the result into a small, serialisable :class:`FittedModel`
that the cross-validation engine and the spatial predictor consume.

Coefficient order
-----------------
``FittedModel.coefficients`` always holds the **intercept first**, followed
by one slope per covariate in ``FittedModel.covariate_names`` order. Grids
handed to :func:`DeerDensityPy.raster.predict_raster` must follow the same
order.

Runtime dependencies
--------------------
- numpy
- pandas
- scipy
- statsmodels
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple, Union

import json
import os

import numpy as np
import pandas as pd
import statsmodels.api as sm
from scipy import stats

from .errors import DimensionMismatchError, SingularityError


__all__ = [
    "FittedModel",
    "fit_linear_model",
    "fit_from_table",
    "confidence_band",
]


ArrayLike = Union[Sequence[float], np.ndarray, pd.Series]


# ---------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------


def _save_json(obj: dict, path: str) -> None:
    """Persist a dictionary as a UTF-8 JSON file with indentation."""
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(obj, f, ensure_ascii=False, indent=2)


def _covariate_matrix(
    covariates,
    n: int,
    covariate_names: Optional[Sequence[str]],
) -> Tuple[np.ndarray, List[str]]:
    """Normalise *covariates* into an (n, p) float matrix plus column names.

    Accepted inputs: a DataFrame, a single 1-D sequence (univariate), a 2-D
    array of shape (n, p), or a sequence of p sequences of length n.
    """
    if isinstance(covariates, pd.DataFrame):
        names = [str(c) for c in covariates.columns]
        cols = [np.asarray(covariates[c], dtype=float) for c in covariates.columns]
    elif isinstance(covariates, pd.Series):
        names = [str(covariates.name) if covariates.name is not None else "x1"]
        cols = [np.asarray(covariates, dtype=float)]
    else:
        arr = np.asarray(covariates, dtype=object)
        if arr.ndim == 1 and arr.size and np.isscalar(arr[0]):
            cols = [np.asarray(covariates, dtype=float)]
        elif isinstance(covariates, np.ndarray) and covariates.ndim == 2:
            cols = [np.asarray(covariates[:, j], dtype=float) for j in range(covariates.shape[1])]
        else:
            # sequence of sequences, possibly ragged
            cols = [np.asarray(c, dtype=float).ravel() for c in covariates]
        names = [f"x{j + 1}" for j in range(len(cols))]

    if not cols:
        raise DimensionMismatchError("At least one covariate is required.")

    for name, col in zip(names, cols):
        if col.ndim != 1 or col.size != n:
            raise DimensionMismatchError(
                f"Covariate '{name}' has length {col.size}; response has length {n}."
            )

    if covariate_names is not None:
        names = [str(c) for c in covariate_names]
        if len(names) != len(cols):
            raise DimensionMismatchError(
                f"Got {len(names)} covariate names for {len(cols)} covariates."
            )

    return np.column_stack(cols), names


# ---------------------------------------------------------------------
# Public dataclass for a fitted model
# ---------------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class FittedModel:
    """An OLS fit, frozen after construction.

    Attributes
    ----------
    response_name :
        Name of the response column (``"logDD"`` in the reference data).
    covariate_names :
        Ordered covariate names; defines the order of slopes and of the grids
        expected at prediction time.
    coefficients :
        Intercept followed by one slope per covariate.
    std_errors, pvalues :
        Per-coefficient standard errors and two-sided t-test p-values
        (``n - p - 1`` degrees of freedom), same order as ``coefficients``.
    r_squared :
        ``1 - SS_res / SS_tot`` on the training data.
    df_resid :
        Residual degrees of freedom, ``n - p - 1``.
    fitted_values, residuals :
        Cached in-sample values (empty for models built from published
        coefficients).
    cov_params :
        Covariance matrix of the coefficients (``None`` when unknown).
    """

    response_name: str
    covariate_names: Tuple[str, ...]
    coefficients: np.ndarray
    std_errors: np.ndarray
    pvalues: np.ndarray
    r_squared: float
    df_resid: int
    fitted_values: np.ndarray = field(repr=False)
    residuals: np.ndarray = field(repr=False)
    cov_params: Optional[np.ndarray] = field(default=None, repr=False)

    # -- construction -------------------------------------------------

    @classmethod
    def from_coefficients(
        cls,
        intercept: float,
        slopes: Sequence[float],
        covariate_names: Sequence[str],
        *,
        response_name: str = "y",
    ) -> "FittedModel":
        """Build a prediction-only model from published coefficients.

        Standard errors, p-values and R² are unknown and set to ``nan``.
        """
        slopes = np.atleast_1d(np.asarray(slopes, dtype=float))
        names = tuple(str(c) for c in covariate_names)
        if slopes.size != len(names):
            raise DimensionMismatchError(
                f"Got {slopes.size} slopes for {len(names)} covariate names."
            )
        coefs = np.concatenate([[float(intercept)], slopes])
        nan = np.full(coefs.shape, np.nan)
        return cls(
            response_name=response_name,
            covariate_names=names,
            coefficients=coefs,
            std_errors=nan,
            pvalues=nan.copy(),
            r_squared=float("nan"),
            df_resid=0,
            fitted_values=np.empty(0),
            residuals=np.empty(0),
            cov_params=None,
        )

    # -- accessors ----------------------------------------------------

    @property
    def intercept(self) -> float:
        return float(self.coefficients[0])

    @property
    def slopes(self) -> np.ndarray:
        return self.coefficients[1:]

    @property
    def n_covariates(self) -> int:
        return len(self.covariate_names)

    def predict(self, X) -> np.ndarray:
        """Return ``intercept + X @ slopes``.

        *X* is an (m, p) array, a DataFrame holding the covariate columns, or
        a 1-D array for univariate models.
        """
        if isinstance(X, pd.DataFrame):
            X = X[list(self.covariate_names)].to_numpy(dtype=float)
        X = np.asarray(X, dtype=float)
        if X.ndim == 1:
            if self.n_covariates != 1:
                X = X.reshape(1, -1)
            else:
                X = X.reshape(-1, 1)
        if X.shape[1] != self.n_covariates:
            raise DimensionMismatchError(
                f"Model expects {self.n_covariates} covariates, got {X.shape[1]}."
            )
        return self.intercept + X @ self.slopes

    def summary_frame(self) -> pd.DataFrame:
        """Coefficient table with columns ``[term, estimate, std_error, p_value]``."""
        return pd.DataFrame(
            {
                "term": ["intercept", *self.covariate_names],
                "estimate": self.coefficients,
                "std_error": self.std_errors,
                "p_value": self.pvalues,
            }
        )

    # -- persistence --------------------------------------------------

    def to_dict(self) -> Dict:
        """JSON-friendly view (in-sample arrays are not included)."""
        return {
            "response_name": self.response_name,
            "covariate_names": list(self.covariate_names),
            "coefficients": [float(v) for v in self.coefficients],
            "std_errors": [float(v) for v in self.std_errors],
            "pvalues": [float(v) for v in self.pvalues],
            "r_squared": float(self.r_squared),
            "df_resid": int(self.df_resid),
        }

    def save(self, path: str) -> None:
        """Save coefficients and fit statistics to a JSON file."""
        _save_json(self.to_dict(), path)

    @staticmethod
    def load(path: str) -> "FittedModel":
        """Load a model saved with :meth:`save` (prediction-ready)."""
        with open(path, "r", encoding="utf-8") as f:
            d = json.load(f)
        return FittedModel(
            response_name=d["response_name"],
            covariate_names=tuple(d["covariate_names"]),
            coefficients=np.asarray(d["coefficients"], dtype=float),
            std_errors=np.asarray(d["std_errors"], dtype=float),
            pvalues=np.asarray(d["pvalues"], dtype=float),
            r_squared=float(d["r_squared"]),
            df_resid=int(d["df_resid"]),
            fitted_values=np.empty(0),
            residuals=np.empty(0),
            cov_params=None,
        )


# ---------------------------------------------------------------------
# Fitting
# ---------------------------------------------------------------------


def fit_linear_model(
    response: ArrayLike,
    covariates,
    *,
    covariate_names: Optional[Sequence[str]] = None,
    response_name: Optional[str] = None,
) -> FittedModel:
    """Fit ``response ~ intercept + covariates`` by ordinary least squares.

    Parameters
    ----------
    response :
        Response values, length *n*.
    covariates :
        One covariate (1-D sequence or Series), an (n, p) array, a sequence
        of p sequences, or a DataFrame whose columns are the covariates.
    covariate_names :
        Optional names overriding those inferred from *covariates*.
    response_name :
        Optional response name (defaults to the Series name or ``"y"``).

    Returns
    -------
    FittedModel

    Raises
    ------
    DimensionMismatchError
        If a covariate length differs from *n*, no covariate is given, or
        there are no residual degrees of freedom (``n <= p + 1``).
    SingularityError
        If the design matrix with its intercept column is rank-deficient.
    """
    if response_name is None:
        response_name = (
            str(response.name)
            if isinstance(response, pd.Series) and response.name is not None
            else "y"
        )
    y = np.asarray(response, dtype=float).ravel()
    n = y.size
    X, names = _covariate_matrix(covariates, n, covariate_names)
    p = X.shape[1]

    design = sm.add_constant(X, has_constant="add")
    rank = int(np.linalg.matrix_rank(design))
    if rank < p + 1:
        raise SingularityError(
            f"Design matrix is rank-deficient (rank {rank} < {p + 1} columns) "
            f"for covariates {names}."
        )
    if n <= p + 1:
        raise DimensionMismatchError(
            f"Need more than {p + 1} observations to fit {p} covariate(s) "
            f"with an intercept; got {n}."
        )

    res = sm.OLS(y, design).fit()

    fitted = np.asarray(res.fittedvalues, dtype=float)
    resid = y - fitted
    ss_res = float(np.sum(resid ** 2))
    ss_tot = float(np.sum((y - y.mean()) ** 2))
    r_squared = 1.0 - ss_res / ss_tot if ss_tot > 0.0 else float("nan")

    # A perfect fit has zero standard errors; t-statistics are then inf/nan.
    with np.errstate(divide="ignore", invalid="ignore"):
        bse = np.asarray(res.bse, dtype=float)
        pvalues = np.asarray(res.pvalues, dtype=float)
        cov = np.asarray(res.cov_params(), dtype=float)

    return FittedModel(
        response_name=response_name,
        covariate_names=tuple(names),
        coefficients=np.asarray(res.params, dtype=float),
        std_errors=bse,
        pvalues=pvalues,
        r_squared=float(r_squared),
        df_resid=int(round(res.df_resid)),
        fitted_values=fitted,
        residuals=resid,
        cov_params=cov,
    )


def fit_from_table(
    table: pd.DataFrame,
    response_col: str,
    covariate_cols: Sequence[str],
) -> FittedModel:
    """Fit ``response_col ~ covariate_cols`` on a sample table.

    Missing columns raise :class:`KeyError` with the offending names.
    """
    cols = list(covariate_cols)
    missing = [c for c in [response_col, *cols] if c not in table.columns]
    if missing:
        raise KeyError(f"Sample table is missing columns: {missing}")
    return fit_linear_model(
        table[response_col].to_numpy(dtype=float),
        table[cols],
        response_name=response_col,
    )


def confidence_band(
    model: FittedModel,
    x: ArrayLike,
    *,
    confidence_level: float = 0.95,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Mean prediction and its confidence band for a univariate model.

    Returns
    -------
    y_hat, lower, upper : np.ndarray
        Fitted line and band ``y_hat ± t * se(y_hat)`` evaluated at *x*.
    """
    if model.n_covariates != 1:
        raise DimensionMismatchError("Confidence bands are drawn for univariate models only.")
    if model.cov_params is None or model.df_resid <= 0:
        raise ValueError("Model carries no covariance matrix; refit it from data.")
    if not 0.0 < confidence_level < 1.0:
        raise ValueError("confidence_level must lie strictly between 0 and 1.")

    xa = np.asarray(x, dtype=float).ravel()
    design = np.column_stack([np.ones_like(xa), xa])
    y_hat = design @ model.coefficients
    se = np.sqrt(np.einsum("ij,jk,ik->i", design, model.cov_params, design))
    t = stats.t.ppf(0.5 + confidence_level / 2.0, model.df_resid)
    return y_hat, y_hat - t * se, y_hat + t * se
