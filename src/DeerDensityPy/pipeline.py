# SPDX-License-Identifier: MIT
"""
High-level pipeline utilities for the deer-density analysis.

This module strings the building blocks together into the analysis of
Millington et al. (2010):

- Correlations between the response and each covariate.
- Univariate and multivariate OLS fits with a coefficient table.
- Direct validation (observed vs. fitted).
- Repeated k-fold cross-validation per model.
- Projection of a fitted model over covariate grids, optionally restricted
  to selected land-cover classes, with ASCII-grid export.

The functions assume the canonical column names of the sample table::

    logDD | DistanceLC | NewDBH | NewBA | LCProp | SnowDepth

You can pass alternative names via parameters if needed.

Metrics
-------
Validation helpers report ``R2`` as the **square of the Pearson
correlation** between observations and predictions and ``tau`` as Kendall's
tau-b, matching the statistics of the reference analysis. The repeated-CV
``r2_ci`` / ``tau_ci`` columns are ``1.96 * variance`` across repetitions,
reproduced from the reference analysis; they are not standard confidence
half-widths.

Dependencies
------------
Core:
    - numpy
    - pandas
    - scipy, statsmodels, scikit-learn (through the component modules)
    - rasterio (grid I/O)
"""

from __future__ import annotations

import os
import time
import warnings
from typing import Dict, Iterable, Mapping, Optional, Sequence, Union

import pandas as pd
from statsmodels.tools.sm_exceptions import ValueWarning

from .config import (
    BASE_SEED,
    COVARIATE_COLS,
    DEFAULT_FORMULAS,
    N_FOLDS,
    N_REPETITIONS,
    RESPONSE_COL,
)
from .crossval import RepeatedCVResult, repeated_cv
from .metrics import kendall_test, pearson_test, regression_metrics
from .raster import (
    CategoricalRaster,
    RasterGrid,
    apply_mask,
    mask_by_category,
    predict_raster,
    read_ascii_grid,
    write_ascii_grid,
)
from .regression import FittedModel, fit_from_table


__all__ = [
    "set_warning_policy",
    "correlation_table",
    "fit_models",
    "model_summary_table",
    "direct_validation",
    "evaluate_models_cv",
    "predict_density_surface",
    "run_analysis",
]


# ---------------------------------------------------------------------
# Warning policy
# ---------------------------------------------------------------------


def set_warning_policy(silence: bool = True) -> None:
    """
    Configure a conservative warning policy for the pipeline.

    Parameters
    ----------
    silence:
        If ``True`` (default), silence noisy warnings that are not
        actionable in a typical workflow, such as pandas ``FutureWarning``
        and statsmodels small-sample notices.
    """
    warnings.resetwarnings()
    if silence:
        warnings.filterwarnings("ignore", category=FutureWarning)
        warnings.filterwarnings("ignore", category=ValueWarning)
        # kurtosistest in statsmodels summaries with n < 20
        warnings.filterwarnings(
            "ignore",
            category=UserWarning,
            message=".*kurtosistest only valid.*",
        )


# ---------------------------------------------------------------------
# Small I/O helpers (internal)
# ---------------------------------------------------------------------


def _ensure_parent_dir(path: Optional[str]) -> None:
    """Create the parent directory for *path* if needed (no-op on None)."""
    if not path:
        return
    d = os.path.dirname(str(path)) or "."
    os.makedirs(d, exist_ok=True)


def _save_df(
    df: pd.DataFrame,
    path: Optional[str],
    *,
    parquet_compression: str = "snappy",
) -> Optional[str]:
    """
    Save a DataFrame to CSV or Parquet depending on the file extension.

    Parameters
    ----------
    df:
        DataFrame to save.
    path:
        Output path (``.csv`` or ``.parquet``). If ``None``, nothing is
        written and ``None`` is returned.
    parquet_compression:
        Compression codec when writing Parquet files.

    Returns
    -------
    str or None
        The output path, or ``None`` if no file was written.
    """
    if path is None:
        return None
    _ensure_parent_dir(path)
    ext = os.path.splitext(path)[1].lower()
    if ext == ".csv":
        df.to_csv(path, index=False)
    elif ext == ".parquet":
        df.to_parquet(path, index=False, compression=parquet_compression)
    else:
        raise ValueError(f"Unsupported extension: {ext}")
    return path


# ---------------------------------------------------------------------
# Correlations and model fits
# ---------------------------------------------------------------------


def correlation_table(
    table: pd.DataFrame,
    *,
    response_col: str = RESPONSE_COL,
    covariate_cols: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """
    Pearson and Kendall correlation of the response with each covariate.

    Returns
    -------
    DataFrame
        One row per covariate with columns
        ``[covariate, pearson_r, r2, pearson_p, kendall_tau, kendall_p]``.
    """
    cols = list(COVARIATE_COLS if covariate_cols is None else covariate_cols)
    y = table[response_col].to_numpy(dtype=float)
    rows = []
    for c in cols:
        x = table[c].to_numpy(dtype=float)
        r, p_r = pearson_test(x, y)
        tau, p_tau = kendall_test(x, y)
        rows.append(
            {
                "covariate": c,
                "pearson_r": r,
                "r2": r ** 2,
                "pearson_p": p_r,
                "kendall_tau": tau,
                "kendall_p": p_tau,
            }
        )
    return pd.DataFrame(rows)


def fit_models(
    table: pd.DataFrame,
    *,
    response_col: str = RESPONSE_COL,
    formulas: Optional[Mapping[str, Sequence[str]]] = None,
) -> Dict[str, FittedModel]:
    """
    Fit one OLS model per formula.

    Parameters
    ----------
    formulas:
        Mapping ``name -> ordered covariate list``. Defaults to
        :data:`config.DEFAULT_FORMULAS` (one univariate model per covariate
        plus the five-covariate ``"full"`` model).

    Returns
    -------
    dict
        ``name -> FittedModel``, in formula order.
    """
    if formulas is None:
        formulas = DEFAULT_FORMULAS
    return {
        name: fit_from_table(table, response_col, list(cols))
        for name, cols in formulas.items()
    }


def model_summary_table(models: Mapping[str, FittedModel]) -> pd.DataFrame:
    """
    Long coefficient table for several models.

    Columns: ``[model, term, estimate, std_error, p_value, r_squared, df_resid]``.
    """
    parts = []
    for name, m in models.items():
        df = m.summary_frame()
        df.insert(0, "model", name)
        df["r_squared"] = m.r_squared
        df["df_resid"] = m.df_resid
        parts.append(df)
    if not parts:
        return pd.DataFrame(
            columns=["model", "term", "estimate", "std_error", "p_value", "r_squared", "df_resid"]
        )
    return pd.concat(parts, ignore_index=True)


def direct_validation(
    models: Mapping[str, FittedModel],
    table: pd.DataFrame,
) -> pd.DataFrame:
    """
    Observed vs. predicted accuracy of each model on *table*.

    Predictions are recomputed from the coefficients, so models built from
    published coefficients can be validated too.

    Returns
    -------
    DataFrame
        One row per model with columns ``[model, MAE, RMSE, r, R2, tau]``.
    """
    rows = []
    for name, m in models.items():
        y = table[m.response_name].to_numpy(dtype=float)
        y_hat = m.predict(table[list(m.covariate_names)])
        rows.append({"model": name, **regression_metrics(y, y_hat)})
    return pd.DataFrame(rows)


# ---------------------------------------------------------------------
# Repeated cross-validation over several models
# ---------------------------------------------------------------------


def evaluate_models_cv(
    table: pd.DataFrame,
    *,
    response_col: str = RESPONSE_COL,
    formulas: Optional[Mapping[str, Sequence[str]]] = None,
    k: int = N_FOLDS,
    repetitions: int = N_REPETITIONS,
    seed_sequence: Optional[Sequence[int]] = None,
    base_seed: int = BASE_SEED,
    n_jobs: int = 1,
    show_progress: bool = False,
    verbose: bool = True,
) -> pd.DataFrame:
    """
    Repeated k-fold cross-validation of several models.

    All models share the same seed sequence, so they are compared on
    identical fold partitions.

    Returns
    -------
    DataFrame
        One row per model with columns
        ``[model, covariates, k, repetitions, mean_r2, r2_ci, mean_tau, tau_ci]``.
    """
    if formulas is None:
        formulas = DEFAULT_FORMULAS
    rows = []
    t0 = time.time()
    for name, cols in formulas.items():
        res: RepeatedCVResult = repeated_cv(
            table,
            response_col,
            list(cols),
            k=k,
            repetitions=repetitions,
            seed_sequence=seed_sequence,
            base_seed=base_seed,
            n_jobs=n_jobs,
            show_progress=show_progress,
            verbose=verbose,
        )
        rows.append(
            {
                "model": name,
                "covariates": "+".join(res.covariate_cols),
                "k": res.k,
                "repetitions": res.repetitions,
                "mean_r2": res.mean_r2,
                "r2_ci": res.r2_ci,
                "mean_tau": res.mean_tau,
                "tau_ci": res.tau_ci,
            }
        )
    if verbose:
        print(f"[repeated-cv] {len(rows)} models in {time.time() - t0:.1f}s")
    return pd.DataFrame(rows)


# ---------------------------------------------------------------------
# Spatial projection
# ---------------------------------------------------------------------


def predict_density_surface(
    covariate_grids: Union[Sequence[Union[RasterGrid, str]], Mapping[str, Union[RasterGrid, str]]],
    model: FittedModel,
    *,
    landcover: Optional[Union[RasterGrid, CategoricalRaster, str]] = None,
    keep_codes: Optional[Iterable[int]] = None,
    keep_labels: Optional[Iterable[str]] = None,
    out_path: Optional[str] = None,
    verbose: bool = True,
) -> RasterGrid:
    """
    Predict a density surface from covariate grids and optionally mask it.

    Parameters
    ----------
    covariate_grids:
        Grids (or ``.asc`` paths) in ``model.covariate_names`` order, or a
        mapping ``covariate name -> grid``, reordered to match the model.
    model:
        Fitted model.
    landcover:
        Optional land-cover grid (or path) used for masking.
    keep_codes, keep_labels:
        Land-cover codes to keep; labels require a :class:`CategoricalRaster`.
    out_path:
        Optional ``.asc`` path where the result is written.

    Returns
    -------
    RasterGrid
    """
    if isinstance(covariate_grids, Mapping):
        missing = [c for c in model.covariate_names if c not in covariate_grids]
        if missing:
            raise KeyError(f"No grid supplied for covariates: {missing}")
        items = [covariate_grids[c] for c in model.covariate_names]
    else:
        items = list(covariate_grids)
    grids = [read_ascii_grid(g) if isinstance(g, str) else g for g in items]

    pred = predict_raster(grids, model, verbose=verbose)

    if landcover is not None:
        lc = read_ascii_grid(landcover) if isinstance(landcover, str) else landcover
        codes = set(int(c) for c in keep_codes) if keep_codes is not None else set()
        if keep_labels:
            if not isinstance(lc, CategoricalRaster):
                raise ValueError("keep_labels requires a CategoricalRaster with labels.")
            codes |= lc.codes_for(keep_labels)
        if not codes:
            raise ValueError("Land-cover masking needs keep_codes or keep_labels.")
        pred = apply_mask(pred, mask_by_category(lc, codes))
        if verbose:
            print(
                f"[raster-mask] kept codes {sorted(codes)}: "
                f"{int(pred.valid_mask().sum())} cells with predictions"
            )

    if out_path is not None:
        write_ascii_grid(pred, out_path)
        if verbose:
            print(f"[raster-predict] wrote {out_path}")
    return pred


# ---------------------------------------------------------------------
# End-to-end
# ---------------------------------------------------------------------


def run_analysis(
    table: pd.DataFrame,
    *,
    response_col: str = RESPONSE_COL,
    covariate_cols: Optional[Sequence[str]] = None,
    formulas: Optional[Mapping[str, Sequence[str]]] = None,
    k: int = N_FOLDS,
    repetitions: int = N_REPETITIONS,
    seed_sequence: Optional[Sequence[int]] = None,
    base_seed: int = BASE_SEED,
    n_jobs: int = 1,
    show_progress: bool = False,
    save_dir: Optional[str] = None,
    verbose: bool = True,
) -> Dict[str, object]:
    """
    Run the complete tabular analysis.

    Steps: correlations, model fits and coefficient table, direct
    validation, repeated cross-validation.

    Parameters
    ----------
    save_dir:
        Optional directory receiving ``correlations.csv``,
        ``coefficients.csv``, ``direct_validation.csv``,
        ``cross_validation.csv`` and one ``model_<name>.json`` per model.

    Returns
    -------
    dict
        Keys ``"correlations"``, ``"models"``, ``"coefficients"``,
        ``"direct_validation"``, ``"cross_validation"``.
    """
    cols = list(COVARIATE_COLS if covariate_cols is None else covariate_cols)
    if formulas is None:
        formulas = {**{c: [c] for c in cols}, "full": cols}

    if verbose:
        print(f"[analysis] {len(table)} samples, response '{response_col}', {len(formulas)} models")

    corr = correlation_table(table, response_col=response_col, covariate_cols=cols)
    models = fit_models(table, response_col=response_col, formulas=formulas)
    coefs = model_summary_table(models)
    direct = direct_validation(models, table)
    cv = evaluate_models_cv(
        table,
        response_col=response_col,
        formulas=formulas,
        k=k,
        repetitions=repetitions,
        seed_sequence=seed_sequence,
        base_seed=base_seed,
        n_jobs=n_jobs,
        show_progress=show_progress,
        verbose=verbose,
    )

    if save_dir is not None:
        _save_df(corr, os.path.join(save_dir, "correlations.csv"))
        _save_df(coefs, os.path.join(save_dir, "coefficients.csv"))
        _save_df(direct, os.path.join(save_dir, "direct_validation.csv"))
        _save_df(cv, os.path.join(save_dir, "cross_validation.csv"))
        for name, m in models.items():
            m.save(os.path.join(save_dir, f"model_{name}.json"))
        if verbose:
            print(f"[analysis] outputs written to {save_dir}")

    if verbose and not cv.empty:
        best = cv.sort_values("mean_r2", ascending=False).iloc[0]
        print(
            f"[analysis] best CV model: {best['model']} "
            f"(r²={best['mean_r2']:.3f}, tau={best['mean_tau']:.3f})"
        )

    return {
        "correlations": corr,
        "models": models,
        "coefficients": coefs,
        "direct_validation": direct,
        "cross_validation": cv,
    }
