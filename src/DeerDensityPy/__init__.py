"""
DeerDensityPy
=============

Reproduction of the deer-density analysis of Millington et al. (2010):
linear models relating log deer density to landscape covariates, validated
by repeated k-fold cross-validation and projected over gridded covariates.

This package provides two complementary workflows:

1. Tabular modelling and validation
   --------------------------------
   Correlations, ordinary least squares fits (univariate and the
   five-covariate "full" model), direct validation and repeated k-fold
   cross-validation with aggregated accuracy statistics.

   Main entry points
   -----------------
   - :func:`load_sample_table`
   - :func:`fit_linear_model`, :func:`fit_from_table`, :class:`FittedModel`
   - :func:`pearson`, :func:`kendall`, :func:`regression_metrics`
   - :func:`make_fold_partition`, :func:`cross_validate_once`,
     :func:`repeated_cv`
   - :func:`run_analysis`

2. Spatial prediction
   ------------------
   Projection of a fitted model over aligned covariate grids with no-data
   propagation, and restriction of the result to selected land-cover
   classes.

   Main entry points
   -----------------
   - :class:`RasterGrid`, :class:`CategoricalRaster`
   - :func:`read_ascii_grid`, :func:`write_ascii_grid`
   - :func:`predict_raster`
   - :func:`mask_by_category`, :func:`apply_mask`
   - :func:`predict_density_surface`

Plot helpers (:func:`plot_fit_with_bands`, :func:`plot_observed_vs_predicted`,
:func:`plot_raster`) cover both workflows.

A note on the cross-validation "confidence" values
--------------------------------------------------
:func:`repeated_cv` reports ``1.96 * variance`` of r² and tau across
repetitions because that is what the reference analysis computed. It is
not a standard 95 % confidence half-width; use
:meth:`RepeatedCVResult.standard_halfwidths` for that.

Example
-------
    >>> from DeerDensityPy import load_sample_table, run_analysis
    >>> table = load_sample_table("data/deer_samples.csv")
    >>> results = run_analysis(table, repetitions=100)
    >>> results["cross_validation"][["model", "mean_r2", "r2_ci"]]

    >>> from DeerDensityPy import read_ascii_grid, predict_density_surface
    >>> full = results["models"]["full"]
    >>> grids = {name: read_ascii_grid(f"grids/{name}.asc") for name in full.covariate_names}
    >>> surface = predict_density_surface(
    ...     grids,
    ...     full,
    ...     landcover=read_ascii_grid("grids/landcover.asc"),
    ...     keep_codes=[6],
    ...     out_path="outputs/logDD_full.asc",
    ... )
"""

from __future__ import annotations

# Public version (update in sync with pyproject.toml)
__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

from .errors import (
    AnalysisError,
    DimensionMismatchError,
    SingularityError,
    DegenerateInputError,
    ShapeMismatchError,
)

# ---------------------------------------------------------------------------
# Tabular modelling and validation
# ---------------------------------------------------------------------------

from .data import load_sample_table, validate_sample_table
from .metrics import pearson, kendall, pearson_test, kendall_test, regression_metrics
from .regression import FittedModel, fit_linear_model, fit_from_table, confidence_band
from .crossval import (
    RepeatedCVResult,
    default_seed_sequence,
    make_fold_partition,
    cross_validate_once,
    repeated_cv,
)

# ---------------------------------------------------------------------------
# Spatial prediction
# ---------------------------------------------------------------------------

from .raster import (
    RasterGrid,
    CategoricalRaster,
    read_ascii_grid,
    write_ascii_grid,
    grid_nodata_report,
    predict_raster,
    mask_by_category,
    apply_mask,
)

# ---------------------------------------------------------------------------
# Plots
# ---------------------------------------------------------------------------

from .plotting import (
    BandOptions,
    plot_fit_with_bands,
    plot_observed_vs_predicted,
    plot_raster,
)

# ---------------------------------------------------------------------------
# End-to-end pipeline
# ---------------------------------------------------------------------------

from .pipeline import (
    set_warning_policy,
    correlation_table,
    fit_models,
    model_summary_table,
    direct_validation,
    evaluate_models_cv,
    predict_density_surface,
    run_analysis,
)

__all__ = [
    "__version__",
    # errors
    "AnalysisError",
    "DimensionMismatchError",
    "SingularityError",
    "DegenerateInputError",
    "ShapeMismatchError",
    # tabular workflow
    "load_sample_table",
    "validate_sample_table",
    "pearson",
    "kendall",
    "pearson_test",
    "kendall_test",
    "regression_metrics",
    "FittedModel",
    "fit_linear_model",
    "fit_from_table",
    "confidence_band",
    "RepeatedCVResult",
    "default_seed_sequence",
    "make_fold_partition",
    "cross_validate_once",
    "repeated_cv",
    # spatial workflow
    "RasterGrid",
    "CategoricalRaster",
    "read_ascii_grid",
    "write_ascii_grid",
    "grid_nodata_report",
    "predict_raster",
    "mask_by_category",
    "apply_mask",
    # plots
    "BandOptions",
    "plot_fit_with_bands",
    "plot_observed_vs_predicted",
    "plot_raster",
    # pipeline
    "set_warning_policy",
    "correlation_table",
    "fit_models",
    "model_summary_table",
    "direct_validation",
    "evaluate_models_cv",
    "predict_density_surface",
    "run_analysis",
]
