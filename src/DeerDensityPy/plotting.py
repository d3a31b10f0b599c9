# SPDX-License-Identifier: MIT
"""
Plot helpers for model fits, cross-validation output and prediction grids.

Every function draws on the ``Axes`` it is given (or on a new figure) and
returns ``(fig, ax)``. Nothing here touches process-wide plotting state, so
panel layouts stay with the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import matplotlib
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from .raster import RasterGrid
from .regression import FittedModel, confidence_band


__all__ = [
    "BandOptions",
    "plot_fit_with_bands",
    "plot_observed_vs_predicted",
    "plot_raster",
]


@dataclass(frozen=True)
class BandOptions:
    """Options for :func:`plot_fit_with_bands`.

    Attributes
    ----------
    draw_bands :
        Draw the confidence band around the fitted line.
    confidence_level :
        Coverage of the band, strictly between 0 and 1.
    segment_count :
        Number of points along the x range used to draw line and band.
    """

    draw_bands: bool = True
    confidence_level: float = 0.95
    segment_count: int = 100


def _new_axes(ax, figsize):
    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.figure
    return fig, ax


def plot_fit_with_bands(
    model: FittedModel,
    x,
    y,
    options: BandOptions = BandOptions(),
    *,
    ax: Optional[matplotlib.axes.Axes] = None,
    figsize: Tuple[int, int] = (6, 5),
    xlabel: Optional[str] = None,
    ylabel: Optional[str] = None,
    point_style: Optional[Dict] = None,
    line_style: Optional[Dict] = None,
) -> Tuple[matplotlib.figure.Figure, matplotlib.axes.Axes]:
    """Scatter of the data with the fitted line of a univariate model.

    When ``options.draw_bands`` is set, the confidence band of the mean
    prediction is shaded.
    """
    if options.segment_count < 2:
        raise ValueError("segment_count must be at least 2.")

    xa = np.asarray(x, dtype=float)
    ya = np.asarray(y, dtype=float)
    fig, ax = _new_axes(ax, figsize)

    ax.scatter(xa, ya, **(point_style or dict(s=18, color="0.3", alpha=0.8)))

    grid_x = np.linspace(np.min(xa), np.max(xa), int(options.segment_count))
    if options.draw_bands:
        y_hat, lo, hi = confidence_band(
            model, grid_x, confidence_level=options.confidence_level
        )
    else:
        # coefficients only; cov_params may be None
        y_hat = model.predict(grid_x)
    ax.plot(grid_x, y_hat, **(line_style or dict(color="tab:blue", lw=1.8)))
    if options.draw_bands:
        ax.fill_between(
            grid_x,
            lo,
            hi,
            color="tab:blue",
            alpha=0.2,
            label=f"{options.confidence_level:.0%} CI",
        )
        ax.legend(loc="best")

    ax.set_xlabel(xlabel or model.covariate_names[0])
    ax.set_ylabel(ylabel or model.response_name)
    if np.isfinite(model.r_squared):
        ax.set_title(f"R² = {model.r_squared:.3f}")
    return fig, ax


def plot_observed_vs_predicted(
    cv_table: pd.DataFrame,
    *,
    ax: Optional[matplotlib.axes.Axes] = None,
    figsize: Tuple[int, int] = (5, 5),
    title: Optional[str] = None,
) -> Tuple[matplotlib.figure.Figure, matplotlib.axes.Axes]:
    """Observed vs. out-of-fold predicted values with a 1:1 line.

    *cv_table* is the output of
    :func:`DeerDensityPy.crossval.cross_validate_once`.
    """
    fig, ax = _new_axes(ax, figsize)
    yt = cv_table["y_true"].to_numpy(dtype=float)
    yp = cv_table["y_pred"].to_numpy(dtype=float)
    ax.scatter(yt, yp, s=18, c=cv_table["fold"], cmap="tab10", alpha=0.85)
    lo = float(min(yt.min(), yp.min()))
    hi = float(max(yt.max(), yp.max()))
    ax.plot([lo, hi], [lo, hi], color="0.4", ls="--", lw=1)
    ax.set_xlabel("Observed")
    ax.set_ylabel("Predicted (out-of-fold)")
    if title:
        ax.set_title(title)
    return fig, ax


def plot_raster(
    grid: RasterGrid,
    *,
    ax: Optional[matplotlib.axes.Axes] = None,
    figsize: Tuple[int, int] = (6, 6),
    title: Optional[str] = None,
    cmap: str = "viridis",
    colorbar_label: Optional[str] = None,
) -> Tuple[matplotlib.figure.Figure, matplotlib.axes.Axes]:
    """Show a grid with no-data cells left blank."""
    fig, ax = _new_axes(ax, figsize)
    nrows, ncols = grid.shape
    extent = (
        grid.xllcorner,
        grid.xllcorner + ncols * grid.cellsize,
        grid.yllcorner,
        grid.yllcorner + nrows * grid.cellsize,
    )
    im = ax.imshow(grid.to_masked(), cmap=cmap, extent=extent, origin="upper")
    cb = fig.colorbar(im, ax=ax)
    if colorbar_label:
        cb.set_label(colorbar_label)
    if title:
        ax.set_title(title)
    return fig, ax
