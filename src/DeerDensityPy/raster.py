# src/DeerDensityPy/raster.py
# =============================================================================
# MIT License
#
# (c) 2025 The DeerDensityPy authors.
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
# The above copyright notice and this permission notice shall be included in
# all copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN
# THE SOFTWARE.
# =============================================================================
"""
Gridded prediction utilities for fitted deer-density models.

This module provides two main entry points:

1) :func:`predict_raster`
   Applies the coefficients of a :class:`~DeerDensityPy.regression.FittedModel`
   cell by cell over a stack of aligned covariate grids. Cells where *any*
   covariate is no-data stay no-data in the output; the model never sees the
   sentinel values.

2) :func:`mask_by_category` / :func:`apply_mask`
   Build a boolean mask from a categorical (land-cover) grid and restrict a
   prediction grid to the kept categories.

On top of these, the module includes I/O and reporting helpers:

- :func:`read_ascii_grid` / :func:`write_ascii_grid`
  for ESRI ASCII grids (header + row-major cell values), and
- :func:`grid_nodata_report`
  to count valid / no-data cells before predicting.

Grids that are combined must share shape and cell alignment. Only the shape
is checked; alignment is the caller's responsibility and no reprojection is
ever attempted.

Runtime dependencies
--------------------
- numpy
- pandas
- rasterio
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Sequence, Union

import os

import numpy as np
import pandas as pd
import rasterio
from rasterio.transform import from_origin

from .config import NODATA_VALUE
from .errors import ShapeMismatchError
from .regression import FittedModel


__all__ = [
    "RasterGrid",
    "CategoricalRaster",
    "read_ascii_grid",
    "write_ascii_grid",
    "grid_nodata_report",
    "predict_raster",
    "mask_by_category",
    "apply_mask",
]


# ---------------------------------------------------------------------
# Grid containers
# ---------------------------------------------------------------------


@dataclass(eq=False)
class RasterGrid:
    """A 2-D grid of cell values with a no-data sentinel.

    Attributes
    ----------
    values :
        2-D array of cell values (stored as ``float64``).
    nodata :
        Sentinel marking missing cells. ``NaN`` cells are treated as
        missing as well.
    xllcorner, yllcorner, cellsize :
        Georeference of the lower-left corner, as in the ESRI ASCII header.
    """

    values: np.ndarray
    nodata: float = NODATA_VALUE
    xllcorner: float = 0.0
    yllcorner: float = 0.0
    cellsize: float = 1.0

    def __post_init__(self) -> None:
        self.values = np.asarray(self.values, dtype=float)
        if self.values.ndim != 2:
            raise ShapeMismatchError(
                f"Raster values must be 2-D, got shape {self.values.shape}."
            )
        self.nodata = float(self.nodata)

    @property
    def shape(self):
        return self.values.shape

    def valid_mask(self) -> np.ndarray:
        """Boolean array, ``True`` where the cell holds data."""
        v = self.values
        return np.isfinite(v) & (v != self.nodata)

    def to_masked(self) -> np.ma.MaskedArray:
        """Masked-array view, convenient for plotting and statistics."""
        return np.ma.masked_array(self.values, mask=~self.valid_mask())

    def like(self, values: np.ndarray) -> "RasterGrid":
        """New grid with *values* and this grid's georeference and sentinel."""
        return RasterGrid(
            values=values,
            nodata=self.nodata,
            xllcorner=self.xllcorner,
            yllcorner=self.yllcorner,
            cellsize=self.cellsize,
        )


@dataclass(eq=False)
class CategoricalRaster:
    """A grid of small integer category codes with their labels.

    Only used to derive masks; never passed through a model.
    """

    grid: RasterGrid
    labels: Dict[int, str] = field(default_factory=dict)

    @property
    def shape(self):
        return self.grid.shape

    def codes_for(self, labels: Iterable[str]) -> set:
        """Resolve category labels to their codes.

        Raises
        ------
        KeyError
            If a label is not known.
        """
        lookup = {v: k for k, v in self.labels.items()}
        wanted = list(labels)
        unknown = [lab for lab in wanted if lab not in lookup]
        if unknown:
            raise KeyError(f"Unknown land-cover labels: {unknown}")
        return {int(lookup[lab]) for lab in wanted}


GridLike = Union[RasterGrid, CategoricalRaster]


def _as_grid(obj: GridLike) -> RasterGrid:
    return obj.grid if isinstance(obj, CategoricalRaster) else obj


# ---------------------------------------------------------------------
# ESRI ASCII grid I/O
# ---------------------------------------------------------------------


def read_ascii_grid(path: str, *, nodata: Optional[float] = None) -> RasterGrid:
    """Read an ESRI ASCII grid (``.asc``) into a :class:`RasterGrid`.

    Parameters
    ----------
    path :
        Grid file.
    nodata :
        Override for the file's ``NODATA_value`` (used as-is when the header
        has none; falls back to :data:`config.NODATA_VALUE`).
    """
    with rasterio.open(path) as src:
        values = src.read(1).astype(float)
        t = src.transform
        file_nodata = src.nodata
        height = src.height

    if nodata is None:
        nodata = file_nodata if file_nodata is not None else NODATA_VALUE

    return RasterGrid(
        values=values,
        nodata=nodata,
        xllcorner=float(t.c),
        yllcorner=float(t.f + t.e * height),
        cellsize=float(t.a),
    )


def write_ascii_grid(grid: RasterGrid, path: str, *, dtype: str = "float64") -> str:
    """Write *grid* as an ESRI ASCII grid and return *path*.

    Non-finite cells are written as the grid's no-data sentinel. Values
    keep full double precision unless a narrower *dtype* such as
    ``"float32"`` is requested.
    """
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    nrows, ncols = grid.shape
    data = np.where(grid.valid_mask(), grid.values, grid.nodata).astype(dtype)
    transform = from_origin(
        grid.xllcorner,
        grid.yllcorner + nrows * grid.cellsize,
        grid.cellsize,
        grid.cellsize,
    )
    profile = dict(
        driver="AAIGrid",
        height=nrows,
        width=ncols,
        count=1,
        dtype=dtype,
        nodata=grid.nodata,
        transform=transform,
    )
    if np.dtype(dtype).kind == "f":
        # enough digits to round-trip a double through text
        profile["SIGNIFICANT_DIGITS"] = 17
    with rasterio.open(path, "w", **profile) as dst:
        dst.write(data, 1)
    return path


def grid_nodata_report(grids: Dict[str, GridLike]) -> pd.DataFrame:
    """Quick no-data report for a set of named grids.

    Returns one row per grid with its shape and valid / no-data counts.
    Useful before calling :func:`predict_raster`.
    """
    rows = []
    for name, obj in grids.items():
        g = _as_grid(obj)
        valid = g.valid_mask()
        rows.append(
            {
                "grid": name,
                "nrows": g.shape[0],
                "ncols": g.shape[1],
                "valid_cells": int(valid.sum()),
                "nodata_cells": int((~valid).sum()),
            }
        )
    return pd.DataFrame(rows)


# ---------------------------------------------------------------------
# Spatial prediction
# ---------------------------------------------------------------------


def _check_same_shape(grids: Sequence[RasterGrid]) -> None:
    shapes = {g.shape for g in grids}
    if len(shapes) > 1:
        raise ShapeMismatchError(f"Grids have differing shapes: {sorted(shapes)}")


def predict_raster(
    grids: Sequence[RasterGrid],
    model: FittedModel,
    *,
    verbose: bool = False,
) -> RasterGrid:
    """Apply a fitted linear model cell by cell over aligned covariate grids.

    Parameters
    ----------
    grids :
        One grid per covariate, in ``model.covariate_names`` order.
    model :
        Fitted (or published-coefficient) linear model.
    verbose :
        Print a one-line summary of valid / no-data cells.

    Returns
    -------
    RasterGrid
        Same shape, georeference and sentinel as ``grids[0]``. A cell is
        no-data where any input cell is no-data; elsewhere it holds
        ``intercept + sum(coef_i * grid_i)``.

    Raises
    ------
    ShapeMismatchError
        If the number of grids differs from the number of covariates or the
        grids do not share one shape.
    """
    grids = list(grids)
    if len(grids) != model.n_covariates:
        raise ShapeMismatchError(
            f"Model expects {model.n_covariates} covariate grids "
            f"({list(model.covariate_names)}), got {len(grids)}."
        )
    _check_same_shape(grids)

    ref = grids[0]
    # Flatten, keep only cells valid in every grid, predict, scatter back.
    valid = np.logical_and.reduce([g.valid_mask().ravel() for g in grids])
    X = np.column_stack([g.values.ravel()[valid] for g in grids])

    out = np.full(ref.values.size, ref.nodata, dtype=float)
    if X.shape[0]:
        out[valid] = model.predict(X)

    if verbose:
        print(
            f"[raster-predict] {int(valid.sum())} valid cells, "
            f"{int((~valid).sum())} no-data cells, grid {ref.shape[0]} × {ref.shape[1]}"
        )
    return ref.like(out.reshape(ref.shape))


# ---------------------------------------------------------------------
# Categorical masks
# ---------------------------------------------------------------------


def mask_by_category(categorical_grid: GridLike, keep_codes: Iterable[int]) -> np.ndarray:
    """Boolean mask of cells whose category code is in *keep_codes*.

    No-data cells of the categorical grid are never kept.
    """
    g = _as_grid(categorical_grid)
    codes = [int(c) for c in keep_codes]
    return np.isin(g.values, codes) & g.valid_mask()


def apply_mask(
    prediction: RasterGrid,
    mask: Union[np.ndarray, GridLike],
) -> RasterGrid:
    """Restrict *prediction* to the valid cells of *mask*.

    Parameters
    ----------
    prediction :
        Prediction grid.
    mask :
        Boolean array (``True`` = keep), or a grid (plain or categorical)
        whose data cells are kept.

    Returns
    -------
    RasterGrid
        New grid equal to *prediction* where the mask is valid and no-data
        elsewhere.

    Raises
    ------
    ShapeMismatchError
        If *mask* and *prediction* differ in shape.
    """
    if isinstance(mask, (RasterGrid, CategoricalRaster)):
        keep = _as_grid(mask).valid_mask()
    else:
        keep = np.asarray(mask, dtype=bool)
    if keep.shape != prediction.shape:
        raise ShapeMismatchError(
            f"Mask shape {keep.shape} does not match prediction shape {prediction.shape}."
        )
    out = np.where(keep, prediction.values, prediction.nodata)
    return prediction.like(out)
