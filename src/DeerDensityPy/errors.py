# SPDX-License-Identifier: MIT
"""
Exception types raised by DeerDensityPy.

All of them are validation failures detected before any computation starts.
They subclass :class:`ValueError`, so code that already guards calls with
``except ValueError`` keeps working.
"""

from __future__ import annotations


class AnalysisError(ValueError):
    """Base class for DeerDensityPy validation errors."""


class DimensionMismatchError(AnalysisError):
    """Raised when sequences or columns that must align have different lengths."""


class SingularityError(AnalysisError):
    """Raised when a regression design matrix is rank-deficient."""


class DegenerateInputError(AnalysisError):
    """Raised when a correlation input is empty, too short or constant."""


class ShapeMismatchError(AnalysisError):
    """Raised when raster grids of different shape are combined."""


__all__ = [
    "AnalysisError",
    "DimensionMismatchError",
    "SingularityError",
    "DegenerateInputError",
    "ShapeMismatchError",
]
