# SPDX-License-Identifier: MIT
"""
Default settings for the deer-density analysis.

Column names follow the sample table distributed with Millington et al.
(2010). Every public function takes these as keyword defaults, so a
different table layout only needs different arguments, not edits here.
"""

from __future__ import annotations

from typing import Dict, List

# ============================================================================
# SAMPLE TABLE COLUMNS
# ============================================================================

RESPONSE_COL = "logDD"

COVARIATE_COLS: List[str] = [
    "DistanceLC",  # distance to lowland conifer
    "NewDBH",      # mean tree diameter at breast height
    "NewBA",       # basal area
    "LCProp",      # lowland conifer proportion
    "SnowDepth",
]

# ============================================================================
# MODEL FORMULAS (name -> ordered covariates)
# ============================================================================
# Covariate order matters: grids passed to the spatial predictor must follow it.

FULL_MODEL: List[str] = list(COVARIATE_COLS)

DEFAULT_FORMULAS: Dict[str, List[str]] = {
    **{col: [col] for col in COVARIATE_COLS},
    "full": FULL_MODEL,
}

# ============================================================================
# CROSS-VALIDATION
# ============================================================================

N_FOLDS = 5
N_REPETITIONS = 100
BASE_SEED = 0

# Multiplier applied to the *variance* of the repeated-CV statistics, as in
# the reference analysis. Not a standard 95 % half-width; see
# RepeatedCVResult.standard_halfwidths().
CI_MULTIPLIER = 1.96

# ============================================================================
# RASTERS
# ============================================================================

NODATA_VALUE = -9999.0
