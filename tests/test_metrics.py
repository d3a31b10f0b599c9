# tests/test_metrics.py

import numpy as np
import pytest

from DeerDensityPy.errors import DegenerateInputError, DimensionMismatchError
from DeerDensityPy.metrics import (
    kendall,
    kendall_test,
    pearson,
    pearson_test,
    regression_metrics,
)


def test_pearson_of_sequence_with_itself_is_one():
    x = [0.3, 1.2, 2.5, 2.9, 4.4, 7.0]
    assert pearson(x, x) == pytest.approx(1.0, abs=1e-12)


def test_pearson_of_sequence_with_its_negation_is_minus_one():
    x = np.array([0.3, 1.2, 2.5, 2.9, 4.4, 7.0])
    assert pearson(x, -x) == pytest.approx(-1.0, abs=1e-12)


def test_pearson_matches_numpy_corrcoef():
    rng = np.random.default_rng(3)
    x = rng.normal(size=40)
    y = 0.4 * x + rng.normal(size=40)
    assert pearson(x, y) == pytest.approx(np.corrcoef(x, y)[0, 1], rel=1e-10)


def test_pearson_keeps_sign():
    """r is returned signed; squaring is left to the caller."""
    x = np.arange(10, dtype=float)
    y = -2.0 * x + np.sin(x)
    r = pearson(x, y)
    assert r < 0
    assert -1.0 <= r <= 1.0


def test_kendall_increasing_sequence_with_itself_is_one():
    x = np.arange(1, 21, dtype=float)
    assert kendall(x, x) == pytest.approx(1.0)


def test_kendall_reversed_order_is_minus_one():
    x = np.arange(1, 8, dtype=float)
    assert kendall(x, x[::-1]) == pytest.approx(-1.0)


def test_tests_return_statistic_and_p_value():
    rng = np.random.default_rng(11)
    x = rng.normal(size=30)
    y = x + 0.1 * rng.normal(size=30)
    r, p_r = pearson_test(x, y)
    tau, p_tau = kendall_test(x, y)
    assert r > 0.9 and tau > 0.7
    assert 0.0 <= p_r < 1e-6
    assert 0.0 <= p_tau < 1e-6


@pytest.mark.parametrize("func", [pearson, kendall])
def test_constant_sequence_raises(func):
    with pytest.raises(DegenerateInputError):
        func([2.0, 2.0, 2.0, 2.0], [1.0, 2.0, 3.0, 4.0])
    with pytest.raises(DegenerateInputError):
        func([1.0, 2.0, 3.0, 4.0], [5.0, 5.0, 5.0, 5.0])


@pytest.mark.parametrize("func", [pearson, kendall])
def test_empty_or_single_value_raises(func):
    with pytest.raises(DegenerateInputError):
        func([], [])
    with pytest.raises(DegenerateInputError):
        func([1.0], [1.0])


@pytest.mark.parametrize("func", [pearson, kendall, regression_metrics])
def test_length_mismatch_raises(func):
    with pytest.raises(DimensionMismatchError):
        func([1.0, 2.0, 3.0], [1.0, 2.0])


def test_regression_metrics_perfect_match():
    """Perfect match should give MAE=0, RMSE=0, r=1, R2=1, tau=1."""
    y_true = [0.0, 1.0, 2.0, 3.0, 4.0]
    y_pred = [0.0, 1.0, 2.0, 3.0, 4.0]

    m = regression_metrics(y_true, y_pred)

    assert set(m.keys()) == {"MAE", "RMSE", "r", "R2", "tau"}
    assert m["MAE"] == pytest.approx(0.0, abs=1e-12)
    assert m["RMSE"] == pytest.approx(0.0, abs=1e-12)
    assert m["r"] == pytest.approx(1.0, rel=1e-9)
    assert m["R2"] == pytest.approx(1.0, rel=1e-9)
    assert m["tau"] == pytest.approx(1.0)


def test_regression_metrics_r2_is_squared_pearson():
    y_true = np.array([1.0, 2.0, 3.0, 4.0, 5.0, 6.0])
    y_pred = np.array([6.0, 4.5, 4.0, 3.0, 2.5, 1.0])
    m = regression_metrics(y_true, y_pred)
    assert m["r"] < 0
    assert m["R2"] == pytest.approx(m["r"] ** 2)
    assert m["MAE"] == pytest.approx(np.mean(np.abs(y_true - y_pred)))
