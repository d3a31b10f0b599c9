# tests/test_plotting.py

import matplotlib

matplotlib.use("Agg", force=True)

import numpy as np
import pandas as pd
import pytest
from matplotlib import pyplot as plt

from DeerDensityPy.crossval import cross_validate_once
from DeerDensityPy.plotting import (
    BandOptions,
    plot_fit_with_bands,
    plot_observed_vs_predicted,
    plot_raster,
)
from DeerDensityPy.raster import RasterGrid
from DeerDensityPy.regression import fit_linear_model


@pytest.fixture
def xy():
    rng = np.random.default_rng(1)
    x = rng.uniform(0, 100, 30)
    y = 0.5 + 0.02 * x + rng.normal(0, 0.2, 30)
    return x, y


def test_fit_plot_with_bands(xy):
    x, y = xy
    m = fit_linear_model(y, x, covariate_names=["NewBA"], response_name="logDD")
    fig, ax = plot_fit_with_bands(m, x, y)

    assert isinstance(fig, plt.Figure)
    # scatter + band
    assert len(ax.collections) == 2
    assert len(ax.lines) == 1
    assert ax.get_legend() is not None
    assert ax.get_xlabel() == "NewBA"
    assert ax.get_ylabel() == "logDD"
    plt.close(fig)


def test_fit_plot_without_bands(xy):
    x, y = xy
    m = fit_linear_model(y, x)
    fig, ax = plot_fit_with_bands(m, x, y, BandOptions(draw_bands=False, segment_count=10))

    assert len(ax.collections) == 1
    assert ax.get_legend() is None
    assert len(ax.lines[0].get_xdata()) == 10
    plt.close(fig)


def test_fit_plot_rejects_single_segment(xy):
    x, y = xy
    m = fit_linear_model(y, x)
    with pytest.raises(ValueError):
        plot_fit_with_bands(m, x, y, BandOptions(segment_count=1))


def test_fit_plot_draws_on_given_axes(xy):
    x, y = xy
    m = fit_linear_model(y, x)
    fig, axes = plt.subplots(1, 2)
    out_fig, out_ax = plot_fit_with_bands(m, x, y, ax=axes[1])
    assert out_fig is fig
    assert out_ax is axes[1]
    assert len(axes[0].collections) == 0
    plt.close(fig)


def test_observed_vs_predicted(xy):
    x, y = xy
    table = pd.DataFrame({"y": y, "x": x})
    cv = cross_validate_once(table, "y", ["x"], k=5, seed=0)
    fig, ax = plot_observed_vs_predicted(cv, title="CV")
    assert ax.get_title() == "CV"
    assert len(ax.collections) == 1
    assert ax.collections[0].get_offsets().shape == (30, 2)
    plt.close(fig)


def test_plot_raster_masks_nodata():
    g = RasterGrid(
        np.array([[1.0, -9999.0], [3.0, 4.0]]),
        xllcorner=100.0,
        yllcorner=50.0,
        cellsize=10.0,
    )
    fig, ax = plot_raster(g, title="logDD", colorbar_label="log deer density")
    images = ax.get_images()
    assert len(images) == 1
    arr = images[0].get_array()
    assert np.ma.is_masked(arr)
    assert arr.mask[0, 1]
    assert tuple(images[0].get_extent()) == (100.0, 120.0, 50.0, 70.0)
    plt.close(fig)


def test_fit_plot_of_published_coefficients_without_bands(xy):
    """Models without a covariance matrix can still be drawn as a line."""
    from DeerDensityPy.regression import FittedModel

    x, y = xy
    m = FittedModel.from_coefficients(1.0, [2.0], ["NewBA"], response_name="logDD")
    fig, ax = plot_fit_with_bands(m, x, y, BandOptions(draw_bands=False, segment_count=5))

    line = ax.lines[0]
    np.testing.assert_allclose(line.get_ydata(), 1.0 + 2.0 * line.get_xdata())
    assert len(ax.collections) == 1
    assert ax.get_title() == ""
    plt.close(fig)


def test_fit_plot_of_published_coefficients_with_bands_raises(xy):
    from DeerDensityPy.regression import FittedModel

    x, y = xy
    m = FittedModel.from_coefficients(1.0, [2.0], ["NewBA"])
    with pytest.raises(ValueError):
        plot_fit_with_bands(m, x, y)
    plt.close("all")
