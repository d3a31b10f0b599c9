# tests/test_raster.py

import numpy as np
import pandas as pd
import pytest

from DeerDensityPy.errors import ShapeMismatchError
from DeerDensityPy.raster import (
    CategoricalRaster,
    RasterGrid,
    apply_mask,
    grid_nodata_report,
    mask_by_category,
    predict_raster,
    read_ascii_grid,
    write_ascii_grid,
)
from DeerDensityPy.regression import FittedModel

ND = -9999.0


def _model(intercept, slopes, names=None):
    names = names or [f"x{i + 1}" for i in range(len(slopes))]
    return FittedModel.from_coefficients(intercept, slopes, names, response_name="logDD")


# ---------------------------------------------------------------------
# Containers
# ---------------------------------------------------------------------


def test_raster_grid_requires_2d():
    with pytest.raises(ShapeMismatchError):
        RasterGrid(np.arange(4.0))


def test_valid_mask_treats_sentinel_and_nan_as_missing():
    g = RasterGrid(np.array([[1.0, ND], [np.nan, 4.0]]), nodata=ND)
    np.testing.assert_array_equal(g.valid_mask(), [[True, False], [False, True]])
    assert g.to_masked().count() == 2


def test_codes_for_resolves_labels():
    cat = CategoricalRaster(
        RasterGrid(np.array([[1.0, 6.0]])),
        labels={1: "water", 5: "open", 6: "mixed forest"},
    )
    assert cat.codes_for(["mixed forest", "open"]) == {5, 6}
    with pytest.raises(KeyError):
        cat.codes_for(["tundra"])


# ---------------------------------------------------------------------
# predict_raster
# ---------------------------------------------------------------------


def test_predict_raster_single_covariate_with_nodata():
    g = RasterGrid(np.array([[1.0, ND], [3.0, 4.0]]), nodata=ND)
    out = predict_raster([g], _model(1.0, [2.0]))
    np.testing.assert_allclose(out.values, [[3.0, ND], [7.0, 9.0]])
    assert out.nodata == ND
    assert out.shape == (2, 2)


def test_predict_raster_single_nodata_cell_stays_nodata():
    g = RasterGrid(np.array([[ND]]), nodata=ND)
    out = predict_raster([g], _model(0.5, [3.0]))
    assert out.values[0, 0] == ND


def test_predict_raster_treats_nan_as_nodata():
    g = RasterGrid(np.array([[np.nan, 2.0]]), nodata=ND)
    out = predict_raster([g], _model(0.0, [1.0]))
    np.testing.assert_allclose(out.values, [[ND, 2.0]])


def test_nodata_in_any_covariate_propagates():
    a = RasterGrid(np.array([[1.0, 2.0, 3.0]]), nodata=ND)
    b = RasterGrid(np.array([[10.0, ND, 30.0]]), nodata=ND)
    out = predict_raster([a, b], _model(1.0, [1.0, 0.1]))
    np.testing.assert_allclose(out.values, [[3.0, ND, 7.0]])


def test_predict_raster_keeps_georeference_of_first_grid():
    a = RasterGrid(np.ones((2, 3)), nodata=-1.0, xllcorner=500.0, yllcorner=40.0, cellsize=25.0)
    b = RasterGrid(np.ones((2, 3)))
    out = predict_raster([a, b], _model(0.0, [1.0, 1.0]))
    assert (out.xllcorner, out.yllcorner, out.cellsize, out.nodata) == (500.0, 40.0, 25.0, -1.0)
    np.testing.assert_allclose(out.values, 2.0)


def test_predict_raster_all_nodata():
    g = RasterGrid(np.full((2, 2), ND))
    out = predict_raster([g], _model(1.0, [1.0]))
    assert not out.valid_mask().any()


def test_predict_raster_matches_model_predict():
    rng = np.random.default_rng(5)
    grids = [RasterGrid(rng.uniform(0, 10, (4, 5))) for _ in range(3)]
    m = _model(0.3, [0.1, -0.2, 0.05])
    out = predict_raster(grids, m)
    X = np.column_stack([g.values.ravel() for g in grids])
    np.testing.assert_allclose(out.values.ravel(), m.predict(X))


def test_predict_raster_wrong_grid_count_raises():
    g = RasterGrid(np.ones((2, 2)))
    with pytest.raises(ShapeMismatchError):
        predict_raster([g], _model(0.0, [1.0, 1.0]))


def test_predict_raster_shape_mismatch_raises():
    a = RasterGrid(np.ones((2, 2)))
    b = RasterGrid(np.ones((2, 3)))
    with pytest.raises(ShapeMismatchError):
        predict_raster([a, b], _model(0.0, [1.0, 1.0]))


def test_predict_raster_verbose_prints_summary(capsys):
    g = RasterGrid(np.array([[1.0, ND]]))
    predict_raster([g], _model(0.0, [1.0]), verbose=True)
    out = capsys.readouterr().out
    assert "[raster-predict]" in out
    assert "1 valid cells" in out


# ---------------------------------------------------------------------
# Masks
# ---------------------------------------------------------------------


def test_mask_by_category_keeps_selected_codes():
    cat = RasterGrid(np.array([[1.0, 2.0, 6.0, 6.0, 5.0]]))
    mask = mask_by_category(cat, {6})
    np.testing.assert_array_equal(mask, [[False, False, True, True, False]])


def test_mask_by_category_never_keeps_nodata():
    cat = CategoricalRaster(RasterGrid(np.array([[6.0, ND]]), nodata=ND))
    mask = mask_by_category(cat, [6, int(ND)])
    np.testing.assert_array_equal(mask, [[True, False]])


def test_apply_mask_sets_unkept_cells_to_nodata():
    pred = RasterGrid(np.array([[1.0, 2.0], [3.0, 4.0]]), nodata=ND)
    out = apply_mask(pred, np.array([[True, False], [False, True]]))
    np.testing.assert_allclose(out.values, [[1.0, ND], [ND, 4.0]])
    # input untouched
    np.testing.assert_allclose(pred.values, [[1.0, 2.0], [3.0, 4.0]])


def test_apply_mask_accepts_grid_mask():
    pred = RasterGrid(np.array([[1.0, 2.0]]), nodata=ND)
    mask = RasterGrid(np.array([[ND, 0.0]]), nodata=ND)
    out = apply_mask(pred, mask)
    np.testing.assert_allclose(out.values, [[ND, 2.0]])


def test_apply_mask_shape_mismatch_raises():
    pred = RasterGrid(np.ones((2, 2)))
    with pytest.raises(ShapeMismatchError):
        apply_mask(pred, np.ones((3, 2), dtype=bool))


# ---------------------------------------------------------------------
# Reporting and I/O
# ---------------------------------------------------------------------


def test_grid_nodata_report_counts_cells():
    grids = {
        "a": RasterGrid(np.array([[1.0, ND], [ND, 2.0]])),
        "lc": CategoricalRaster(RasterGrid(np.array([[6.0, 6.0], [1.0, 1.0]]))),
    }
    rep = grid_nodata_report(grids)
    assert isinstance(rep, pd.DataFrame)
    assert rep.columns.tolist() == ["grid", "nrows", "ncols", "valid_cells", "nodata_cells"]
    assert rep.set_index("grid").loc["a", "nodata_cells"] == 2
    assert rep.set_index("grid").loc["lc", "valid_cells"] == 4


def test_read_ascii_grid_parses_header_and_values(tmp_path):
    path = tmp_path / "snow.asc"
    path.write_text(
        "ncols 3\n"
        "nrows 2\n"
        "xllcorner 100.0\n"
        "yllcorner 200.0\n"
        "cellsize 10.0\n"
        "NODATA_value -9999\n"
        "1 2 -9999\n"
        "4 5 6\n"
    )
    g = read_ascii_grid(str(path))
    assert g.shape == (2, 3)
    assert g.nodata == -9999.0
    assert g.xllcorner == pytest.approx(100.0)
    assert g.yllcorner == pytest.approx(200.0)
    assert g.cellsize == pytest.approx(10.0)
    np.testing.assert_allclose(g.values, [[1, 2, -9999], [4, 5, 6]])
    np.testing.assert_array_equal(g.valid_mask(), [[True, True, False], [True, True, True]])


def test_write_then_read_ascii_grid(tmp_path):
    g = RasterGrid(
        np.array([[0.5, ND, 2.25], [np.nan, 1.0, -3.5]]),
        nodata=ND,
        xllcorner=1000.0,
        yllcorner=2000.0,
        cellsize=30.0,
    )
    path = write_ascii_grid(g, str(tmp_path / "out" / "pred.asc"))
    back = read_ascii_grid(path)

    assert back.shape == g.shape
    assert back.xllcorner == pytest.approx(1000.0)
    assert back.yllcorner == pytest.approx(2000.0)
    assert back.cellsize == pytest.approx(30.0)
    np.testing.assert_array_equal(back.valid_mask(), g.valid_mask())
    np.testing.assert_allclose(back.values[g.valid_mask()], g.values[g.valid_mask()])


def test_write_ascii_grid_keeps_double_precision(tmp_path):
    g = RasterGrid(np.array([[1234.56789, 0.1], [ND, -2.0 / 3.0]]), nodata=ND)
    back = read_ascii_grid(write_ascii_grid(g, str(tmp_path / "precise.asc")))
    valid = g.valid_mask()
    np.testing.assert_allclose(back.values[valid], g.values[valid], rtol=1e-12)


def test_write_ascii_grid_float32_on_request(tmp_path):
    g = RasterGrid(np.array([[1234.56789]]))
    back = read_ascii_grid(write_ascii_grid(g, str(tmp_path / "f32.asc"), dtype="float32"))
    assert back.values[0, 0] == pytest.approx(1234.56789, rel=1e-6)


def test_apply_mask_accepts_categorical_raster():
    pred = RasterGrid(np.array([[1.0, 2.0, 3.0]]), nodata=ND)
    lc = CategoricalRaster(RasterGrid(np.array([[6.0, ND, 1.0]]), nodata=ND), labels={6: "forest"})
    out = apply_mask(pred, lc)
    np.testing.assert_allclose(out.values, [[1.0, ND, 3.0]])
