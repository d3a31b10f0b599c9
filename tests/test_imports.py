import importlib


def test_import_package():
    pkg = importlib.import_module("DeerDensityPy")
    assert hasattr(pkg, "__version__")


def test_public_api_is_exported():
    pkg = importlib.import_module("DeerDensityPy")
    for name in pkg.__all__:
        assert hasattr(pkg, name), name


def test_errors_are_value_errors():
    pkg = importlib.import_module("DeerDensityPy")
    for cls in (
        pkg.DimensionMismatchError,
        pkg.SingularityError,
        pkg.DegenerateInputError,
        pkg.ShapeMismatchError,
    ):
        assert issubclass(cls, pkg.AnalysisError)
        assert issubclass(cls, ValueError)
