"""
Tests for the exception hierarchy.

Validates:
    - Every library error derives from RegSelectError
    - Diagnostic attributes are stored
"""

import pytest

from pyregselect.core.exceptions import (
    ConvergenceError,
    DimensionError,
    FormulaError,
    NumericalError,
    RegSelectError,
    SingularMatrixError,
    ValidationError,
)


class TestHierarchy:

    @pytest.mark.parametrize("exc_cls", [
        ValidationError, DimensionError, FormulaError,
        NumericalError, SingularMatrixError,
    ])
    def test_derives_from_root(self, exc_cls):
        assert issubclass(exc_cls, RegSelectError)

    def test_convergence_is_not_numerical(self):
        assert issubclass(ConvergenceError, RegSelectError)
        assert not issubclass(ConvergenceError, NumericalError)

    def test_input_errors_are_validation_errors(self):
        assert issubclass(DimensionError, ValidationError)
        assert issubclass(FormulaError, ValidationError)

    def test_catch_all_with_root(self):
        with pytest.raises(RegSelectError):
            raise DimensionError("X: expected 2D array")


class TestAttributes:

    def test_formula_error(self):
        e = FormulaError("unknown variable", formula="y ~ z", token="z")
        assert e.formula == "y ~ z"
        assert e.token == "z"
        assert str(e) == "unknown variable"

    def test_formula_error_defaults(self):
        e = FormulaError("bad")
        assert e.formula is None
        assert e.token is None

    def test_singular_matrix_error(self):
        e = SingularMatrixError("singular", matrix_name="X'X", rank=2, expected_rank=3)
        assert e.matrix_name == "X'X"
        assert e.rank == 2
        assert e.expected_rank == 3

    def test_convergence_error(self):
        e = ConvergenceError(
            "IRLS did not converge", iterations=25,
            final_change=1e-3, reason='max_iterations', threshold=1e-8,
        )
        assert e.iterations == 25
        assert e.final_change == 1e-3
        assert e.reason == 'max_iterations'
        assert e.threshold == 1e-8
