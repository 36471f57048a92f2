"""
Tests for model-matrix construction: treatment coding, interactions,
NA handling, and encoding of new data.
"""

import numpy as np
import pytest

from pyregselect.core.datasource import DataSource
from pyregselect.core.exceptions import FormulaError, ValidationError
from pyregselect.formula import INTERCEPT, build_model_matrix


@pytest.fixture
def table():
    return DataSource.from_arrays(
        y=np.array([1.0, 2.0, 3.0, 4.0, 5.0, 6.0]),
        x=np.array([0.5, 1.0, 1.5, 2.0, 2.5, 3.0]),
        region=np.array(['ne', 'nw', 'se', 'ne', 'nw', 'se']),
        smoker=np.array(['no', 'yes', 'no', 'yes', 'no', 'yes']),
    )


class TestTreatmentCoding:

    def test_reference_level_dropped(self, table):
        mm = build_model_matrix("y ~ x + region", table)
        assert mm.column_names == (INTERCEPT, 'x', 'regionnw', 'regionse')
        np.testing.assert_array_equal(mm.X[:, 2], [0, 1, 0, 0, 1, 0])
        np.testing.assert_array_equal(mm.X[:, 3], [0, 0, 1, 0, 0, 1])

    def test_relevel_changes_columns(self, table):
        mm = build_model_matrix("y ~ region", table.relevel('region', 'se'))
        assert mm.column_names == (INTERCEPT, 'regionne', 'regionnw')

    def test_no_intercept_keeps_all_levels(self, table):
        mm = build_model_matrix("y ~ region - 1", table)
        assert mm.column_names == ('regionne', 'regionnw', 'regionse')
        np.testing.assert_array_equal(mm.X.sum(axis=1), np.ones(6))

    def test_assign_map(self, table):
        mm = build_model_matrix("y ~ x + region", table)
        assert mm.assign == (0, 1, 2, 2)
        assert mm.term_columns('region') == [2, 3]


class TestInteractions:

    def test_numeric_by_factor(self, table):
        mm = build_model_matrix("y ~ smoker * x", table)
        assert mm.column_names == (INTERCEPT, 'smokeryes', 'x', 'smokeryes:x')
        np.testing.assert_allclose(mm.X[:, 3], mm.X[:, 1] * mm.X[:, 2])

    def test_interaction_with_margin_uses_contrasts(self, table):
        mm = build_model_matrix("y ~ x + x:smoker", table)
        assert mm.column_names == (INTERCEPT, 'x', 'x:smokeryes')

    def test_interaction_without_margin_codes_all_levels(self, table):
        mm = build_model_matrix("y ~ smoker:x", table)
        assert mm.column_names == (INTERCEPT, 'smokerno:x', 'smokeryes:x')


class TestTransforms:

    def test_log_response(self, table):
        mm = build_model_matrix("log(y) ~ x", table)
        np.testing.assert_allclose(mm.y, np.log(table['y']))

    def test_power_term(self, table):
        mm = build_model_matrix("y ~ x + I(x^2)", table)
        np.testing.assert_allclose(mm.X[:, 2], table['x'] ** 2)

    def test_log_of_nonpositive(self):
        ds = DataSource.from_arrays(y=np.array([1.0, 2.0]), x=np.array([0.0, 1.0]))
        with pytest.raises(ValidationError, match="strictly positive"):
            build_model_matrix("y ~ log(x)", ds)

    def test_transform_of_factor(self, table):
        with pytest.raises(FormulaError):
            build_model_matrix("y ~ log(region)", table)


class TestMissing:

    def test_rows_with_na_dropped(self):
        ds = DataSource.from_arrays(
            y=np.array([1.0, 2.0, np.nan, 4.0]),
            x=np.array([1.0, np.nan, 3.0, 4.0]),
        )
        mm = build_model_matrix("y ~ x", ds)
        assert mm.n == 2
        assert mm.n_dropped == 2
        np.testing.assert_array_equal(mm.row_mask, [True, False, False, True])

    def test_unused_columns_ignored_for_na(self):
        ds = DataSource.from_arrays(
            y=np.array([1.0, 2.0, 3.0]),
            x=np.array([1.0, 2.0, 4.0]),
            z=np.array([np.nan, np.nan, 1.0]),
        )
        assert build_model_matrix("y ~ x", ds).n == 3

    def test_unused_factor_levels_dropped(self):
        ds = DataSource.from_arrays(
            y=np.array([1.0, 2.0, 3.0, 4.0]),
            g=np.array(['a', 'b', 'c', 'a']),
        )
        ds = ds.assign(y=np.array([1.0, 2.0, np.nan, 4.0]))
        mm = build_model_matrix("y ~ g", ds)
        assert mm.column_names == (INTERCEPT, 'gb')

    def test_factor_response_coded_against_reference(self):
        ds = DataSource.from_arrays(
            survived=np.array(['no', 'yes', 'yes', 'no']),
            x=np.array([1.0, 2.0, 3.0, 4.0]),
        )
        mm = build_model_matrix("survived ~ x", ds)
        np.testing.assert_array_equal(mm.y, [0.0, 1.0, 1.0, 0.0])
        assert mm.response_levels == ('no', 'yes')


class TestErrors:

    def test_unknown_variable(self, table):
        with pytest.raises(FormulaError, match="not found"):
            build_model_matrix("y ~ nothere", table)

    def test_unknown_response(self, table):
        with pytest.raises(FormulaError, match="Response"):
            build_model_matrix("nothere ~ x", table)

    def test_single_level_factor(self):
        ds = DataSource.from_arrays(y=np.array([1.0, 2.0]), g=np.array(['a', 'a']))
        with pytest.raises(ValidationError, match="2 or more levels"):
            build_model_matrix("y ~ g", ds)


class TestEncoding:

    def test_new_data_encoded_like_fit(self, table):
        mm = build_model_matrix("y ~ x + region", table)
        new = DataSource.from_arrays(
            x=np.array([1.0, 2.0]),
            region=np.array(['se', 'ne']),
        )
        X, complete = mm.encoding.encode_new(new)
        np.testing.assert_array_equal(X, [[1, 1, 0, 1], [1, 2, 0, 0]])
        assert complete.all()

    def test_new_level_rejected(self, table):
        mm = build_model_matrix("y ~ region", table)
        new = DataSource.from_arrays(region=np.array(['sw']))
        with pytest.raises(ValidationError, match="new levels"):
            mm.encoding.encode_new(new)

    def test_missing_rows_are_nan(self, table):
        mm = build_model_matrix("y ~ x", table)
        new = DataSource.from_arrays(x=np.array([1.0, np.nan]))
        X, complete = mm.encoding.encode_new(new)
        assert complete.tolist() == [True, False]
        assert np.isnan(X[1]).all()
