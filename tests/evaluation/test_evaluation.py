"""
Tests for classification tables and prediction accuracy.
"""

import numpy as np
import pytest

from pyregselect.core.exceptions import DimensionError, ValidationError
from pyregselect.evaluation import classify, confusion_matrix, prediction_metrics
from pyregselect.regression import glm, lm


class TestConfusionMatrix:

    @pytest.fixture
    def cm(self):
        actual = [0, 0, 0, 1, 1, 1, 1, 0]
        prob = [0.1, 0.6, 0.3, 0.8, 0.4, 0.9, 0.7, 0.2]
        return confusion_matrix(actual, prob)

    def test_layout(self, cm):
        # rows predicted, columns actual
        np.testing.assert_array_equal(cm.table.to_numpy(), [[3, 1], [1, 3]])
        assert cm.table.index.name == 'predicted'
        assert cm.table.columns.name == 'actual'

    def test_rates(self, cm):
        assert cm.n == 8
        assert cm.accuracy == pytest.approx(0.75)
        assert cm.misclassification == pytest.approx(0.25)
        assert cm.sensitivity == pytest.approx(0.75)
        assert cm.specificity == pytest.approx(0.75)
        assert cm.precision == pytest.approx(0.75)

    def test_threshold_is_strict(self):
        cm = confusion_matrix([0, 1], [0.5, 0.5])
        np.testing.assert_array_equal(cm.table.to_numpy(), [[1, 1], [0, 0]])
        assert np.isnan(cm.precision)

    def test_higher_threshold(self):
        cm = confusion_matrix([0, 1, 1], [0.2, 0.6, 0.8], threshold=0.7)
        assert cm.table.loc['1', '1'] == 1
        assert cm.table.loc['0', '1'] == 1

    def test_labels(self):
        cm = confusion_matrix([0, 1], [0.2, 0.9], labels=('died', 'survived'))
        assert list(cm.table.columns) == ['died', 'survived']

    def test_missing_left_out(self):
        with pytest.warns(UserWarning, match="1 observations with missing values"):
            cm = confusion_matrix([0, 1, np.nan], [0.2, 0.9, 0.5])
        assert cm.n == 2
        assert cm.info['n_missing'] == 1

    def test_summary(self, cm):
        s = cm.summary()
        assert s.startswith("Confusion matrix (threshold = 0.5)")
        assert "sensitivity" in s

    def test_actual_must_be_binary(self):
        with pytest.raises(ValidationError, match="0/1"):
            confusion_matrix([0, 2], [0.1, 0.9])

    def test_probabilities_in_range(self):
        with pytest.raises(ValidationError, match=r"\[0, 1\]"):
            confusion_matrix([0, 1], [0.1, 1.5])

    def test_length_mismatch(self):
        with pytest.raises(DimensionError):
            confusion_matrix([0, 1, 1], [0.1, 0.9])

    @pytest.mark.parametrize("threshold", [0.0, 1.0, -0.2])
    def test_bad_threshold(self, threshold):
        with pytest.raises(ValidationError, match="threshold"):
            confusion_matrix([0, 1], [0.1, 0.9], threshold=threshold)


class TestClassify:

    def test_matches_fitted_probabilities(self, logistic_data):
        m = glm("y ~ x1 + x2", logistic_data, family='binomial')
        np.testing.assert_array_equal(classify(m), (m.fitted_values > 0.5).astype(float))

    def test_new_data_with_missing(self, logistic_data):
        m = glm("y ~ x1 + x2", logistic_data, family='binomial')
        out = classify(m, {'x1': [3.0, np.nan], 'x2': [0.0, 0.0]})
        assert out[0] == 1.0
        assert np.isnan(out[1])

    def test_confusion_of_training_fit(self, logistic_data):
        m = glm("y ~ x1 + x2 + group", logistic_data, family='binomial')
        cm = confusion_matrix(m.y, m.fitted_values)
        assert cm.n == m.nobs
        assert cm.accuracy > 0.6

    def test_needs_binomial_glm(self, mtcars):
        with pytest.raises(ValidationError, match="binomial glm"):
            classify(lm("am ~ wt", mtcars))


class TestPredictionMetrics:

    def test_values(self):
        result = prediction_metrics([1.0, 2.0, 3.0, 4.0], [1.5, 2.0, 2.5, 4.0])
        assert result.rmse == pytest.approx(np.sqrt(0.5 / 4))
        assert result.mae == pytest.approx(0.25)
        assert result.r_squared == pytest.approx(1 - 0.5 / 5.0)
        np.testing.assert_allclose(result.residuals, [-0.5, 0.0, 0.5, 0.0])

    def test_in_sample_matches_r_squared(self, mtcars):
        m = lm("mpg ~ wt + hp", mtcars)
        assert prediction_metrics(m.y, m.fitted_values).r_squared == pytest.approx(m.r_squared)

    def test_missing_predictions_dropped(self):
        with pytest.warns(UserWarning):
            result = prediction_metrics([1.0, 2.0, 3.0], [1.0, np.nan, 3.0])
        assert result.n == 2

    def test_too_few_pairs(self):
        with pytest.raises(ValidationError, match="at least 2"):
            prediction_metrics([1.0], [1.0])

    def test_series_and_summary(self):
        result = prediction_metrics([1.0, 2.0, 3.0], [1.1, 1.9, 3.2])
        assert list(result.to_series().index) == ['RMSE', 'MAE', 'R2']
        assert "n: 3" in result.summary()
