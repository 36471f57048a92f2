"""
Influence statistics checked against brute-force leave-one-out refits.
"""

import numpy as np
import pytest
from scipy import stats

from pyregselect.core.datasource import DataSource
from pyregselect.core.exceptions import ValidationError
from pyregselect.diagnostics import (
    cooks_distance,
    cooks_outliers,
    covratio,
    dffits,
    diagnostic_frame,
    hat_values,
    influence_measures,
    outlier_test,
    residual_summary,
    rstandard,
    rstudent,
)
from pyregselect.regression import glm, lm


def _leave_one_out(model):
    """Fitted values and residual sd from refitting without each row."""
    X, y = model.design.X, model.y
    n, p = X.shape
    preds = np.empty((n, n))
    sigmas = np.empty(n)
    for i in range(n):
        keep = np.arange(n) != i
        beta, *_ = np.linalg.lstsq(X[keep], y[keep], rcond=None)
        preds[i] = X @ beta
        resid = y[keep] - X[keep] @ beta
        sigmas[i] = np.sqrt(resid @ resid / (n - 1 - p))
    return preds, sigmas


@pytest.fixture
def mpg_model(mtcars):
    return lm("mpg ~ wt + hp", mtcars)


class TestLinearInfluence:

    def test_hat_values_trace(self, mpg_model):
        h = hat_values(mpg_model)
        assert h.sum() == pytest.approx(mpg_model.rank)
        assert np.all((h > 0) & (h < 1))

    def test_hat_values_match_projection(self, mpg_model):
        X = mpg_model.design.X
        H = X @ np.linalg.solve(X.T @ X, X.T)
        np.testing.assert_allclose(hat_values(mpg_model), np.diag(H), rtol=1e-10)

    def test_cooks_distance_brute_force(self, mpg_model):
        preds, _ = _leave_one_out(mpg_model)
        s2 = mpg_model.rss / mpg_model.df_residual
        expected = ((preds - mpg_model.fitted_values) ** 2).sum(axis=1) / (mpg_model.rank * s2)
        np.testing.assert_allclose(cooks_distance(mpg_model), expected, rtol=1e-8)

    def test_rstudent_brute_force(self, mpg_model):
        _, sigmas = _leave_one_out(mpg_model)
        h = mpg_model.hat_values
        expected = mpg_model.residuals / (sigmas * np.sqrt(1 - h))
        np.testing.assert_allclose(rstudent(mpg_model), expected, rtol=1e-8)

    def test_rstandard(self, mpg_model):
        s = np.sqrt(mpg_model.rss / mpg_model.df_residual)
        expected = mpg_model.residuals / (s * np.sqrt(1 - mpg_model.hat_values))
        np.testing.assert_allclose(rstandard(mpg_model), expected, rtol=1e-10)

    def test_dffits_brute_force(self, mpg_model):
        preds, sigmas = _leave_one_out(mpg_model)
        idx = np.arange(mpg_model.nobs)
        change = mpg_model.fitted_values - preds[idx, idx]
        expected = change / (sigmas * np.sqrt(mpg_model.hat_values))
        np.testing.assert_allclose(dffits(mpg_model), expected, rtol=1e-8)

    def test_covratio_brute_force(self, mpg_model):
        X = mpg_model.design.X
        n = X.shape[0]
        s2 = mpg_model.rss / mpg_model.df_residual
        full = np.linalg.det(s2 * np.linalg.inv(X.T @ X))
        _, sigmas = _leave_one_out(mpg_model)
        expected = np.empty(n)
        for i in range(n):
            keep = np.arange(n) != i
            expected[i] = np.linalg.det(sigmas[i] ** 2 * np.linalg.inv(X[keep].T @ X[keep])) / full
        np.testing.assert_allclose(covratio(mpg_model), expected, rtol=1e-8)


class TestInfluenceTable:

    def test_columns_and_index(self, mpg_model):
        table = influence_measures(mpg_model)
        assert list(table.columns) == [
            'hat', 'rstandard', 'rstudent', 'cooks_d', 'dffits', 'cov_r',
            'influential_cook', 'high_leverage', 'influential',
        ]
        assert table.index.name == 'row'
        assert table.index[0] == 1

    def test_default_cutoffs(self, mpg_model):
        table = influence_measures(mpg_model)
        n, p = mpg_model.nobs, mpg_model.rank
        np.testing.assert_array_equal(table['influential_cook'], table['cooks_d'] > 4 / n)
        np.testing.assert_array_equal(table['high_leverage'], table['hat'] > 2 * p / n)

    def test_bad_cutoff(self, mpg_model):
        with pytest.raises(ValidationError, match="positive"):
            influence_measures(mpg_model, cooks_cutoff=0.0)

    def test_cooks_outliers_are_row_labels(self, mpg_model):
        rows = cooks_outliers(mpg_model)
        d = cooks_distance(mpg_model)
        np.testing.assert_array_equal(rows, np.flatnonzero(d > 4 / mpg_model.nobs) + 1)

    def test_cooks_outliers_keep_source_numbering(self, mtcars):
        mpg = mtcars['mpg'].copy()
        mpg[0] = np.nan
        m = lm("mpg ~ wt + hp", mtcars.assign(mpg=mpg))
        rows = cooks_outliers(m, cutoff=0.0)
        assert 1 not in rows
        assert rows[0] == 2
        assert len(rows) == 31

    def test_rejects_non_models(self):
        with pytest.raises(ValidationError, match="fitted lm or glm"):
            cooks_distance(np.ones(3))


class TestGLMInfluence:

    def test_cooks_from_pearson_residuals(self, logistic_data):
        m = glm("y ~ x1 + x2", logistic_data, family='binomial')
        h = m.hat_values
        expected = (m.residuals_pearson / (1 - h)) ** 2 * h / m.rank
        np.testing.assert_allclose(cooks_distance(m), expected, rtol=1e-10)

    def test_hat_trace_is_rank(self, logistic_data):
        m = glm("y ~ x1 + x2 + group", logistic_data, family='binomial')
        assert hat_values(m).sum() == pytest.approx(m.rank)

    def test_rstandard_uses_deviance_residuals(self, logistic_data):
        m = glm("y ~ x1", logistic_data, family='binomial')
        expected = m.residuals_deviance / np.sqrt(1 - m.hat_values)
        np.testing.assert_allclose(rstandard(m), expected, rtol=1e-10)

    def test_gaussian_rstudent_matches_lm(self, mtcars):
        g = glm("mpg ~ wt + hp", mtcars, family='gaussian')
        m = lm("mpg ~ wt + hp", mtcars)
        np.testing.assert_allclose(rstudent(g), rstudent(m), rtol=1e-8)

    def test_gaussian_dffits_matches_lm(self, mtcars):
        g = glm("mpg ~ wt + hp", mtcars, family='gaussian')
        m = lm("mpg ~ wt + hp", mtcars)
        np.testing.assert_allclose(dffits(g), dffits(m), rtol=1e-8)

    def test_binomial_rstudent_formula(self, logistic_data):
        m = glm("y ~ x1 + x2", logistic_data, family='binomial')
        d, r, h = m.residuals_deviance, m.residuals_pearson, m.hat_values
        # fixed dispersion: no leave-one-out scale
        expected = np.sign(d) * np.sqrt(d ** 2 + h * r ** 2 / (1 - h))
        np.testing.assert_allclose(rstudent(m), expected, rtol=1e-10)


class TestOutlierTest:

    def test_planted_outlier_found(self, rng):
        x = rng.standard_normal(60)
        y = 1.0 + 2.0 * x + rng.normal(0.0, 0.2, 60)
        y[17] += 5.0
        m = lm("y ~ x", DataSource.from_arrays(y=y, x=x))
        result = outlier_test(m)
        assert result.significant
        assert result.labels[0] == 18

    def test_nothing_significant_reports_largest(self, mpg_model):
        result = outlier_test(mpg_model, cutoff=1e-12)
        assert not result.significant
        assert len(result.labels) == 1
        assert "No Studentized residuals" in result.summary()

    def test_bonferroni_above_one_is_nan(self, mpg_model):
        frame = outlier_test(mpg_model, cutoff=1.0, n_max=40).to_frame()
        bonf = frame['Bonferroni p'].to_numpy()
        assert np.all(np.isnan(bonf) | (bonf <= 1))

    def test_bad_arguments(self, mpg_model):
        with pytest.raises(ValidationError):
            outlier_test(mpg_model, cutoff=0.0)
        with pytest.raises(ValidationError):
            outlier_test(mpg_model, n_max=0)

    def test_binomial_uses_normal_reference(self, logistic_data):
        m = glm("y ~ x1 + x2", logistic_data, family='binomial')
        result = outlier_test(m, cutoff=1.0, n_max=5)
        assert result.info['df'] is None
        frame = result.to_frame()
        expected = 2.0 * stats.norm.sf(np.abs(frame['rstudent'].to_numpy()))
        np.testing.assert_allclose(frame['unadjusted p-value'], expected, rtol=1e-10)
        top = np.max(np.abs(rstudent(m)))
        assert abs(frame['rstudent'].iloc[0]) == pytest.approx(top)

    def test_gaussian_glm_matches_lm(self, mtcars):
        g = outlier_test(glm("mpg ~ wt + hp", mtcars, family='gaussian'))
        m = outlier_test(lm("mpg ~ wt + hp", mtcars))
        assert g.info['df'] == m.info['df']
        assert g.labels == m.labels
        np.testing.assert_allclose(
            g.to_frame()['rstudent'], m.to_frame()['rstudent'], rtol=1e-8,
        )


class TestResidualViews:

    def test_residual_summary(self, mpg_model):
        s = residual_summary(mpg_model)
        assert list(s.index) == ['Min', '1Q', 'Median', '3Q', 'Max']
        assert s['Min'] == pytest.approx(mpg_model.residuals.min())

    def test_diagnostic_frame(self, mpg_model):
        frame = diagnostic_frame(mpg_model)
        assert len(frame) == mpg_model.nobs
        np.testing.assert_allclose(frame['fitted'], mpg_model.fitted_values)
        # normal scores are monotone in the standardized residuals
        order = np.argsort(frame['std_residuals'].to_numpy())
        assert np.all(np.diff(frame['theoretical_quantiles'].to_numpy()[order]) > 0)
