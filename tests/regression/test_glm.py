"""
GLM unit tests.

Tests family/link functions, IRLS against R's glm() on mtcars,
the solution interface, and the non-convergence and boundary warnings.
"""

import warnings

import numpy as np
import pytest

from pyregselect.core.datasource import DataSource
from pyregselect.core.exceptions import ConvergenceError, ValidationError
from pyregselect.regression import GLMSolution, LinearSolution, fit, glm, lm
from pyregselect.regression.families import (
    Binomial, Gaussian, Poisson,
    IdentityLink, LogitLink, LogLink, ProbitLink,
    resolve_family,
)


# =====================================================================
# Family / Link function tests
# =====================================================================

class TestLinks:

    @pytest.mark.parametrize("link_cls,mu_range", [
        (IdentityLink, np.linspace(-5, 5, 50)),
        (LogitLink, np.linspace(0.01, 0.99, 50)),
        (ProbitLink, np.linspace(0.01, 0.99, 50)),
        (LogLink, np.linspace(0.01, 10, 50)),
    ])
    def test_roundtrip(self, link_cls, mu_range):
        link = link_cls()
        np.testing.assert_allclose(link.linkinv(link.link(mu_range)), mu_range, rtol=1e-10)

    @pytest.mark.parametrize("link_cls", [IdentityLink, LogitLink, LogLink])
    def test_mu_eta_matches_finite_difference(self, link_cls):
        link = link_cls()
        eta = np.linspace(-5, 5, 50)
        h = 1e-7
        numeric = (link.linkinv(eta + h) - link.linkinv(eta - h)) / (2 * h)
        np.testing.assert_allclose(link.mu_eta(eta), numeric, rtol=1e-5)

    def test_logit_extreme_eta(self):
        mu = LogitLink().linkinv(np.array([-500.0, 0.0, 500.0]))
        assert np.all(np.isfinite(mu))
        assert np.all((mu >= 0) & (mu <= 1))


class TestFamilies:

    def test_resolve_by_name(self):
        assert isinstance(resolve_family('binomial'), Binomial)
        assert isinstance(resolve_family('poisson'), Poisson)
        assert isinstance(resolve_family('gaussian'), Gaussian)

    def test_resolve_with_link(self):
        fam = resolve_family('binomial', 'probit')
        assert fam.link.name == 'probit'

    def test_unknown_family(self):
        with pytest.raises(ValidationError, match="Unknown family"):
            resolve_family('gamma-ish')

    def test_link_not_allowed(self):
        with pytest.raises(ValidationError, match="not available"):
            Poisson('probit')

    def test_binomial_unit_deviance_at_boundary(self):
        d = Binomial().unit_deviance(np.array([0.0, 1.0]), np.array([0.2, 0.8]))
        np.testing.assert_allclose(d, [-2 * np.log(0.8), -2 * np.log(0.8)])

    def test_dispersion_fixed(self):
        assert Binomial().dispersion_is_fixed
        assert Poisson().dispersion_is_fixed
        assert not Gaussian().dispersion_is_fixed


# =====================================================================
# R reference: glm(am ~ wt, family = binomial, data = mtcars)
# =====================================================================

class TestMtcarsLogistic:

    def test_coefficients(self, mtcars):
        m = glm("am ~ wt", mtcars, family='binomial')
        np.testing.assert_allclose(m.coefficients, [12.040, -4.024], rtol=1e-3)
        np.testing.assert_allclose(m.standard_errors, [4.510, 1.436], rtol=2e-3)

    def test_deviances(self, mtcars):
        m = glm("am ~ wt", mtcars, family='binomial')
        assert m.null_deviance == pytest.approx(43.230, abs=1e-3)
        assert m.deviance == pytest.approx(19.176, abs=1e-3)
        assert (m.df_null, m.df_residual) == (31, 30)
        assert m.aic == pytest.approx(23.176, abs=1e-3)
        assert m.converged

    def test_z_statistics(self, mtcars):
        table = glm("am ~ wt", mtcars, family='binomial').coef_table()
        assert list(table.columns) == ['Estimate', 'Std. Error', 'z value', 'Pr(>|z|)']

    def test_summary_layout(self, mtcars):
        s = glm("am ~ wt", mtcars, family='binomial').summary()
        assert "glm(formula = am ~ wt, family = binomial)" in s
        assert "Dispersion parameter for binomial family taken to be 1" in s
        assert "Number of Fisher Scoring iterations" in s

    def test_odds_ratios(self, mtcars):
        m = glm("am ~ wt", mtcars, family='binomial')
        ors = m.odds_ratios()
        np.testing.assert_allclose(ors['OR'], np.exp(m.coefficients))
        assert np.all(ors.iloc[:, 1] < ors['OR'])
        assert np.all(ors['OR'] < ors.iloc[:, 2])

    def test_predict_response_scale(self, mtcars):
        m = glm("am ~ wt", mtcars, family='binomial')
        eta = m.predict({'wt': [3.0]})
        prob = m.predict({'wt': [3.0]}, type='response')
        assert prob[0] == pytest.approx(1.0 / (1.0 + np.exp(-eta[0])))
        np.testing.assert_allclose(m.predict(type='response'), m.fitted_values)


class TestGLMBehaviour:

    def test_gaussian_glm_matches_lm(self, mtcars):
        g = glm("mpg ~ wt + hp", mtcars, family='gaussian')
        m = lm("mpg ~ wt + hp", mtcars)
        np.testing.assert_allclose(g.coefficients, m.coefficients, rtol=1e-8)
        assert g.dispersion == pytest.approx(m.sigma ** 2)
        assert g.deviance == pytest.approx(m.rss)

    def test_factor_predictor(self, logistic_data):
        m = glm("y ~ x1 + x2 + group", logistic_data, family='binomial')
        assert m.names == ('(Intercept)', 'x1', 'x2', 'groupb', 'groupc')
        assert m.coefficients[1] > 0 > m.coefficients[2]

    def test_response_residuals(self, logistic_data):
        m = glm("y ~ x1", logistic_data, family='binomial')
        np.testing.assert_allclose(m.resid('response'), m.y - m.fitted_values)

    def test_poisson(self, rng):
        x = rng.standard_normal(300)
        y = rng.poisson(np.exp(0.5 + 0.3 * x)).astype(np.float64)
        m = glm("y ~ x", DataSource.from_arrays(y=y, x=x), family='poisson')
        np.testing.assert_allclose(m.coefficients, [0.5, 0.3], atol=0.15)

    def test_family_none_gives_linear(self, simple_regression_data):
        X, y, _ = simple_regression_data
        assert isinstance(fit(X, y), LinearSolution)
        assert isinstance(fit(X, (y > 0).astype(float), family='binomial'), GLMSolution)

    def test_odds_ratios_need_logit(self, mtcars):
        m = glm("mpg ~ wt", mtcars, family='gaussian')
        with pytest.raises(ValidationError, match="binomial logit"):
            m.odds_ratios()


class TestGLMValidation:

    def test_binomial_response_must_be_binary(self, mtcars):
        with pytest.raises(ValidationError, match="expected 0/1"):
            glm("mpg ~ wt", mtcars, family='binomial')

    def test_link_without_family(self, simple_regression_data):
        X, y, _ = simple_regression_data
        with pytest.raises(ValidationError, match="link"):
            fit(X, y, link='logit')

    def test_bad_tolerance(self, mtcars):
        with pytest.raises(ValidationError, match="tol"):
            glm("am ~ wt", mtcars, tol=0.0)


class TestGLMWarnings:

    @pytest.fixture
    def separated(self):
        x = np.arange(1.0, 21.0)
        y = (x > 10).astype(np.float64)
        return DataSource.from_arrays(y=y, x=x)

    def test_separation_warns(self, separated):
        with pytest.warns(RuntimeWarning, match="fitted probabilities numerically 0 or 1"):
            m = glm("y ~ x", separated, family='binomial')
        assert m.info is not None

    def test_non_convergence_recorded(self, separated):
        with warnings.catch_warnings():
            warnings.simplefilter('ignore')
            m = glm("y ~ x", separated, family='binomial', max_iter=2)
        assert not m.converged
        assert any("did not converge" in w for w in m.warnings)

    def test_strict_raises(self, separated):
        with warnings.catch_warnings():
            warnings.simplefilter('ignore')
            with pytest.raises(ConvergenceError) as exc:
                glm("y ~ x", separated, family='binomial', max_iter=2, strict=True)
        assert exc.value.iterations <= 2
