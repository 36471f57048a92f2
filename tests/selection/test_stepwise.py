"""
Tests for extract_aic, drop1/add1 and stepwise AIC search.
"""

import math

import numpy as np
import pytest

from pyregselect.core.datasource import DataSource
from pyregselect.core.exceptions import ValidationError
from pyregselect.regression import fit, glm, lm, refit
from pyregselect.selection import add1, drop1, extract_aic, step


@pytest.fixture
def with_dead_weight(rng):
    """y depends on x1; z is exactly orthogonal to y, x1 and the intercept."""
    n = 120
    x1 = rng.standard_normal(n)
    y = 2.0 + 1.5 * x1 + rng.standard_normal(n)
    basis, _ = np.linalg.qr(np.column_stack([np.ones(n), x1, y]))
    r = rng.standard_normal(n)
    z = r - basis @ (basis.T @ r)
    return DataSource.from_arrays(y=y, x1=x1, z=z)


class TestExtractAIC:

    def test_linear(self, mtcars):
        m = lm("mpg ~ wt + hp", mtcars)
        edf, aic = extract_aic(m)
        assert edf == 3
        assert aic == pytest.approx(32 * np.log(m.rss / 32) + 6)

    def test_linear_differs_from_aic_by_constant(self, mtcars):
        a = lm("mpg ~ wt", mtcars)
        b = lm("mpg ~ wt + hp", mtcars)
        assert (a.aic - extract_aic(a)[1]) == pytest.approx(b.aic - extract_aic(b)[1])

    def test_glm_is_aic(self, mtcars):
        m = glm("am ~ wt", mtcars, family='binomial')
        assert extract_aic(m)[1] == pytest.approx(m.aic)

    def test_bic_penalty(self, mtcars):
        m = glm("am ~ wt", mtcars, family='binomial')
        edf, bic = extract_aic(m, k=math.log(32))
        assert bic == pytest.approx(m.aic + (math.log(32) - 2) * edf)


class TestDrop1:

    def test_rows_and_columns(self, insurance_like):
        m = lm("charges ~ age + bmi + smoker", insurance_like)
        table = drop1(m).to_frame()
        assert list(table.index) == ['<none>', 'age', 'bmi', 'smoker']
        assert list(table.columns) == ['Df', 'Sum of Sq', 'RSS', 'AIC']
        assert np.isnan(table.loc['<none>', 'Df'])

    def test_aic_matches_refit(self, insurance_like):
        m = lm("charges ~ age + bmi + smoker", insurance_like)
        table = drop1(m).to_frame()
        smaller = refit(m, "charges ~ age + smoker")
        assert table.loc['bmi', 'AIC'] == pytest.approx(extract_aic(smaller)[1])
        assert table.loc['bmi', 'RSS'] == pytest.approx(smaller.rss)
        assert table.loc['<none>', 'AIC'] == pytest.approx(extract_aic(m)[1])

    def test_f_test_is_squared_t(self, mtcars):
        m = lm("mpg ~ wt + hp", mtcars)
        table = drop1(m, test='F').to_frame()
        t = m.coef_table()['t value']
        assert table.loc['wt', 'F value'] == pytest.approx(t['wt'] ** 2)
        assert table.loc['hp', 'Pr(>F)'] == pytest.approx(m.coef_table()['Pr(>|t|)']['hp'])

    def test_glm_chisq(self, logistic_data):
        m = glm("y ~ x1 + x2 + group", logistic_data, family='binomial')
        table = drop1(m, test='Chisq').to_frame()
        assert list(table.columns) == ['Df', 'Deviance', 'AIC', 'LRT', 'Pr(>Chi)']
        smaller = refit(m, "y ~ x1 + x2")
        assert table.loc['group', 'Df'] == 2
        assert table.loc['group', 'LRT'] == pytest.approx(smaller.deviance - m.deviance)

    def test_respects_marginality(self, logistic_data):
        m = lm("y ~ x1 * group", logistic_data)
        assert list(drop1(m).to_frame().index) == ['<none>', 'x1:group']

    def test_scope_must_be_in_model(self, mtcars):
        with pytest.raises(ValidationError, match="not in model"):
            drop1(lm("mpg ~ wt", mtcars), scope=['hp'])

    def test_array_model(self, simple_regression_data):
        X, y, _ = simple_regression_data
        table = drop1(fit(X, y)).to_frame()
        assert len(table) == 1 + X.shape[1]


class TestAdd1:

    def test_rows(self, insurance_like):
        m = lm("charges ~ age", insurance_like)
        table = add1(m, "~ age + bmi + smoker").to_frame()
        assert list(table.index) == ['<none>', 'bmi', 'smoker']
        bigger = refit(m, "charges ~ age + smoker")
        assert table.loc['smoker', 'AIC'] == pytest.approx(extract_aic(bigger)[1])

    def test_label_list_scope(self, insurance_like):
        m = lm("charges ~ age", insurance_like)
        assert list(add1(m, ['bmi']).to_frame().index) == ['<none>', 'bmi']

    def test_interaction_needs_margins(self, logistic_data):
        m = lm("y ~ x1", logistic_data)
        rows = list(add1(m, "~ x1 * group").to_frame().index)
        assert rows == ['<none>', 'group']

    def test_changed_rows_rejected(self, mtcars):
        hp = mtcars['hp'].copy()
        hp[4] = np.nan
        m = lm("mpg ~ wt", mtcars.assign(hp=hp))
        with pytest.raises(ValidationError, match="number of rows in use has changed"):
            add1(m, "~ wt + hp")

    def test_bad_test(self, mtcars):
        with pytest.raises(ValidationError, match="test"):
            add1(lm("mpg ~ wt", mtcars), "~ wt + hp", test='Wald')


class TestStep:

    def test_backward_drops_dead_weight(self, with_dead_weight):
        m = lm("y ~ x1 + z", with_dead_weight)
        result = step(m, direction='backward')
        assert result.formula == "y ~ x1"
        assert result.changes == ('- z',)
        assert result.initial_formula == "y ~ x1 + z"

    def test_forward_adds_signal_only(self, with_dead_weight):
        null = lm("y ~ 1", with_dead_weight)
        result = step(null, scope="~ x1 + z", direction='forward')
        assert result.formula == "y ~ x1"
        assert result.changes == ('+ x1',)

    def test_both_directions(self, with_dead_weight):
        m = lm("y ~ x1 + z", with_dead_weight)
        result = step(m, scope=("~ 1", "~ x1 + z"), direction='both')
        assert result.formula == "y ~ x1"

    def test_lower_scope_kept(self, with_dead_weight):
        m = lm("y ~ x1 + z", with_dead_weight)
        result = step(m, scope={'lower': "~ z", 'upper': "~ x1 + z"})
        assert result.formula == "y ~ x1 + z"
        assert result.changes == ()

    def test_aic_path(self, with_dead_weight):
        m = lm("y ~ x1 + z", with_dead_weight)
        result = step(m)
        path = result.anova
        assert path['Step'].tolist() == ['', '- z']
        assert path['AIC'].iloc[1] == pytest.approx(path['AIC'].iloc[0] - 2.0)
        assert result.aic == pytest.approx(extract_aic(result.model)[1])

    def test_bic_penalty(self, with_dead_weight):
        m = lm("y ~ x1 + z", with_dead_weight)
        k = math.log(m.nobs)
        result = step(m, k=k)
        assert result.anova['AIC'].iloc[0] - result.aic == pytest.approx(k)

    def test_glm(self, logistic_data):
        m = glm("y ~ x1 + x2 + group", logistic_data, family='binomial')
        result = step(m)
        assert 'x1' in result.formula
        assert result.model.family_name == 'binomial'

    def test_steps_limit(self, with_dead_weight):
        m = lm("y ~ x1 + z", with_dead_weight)
        assert step(m, steps=0).formula == "y ~ x1 + z"

    def test_trace_prints(self, with_dead_weight, capsys):
        step(lm("y ~ x1 + z", with_dead_weight), trace=True)
        out = capsys.readouterr().out
        assert out.startswith("Start:  AIC=")
        assert "Step:  AIC=" in out

    def test_summary(self, with_dead_weight):
        s = step(lm("y ~ x1 + z", with_dead_weight)).summary()
        assert "Initial Model:" in s
        assert "Final Model:" in s

    def test_needs_formula_model(self, simple_regression_data):
        X, y, _ = simple_regression_data
        with pytest.raises(ValidationError, match="formula"):
            step(fit(X, y))

    def test_bad_direction(self, mtcars):
        with pytest.raises(ValidationError, match="direction"):
            step(lm("mpg ~ wt", mtcars), direction='sideways')
