"""
Residual tests: normality (Shapiro-Wilk) and heteroscedasticity
(Breusch-Pagan, lmtest::bptest).
"""

from __future__ import annotations

import numpy as np
from scipy import stats

from pyregselect.core.exceptions import ValidationError
from pyregselect.core.result import Result
from pyregselect.core.compute.timing import Timer
from pyregselect.core.compute.linalg.qr import qr_pivoted
from pyregselect.diagnostics._common import HTestParams
from pyregselect.diagnostics.solution import HTestSolution
from pyregselect.regression.solution import GLMSolution, LinearSolution


def shapiro_test(model: LinearSolution | GLMSolution) -> HTestSolution:
    """
    Shapiro-Wilk normality test on a model's residuals.

    Uses deviance residuals for a glm.

    Raises:
        ValidationError: If there are fewer than 3 or more than 5000
            residuals (the range shapiro.test accepts)
    """
    if not isinstance(model, (LinearSolution, GLMSolution)):
        raise ValidationError(
            f"model: expected a fitted lm or glm, got {type(model).__name__}"
        )
    r = model.residuals
    r = r[np.isfinite(r)]
    n = r.shape[0]
    if not 3 <= n <= 5000:
        raise ValidationError(f"sample size must be between 3 and 5000, got {n}")
    if np.ptp(r) == 0:
        raise ValidationError("all residuals are identical")

    timer = Timer()
    timer.start()
    W, p = stats.shapiro(r)
    timer.stop()

    return HTestSolution(_result=Result(
        params=HTestParams(
            statistic=float(W),
            statistic_name='W',
            parameter=None,
            p_value=float(p),
            method='Shapiro-Wilk normality test',
            data_name=f"residuals({_model_name(model)})",
        ),
        info={'n': n},
        timing=timer.result(),
        backend_name='scipy',
    ))


def breusch_pagan(model: LinearSolution, studentize: bool = True) -> HTestSolution:
    """
    Breusch-Pagan test for heteroscedasticity against the model's regressors.

    The auxiliary regression of the squared residuals uses the model's
    own matrix. With studentize=True (the default) this is Koenker's
    version, n·R² of the auxiliary fit; otherwise the original
    ESS/2 statistic that assumes normal errors.

    Raises:
        ValidationError: If the model isn't an lm
    """
    if isinstance(model, GLMSolution) or not isinstance(model, LinearSolution):
        raise ValidationError(
            f"model: Breusch-Pagan needs a fitted lm, got {type(model).__name__}"
        )

    timer = Timer()
    timer.start()

    Z = model.design.X
    e = model.residuals
    n = e.shape[0]
    sigma2 = float(np.sum(e ** 2) / n)

    qr = qr_pivoted(Z)
    if studentize:
        w = e ** 2 - sigma2
        fitted = qr.Q @ (qr.Q.T @ w)
        bp = n * float(np.sum(fitted ** 2) / np.sum(w ** 2))
        method = 'studentized Breusch-Pagan test'
    else:
        f = e ** 2 / sigma2 - 1.0
        fitted = qr.Q @ (qr.Q.T @ f)
        bp = 0.5 * float(np.sum(fitted ** 2))
        method = 'Breusch-Pagan test'

    df = qr.rank - 1
    if df < 1:
        timer.stop()
        raise ValidationError("Breusch-Pagan test needs at least one regressor")
    p = float(stats.chi2.sf(bp, df))
    timer.stop()

    return HTestSolution(_result=Result(
        params=HTestParams(
            statistic=bp,
            statistic_name='BP',
            parameter={'df': float(df)},
            p_value=p,
            method=method,
            data_name=_model_name(model),
        ),
        info={'n': n, 'studentize': studentize},
        timing=timer.result(),
        backend_name='cpu_qr',
    ))


def _model_name(model: LinearSolution | GLMSolution) -> str:
    formula = model.formula
    return str(formula) if formula is not None else 'model'
