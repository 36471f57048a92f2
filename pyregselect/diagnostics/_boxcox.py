"""
Box-Cox profile likelihood (MASS::boxcox).

For each λ the response is transformed and scaled by the geometric
mean ġ so the log-likelihoods are comparable across λ:

    z_λ = (y^λ - 1) / (λ ġ^(λ-1))      λ ≠ 0
    z_0 = ġ log y

    ℓ(λ) = -n/2 · log RSS(z_λ ~ X)

Near zero the transform is evaluated by a third-order series in λ log y.
"""

from __future__ import annotations

from typing import Any
import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy import stats

from pyregselect.core.exceptions import ValidationError
from pyregselect.core.result import Result
from pyregselect.core.compute.timing import Timer
from pyregselect.core.compute.tolerances import BOXCOX_EPS, QR_TOL
from pyregselect.core.compute.linalg.qr import qr_pivoted
from pyregselect.core.validation import check_1d, check_array, check_finite
from pyregselect.diagnostics._common import BoxCoxParams
from pyregselect.diagnostics.solution import BoxCoxSolution
from pyregselect.regression.solution import GLMSolution, LinearSolution


def default_lambdas() -> NDArray[np.floating[Any]]:
    """seq(-2, 2, 1/10)"""
    return np.round(np.linspace(-2.0, 2.0, 41), 10)


def boxcox_transform(y: ArrayLike, lam: float) -> NDArray[np.floating[Any]]:
    """(y^λ - 1) / λ, or log(y) at λ = 0."""
    arr = check_array(y, 'y')
    if np.any(arr <= 0):
        raise ValidationError("y: Box-Cox transform needs a positive response")
    if lam == 0:
        return np.log(arr)
    return (arr ** lam - 1.0) / lam


def boxcox(
    model: LinearSolution,
    lambdas: ArrayLike | None = None,
    level: float = 0.95,
) -> BoxCoxSolution:
    """
    Profile log-likelihood for the Box-Cox power of a linear model's response.

    Args:
        model: Fitted lm
        lambdas: Grid of λ values (default seq(-2, 2, 0.1))
        level: Coverage of the likelihood-ratio interval

    Returns:
        BoxCoxSolution with lambda_hat (grid maximiser) and ci

    Raises:
        ValidationError: If the model isn't an lm, the response isn't
            strictly positive or the grid is empty
    """
    if isinstance(model, GLMSolution) or not isinstance(model, LinearSolution):
        raise ValidationError(
            f"model: Box-Cox needs a fitted lm, got {type(model).__name__}"
        )
    if not 0 < level < 1:
        raise ValidationError(f"level: must be in (0, 1), got {level}")

    grid = default_lambdas() if lambdas is None else check_array(lambdas, 'lambdas')
    check_1d(grid, 'lambdas')
    check_finite(grid, 'lambdas')
    if grid.size == 0:
        raise ValidationError("lambdas: need at least one value")

    y = model.y
    if np.any(y <= 0):
        raise ValidationError(
            f"response variable must be positive (min = {y.min():.6g})"
        )

    timer = Timer()
    timer.start()

    n = y.shape[0]
    logy = np.log(y)
    ydot = np.exp(logy.mean())

    with timer.section('qr'):
        qr = qr_pivoted(model.design.X, tol=QR_TOL)
        Q = qr.Q

    loglik = np.empty(grid.shape[0])
    with timer.section('profile'):
        for i, la in enumerate(grid):
            if abs(la) > BOXCOX_EPS:
                yt = (y ** la - 1.0) / la
            else:
                t = la * logy
                yt = logy * (1 + t / 2 * (1 + t / 3 * (1 + t / 4)))
            z = yt / ydot ** (la - 1.0)
            resid = z - Q @ (Q.T @ z)
            loglik[i] = -n / 2.0 * np.log(np.sum(resid ** 2))

    best = int(np.argmax(loglik))
    lim = loglik[best] - stats.chi2.ppf(level, 1) / 2.0
    ci = _interval(grid, loglik, lim)

    timer.stop()
    return BoxCoxSolution(_result=Result(
        params=BoxCoxParams(
            lambdas=grid,
            log_likelihood=loglik,
            lambda_hat=float(grid[best]),
            ci=ci,
            level=level,
            n_obs=n,
        ),
        info={'geometric_mean': float(ydot), 'cutoff': float(lim)},
        timing=timer.result(),
        backend_name='cpu_qr',
    ))


def _interval(
    grid: NDArray[np.floating[Any]],
    loglik: NDArray[np.floating[Any]],
    lim: float,
) -> tuple[float, float]:
    """Range of λ with loglik above lim, interpolated at the crossings."""
    order = np.argsort(grid)
    x, ll = grid[order], loglik[order]
    inside = np.flatnonzero(ll > lim)
    if inside.size == 0:
        i = int(np.argmax(ll))
        return float(x[i]), float(x[i])
    lo_i, hi_i = inside[0], inside[-1]

    lower = float(x[lo_i])
    if lo_i > 0:
        lower = float(np.interp(lim, [ll[lo_i - 1], ll[lo_i]], [x[lo_i - 1], x[lo_i]]))
    upper = float(x[hi_i])
    if hi_i < x.size - 1:
        upper = float(np.interp(lim, [ll[hi_i + 1], ll[hi_i]], [x[hi_i + 1], x[hi_i]]))
    return lower, upper
