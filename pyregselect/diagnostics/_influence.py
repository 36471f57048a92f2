"""
Leave-one-out influence statistics for lm and glm fits.

All quantities come from the final fit's hat values and residuals; no
model is refitted. The formulas are R's (stats:::lm.influence and
friends):

    lm:  rstandard  = e / (s √(1-h))
         rstudent   = e / (s₍ᵢ₎ √(1-h)),   s₍ᵢ₎² = (RSS - e²/(1-h)) / (df - 1)
         cooks      = (e / (s (1-h)))² h / p
    glm: rstandard  = d / √(φ (1-h))                   d = deviance residual
         rstudent   = sign(d) √(d² + h r²/(1-h))       r = Pearson residual
                      (divided by s₍ᵢ₎ when φ is estimated)
         cooks      = (r / (1-h))² h / (φ p)
    both: dffits    = e √h / (s₍ᵢ₎ (1-h))
"""

from __future__ import annotations

from typing import Any
import numpy as np
import pandas as pd
from numpy.typing import NDArray
from scipy import stats

from pyregselect.core.exceptions import ValidationError
from pyregselect.core.result import Result
from pyregselect.core.compute.timing import Timer
from pyregselect.diagnostics._common import OutlierTestParams
from pyregselect.diagnostics.solution import OutlierTestSolution
from pyregselect.regression.solution import GLMSolution, LinearSolution

Model = LinearSolution | GLMSolution


def _check_model(model: Any) -> None:
    if not isinstance(model, (LinearSolution, GLMSolution)):
        raise ValidationError(
            f"model: expected a fitted lm or glm, got {type(model).__name__}"
        )


def _weighted_residuals(model: Model) -> NDArray[np.floating[Any]]:
    """R's weighted.residuals: raw residuals for lm, deviance residuals for glm."""
    if isinstance(model, GLMSolution):
        return model.residuals_deviance
    return model.residuals


def _one_minus_h(model: Model) -> NDArray[np.floating[Any]]:
    h = model.hat_values
    # observations with h == 1 are fitted exactly; their statistics are NaN
    return np.where(h >= 1.0 - 1e-10, np.nan, 1.0 - h)


def _loo_sigma(model: Model) -> NDArray[np.floating[Any]]:
    """Residual standard deviation with each observation left out."""
    e = _weighted_residuals(model)
    omh = _one_minus_h(model)
    df = model.df_residual - 1
    if df <= 0:
        return np.full_like(e, np.nan)
    with np.errstate(invalid='ignore'):
        s2 = (np.sum(e ** 2) - e ** 2 / omh) / df
        return np.sqrt(np.maximum(s2, 0.0))


def hat_values(model: Model) -> NDArray[np.floating[Any]]:
    """Leverages: diagonal of the hat matrix (weighted for glm)."""
    _check_model(model)
    return model.hat_values.copy()


def rstandard(model: Model) -> NDArray[np.floating[Any]]:
    """Internally studentized residuals."""
    _check_model(model)
    omh = _one_minus_h(model)
    with np.errstate(invalid='ignore', divide='ignore'):
        if isinstance(model, GLMSolution):
            return model.residuals_deviance / np.sqrt(model.dispersion * omh)
        return model.residuals / (model.residual_std_error * np.sqrt(omh))


def rstudent(model: Model) -> NDArray[np.floating[Any]]:
    """Externally studentized (deleted) residuals."""
    _check_model(model)
    omh = _one_minus_h(model)
    with np.errstate(invalid='ignore', divide='ignore'):
        if isinstance(model, GLMSolution):
            d = model.residuals_deviance
            r = model.residuals_pearson
            h = model.hat_values
            adj = np.sign(d) * np.sqrt(d ** 2 + h * r ** 2 / omh)
            adj = np.where(np.isinf(adj), np.nan, adj)
            if model.family.dispersion_is_fixed:
                return adj
            return adj / _loo_sigma(model)
        return model.residuals / (_loo_sigma(model) * np.sqrt(omh))


def cooks_distance(model: Model) -> NDArray[np.floating[Any]]:
    """
    Cook's distance.

    For a glm this is the one-step approximation R uses, built from
    Pearson residuals, the dispersion and the weighted hat values.
    """
    _check_model(model)
    h = model.hat_values
    omh = _one_minus_h(model)
    p = model.rank
    with np.errstate(invalid='ignore', divide='ignore'):
        if isinstance(model, GLMSolution):
            r = model.residuals_pearson
            return (r / omh) ** 2 * h / (model.dispersion * p)
        s = model.residual_std_error
        return (model.residuals / (s * omh)) ** 2 * h / p


def dffits(model: Model) -> NDArray[np.floating[Any]]:
    """Scaled change in each fitted value when its observation is dropped."""
    _check_model(model)
    e = _weighted_residuals(model)
    h = model.hat_values
    omh = _one_minus_h(model)
    with np.errstate(invalid='ignore', divide='ignore'):
        return e * np.sqrt(h) / (_loo_sigma(model) * omh)


def covratio(model: Model) -> NDArray[np.floating[Any]]:
    """Ratio of the coefficient covariance determinants without and with each row."""
    _check_model(model)
    e = _weighted_residuals(model)
    p = model.rank
    df = model.df_residual
    omh = _one_minus_h(model)
    s = np.sqrt(np.sum(e ** 2) / df) if df > 0 else np.nan
    with np.errstate(invalid='ignore', divide='ignore'):
        return (_loo_sigma(model) / s) ** (2 * p) / omh


def influence_measures(
    model: Model,
    cooks_cutoff: float | None = None,
    leverage_cutoff: float | None = None,
) -> pd.DataFrame:
    """
    Table of influence statistics with flags, one row per observation.

    Args:
        model: Fitted lm or glm
        cooks_cutoff: Cook's distance above which a point is influential
            (default 4/n)
        leverage_cutoff: Hat value above which a point has high leverage
            (default 2p/n)

    Returns:
        DataFrame indexed by 1-based source row number with columns
        hat, rstandard, rstudent, cooks_d, dffits, cov_r,
        influential_cook, high_leverage and influential.
    """
    _check_model(model)
    n = model.nobs
    p = model.rank
    if cooks_cutoff is None:
        cooks_cutoff = 4.0 / n
    if leverage_cutoff is None:
        leverage_cutoff = 2.0 * p / n
    if cooks_cutoff <= 0 or leverage_cutoff <= 0:
        raise ValidationError(
            f"cutoffs must be positive, got cooks_cutoff={cooks_cutoff}, "
            f"leverage_cutoff={leverage_cutoff}"
        )

    h = model.hat_values
    cooks = cooks_distance(model)
    frame = pd.DataFrame(
        {
            'hat': h,
            'rstandard': rstandard(model),
            'rstudent': rstudent(model),
            'cooks_d': cooks,
            'dffits': dffits(model),
            'cov_r': covratio(model),
        },
        index=pd.Index(model.design.row_labels(), name='row'),
    )
    frame['influential_cook'] = np.nan_to_num(cooks, nan=0.0) > cooks_cutoff
    frame['high_leverage'] = h > leverage_cutoff
    frame['influential'] = frame['influential_cook'] | frame['high_leverage']
    return frame


def cooks_outliers(model: Model, cutoff: float | None = None) -> NDArray[np.int_]:
    """1-based source row numbers whose Cook's distance exceeds `cutoff` (default 4/n)."""
    _check_model(model)
    if cutoff is None:
        cutoff = 4.0 / model.nobs
    cooks = np.nan_to_num(cooks_distance(model), nan=0.0)
    return model.design.row_labels()[cooks > cutoff]


def residual_summary(model: Model) -> pd.Series:
    """Min, 1Q, Median, 3Q, Max of the residuals (deviance residuals for glm)."""
    _check_model(model)
    r = model.residuals
    q = np.quantile(r, [0.0, 0.25, 0.5, 0.75, 1.0])
    return pd.Series(q, index=['Min', '1Q', 'Median', '3Q', 'Max'], name='residuals')


def diagnostic_frame(model: Model) -> pd.DataFrame:
    """
    Coordinates of the four plot.lm panels.

    Residuals vs Fitted (fitted, residuals), Normal Q-Q
    (theoretical_quantiles, std_residuals), Scale-Location (fitted,
    sqrt_abs_std_residuals) and Residuals vs Leverage (leverage,
    std_residuals, cooks_distance). For a glm `fitted` is the linear
    predictor, as plot.lm draws it.
    """
    _check_model(model)
    std = rstandard(model)
    fitted = (
        model.linear_predictor if isinstance(model, GLMSolution) else model.fitted_values
    )
    return pd.DataFrame(
        {
            'fitted': fitted,
            'residuals': model.residuals,
            'std_residuals': std,
            'sqrt_abs_std_residuals': np.sqrt(np.abs(std)),
            'leverage': model.hat_values,
            'cooks_distance': cooks_distance(model),
            'theoretical_quantiles': _normal_scores(std),
        },
        index=pd.Index(model.design.row_labels(), name='row'),
    )


def _normal_scores(x: NDArray[np.floating[Any]]) -> NDArray[np.floating[Any]]:
    """qqnorm's x coordinate for each value: qnorm(ppoints(n)) in rank order."""
    out = np.full(x.shape, np.nan)
    ok = np.flatnonzero(np.isfinite(x))
    n = ok.size
    if n == 0:
        return out
    a = 3.0 / 8.0 if n <= 10 else 0.5
    pp = (np.arange(1, n + 1) - a) / (n + 1 - 2 * a)
    order = ok[np.argsort(x[ok], kind='stable')]
    out[order] = stats.norm.ppf(pp)
    return out


def outlier_test(
    model: Model,
    cutoff: float = 0.05,
    n_max: int = 10,
) -> OutlierTestSolution:
    """
    Bonferroni test for the largest studentized residuals (car::outlierTest).

    Each |rstudent| is referred to t with df_residual - 1 degrees of
    freedom (normal for binomial and poisson glms); the Bonferroni
    p-value multiplies by n and is NaN once it exceeds 1.

    Args:
        model: Fitted lm or glm
        cutoff: Report observations with Bonferroni p below this
        n_max: Report at most this many observations

    Returns:
        OutlierTestSolution. If no observation passes the cutoff the
        single largest |rstudent| is reported with significant=False.
    """
    _check_model(model)
    if not 0 < cutoff <= 1:
        raise ValidationError(f"cutoff: must be in (0, 1], got {cutoff}")
    if n_max < 1:
        raise ValidationError(f"n_max: must be at least 1, got {n_max}")

    timer = Timer()
    timer.start()

    r = rstudent(model)
    ok = np.isfinite(r)
    n = int(ok.sum())
    df = model.df_residual - 1
    normal = isinstance(model, GLMSolution) and model.family.dispersion_is_fixed
    if normal:
        p = 2.0 * stats.norm.sf(np.abs(r))
    else:
        p = 2.0 * stats.t.sf(np.abs(r), df)
    bonf = n * p
    bonf = np.where(bonf > 1, np.nan, bonf)

    idx = np.flatnonzero(ok)
    idx = idx[np.argsort(-np.abs(r[idx]), kind='stable')]
    hits = idx[np.nan_to_num(bonf[idx], nan=np.inf) < cutoff]
    significant = hits.size > 0
    chosen = hits[:n_max] if significant else idx[:1]

    timer.stop()
    labels = model.design.row_labels()
    return OutlierTestSolution(_result=Result(
        params=OutlierTestParams(
            labels=tuple(int(v) for v in labels[chosen]),
            rstudent=r[chosen],
            p_unadjusted=p[chosen],
            p_bonferroni=bonf[chosen],
            significant=significant,
            cutoff=cutoff,
            distribution='normal' if normal else 't',
        ),
        info={'n': n, 'df': None if normal else df},
        timing=timer.result(),
        backend_name='cpu',
    ))
