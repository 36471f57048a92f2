"""
Best-subset regression over model-matrix columns (leaps::regsubsets).

Each candidate subset is scored by its residual sum of squares, computed
from the (centred, column-scaled) cross-product matrix so no subset fit
touches the n rows again:

    RSS(S) = Syy - Sxy[S]' Sxx[S,S]⁻¹ Sxy[S]

With an intercept every model contains it and the cross products are
taken about the column means; Syy is then the null-model RSS.

Criteria for the best model with k columns (leaps' summary):
    rsq   = 1 - RSS/RSS_null
    adjr2 = 1 - (1 - rsq)(n - i)/(n - k - i)        i = 1 with intercept
    cp    = RSS/σ² + 2(k + i) - n                   σ² from the full model
    bic   = n log(RSS/RSS_null) + k log n
"""

from __future__ import annotations

import itertools
from typing import Any, Literal
import numpy as np
from numpy.typing import NDArray

from pyregselect.core.exceptions import ValidationError
from pyregselect.core.result import Result
from pyregselect.core.compute.timing import Timer
from pyregselect.core.compute.linalg.qr import qr_pivoted
from pyregselect.formula import INTERCEPT
from pyregselect.regression.solution import GLMSolution, LinearSolution
from pyregselect.selection._common import SubsetsParams
from pyregselect.selection.solution import SubsetsSolution

Method = Literal['exhaustive', 'forward', 'backward']

# 2^25 subsets is about the limit of plain enumeration
EXHAUSTIVE_MAX_CANDIDATES = 25


def regsubsets(
    model: LinearSolution,
    nvmax: int = 8,
    method: Method = 'exhaustive',
) -> SubsetsSolution:
    """
    Best subset of model-matrix columns for each size 1..nvmax.

    Dummy columns of a factor are separate candidates; the intercept is
    always kept. Columns aliased in the full model are dropped from the
    candidate list (with a warning), as leaps does for linear
    dependencies.

    Args:
        model: Fitted lm whose columns are the candidates
        nvmax: Largest subset size (capped at the number of candidates)
        method: 'exhaustive', 'forward' or 'backward'

    Returns:
        SubsetsSolution

    Raises:
        ValidationError: For a glm, an unknown method, nvmax < 1, fewer
            than one candidate, or too many candidates for exhaustive search
    """
    if isinstance(model, GLMSolution) or not isinstance(model, LinearSolution):
        raise ValidationError(
            f"regsubsets: only linear models are supported, got {type(model).__name__}"
        )
    if method not in ('exhaustive', 'forward', 'backward'):
        raise ValidationError(
            f"method: expected 'exhaustive', 'forward' or 'backward', got {method!r}"
        )
    if nvmax < 1:
        raise ValidationError(f"nvmax: must be at least 1, got {nvmax}")

    design = model.design
    intercept = design.has_intercept
    cand_idx = [j for j, name in enumerate(design.column_names) if name != INTERCEPT]
    warnings_list: list[str] = []

    aliased = set(model.aliased)
    if aliased:
        warnings_list.append(
            f"{len(aliased)} linear dependencies found; dropped {sorted(aliased)}"
        )
        cand_idx = [j for j in cand_idx if design.column_names[j] not in aliased]

    m = len(cand_idx)
    if m == 0:
        raise ValidationError("regsubsets: the model has no candidate columns")
    if method == 'exhaustive' and m > EXHAUSTIVE_MAX_CANDIDATES:
        raise ValidationError(
            f"regsubsets: {m} candidates is too many for exhaustive search "
            f"(max {EXHAUSTIVE_MAX_CANDIDATES}); use method='forward' or 'backward'"
        )
    nvmax = min(nvmax, m)

    timer = Timer()
    timer.start()

    X = design.X[:, cand_idx]
    y = design.y
    n = design.n

    with timer.section('cross_products'):
        if intercept:
            Xc = X - X.mean(axis=0)
            yc = y - y.mean()
        else:
            Xc, yc = X, y
        scale = np.sqrt(np.sum(Xc ** 2, axis=0))
        scale[scale == 0] = 1.0
        Xs = Xc / scale
        Sxx = Xs.T @ Xs
        Sxy = Xs.T @ yc
        null_rss = float(yc @ yc)

    with timer.section('search'):
        if method == 'exhaustive':
            which, rss = _exhaustive(Sxx, Sxy, null_rss, nvmax)
        elif method == 'forward':
            which, rss = _forward(Sxx, Sxy, null_rss, nvmax)
        else:
            which, rss = _backward(Sxx, Sxy, null_rss, nvmax)

    # σ² of the full candidate model, rank-based as lm reports it
    keep = ([design.column_names.index(INTERCEPT)] if intercept else []) + cand_idx
    full_qr = qr_pivoted(design.X[:, keep])
    full_resid = y - full_qr.Q @ (full_qr.Q.T @ y)
    full_df = n - full_qr.rank
    sigma2 = float(full_resid @ full_resid / full_df) if full_df > 0 else np.nan

    i = 1 if intercept else 0
    k = np.arange(1, nvmax + 1)
    with np.errstate(divide='ignore', invalid='ignore'):
        rsq = 1.0 - rss / null_rss
        adjr2 = 1.0 - (1.0 - rsq) * (n - i) / (n - k - i)
        cp = rss / sigma2 + 2.0 * (k + i) - n
        bic = n * np.log(rss / null_rss) + k * np.log(n)

    timer.stop()

    params = SubsetsParams(
        candidates=tuple(design.column_names[j] for j in cand_idx),
        which=which,
        rss=rss,
        rsq=rsq,
        adjr2=adjr2,
        cp=cp,
        bic=bic,
        method=method,
        intercept=intercept,
        sigma2=sigma2,
        n_obs=n,
    )
    return SubsetsSolution(
        _result=Result(
            params=params,
            info={'method': method, 'n_candidates': m, 'null_rss': null_rss},
            timing=timer.result(),
            backend_name='cpu',
            warnings=tuple(warnings_list),
        ),
        _model=model,
    )


def _subset_rss(
    Sxx: NDArray[np.floating[Any]],
    Sxy: NDArray[np.floating[Any]],
    null_rss: float,
    cols: list[int] | tuple[int, ...],
) -> float:
    if not cols:
        return null_rss
    idx = list(cols)
    b = np.linalg.lstsq(Sxx[np.ix_(idx, idx)], Sxy[idx], rcond=None)[0]
    return max(null_rss - float(Sxy[idx] @ b), 0.0)


def _exhaustive(Sxx, Sxy, null_rss, nvmax):
    m = Sxx.shape[0]
    which = np.zeros((nvmax, m), dtype=bool)
    rss = np.empty(nvmax)
    for size in range(1, nvmax + 1):
        best, best_rss = None, np.inf
        for cols in itertools.combinations(range(m), size):
            r = _subset_rss(Sxx, Sxy, null_rss, cols)
            if r < best_rss:
                best, best_rss = cols, r
        which[size - 1, list(best)] = True
        rss[size - 1] = best_rss
    return which, rss


def _forward(Sxx, Sxy, null_rss, nvmax):
    m = Sxx.shape[0]
    which = np.zeros((nvmax, m), dtype=bool)
    rss = np.empty(nvmax)
    current: list[int] = []
    for size in range(1, nvmax + 1):
        scores = {
            j: _subset_rss(Sxx, Sxy, null_rss, current + [j])
            for j in range(m) if j not in current
        }
        j_best = min(scores, key=scores.get)
        current.append(j_best)
        which[size - 1, current] = True
        rss[size - 1] = scores[j_best]
    return which, rss


def _backward(Sxx, Sxy, null_rss, nvmax):
    m = Sxx.shape[0]
    which = np.zeros((nvmax, m), dtype=bool)
    rss = np.empty(nvmax)
    current = list(range(m))
    if m <= nvmax:
        which[m - 1, current] = True
        rss[m - 1] = _subset_rss(Sxx, Sxy, null_rss, current)
    while len(current) > 1:
        scores = {
            j: _subset_rss(Sxx, Sxy, null_rss, [c for c in current if c != j])
            for j in current
        }
        j_drop = min(scores, key=scores.get)
        current.remove(j_drop)
        size = len(current)
        if size <= nvmax:
            which[size - 1, current] = True
            rss[size - 1] = scores[j_drop]
    return which, rss
