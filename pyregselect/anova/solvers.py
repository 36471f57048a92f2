"""
ANOVA solver dispatch.

Public API:
    anova(model, test=...) -> AnovaSolution        sequential table
    anova(m1, m2, ..., test=...) -> AnovaSolution  nested model comparison

All tables work by fitting nested models and comparing residual sums
of squares (lm) or deviances (glm). No new solver math, just model
comparisons.

Sequential (Type I):
    Terms are added in order. SS(term_k) = RSS(terms 1..k-1) - RSS(terms 1..k).
    A term's Df is the rank it adds, so aliased columns count for nothing.
"""

from __future__ import annotations

from typing import Literal

import numpy as np
from scipy import stats as sp_stats

from pyregselect.core.result import Result
from pyregselect.core.compute.timing import Timer
from pyregselect.core.compute.linalg.qr import qr_pivoted
from pyregselect.core.exceptions import ValidationError
from pyregselect.anova._common import AnovaParams
from pyregselect.anova.solution import AnovaSolution
from pyregselect.regression.solution import GLMSolution, LinearSolution
from pyregselect.regression.solvers import refit_design

TestChoice = Literal['F', 'Chisq', 'LRT', 'default'] | None

Model = LinearSolution | GLMSolution


def anova(*models: Model, test: TestChoice = 'default') -> AnovaSolution:
    """
    Analysis of variance or deviance, like R's anova().

    Args:
        *models: One fitted model for a sequential table, or two or more
            nested models (same response, same rows) for a comparison
        test: 'F', 'Chisq' (alias 'LRT') or None. The default is F for
            linear models and GLMs with estimated dispersion, Chisq for
            binomial and poisson GLMs. Chisq on a linear model refers
            Sum Sq / scale to chi-square, as stat.anova does.

    Returns:
        AnovaSolution

    Raises:
        ValidationError: On mixed model types, different responses or
            different numbers of observations
    """
    if not models:
        raise ValidationError("anova: at least one model required")
    for m in models:
        if not isinstance(m, (LinearSolution, GLMSolution)):
            raise ValidationError(
                f"anova: expected fitted models, got {type(m).__name__}"
            )

    is_glm = [isinstance(m, GLMSolution) for m in models]
    if any(is_glm) and not all(is_glm):
        raise ValidationError("anova: can't compare linear models with GLMs")

    if test == 'LRT':
        test = 'Chisq'
    if test not in ('F', 'Chisq', 'default', None):
        raise ValidationError(f"test: expected 'F', 'Chisq' or None, got {test!r}")

    timer = Timer()
    timer.start()

    if len(models) == 1:
        model = models[0]
        if isinstance(model, GLMSolution):
            params = _sequential_glm(model, _default_test(model, test))
        else:
            params = _sequential_lm(model, 'F' if test == 'default' else test)
    else:
        _check_comparable(models)
        if all(is_glm):
            params = _compare_glm(models, _default_test(models[-1], test))
        else:
            params = _compare_lm(models, 'F' if test == 'default' else test)

    timer.stop()
    return AnovaSolution(_result=Result(
        params=params,
        info={'n_models': len(models)},
        timing=timer.result(),
        backend_name='cpu_qr',
    ))


def _default_test(model: GLMSolution, test: TestChoice) -> str | None:
    if test != 'default':
        return test
    return 'F' if model.family_name == 'gaussian' else 'Chisq'


def _rss_rank(X: np.ndarray, y: np.ndarray) -> tuple[float, int]:
    """RSS and rank of the least-squares fit of y on X."""
    if X.shape[1] == 0:
        return float(y @ y), 0
    qr = qr_pivoted(X)
    if qr.rank == 0:
        return float(y @ y), 0
    resid = y - qr.Q @ (qr.Q.T @ y)
    return float(resid @ resid), qr.rank


def _sequential_lm(model: LinearSolution, test: str | None) -> AnovaParams:
    design = model.design
    X, y = design.X, design.y
    assign = np.asarray(design.assign)

    rss_prev, rank_prev = _rss_rank(X[:, assign == 0], y)
    names: list[str] = []
    dfs: list[float] = []
    sss: list[float] = []
    for k, label in enumerate(design.term_labels, start=1):
        rss_k, rank_k = _rss_rank(X[:, assign <= k], y)
        df = rank_k - rank_prev
        if df > 0:
            names.append(label)
            dfs.append(df)
            sss.append(rss_prev - rss_k)
        rss_prev, rank_prev = rss_k, rank_k

    df_res = model.df_residual
    rss = model.rss
    ms_res = rss / df_res if df_res > 0 else np.nan

    rows = []
    for df, ss in zip(dfs, sss):
        ms = ss / df
        F = ms / ms_res if df_res > 0 else np.nan
        p = sp_stats.f.sf(F, df, df_res) if df_res > 0 else np.nan
        rows.append([df, ss, ms, F, p])
    rows.append([df_res, rss, ms_res, np.nan, np.nan])

    columns = ['Df', 'Sum Sq', 'Mean Sq', 'F value', 'Pr(>F)']
    values = np.array(rows, dtype=np.float64)
    pcol = 'Pr(>F)'
    if test is None:
        values = values[:, :3]
        columns = columns[:3]
        pcol = None
    elif test == 'Chisq':
        # stat.anova: Sum Sq / scale referred to chi-square on Df
        with np.errstate(invalid='ignore', divide='ignore'):
            p = sp_stats.chi2.sf(values[:, 1] / ms_res, values[:, 0])
        p[-1] = np.nan
        values = np.column_stack([values[:, :3], p])
        columns = columns[:3] + ['Pr(>Chi)']
        pcol = 'Pr(>Chi)'

    heading = ["Analysis of Variance Table", "", f"Response: {design.response_name}"]
    return AnovaParams(
        kind='lm',
        heading=tuple(heading),
        row_names=tuple(names + ['Residuals']),
        columns=tuple(columns),
        values=values,
        pvalue_column=pcol,
        test=test,
        n_obs=model.nobs,
    )


def _sequential_glm(model: GLMSolution, test: str | None) -> AnovaParams:
    design = model.design
    assign = np.asarray(design.assign)
    n_terms = len(design.term_labels)

    resid_df = [model.df_null]
    resid_dev = [model.null_deviance]
    names = ['NULL']
    for k in range(1, n_terms + 1):
        if k == n_terms:
            sub = model
        else:
            cols = np.flatnonzero(assign <= k).tolist()
            sub = refit_design(model, design.subset_columns(cols))
        resid_df.append(sub.df_residual)
        resid_dev.append(sub.deviance)
        names.append(design.term_labels[k - 1])

    rows = [[np.nan, np.nan, resid_df[0], resid_dev[0]]]
    for i in range(1, len(names)):
        rows.append([
            resid_df[i - 1] - resid_df[i],
            resid_dev[i - 1] - resid_dev[i],
            resid_df[i],
            resid_dev[i],
        ])
    values = np.array(rows, dtype=np.float64)
    columns = ['Df', 'Deviance', 'Resid. Df', 'Resid. Dev']

    values, columns, pcol = _add_deviance_test(
        values, columns, test, model.dispersion, model.df_residual,
        df_col=0, dev_col=1,
    )

    heading = [
        "Analysis of Deviance Table",
        "",
        f"Model: {model.family_name}, link: {model.link_name}",
        "",
        f"Response: {design.response_name}",
        "",
        "Terms added sequentially (first to last)",
    ]
    return AnovaParams(
        kind='glm',
        heading=tuple(heading),
        row_names=tuple(names),
        columns=tuple(columns),
        values=values,
        pvalue_column=pcol,
        test=test,
        n_obs=model.nobs,
    )


def _compare_lm(models: tuple[Model, ...], test: str | None) -> AnovaParams:
    res_df = np.array([m.df_residual for m in models], dtype=np.float64)
    rss = np.array([m.rss for m in models], dtype=np.float64)

    big = int(np.argmin(res_df))
    scale = rss[big] / res_df[big] if res_df[big] > 0 else np.nan

    rows = [[res_df[0], rss[0], np.nan, np.nan, np.nan, np.nan]]
    for i in range(1, len(models)):
        df = res_df[i - 1] - res_df[i]
        ss = rss[i - 1] - rss[i]
        if df != 0 and res_df[big] > 0:
            F = ss / df / scale
            p = sp_stats.f.sf(F, abs(df), res_df[big])
        else:
            F = p = np.nan
        rows.append([res_df[i], rss[i], df if df != 0 else np.nan,
                     ss if df != 0 else np.nan, F, p])

    columns = ['Res.Df', 'RSS', 'Df', 'Sum of Sq', 'F', 'Pr(>F)']
    values = np.array(rows, dtype=np.float64)
    pcol = 'Pr(>F)'
    if test is None:
        values = values[:, :4]
        columns = columns[:4]
        pcol = None
    elif test == 'Chisq':
        df = values[:, 2]
        with np.errstate(invalid='ignore', divide='ignore'):
            stat = values[:, 3] / scale * np.sign(df)
            stat[stat < 0] = np.nan
            p = sp_stats.chi2.sf(stat, np.abs(df))
        values = np.column_stack([values[:, :4], p])
        columns = columns[:4] + ['Pr(>Chi)']
        pcol = 'Pr(>Chi)'

    heading = ["Analysis of Variance Table", ""]
    heading.extend(f"Model {i}: {_formula_text(m)}" for i, m in enumerate(models, start=1))
    return AnovaParams(
        kind='lm_compare',
        heading=tuple(heading),
        row_names=tuple(str(i) for i in range(1, len(models) + 1)),
        columns=tuple(columns),
        values=values,
        pvalue_column=pcol,
        test=test,
        n_obs=models[0].nobs,
    )


def _compare_glm(models: tuple[Model, ...], test: str | None) -> AnovaParams:
    resid_df = np.array([m.df_residual for m in models], dtype=np.float64)
    resid_dev = np.array([m.deviance for m in models], dtype=np.float64)

    rows = [[resid_df[0], resid_dev[0], np.nan, np.nan]]
    for i in range(1, len(models)):
        df = resid_df[i - 1] - resid_df[i]
        dev = resid_dev[i - 1] - resid_dev[i]
        rows.append([resid_df[i], resid_dev[i], df, dev])
    values = np.array(rows, dtype=np.float64)
    columns = ['Resid. Df', 'Resid. Dev', 'Df', 'Deviance']

    big = int(np.argmin(resid_df))
    values, columns, pcol = _add_deviance_test(
        values, columns, test, models[big].dispersion, int(resid_df[big]),
        df_col=2, dev_col=3,
    )

    heading = ["Analysis of Deviance Table", ""]
    heading.extend(f"Model {i}: {_formula_text(m)}" for i, m in enumerate(models, start=1))
    return AnovaParams(
        kind='glm_compare',
        heading=tuple(heading),
        row_names=tuple(str(i) for i in range(1, len(models) + 1)),
        columns=tuple(columns),
        values=values,
        pvalue_column=pcol,
        test=test,
        n_obs=models[0].nobs,
    )


def _add_deviance_test(
    values: np.ndarray,
    columns: list[str],
    test: str | None,
    dispersion: float,
    df_residual: int,
    df_col: int,
    dev_col: int,
) -> tuple[np.ndarray, list[str], str | None]:
    """Append R's stat.anova columns for a deviance table."""
    if test is None:
        return values, columns, None

    df = values[:, df_col]
    dev = values[:, dev_col]
    with np.errstate(invalid='ignore', divide='ignore'):
        if test == 'Chisq':
            stat = dev / dispersion * np.sign(df)
            p = np.where(
                np.isnan(df) | (df == 0), np.nan,
                sp_stats.chi2.sf(stat, np.abs(df)),
            )
            return np.column_stack([values, p]), columns + ['Pr(>Chi)'], 'Pr(>Chi)'

        F = dev / df / dispersion
        p = np.where(
            np.isnan(df) | (df == 0), np.nan,
            sp_stats.f.sf(F, np.abs(df), df_residual),
        )
    F = np.where(np.isnan(df) | (df == 0), np.nan, F)
    return np.column_stack([values, F, p]), columns + ['F', 'Pr(>F)'], 'Pr(>F)'


def _check_comparable(models: tuple[Model, ...]) -> None:
    n = {m.nobs for m in models}
    if len(n) > 1:
        raise ValidationError(
            f"models were not all fitted to the same size of dataset: "
            f"{[m.nobs for m in models]} observations"
        )
    responses = {m.design.response_name for m in models}
    if len(responses) > 1:
        raise ValidationError(
            f"models have different responses: {sorted(responses)}"
        )
    if isinstance(models[0], GLMSolution):
        families = {(m.family_name, m.link_name) for m in models}
        if len(families) > 1:
            raise ValidationError(f"models use different families: {sorted(families)}")


def _formula_text(model: Model) -> str:
    if model.formula is not None:
        return str(model.formula)
    return f"{model.design.response_name} ~ {' + '.join(model.term_labels) or '1'}"
