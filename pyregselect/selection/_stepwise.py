"""
Single-term deletions and additions, and stepwise AIC search.

Public API:
    extract_aic(model, k=2) -> (edf, aic)
    drop1(model, scope=None, k=2, test=None) -> AnovaSolution
    add1(model, scope, k=2, test=None) -> AnovaSolution
    step(model, scope=None, direction='both', k=2, steps=1000, trace=False)
        -> StepSolution

Every candidate is refitted on the rows of the model it comes from, so
AIC values along a search are always comparable. A candidate that would
use fewer rows (a new variable with missing values) is an error, as in
R ("number of rows in use has changed").

extractAIC:
    lm:  n log(RSS/n) + k·edf
    glm: aic + (k - 2)·edf           edf = n - df_residual
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal
import numpy as np
from scipy import stats

from pyregselect.anova import AnovaParams, AnovaSolution
from pyregselect.core.exceptions import ValidationError
from pyregselect.core.result import Result
from pyregselect.core.compute.timing import Timer
from pyregselect.formula import Formula, Term, parse_formula
from pyregselect.regression.solution import GLMSolution, LinearSolution
from pyregselect.regression.solvers import refit, refit_design
from pyregselect.selection._common import StepParams
from pyregselect.selection.solution import StepSolution

Model = LinearSolution | GLMSolution
Direction = Literal['both', 'backward', 'forward']
TestChoice = Literal['F', 'Chisq', 'LRT'] | None

# step() stops once the best move improves AIC by less than this
_AIC_IMPROVEMENT_TOL = 1e-7

_NONE = '<none>'


def extract_aic(model: Model, k: float = 2.0) -> tuple[float, float]:
    """Equivalent degrees of freedom and penalised fit criterion (R's extractAIC)."""
    _check_model(model)
    n = model.nobs
    edf = float(n - model.df_residual)
    if isinstance(model, GLMSolution):
        return edf, model.aic + (k - 2.0) * edf
    return edf, n * np.log(model.rss / n) + k * edf


def drop1(
    model: Model,
    scope: Any = None,
    k: float = 2.0,
    test: TestChoice = None,
) -> AnovaSolution:
    """
    Fit every model that drops one term (R's drop1).

    Args:
        model: Fitted lm or glm
        scope: Terms to consider (labels, a formula or a model). Default:
            every term not contained in a higher-order term.
        k: Penalty per degree of freedom (log(n) for BIC)
        test: None, 'F' or 'Chisq' ('LRT')

    Returns:
        AnovaSolution with rows '<none>' and one per term
    """
    _check_model(model)
    test = _check_test(test)
    if scope is None:
        terms = _drop_scope(_model_terms(model), ())
    else:
        terms = _scope_terms(model, scope)
        current = _model_terms(model)
        for t in terms:
            if not any(t.same_as(c) for c in current):
                raise ValidationError(
                    f"scope is not a subset of term labels: {t.label!r} not in model"
                )
    rows = _single_term_fits(model, terms, adding=False)
    return _as_anova(model, rows, k, test, adding=False)


def add1(
    model: Model,
    scope: Any,
    k: float = 2.0,
    test: TestChoice = None,
) -> AnovaSolution:
    """
    Fit every model that adds one term from `scope` (R's add1).

    Only terms whose lower-order margins are already in the model are
    considered.

    Args:
        model: Fitted lm or glm built from a formula
        scope: Upper formula, model, or list of term labels
        k: Penalty per degree of freedom
        test: None, 'F' or 'Chisq' ('LRT')
    """
    _check_model(model)
    test = _check_test(test)
    upper = _scope_terms(model, scope)
    terms = _add_scope(_model_terms(model), upper)
    rows = _single_term_fits(model, terms, adding=True)
    return _as_anova(model, rows, k, test, adding=True)


def step(
    model: Model,
    scope: Any = None,
    direction: Direction = 'both',
    k: float = 2.0,
    steps: int = 1000,
    trace: bool = False,
) -> StepSolution:
    """
    Stepwise model selection by AIC (R's step).

    At each step every allowed single-term deletion and addition is
    fitted; the move with the lowest AIC is taken while it beats the
    current model.

    Args:
        model: Starting lm or glm (built from a formula)
        scope: None (backward search down to the intercept), an upper
            formula or model, or a (lower, upper) pair; either side of
            the pair may be None
        direction: 'both', 'backward' or 'forward'
        k: Penalty per degree of freedom; k=log(n) gives BIC
        steps: Maximum number of moves
        trace: Print each step's candidate table

    Returns:
        StepSolution with the selected model and the step history

    Raises:
        ValidationError: On a bad direction or scope, or a model built
            from arrays
    """
    _check_model(model)
    if direction not in ('both', 'backward', 'forward'):
        raise ValidationError(
            f"direction: expected 'both', 'backward' or 'forward', got {direction!r}"
        )
    if steps < 0:
        raise ValidationError(f"steps: must be non-negative, got {steps}")
    if model.formula is None:
        raise ValidationError("step: the model must be fitted from a formula")

    lower, upper, scope_given = _step_scope(model, scope)
    backward = direction in ('both', 'backward')
    forward = direction in ('both', 'forward') and scope_given

    timer = Timer()
    timer.start()

    fit = model
    n = fit.nobs
    edf, best_aic = extract_aic(fit, k)
    initial = str(fit.formula)
    trace_log: list[str] = [f"Start:  AIC={best_aic:.2f}\n{initial}\n"]
    history = [_HistoryRow('', _deviance(fit), n - edf, best_aic)]

    while steps > 0:
        steps -= 1
        current_aic = best_aic
        current_terms = _model_terms(fit)
        rows: list[_Candidate] = [_Candidate(_NONE, fit)]
        change: _Candidate | None = None

        if backward:
            drops = [t for t in _drop_scope(current_terms, ())
                     if not any(t.same_as(lo) for lo in lower)]
            dropped = _single_term_fits(fit, drops, adding=False)[1:]
            for cand in dropped:
                cand.label = f"- {cand.label}"
            zero_df = [c for c in dropped if c.model.rank == fit.rank]
            if zero_df:
                change = zero_df[-1]
            rows.extend(dropped)

        if change is None:
            if forward:
                adds = _add_scope(current_terms, upper)
                added = _single_term_fits(fit, adds, adding=True)[1:]
                for cand in added:
                    cand.label = f"+ {cand.label}"
                rows.extend(added)

            if len(rows) == 1:
                break
            table = _as_anova(fit, rows, k, None, adding=False)
            aic_col = table.to_frame()['AIC'].to_numpy()
            df_col = table.to_frame()['Df'].to_numpy()
            keep = np.flatnonzero(np.isnan(df_col) | (df_col != 0))
            order = keep[np.argsort(aic_col[keep], kind='stable')]
            trace_log.append(_trace_table(table, order))
            if order[0] == 0:
                break
            change = rows[order[0]]

        new_fit = change.model
        new_edf, new_aic = extract_aic(new_fit, k)
        trace_log.append(f"Step:  AIC={new_aic:.2f}\n{new_fit.formula}\n")
        if new_aic >= current_aic + _AIC_IMPROVEMENT_TOL:
            break
        fit, best_aic = new_fit, new_aic
        history.append(_HistoryRow(change.label, _deviance(fit), n - new_edf, best_aic))

    final = fit
    timer.stop()

    if trace:
        print("\n".join(trace_log))

    rd = np.array([h.deviance for h in history])
    rdf = np.array([h.resid_df for h in history])
    params = StepParams(
        changes=tuple(h.change for h in history),
        df=np.concatenate([[np.nan], np.diff(rdf)]),
        deviance_change=np.concatenate([[np.nan], np.abs(np.diff(rd))]),
        resid_df=rdf,
        resid_deviance=rd,
        aic=np.array([h.aic for h in history]),
        initial_formula=initial,
        final_formula=str(final.formula),
        direction=direction,
        k=k,
    )
    return StepSolution(
        _result=Result(
            params=params,
            info={'trace': tuple(trace_log), 'n_steps': len(history) - 1},
            timing=timer.result(),
            backend_name=final.backend_name,
            warnings=final.warnings,
        ),
        _model=final,
    )


# === internals ===


@dataclass
class _Candidate:
    label: str
    model: Model


@dataclass
class _HistoryRow:
    change: str
    deviance: float
    resid_df: float
    aic: float


def _check_model(model: Any) -> None:
    if not isinstance(model, (LinearSolution, GLMSolution)):
        raise ValidationError(
            f"model: expected a fitted lm or glm, got {type(model).__name__}"
        )


def _check_test(test: TestChoice) -> str | None:
    if test == 'LRT':
        return 'Chisq'
    if test not in ('F', 'Chisq', None):
        raise ValidationError(f"test: expected 'F', 'Chisq' or None, got {test!r}")
    return test


def _deviance(model: Model) -> float:
    return model.rss if isinstance(model, LinearSolution) else model.deviance


def _model_terms(model: Model) -> tuple[Term, ...]:
    if model.formula is not None:
        return model.formula.terms
    return tuple(Term((label,)) for label in model.term_labels)


def _parse_scope(model: Model, spec: Any) -> Formula:
    if isinstance(spec, (LinearSolution, GLMSolution)):
        if spec.formula is None:
            raise ValidationError("scope: model must be fitted from a formula")
        return spec.formula
    if isinstance(spec, Formula):
        return spec
    if isinstance(spec, str):
        source = model.design.model_source()
        columns = source.keys() if source is not None else None
        text = spec if '~' in spec else f"~ {spec}"
        return parse_formula(text, columns=columns)
    raise ValidationError(
        f"scope: expected a formula, a model or term labels, got {type(spec).__name__}"
    )


def _scope_terms(model: Model, scope: Any) -> tuple[Term, ...]:
    if isinstance(scope, (list, tuple)) and all(isinstance(s, str) for s in scope):
        if not scope:
            return ()
        return _parse_scope(model, ' + '.join(scope)).terms
    return _parse_scope(model, scope).terms


def _step_scope(model: Model, scope: Any) -> tuple[tuple[Term, ...], tuple[Term, ...], bool]:
    """(lower terms, upper terms, whether an upper scope was given)."""
    if scope is None:
        return (), _model_terms(model), False
    if isinstance(scope, dict):
        unknown = set(scope) - {'lower', 'upper'}
        if unknown:
            raise ValidationError(f"scope: unknown keys {sorted(unknown)}")
        scope = (scope.get('lower'), scope.get('upper'))
    if isinstance(scope, tuple) and len(scope) == 2:
        lo, up = scope
        lower = _scope_terms(model, lo) if lo is not None else ()
        upper = _scope_terms(model, up) if up is not None else _model_terms(model)
        return lower, upper, up is not None
    return (), _scope_terms(model, scope), True


def _drop_scope(terms: tuple[Term, ...], lower: tuple[Term, ...]) -> list[Term]:
    """Terms not contained in another model term (R's drop.scope)."""
    out = []
    for t in terms:
        if any(o is not t and o.contains(t) and not o.same_as(t) for o in terms):
            continue
        if any(t.same_as(lo) for lo in lower):
            continue
        out.append(t)
    return out


def _add_scope(terms: tuple[Term, ...], upper: tuple[Term, ...]) -> list[Term]:
    """Upper-scope terms whose margins are all in the model (R's add.scope)."""
    out = []
    for t in upper:
        if any(t.same_as(c) for c in terms):
            continue
        margins = [u for u in upper if t.contains(u) and not u.same_as(t)]
        if all(any(m.same_as(c) for c in terms) for m in margins):
            out.append(t)
    return out


def _single_term_fits(model: Model, terms: list[Term] | tuple[Term, ...], adding: bool) -> list[_Candidate]:
    """The model itself followed by one refit per term."""
    rows = [_Candidate(_NONE, model)]
    for term in terms:
        if model.formula is not None:
            formula = model.formula.add_term(term) if adding else model.formula.drop_term(term)
            candidate = refit(model, formula)
        elif adding:
            raise ValidationError("add1: the model must be fitted from a formula")
        else:
            idx = model.term_labels.index(term.label) + 1
            cols = [j for j, a in enumerate(model.design.assign) if a != idx]
            candidate = refit_design(model, model.design.subset_columns(cols))
        if candidate.nobs != model.nobs:
            raise ValidationError(
                f"number of rows in use has changed ({model.nobs} -> {candidate.nobs}) "
                f"when {'adding' if adding else 'dropping'} {term.label!r}: "
                f"remove missing values first"
            )
        rows.append(_Candidate(term.label, candidate))
    return rows


def _as_anova(
    model: Model,
    rows: list[_Candidate],
    k: float,
    test: str | None,
    adding: bool,
) -> AnovaSolution:
    is_lm = isinstance(model, LinearSolution)
    base = rows[0].model
    dev = np.array([_deviance(r.model) for r in rows])
    aic = np.array([extract_aic(r.model, k)[1] for r in rows])
    df = np.array([abs(r.model.rank - base.rank) for r in rows], dtype=np.float64)
    df[0] = np.nan
    change = np.abs(dev - dev[0])
    change[0] = np.nan

    if is_lm:
        columns = ['Df', 'Sum of Sq', 'RSS', 'AIC']
        values = [df, change, dev, aic]
    else:
        columns = ['Df', 'Deviance', 'AIC']
        values = [df, dev, aic]

    pcol = None
    with np.errstate(invalid='ignore', divide='ignore'):
        if test == 'F':
            rdf = base.df_residual
            if adding:
                rdf_i = rdf - df
                Fs = (change / df) / (dev / rdf_i)
                p = stats.f.sf(Fs, df, rdf_i)
            else:
                rms = dev[0] / rdf
                Fs = (change / df) / rms
                p = stats.f.sf(Fs, df, rdf)
            Fs[0] = p[0] = np.nan
            columns += ['F value', 'Pr(>F)']
            values += [Fs, p]
            pcol = 'Pr(>F)'
        elif test == 'Chisq':
            if is_lm:
                n = model.nobs
                lrt = np.abs(n * np.log(dev / dev[0]))
            else:
                lrt = change / base.dispersion
            p = stats.chi2.sf(lrt, df)
            p[0] = np.nan
            if not is_lm:
                label = 'LRT' if base.dispersion == 1.0 else 'scaled dev.'
                lrt[0] = np.nan
                columns += [label]
                values += [lrt]
            columns += ['Pr(>Chi)']
            values += [p]
            pcol = 'Pr(>Chi)'

    heading = [
        "Single term additions" if adding else "Single term deletions",
        "",
        "Model:",
        str(model.formula) if model.formula is not None else model.design.response_name,
    ]
    params = AnovaParams(
        kind='add1' if adding else 'drop1',
        heading=tuple(heading),
        row_names=tuple(r.label for r in rows),
        columns=tuple(columns),
        values=np.column_stack(values),
        pvalue_column=pcol,
        test=test,
        n_obs=model.nobs,
    )
    return AnovaSolution(_result=Result(
        params=params,
        info={'k': k},
        timing=None,
        backend_name=model.backend_name,
    ))


def _trace_table(table: AnovaSolution, order: np.ndarray) -> str:
    frame = table.to_frame().iloc[order]
    return "\n" + frame.to_string(float_format=lambda v: f"{v:.2f}", na_rep='') + "\n"
