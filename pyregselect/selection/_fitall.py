"""
All-subsets fitting over model terms.

Unlike regsubsets, which works on model-matrix columns and linear
models only, fitall keeps each term whole (a factor enters or leaves
with all its dummy columns) and refits lm or glm as the model requires.
"""

from __future__ import annotations

import itertools
import numpy as np

from pyregselect.core.exceptions import ValidationError
from pyregselect.core.result import Result
from pyregselect.core.compute.timing import Timer
from pyregselect.core.compute.tolerances import FITALL_MAX_TERMS
from pyregselect.formula import INTERCEPT
from pyregselect.regression.solution import GLMSolution, LinearSolution
from pyregselect.regression.solvers import refit, refit_design
from pyregselect.selection._common import FitAllParams
from pyregselect.selection.solution import FitAllSolution


def fitall(
    model: LinearSolution | GLMSolution,
    max_terms: int = FITALL_MAX_TERMS,
) -> FitAllSolution:
    """
    Fit every non-empty subset of the model's terms (2^m - 1 models).

    Args:
        model: Fitted lm or glm whose terms are enumerated
        max_terms: Refuse models with more terms than this

    Returns:
        FitAllSolution sorted by AIC

    Raises:
        ValidationError: If the model has no terms or more than max_terms
    """
    if not isinstance(model, (LinearSolution, GLMSolution)):
        raise ValidationError(
            f"model: expected a fitted lm or glm, got {type(model).__name__}"
        )
    design = model.design
    labels = design.term_labels
    m = len(labels)
    if m == 0:
        raise ValidationError("fitall: the model has no terms to enumerate")
    if m > max_terms:
        raise ValidationError(
            f"fitall: {m} terms gives {2 ** m - 1} models; at most {max_terms} "
            f"terms are enumerated"
        )

    timer = Timer()
    timer.start()

    is_lm = isinstance(model, LinearSolution)
    rows = []
    with timer.section('fits'):
        for size in range(1, m + 1):
            for subset in itertools.combinations(range(m), size):
                if size == m:
                    sub = model
                elif model.formula is not None:
                    keep = [model.formula.terms[i] for i in subset]
                    sub = refit(model, model.formula.with_terms(keep))
                else:
                    wanted = {i + 1 for i in subset}
                    cols = [
                        j for j, a in enumerate(design.assign)
                        if a in wanted or design.column_names[j] == INTERCEPT
                    ]
                    sub = refit_design(model, design.subset_columns(cols))
                rows.append((
                    tuple(labels[i] for i in subset),
                    _formula_text(sub, subset, labels),
                    sub,
                ))

    order = sorted(range(len(rows)), key=lambda i: rows[i][2].aic)
    rows = [rows[i] for i in order]
    fits = [r[2] for r in rows]
    nan = np.full(len(fits), np.nan)

    timer.stop()
    params = FitAllParams(
        term_sets=tuple(r[0] for r in rows),
        formulas=tuple(r[1] for r in rows),
        size=np.array([len(r[0]) for r in rows], dtype=np.int_),
        aic=np.array([f.aic for f in fits]),
        bic=np.array([f.bic for f in fits]),
        deviance=np.array([f.deviance for f in fits]),
        r_squared=np.array([f.r_squared for f in fits]) if is_lm else nan,
        adj_r_squared=np.array([f.adjusted_r_squared for f in fits]) if is_lm else nan,
        model_kind='lm' if is_lm else 'glm',
    )
    return FitAllSolution(
        _result=Result(
            params=params,
            info={'n_models': len(rows), 'n_terms': m},
            timing=timer.result(),
            backend_name=model.backend_name,
        ),
        _model=model,
    )


def _formula_text(sub, subset, labels) -> str:
    if sub.formula is not None:
        return str(sub.formula)
    rhs = ' + '.join(labels[i] for i in subset)
    return f"{sub.design.response_name} ~ {rhs}"
