"""
Model selection: best subsets, all-subsets term fits and stepwise AIC.

Public API:
    regsubsets(model, nvmax=8, method='exhaustive') -> SubsetsSolution
    fitall(model, max_terms=15) -> FitAllSolution
    drop1(model, scope=None, k=2, test=None) -> AnovaSolution
    add1(model, scope, k=2, test=None) -> AnovaSolution
    step(model, scope=None, direction='both', k=2) -> StepSolution
    extract_aic(model, k=2) -> (edf, aic)

Example:
    >>> full = lm("quality ~ .", wine)
    >>> best = regsubsets(full, nvmax=11)
    >>> best.selected(best.best_size('bic'))
    >>> chosen = step(full, k=math.log(full.nobs)).model
"""

from pyregselect.selection._subsets import regsubsets
from pyregselect.selection._fitall import fitall
from pyregselect.selection._stepwise import add1, drop1, extract_aic, step
from pyregselect.selection.solution import (
    SubsetsSolution,
    FitAllSolution,
    StepSolution,
)
from pyregselect.selection._common import SubsetsParams, FitAllParams, StepParams

__all__ = [
    "regsubsets",
    "fitall",
    "drop1",
    "add1",
    "step",
    "extract_aic",
    "SubsetsSolution",
    "FitAllSolution",
    "StepSolution",
    "SubsetsParams",
    "FitAllParams",
    "StepParams",
]
