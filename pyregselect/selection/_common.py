"""
Common types for model selection.

Parameter payloads for best-subset enumeration (regsubsets), all-subset
term fits (fitall) and stepwise AIC search (step).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
import numpy as np
from numpy.typing import NDArray


@dataclass(frozen=True)
class SubsetsParams:
    """
    Best model of each size, as leaps::regsubsets reports them.

    Row k-1 of every array describes the best model with k candidate
    columns (the intercept, when present, is always in and not counted).

    Attributes
    ----------
    candidates : tuple of str
        Candidate model-matrix column names, in design order.
    which : ndarray of bool, shape (nvmax, n_candidates)
        Columns in the best model of each size.
    rss, rsq, adjr2, cp, bic : ndarray, shape (nvmax,)
        Fit criteria of each best model.
    method : str
        'exhaustive', 'forward' or 'backward'.
    intercept : bool
        Whether every model includes the intercept.
    sigma2 : float
        Residual variance of the full candidate model, used by Cp.
    """
    candidates: tuple[str, ...]
    which: NDArray[np.bool_]
    rss: NDArray[np.floating[Any]]
    rsq: NDArray[np.floating[Any]]
    adjr2: NDArray[np.floating[Any]]
    cp: NDArray[np.floating[Any]]
    bic: NDArray[np.floating[Any]]
    method: str
    intercept: bool
    sigma2: float
    n_obs: int


@dataclass(frozen=True)
class FitAllParams:
    """
    One row per non-empty subset of the model's terms, sorted by AIC.

    `r_squared` and `adj_r_squared` are NaN for GLMs and `deviance` is
    the RSS for linear models.
    """
    term_sets: tuple[tuple[str, ...], ...]
    formulas: tuple[str, ...]
    size: NDArray[np.int_]
    aic: NDArray[np.floating[Any]]
    bic: NDArray[np.floating[Any]]
    deviance: NDArray[np.floating[Any]]
    r_squared: NDArray[np.floating[Any]]
    adj_r_squared: NDArray[np.floating[Any]]
    model_kind: str


@dataclass(frozen=True)
class StepParams:
    """
    Path of a stepwise search, shaped like step(...)$anova.

    `changes[0]` is '' (the starting model); later entries are '- term'
    or '+ term'. Df is the change in residual df, Deviance the absolute
    change in deviance (RSS for lm).
    """
    changes: tuple[str, ...]
    df: NDArray[np.floating[Any]]
    deviance_change: NDArray[np.floating[Any]]
    resid_df: NDArray[np.floating[Any]]
    resid_deviance: NDArray[np.floating[Any]]
    aic: NDArray[np.floating[Any]]
    initial_formula: str
    final_formula: str
    direction: str
    k: float
