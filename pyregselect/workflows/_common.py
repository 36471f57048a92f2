"""
Steps shared by more than one workflow.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike

from pyregselect.core.datasource import DataSource
from pyregselect.regression.solution import GLMSolution, LinearSolution
from pyregselect.regression.solvers import refit
from pyregselect.selection import StepSolution, step
from pyregselect.workflows.config import WorkflowConfig


def prepare(source: DataSource, response: str, config: WorkflowConfig) -> DataSource:
    """Standardize the numeric predictors when the config asks for it."""
    if not config.scale_numeric:
        return source
    return source.scale(exclude=[response])


def without_rows(source: DataSource, labels: ArrayLike) -> DataSource:
    """Drop rows by their 1-based row labels."""
    keep = np.ones(source.n_observations, dtype=bool)
    keep[np.asarray(labels, dtype=np.int64) - 1] = False
    return source.subset(keep)


def stepwise(model: LinearSolution | GLMSolution, config: WorkflowConfig) -> StepSolution:
    """
    Run step() in the configured direction between the intercept-only
    model and `model`.

    Forward selection starts from the intercept-only model; 'both' and
    'backward' start from `model`.
    """
    full = model.formula
    k = config.penalty(model.nobs)
    lower = f"{full.response} ~ 1"
    if config.direction == 'forward':
        start = refit(model, lower)
        return step(start, scope=(None, full), direction='forward', k=k)
    return step(model, scope=(lower, full), direction=config.direction, k=k)


def count_missing(source: DataSource, columns) -> dict[str, int]:
    return {c: int(source.missing(c).sum()) for c in columns}
