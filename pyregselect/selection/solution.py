"""
Selection solution types.

SubsetsSolution (regsubsets), FitAllSolution (fitall) and StepSolution
(step) wrap their Result payloads and keep the model they came from, so
the chosen model can be refitted or inspected directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal
import numpy as np
import pandas as pd
from numpy.typing import NDArray

from pyregselect.core.exceptions import ValidationError
from pyregselect.core.result import Result
from pyregselect.formula import INTERCEPT
from pyregselect.regression._format import format_number, format_table
from pyregselect.regression.solution import GLMSolution, LinearSolution
from pyregselect.regression.solvers import refit_design
from pyregselect.selection._common import FitAllParams, StepParams, SubsetsParams

Criterion = Literal['rsq', 'adjr2', 'cp', 'bic', 'rss']

# direction of "better" for each criterion
_MAXIMISE = {'rsq': True, 'adjr2': True, 'cp': False, 'bic': False, 'rss': False}


@dataclass
class SubsetsSolution:
    """
    Best subsets of each size (leaps::regsubsets plus its summary()).

    Example:
        >>> subsets = regsubsets(model, nvmax=8)
        >>> subsets.best_size('bic')
        4
        >>> subsets.selected(4)
        ('age', 'bmi', 'children', 'smokeryes')
    """
    _result: Result[SubsetsParams]
    _model: LinearSolution

    @property
    def candidates(self) -> tuple[str, ...]:
        return self._result.params.candidates

    @property
    def nvmax(self) -> int:
        return int(self._result.params.rss.shape[0])

    @property
    def method(self) -> str:
        return self._result.params.method

    @property
    def rss(self) -> NDArray[np.floating[Any]]:
        return self._result.params.rss

    @property
    def rsq(self) -> NDArray[np.floating[Any]]:
        return self._result.params.rsq

    @property
    def adjr2(self) -> NDArray[np.floating[Any]]:
        return self._result.params.adjr2

    @property
    def cp(self) -> NDArray[np.floating[Any]]:
        return self._result.params.cp

    @property
    def bic(self) -> NDArray[np.floating[Any]]:
        return self._result.params.bic

    @property
    def which(self) -> pd.DataFrame:
        """Indicator matrix: one row per size, one column per model column."""
        p = self._result.params
        frame = pd.DataFrame(
            p.which, index=pd.RangeIndex(1, self.nvmax + 1, name='size'),
            columns=list(p.candidates),
        )
        if p.intercept:
            frame.insert(0, INTERCEPT, True)
        return frame

    def to_frame(self) -> pd.DataFrame:
        """Criteria of the best model of each size."""
        return pd.DataFrame(
            {
                'rsq': self.rsq,
                'adjr2': self.adjr2,
                'cp': self.cp,
                'bic': self.bic,
                'rss': self.rss,
            },
            index=pd.RangeIndex(1, self.nvmax + 1, name='size'),
        )

    def best_size(self, criterion: Criterion = 'bic') -> int:
        """Model size that optimises `criterion` (max for rsq/adjr2, min otherwise)."""
        if criterion not in _MAXIMISE:
            raise ValidationError(
                f"criterion: expected one of {sorted(_MAXIMISE)}, got {criterion!r}"
            )
        values = getattr(self, criterion)
        idx = np.argmax(values) if _MAXIMISE[criterion] else np.argmin(values)
        return int(idx) + 1

    @property
    def best_sizes(self) -> dict[str, int]:
        return {c: self.best_size(c) for c in ('adjr2', 'cp', 'bic')}

    def selected(self, size: int) -> tuple[str, ...]:
        """Column names in the best model of the given size."""
        self._check_size(size)
        mask = self._result.params.which[size - 1]
        return tuple(c for c, keep in zip(self.candidates, mask) if keep)

    def model(self, size: int) -> LinearSolution:
        """Refit the best model of the given size on its columns."""
        design = self._model.design
        wanted = set(self.selected(size))
        cols = [
            j for j, name in enumerate(design.column_names)
            if name in wanted or (name == INTERCEPT and self._result.params.intercept)
        ]
        return refit_design(self._model, design.subset_columns(cols))

    def coef(self, size: int) -> pd.Series:
        """Coefficients of the best model of the given size (coef(regsubsets, id))."""
        return self.model(size).coef

    def _check_size(self, size: int) -> None:
        if not 1 <= size <= self.nvmax:
            raise ValidationError(f"size: must be in 1..{self.nvmax}, got {size}")

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    def summary(self) -> str:
        """summary(regsubsets): the asterisk matrix followed by the criteria."""
        p = self._result.params
        lines = [
            "Subset selection object",
            f"{len(p.candidates)} Variables {' (and intercept)' if p.intercept else ''}".rstrip(),
            f"1 subsets of each size up to {self.nvmax}",
            f"Selection Algorithm: {p.method}",
        ]
        stars = pd.DataFrame(
            np.where(p.which, '"*"', '" "'),
            index=[f"{k}  ( 1 )" for k in range(1, self.nvmax + 1)],
            columns=list(p.candidates),
        )
        lines.extend(stars.to_string().splitlines())
        lines.append("")
        lines.extend(format_table(self.to_frame(), digits=6, stars=False))
        best = ", ".join(f"{c}={s}" for c, s in self.best_sizes.items())
        lines.append(f"Best size by criterion: {best}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.summary()

    def __repr__(self) -> str:
        return (
            f"SubsetsSolution(method={self.method!r}, nvmax={self.nvmax}, "
            f"candidates={len(self.candidates)})"
        )


@dataclass
class FitAllSolution:
    """Every non-empty subset of a model's terms, refitted and sorted by AIC."""
    _result: Result[FitAllParams]
    _model: LinearSolution | GLMSolution

    @property
    def n_models(self) -> int:
        return len(self._result.params.term_sets)

    @property
    def term_sets(self) -> tuple[tuple[str, ...], ...]:
        return self._result.params.term_sets

    @property
    def best_terms(self) -> tuple[str, ...]:
        """Terms of the lowest-AIC model."""
        return self._result.params.term_sets[0]

    @property
    def best_formula(self) -> str:
        return self._result.params.formulas[0]

    def to_frame(self) -> pd.DataFrame:
        p = self._result.params
        frame = pd.DataFrame(
            {
                'size': p.size,
                'terms': [' + '.join(t) for t in p.term_sets],
                'AIC': p.aic,
                'BIC': p.bic,
            }
        )
        if p.model_kind == 'lm':
            frame['RSS'] = p.deviance
            frame['R2'] = p.r_squared
            frame['adjR2'] = p.adj_r_squared
        else:
            frame['Deviance'] = p.deviance
        return frame

    def top(self, n: int = 10) -> pd.DataFrame:
        return self.to_frame().head(n)

    def best_by_size(self) -> pd.DataFrame:
        """Lowest-AIC model of each size."""
        frame = self.to_frame()
        return frame.loc[frame.groupby('size')['AIC'].idxmin()].reset_index(drop=True)

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing

    def summary(self, n: int = 10) -> str:
        lines = [f"All-subsets fit: {self.n_models} models, best {min(n, self.n_models)} by AIC", ""]
        frame = self.top(n)
        lines.extend(frame.to_string(
            index=False,
            formatters={
                c: (lambda v: format_number(v, 6))
                for c in frame.columns if c not in ('size', 'terms')
            },
        ).splitlines())
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.summary()

    def __repr__(self) -> str:
        return f"FitAllSolution(n_models={self.n_models}, best={self.best_formula!r})"


@dataclass
class StepSolution:
    """
    Result of a stepwise AIC search (R's step()).

    `model` is the selected fit; `anova` is the path table
    (Step, Df, Deviance, Resid. Df, Resid. Dev, AIC).
    """
    _result: Result[StepParams]
    _model: LinearSolution | GLMSolution

    @property
    def model(self) -> LinearSolution | GLMSolution:
        return self._model

    @property
    def formula(self) -> str:
        return self._result.params.final_formula

    @property
    def initial_formula(self) -> str:
        return self._result.params.initial_formula

    @property
    def changes(self) -> tuple[str, ...]:
        """Applied steps ('- term' / '+ term'), without the starting row."""
        return self._result.params.changes[1:]

    @property
    def aic(self) -> float:
        """extractAIC of the selected model at the search's k."""
        return float(self._result.params.aic[-1])

    @property
    def anova(self) -> pd.DataFrame:
        p = self._result.params
        return pd.DataFrame(
            {
                'Step': list(p.changes),
                'Df': p.df,
                'Deviance': p.deviance_change,
                'Resid. Df': p.resid_df,
                'Resid. Dev': p.resid_deviance,
                'AIC': p.aic,
            }
        )

    @property
    def trace(self) -> tuple[str, ...]:
        """Printed tables of every step, as trace=True shows them."""
        return tuple(self._result.info.get('trace', ()))

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    def summary(self) -> str:
        p = self._result.params
        frame = self.anova.set_index('Step')
        frame.index = [str(s) for s in frame.index]
        lines = [
            "Stepwise Model Path ",
            "Analysis of Deviance Table",
            "",
            "Initial Model:",
            p.initial_formula,
            "",
            "Final Model:",
            p.final_formula,
            "",
        ]
        lines.extend(format_table(
            frame, stars=False, integer_columns=('Df', 'Resid. Df'), blank_missing=True,
        ))
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.summary()

    def __repr__(self) -> str:
        return f"StepSolution(formula={self.formula!r}, steps={len(self.changes)})"
