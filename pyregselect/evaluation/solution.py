"""
Evaluation solution types.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
import numpy as np
import pandas as pd

from pyregselect.core.result import Result
from pyregselect.evaluation._common import ConfusionParams, MetricsParams
from pyregselect.regression._format import format_number


def _ratio(num: int, den: int) -> float:
    return num / den if den > 0 else float('nan')


@dataclass
class ConfusionSolution:
    """
    Confusion matrix of a binary classifier with the usual rates.

    Rows are predicted classes and columns actual classes.
    """
    _result: Result[ConfusionParams]

    @property
    def table(self) -> pd.DataFrame:
        p = self._result.params
        neg, pos = p.labels
        return pd.DataFrame(
            p.table,
            index=pd.Index([neg, pos], name='predicted'),
            columns=pd.Index([neg, pos], name='actual'),
        )

    @property
    def threshold(self) -> float:
        return self._result.params.threshold

    @property
    def n(self) -> int:
        return int(self._result.params.table.sum())

    @property
    def accuracy(self) -> float:
        p = self._result.params
        return _ratio(p.tp + p.tn, self.n)

    @property
    def misclassification(self) -> float:
        return 1.0 - self.accuracy if self.n > 0 else float('nan')

    @property
    def sensitivity(self) -> float:
        """True positive rate: TP / (TP + FN)."""
        p = self._result.params
        return _ratio(p.tp, p.tp + p.fn)

    @property
    def specificity(self) -> float:
        """True negative rate: TN / (TN + FP)."""
        p = self._result.params
        return _ratio(p.tn, p.tn + p.fp)

    @property
    def precision(self) -> float:
        """Positive predictive value: TP / (TP + FP)."""
        p = self._result.params
        return _ratio(p.tp, p.tp + p.fp)

    def rates(self) -> pd.Series:
        return pd.Series({
            'accuracy': self.accuracy,
            'misclassification': self.misclassification,
            'sensitivity': self.sensitivity,
            'specificity': self.specificity,
            'precision': self.precision,
        })

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    def summary(self) -> str:
        lines = [f"Confusion matrix (threshold = {self.threshold:g})", ""]
        lines.extend(self.table.to_string().splitlines())
        lines.append("")
        for name, value in self.rates().items():
            lines.append(f"{name:>18}: {format_number(value)}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.summary()

    def __repr__(self) -> str:
        return f"ConfusionSolution(n={self.n}, accuracy={self.accuracy:.4f})"


@dataclass
class MetricsSolution:
    """RMSE, MAE and out-of-sample R² of numeric predictions."""
    _result: Result[MetricsParams]

    @property
    def rmse(self) -> float:
        return self._result.params.rmse

    @property
    def mae(self) -> float:
        return self._result.params.mae

    @property
    def r_squared(self) -> float:
        return self._result.params.r_squared

    @property
    def n(self) -> int:
        return self._result.params.n

    @property
    def residuals(self) -> np.ndarray:
        return self._result.params.residuals

    def to_series(self) -> pd.Series:
        return pd.Series({'RMSE': self.rmse, 'MAE': self.mae, 'R2': self.r_squared})

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    def summary(self) -> str:
        return "\n".join(
            f"{name:>5}: {format_number(value, 6)}" for name, value in self.to_series().items()
        ) + f"\n    n: {self.n}"

    def __str__(self) -> str:
        return self.summary()

    def __repr__(self) -> str:
        return f"MetricsSolution(rmse={self.rmse:.4g}, mae={self.mae:.4g}, r2={self.r_squared:.4g})"
