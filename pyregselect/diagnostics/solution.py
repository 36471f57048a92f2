"""
Diagnostic solution types.

Each wraps a Result[...] payload from diagnostics._common and provides
accessors, a DataFrame view where one makes sense, and R's printed
layout via summary().
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any
import numpy as np
import pandas as pd
from numpy.typing import NDArray

from pyregselect.core.result import Result
from pyregselect.diagnostics._common import (
    BoxCoxParams,
    HTestParams,
    OutlierTestParams,
    VIFParams,
)
from pyregselect.regression._format import format_number, format_pvalue


@dataclass
class _Wrapped(ABC):
    _result: Result[Any]

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing

    @property
    def backend_name(self) -> str:
        return self._result.backend_name

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    @abstractmethod
    def summary(self) -> str:
        ...

    def __str__(self) -> str:
        return self.summary()


@dataclass
class HTestSolution(_Wrapped):
    """Residual test result with R's print.htest output."""
    _result: Result[HTestParams]

    @property
    def statistic(self) -> float:
        return self._result.params.statistic

    @property
    def statistic_name(self) -> str:
        return self._result.params.statistic_name

    @property
    def parameter(self) -> dict[str, float] | None:
        return self._result.params.parameter

    @property
    def p_value(self) -> float:
        return self._result.params.p_value

    @property
    def method(self) -> str:
        return self._result.params.method

    def summary(self) -> str:
        """
        Format as R's print.htest output:

            studentized Breusch-Pagan test

        data:  charges ~ age + bmi + smoker
        BP = 12.34, df = 3, p-value = 0.006296
        """
        p = self._result.params
        parts = [f"{p.statistic_name} = {p.statistic:.5g}"]
        if p.parameter:
            parts.extend(f"{k} = {v:.5g}" for k, v in p.parameter.items())
        parts.append(f"p-value = {format_pvalue(p.p_value, digits=4)}")
        return "\n".join([
            "",
            f"\t{p.method}",
            "",
            f"data:  {p.data_name}",
            ", ".join(parts),
            "",
        ])

    def __repr__(self) -> str:
        return (
            f"HTestSolution(method={self.method!r}, "
            f"{self.statistic_name}={self.statistic:.4g}, p={self.p_value:.4g})"
        )


@dataclass
class BoxCoxSolution(_Wrapped):
    """
    Box-Cox profile log-likelihood over a λ grid.

    lambda_hat is the grid maximiser. Common choices: 1 (no transform),
    0.5 (square root), 0 (log), -1 (reciprocal).
    """
    _result: Result[BoxCoxParams]

    @property
    def lambdas(self) -> NDArray[np.floating[Any]]:
        return self._result.params.lambdas

    @property
    def log_likelihood(self) -> NDArray[np.floating[Any]]:
        return self._result.params.log_likelihood

    @property
    def lambda_hat(self) -> float:
        return self._result.params.lambda_hat

    @property
    def ci(self) -> tuple[float, float]:
        return self._result.params.ci

    @property
    def level(self) -> float:
        return self._result.params.level

    def suggested_power(self, candidates: tuple[float, ...] = (-2, -1, -0.5, 0, 0.5, 1, 2)) -> float:
        """The candidate power inside the interval closest to lambda_hat."""
        lo, hi = self.ci
        inside = [c for c in candidates if lo <= c <= hi]
        pool = inside or list(candidates)
        return float(min(pool, key=lambda c: abs(c - self.lambda_hat)))

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({'lambda': self.lambdas, 'log_likelihood': self.log_likelihood})

    def summary(self) -> str:
        lo, hi = self.ci
        pct = f"{self.level * 100:g}%"
        return "\n".join([
            "Box-Cox transformation",
            f"  lambda_hat: {format_number(self.lambda_hat)}",
            f"  {pct} interval: [{format_number(lo)}, {format_number(hi)}]",
            f"  suggested power: {format_number(self.suggested_power())}",
        ])

    def __repr__(self) -> str:
        return f"BoxCoxSolution(lambda_hat={self.lambda_hat:g}, ci={self.ci})"


@dataclass
class VIFSolution(_Wrapped):
    """
    Variance inflation factors, one per term.

    When every term has 1 df this prints as R's named vector of VIFs,
    otherwise as the GVIF / Df / GVIF^(1/(2*Df)) table.
    """
    _result: Result[VIFParams]

    @property
    def terms(self) -> tuple[str, ...]:
        return self._result.params.terms

    @property
    def is_generalized(self) -> bool:
        return bool(np.any(self._result.params.df > 1))

    @property
    def values(self) -> pd.Series:
        """GVIF per term (the plain VIF for 1-df terms)."""
        return pd.Series(self._result.params.gvif, index=list(self.terms), name='GVIF')

    @property
    def adjusted(self) -> pd.Series:
        """GVIF^(1/(2*Df)), comparable to sqrt(VIF) across terms."""
        return pd.Series(
            self._result.params.adjusted, index=list(self.terms), name='GVIF^(1/(2*Df))',
        )

    def to_frame(self) -> pd.DataFrame:
        p = self._result.params
        return pd.DataFrame(
            {'GVIF': p.gvif, 'Df': p.df, 'GVIF^(1/(2*Df))': p.adjusted},
            index=list(self.terms),
        )

    def __getitem__(self, term: str) -> float:
        return float(self.values[term])

    def summary(self) -> str:
        if self.is_generalized:
            frame = self.to_frame()
            return frame.to_string(formatters={
                'GVIF': lambda v: format_number(v, 6),
                'GVIF^(1/(2*Df))': lambda v: format_number(v, 6),
            })
        values = self.values
        width = max(max(len(t) for t in self.terms), 8)
        cells = [format_number(v, 6) for v in values]
        return "\n".join([
            ' '.join(t.rjust(width) for t in self.terms),
            ' '.join(c.rjust(width) for c in cells),
        ])

    def __repr__(self) -> str:
        return f"VIFSolution(terms={list(self.terms)}, generalized={self.is_generalized})"


@dataclass
class OutlierTestSolution(_Wrapped):
    """Bonferroni outlier test (car::outlierTest)."""
    _result: Result[OutlierTestParams]

    @property
    def significant(self) -> bool:
        """True if any observation has Bonferroni p below the cutoff."""
        return self._result.params.significant

    @property
    def labels(self) -> tuple[int, ...]:
        return self._result.params.labels

    def to_frame(self) -> pd.DataFrame:
        p = self._result.params
        return pd.DataFrame(
            {
                'rstudent': p.rstudent,
                'unadjusted p-value': p.p_unadjusted,
                'Bonferroni p': p.p_bonferroni,
            },
            index=pd.Index(list(p.labels), name='row'),
        )

    def summary(self) -> str:
        p = self._result.params
        lines = []
        if not p.significant:
            lines.append(
                f"No Studentized residuals with Bonferroni p < {p.cutoff:g}"
            )
            lines.append("Largest |rstudent|:")
        frame = self.to_frame()
        lines.extend(frame.to_string(formatters={
            'rstudent': lambda v: format_number(v, 6),
            'unadjusted p-value': lambda v: format_pvalue(v, 5),
            'Bonferroni p': lambda v: format_pvalue(v, 5),
        }).splitlines())
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"OutlierTestSolution(rows={list(self.labels)}, significant={self.significant})"
