"""
User-facing ANOVA solution type.

Wraps a Result[AnovaParams] and provides the table as a DataFrame and
R's printed layout.
"""

from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd

from pyregselect.core.result import Result
from pyregselect.anova._common import AnovaParams
from pyregselect.regression._format import SIGNIF_LEGEND, format_table

_INTEGER_COLUMNS = ('Df', 'Res.Df', 'Resid. Df')


@dataclass
class AnovaSolution:
    """
    Analysis of variance (lm) or deviance (glm) table.

    Produced by anova().
    """
    _result: Result[AnovaParams]

    @property
    def kind(self) -> str:
        return self._result.params.kind

    @property
    def test(self) -> str | None:
        return self._result.params.test

    @property
    def n_obs(self) -> int:
        return self._result.params.n_obs

    @property
    def row_names(self) -> tuple[str, ...]:
        return self._result.params.row_names

    @property
    def p_values(self) -> np.ndarray:
        """The p-value column (NaN where R prints nothing)."""
        params = self._result.params
        if params.pvalue_column is None:
            return np.full(len(params.row_names), np.nan)
        return params.values[:, params.columns.index(params.pvalue_column)]

    def to_frame(self) -> pd.DataFrame:
        """The table with R's column names, one row per term or model."""
        params = self._result.params
        return pd.DataFrame(
            params.values.copy(), index=list(params.row_names), columns=list(params.columns),
        )

    def __getitem__(self, column: str) -> pd.Series:
        return self.to_frame()[column]

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
        """R-style printed table."""
        params = self._result.params
        lines = list(params.heading)
        lines.append("")
        pcols = (params.pvalue_column,) if params.pvalue_column else ()
        lines.extend(format_table(
            self.to_frame(),
            pvalue_columns=pcols,
            integer_columns=_INTEGER_COLUMNS,
            blank_missing=True,
        ))
        if pcols:
            lines.append("---")
            lines.append(SIGNIF_LEGEND)
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.summary()

    def __repr__(self) -> str:
        return (
            f"AnovaSolution(kind={self.kind!r}, rows={list(self.row_names)}, "
            f"test={self.test!r})"
        )
