"""
Common data types for ANOVA.

Contains the frozen parameter payloads that go inside Result[P] envelopes.
Each payload is a pure data container: no methods, no computation.
"""

from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray


@dataclass(frozen=True)
class AnovaParams:
    """
    Parameter payload for an analysis of variance or deviance table.

    The table is stored column-wise, in R's printed column order.
    Cells R leaves empty (the Residuals row's F, the first model's Df)
    are NaN.

    Attributes:
        kind: 'lm', 'glm', 'lm_compare' or 'glm_compare'
        heading: Lines printed above the table
        row_names: Term labels ('Residuals', 'NULL') or model numbers
        columns: Column names, e.g. ('Df', 'Sum Sq', ...)
        values: (n_rows, n_columns) table values
        pvalue_column: Name of the p-value column, or None without a test
        test: The test used ('F', 'Chisq') or None
        n_obs: Observations the models were fitted to
    """
    kind: str
    heading: tuple[str, ...]
    row_names: tuple[str, ...]
    columns: tuple[str, ...]
    values: NDArray[np.floating[Any]]
    pvalue_column: str | None
    test: str | None
    n_obs: int
