"""
Core infrastructure for pyregselect.

Shared abstractions used by every domain module (formula, regression,
anova, diagnostics, selection, evaluation).

Key components:
    datasource: DataSource, the typed table (factors, reference levels)
    result: Generic Result[P] envelope
    exceptions: Exception hierarchy
    validation: Input validators
    compute: Timing, device detection, pivoted QR, tolerances
"""

from pyregselect.core.datasource import DataSource, make_names
from pyregselect.core.protocols import Backend
from pyregselect.core.result import Result
from pyregselect.core.exceptions import (
    RegSelectError,
    ValidationError,
    DimensionError,
    FormulaError,
    NumericalError,
    SingularMatrixError,
    ConvergenceError,
)

__all__ = [
    "DataSource",
    "make_names",
    "Backend",
    "Result",
    "RegSelectError",
    "ValidationError",
    "DimensionError",
    "FormulaError",
    "NumericalError",
    "SingularMatrixError",
    "ConvergenceError",
]
