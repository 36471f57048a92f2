"""
Exception hierarchy for pyregselect.

Every exception derives from RegSelectError so callers can catch any
library error with a single clause. Domain modules raise the most
specific class below rather than defining their own roots.

Design principles:
    - Exceptions carry diagnostic information as attributes
    - Messages name the offending parameter and show actual vs expected
    - Never catch and re-raise with less information
"""


class RegSelectError(Exception):
    """Base exception for all pyregselect errors."""
    pass


class ValidationError(RegSelectError):
    """
    Input validation failed.

    Raised at the public boundary when data, formulas, or arguments
    cannot be used for modeling.
    """
    pass


class DimensionError(ValidationError):
    """
    Array dimensions are incorrect or inconsistent.

    Raised when array shapes don't match expected dimensions or
    when multiple arrays have inconsistent shapes.
    """
    pass


class FormulaError(ValidationError):
    """
    A model formula could not be parsed or evaluated.

    Attributes:
        formula: The offending formula text, if available
        token: The token or variable that triggered the error, if known
    """

    def __init__(
        self,
        message: str,
        formula: str | None = None,
        token: str | None = None,
    ):
        super().__init__(message)
        self.formula = formula
        self.token = token


class NumericalError(RegSelectError):
    """
    Numerical computation failed.

    Base class for errors arising from numerical issues during fitting.
    """
    pass


class SingularMatrixError(NumericalError):
    """
    Matrix is singular or nearly singular.

    Attributes:
        matrix_name: Name/description of the problematic matrix
        rank: Numerical rank, if computed
        expected_rank: Rank required by the operation
    """

    def __init__(
        self,
        message: str,
        matrix_name: str | None = None,
        rank: int | None = None,
        expected_rank: int | None = None,
    ):
        super().__init__(message)
        self.matrix_name = matrix_name
        self.rank = rank
        self.expected_rank = expected_rank


class ConvergenceError(RegSelectError):
    """
    Iterative algorithm failed to converge.

    GLM fitting does not raise this by default (R warns and returns the
    last iterate); it is raised when a caller asks for strict convergence.

    Attributes:
        iterations: Number of iterations completed
        final_change: Final relative deviance change
        reason: Why convergence failed (e.g., 'max_iterations')
        threshold: The convergence threshold that was not met
    """

    def __init__(
        self,
        message: str,
        iterations: int,
        final_change: float | None = None,
        reason: str | None = None,
        threshold: float | None = None,
    ):
        super().__init__(message)
        self.iterations = iterations
        self.final_change = final_change
        self.reason = reason
        self.threshold = threshold
