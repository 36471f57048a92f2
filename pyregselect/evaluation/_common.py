"""
Common types for model evaluation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
import numpy as np
from numpy.typing import NDArray


@dataclass(frozen=True)
class ConfusionParams:
    """
    2x2 classification table at a probability threshold.

    `table[i, j]` counts observations predicted i and actually j
    (0 = negative, 1 = positive), the layout of R's
    table(predicted, actual).
    """
    table: NDArray[np.int_]
    threshold: float
    labels: tuple[str, str]

    @property
    def tn(self) -> int:
        return int(self.table[0, 0])

    @property
    def fp(self) -> int:
        return int(self.table[1, 0])

    @property
    def fn(self) -> int:
        return int(self.table[0, 1])

    @property
    def tp(self) -> int:
        return int(self.table[1, 1])


@dataclass(frozen=True)
class MetricsParams:
    """Out-of-sample accuracy of numeric predictions."""
    rmse: float
    mae: float
    r_squared: float
    n: int
    residuals: NDArray[np.floating[Any]]
