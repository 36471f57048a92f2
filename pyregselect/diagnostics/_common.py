"""
Common types for regression diagnostics.

Parameter payloads for the diagnostics that return more than a vector:
htest-style residual tests, Box-Cox profiles, VIF tables and the
Bonferroni outlier test.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
import numpy as np
from numpy.typing import NDArray


@dataclass(frozen=True)
class HTestParams:
    """
    Parameter payload for a residual test, shaped like R's htest.

    Attributes
    ----------
    statistic : float
        Test statistic value.
    statistic_name : str
        Name of the statistic ("W", "BP").
    parameter : dict or None
        Distribution parameters, e.g. {"df": 3}.
    p_value : float
        p-value of the test.
    method : str
        Human-readable method name.
    data_name : str
        Description of the data the test ran on.
    """
    statistic: float
    statistic_name: str
    parameter: dict[str, float] | None
    p_value: float
    method: str
    data_name: str


@dataclass(frozen=True)
class BoxCoxParams:
    """
    Profile log-likelihood of the Box-Cox transformation parameter.

    `ci` is the interval where the log-likelihood stays within
    qchisq(level, 1) / 2 of its maximum, interpolated linearly between
    grid points.
    """
    lambdas: NDArray[np.floating[Any]]
    log_likelihood: NDArray[np.floating[Any]]
    lambda_hat: float
    ci: tuple[float, float]
    level: float
    n_obs: int


@dataclass(frozen=True)
class VIFParams:
    """
    Generalized variance inflation factors, one row per term.

    For 1-df terms GVIF is the ordinary VIF and the adjusted value
    GVIF^(1/(2*Df)) is its square root.
    """
    terms: tuple[str, ...]
    gvif: NDArray[np.floating[Any]]
    df: NDArray[np.int_]
    adjusted: NDArray[np.floating[Any]]


@dataclass(frozen=True)
class OutlierTestParams:
    """
    Bonferroni outlier test on studentized residuals.

    `labels` are 1-based row numbers of the data the model was fitted
    to. When `significant` is False the single largest |rstudent| is
    reported instead.
    """
    labels: tuple[int, ...]
    rstudent: NDArray[np.floating[Any]]
    p_unadjusted: NDArray[np.floating[Any]]
    p_bonferroni: NDArray[np.floating[Any]]
    significant: bool
    cutoff: float
    distribution: str
