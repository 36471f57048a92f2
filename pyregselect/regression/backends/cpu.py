"""
CPU reference backend for linear regression.

Solves least squares through R's limited-pivoting QR, so aliased
columns get NaN coefficients exactly where lm() reports NA.
"""

from typing import Any
import numpy as np

from pyregselect.core.result import Result
from pyregselect.core.compute.timing import Timer
from pyregselect.core.compute.tolerances import QR_TOL
from pyregselect.core.compute.linalg.qr import qr_solve
from pyregselect.regression.design import Design
from pyregselect.regression.solution import LinearParams


class CPUQRBackend:
    """
    CPU backend using pivoted QR decomposition.

    Implements the Backend protocol for Design -> LinearParams.
    """

    def __init__(self, tol: float = QR_TOL):
        self.tol = tol

    @property
    def name(self) -> str:
        return 'cpu_qr'

    def solve(self, design: Design) -> Result[LinearParams]:
        """
        Solve OLS via pivoted QR.

        Algorithm:
            1. Factor X = QR, moving aliased columns to the end
            2. Solve R β = Q'y for the accepted columns
            3. Residuals, leverages and (X'X)⁻¹ from the same factor
        """
        timer = Timer()
        timer.start()

        X = design.X
        y = design.y
        n = design.n

        with timer.section('qr_solve'):
            coefficients, qr = qr_solve(X, y, tol=self.tol)

        with timer.section('residuals'):
            beta = np.where(np.isnan(coefficients), 0.0, coefficients)
            fitted_values = X @ beta
            residuals = y - fitted_values

        with timer.section('statistics'):
            rss = float(residuals @ residuals)
            if design.has_intercept:
                tss = float(np.sum((y - np.mean(y)) ** 2))
            else:
                tss = float(y @ y)
            hat_values = qr.hat_diagonal()
            unscaled = qr.unscaled_covariance()

        timer.stop()

        warnings_list: list[str] = []
        if qr.rank < design.p:
            aliased = [design.column_names[j] for j in qr.aliased]
            warnings_list.append(
                f"{len(aliased)} coefficients not defined because of singularities: "
                f"{', '.join(aliased)}"
            )

        params = LinearParams(
            coefficients=coefficients,
            residuals=residuals,
            fitted_values=fitted_values,
            rss=rss,
            tss=tss,
            rank=qr.rank,
            df_residual=n - qr.rank,
            unscaled_covariance=unscaled,
            hat_values=hat_values,
        )

        info: dict[str, Any] = {
            'method': 'qr',
            'rank': qr.rank,
            'pivot': qr.pivot.tolist(),
            'n_dropped': design.n_dropped,
        }

        return Result(
            params=params,
            info=info,
            timing=timer.result(),
            backend_name=self.name,
            warnings=tuple(warnings_list),
        )
