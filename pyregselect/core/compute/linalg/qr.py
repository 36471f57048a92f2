"""
QR decomposition with R-style limited pivoting.

R's lm.fit (LINPACK dqrdc2) processes columns left to right and moves a
column to the end when its norm, after removing the components along
the columns already accepted, drops below `tol` times its original
norm. Such columns are "aliased": their coefficients are reported as
NA (NaN here) and the remaining columns keep their original order.

This module reproduces that column selection, then factors the
accepted columns with LAPACK for the actual solve.
"""

from dataclasses import dataclass
from typing import Any
import numpy as np
from numpy.typing import NDArray
from scipy.linalg import solve_triangular

from pyregselect.core.compute.tolerances import QR_TOL


@dataclass(frozen=True)
class QRResult:
    """
    Pivoted QR factorization of X (n x p).

    Attributes:
        Q: (n, rank) orthonormal basis of the accepted columns
        R: (rank, rank) upper triangular factor of the accepted columns
        rank: Number of accepted (non-aliased) columns
        pivot: Accepted column indices in original order, then aliased ones
        p: Total number of columns in X
    """
    Q: NDArray[np.floating[Any]]
    R: NDArray[np.floating[Any]]
    rank: int
    pivot: NDArray[np.intp]
    p: int

    @property
    def active(self) -> NDArray[np.intp]:
        """Indices of the accepted columns."""
        return self.pivot[:self.rank]

    @property
    def aliased(self) -> NDArray[np.intp]:
        """Indices of the aliased columns."""
        return self.pivot[self.rank:]

    def hat_diagonal(self) -> NDArray[np.floating[Any]]:
        """Leverages: diag(Q Q')."""
        return np.sum(self.Q ** 2, axis=1)

    def unscaled_covariance(self) -> NDArray[np.floating[Any]]:
        """
        (X'X)^-1 over the accepted columns, embedded in a (p, p) matrix.

        Rows and columns of aliased coefficients are NaN, so multiplying
        by sigma^2 gives R's vcov() layout.
        """
        out = np.full((self.p, self.p), np.nan, dtype=np.float64)
        if self.rank == 0:
            return out
        R_inv = solve_triangular(self.R, np.eye(self.rank), lower=False)
        idx = self.active
        out[np.ix_(idx, idx)] = R_inv @ R_inv.T
        return out


def qr_pivoted(
    X: NDArray[np.floating[Any]],
    tol: float = QR_TOL,
) -> QRResult:
    """
    Factor X with R's limited column pivoting.

    Args:
        X: Design matrix (n x p)
        tol: Relative norm below which a column is considered aliased

    Returns:
        QRResult with the accepted columns factored
    """
    n, p = X.shape
    norms = np.linalg.norm(X, axis=0)

    accepted: list[int] = []
    aliased: list[int] = []
    basis = np.empty((n, 0), dtype=np.float64)

    for j in range(p):
        col = X[:, j]
        if norms[j] == 0.0 or len(accepted) >= n:
            aliased.append(j)
            continue
        resid = col - basis @ (basis.T @ col)
        # second Gram-Schmidt pass keeps the residual orthogonal
        resid = resid - basis @ (basis.T @ resid)
        resid_norm = np.linalg.norm(resid)
        if resid_norm < tol * norms[j]:
            aliased.append(j)
            continue
        accepted.append(j)
        basis = np.column_stack([basis, resid / resid_norm])

    rank = len(accepted)
    if rank:
        Q, R = np.linalg.qr(X[:, accepted], mode='reduced')
    else:
        Q = np.empty((n, 0), dtype=np.float64)
        R = np.empty((0, 0), dtype=np.float64)

    return QRResult(
        Q=Q,
        R=R,
        rank=rank,
        pivot=np.array(accepted + aliased, dtype=np.intp),
        p=p,
    )


def qr_solve(
    X: NDArray[np.floating[Any]],
    y: NDArray[np.floating[Any]],
    tol: float = QR_TOL,
) -> tuple[NDArray[np.floating[Any]], QRResult]:
    """
    Least squares via pivoted QR: min_β ||y - Xβ||².

    Aliased coefficients are NaN, matching coef(lm(...)) in R.

    Returns:
        (coefficients, QRResult)
    """
    qr = qr_pivoted(X, tol=tol)
    beta = np.full(qr.p, np.nan, dtype=np.float64)
    if qr.rank:
        effects = qr.Q.T @ y
        beta[qr.active] = solve_triangular(qr.R, effects, lower=False)
    return beta, qr
