"""
Linear algebra kernels.

CPU kernels use NumPy/SciPy (LAPACK). The GPU least-squares path lives
in the regression backends and talks to torch directly.
"""

from pyregselect.core.compute.linalg.qr import (
    QRResult,
    qr_pivoted,
    qr_solve,
)

__all__ = [
    "QRResult",
    "qr_pivoted",
    "qr_solve",
]
