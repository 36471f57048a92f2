"""
Regression backends.

Available backends:
    CPUQRBackend: CPU reference implementation, R's pivoted QR (lm.fit)
    CPUIRLSBackend: CPU IRLS for GLMs (glm.fit)
    GPUQRBackend: GPU least squares via PyTorch (optional, imported lazily)
"""

from pyregselect.regression.backends.cpu import CPUQRBackend
from pyregselect.regression.backends.cpu_glm import CPUIRLSBackend

__all__ = [
    "CPUQRBackend",
    "CPUIRLSBackend",
]
