"""
GPU least-squares backend against the CPU QR reference.

Skipped automatically when no GPU is available.
"""

import warnings

import numpy as np
import pytest

from pyregselect.core.compute.device import select_device
from pyregselect.core.compute.tolerances import select_tolerance
from pyregselect.core.exceptions import SingularMatrixError
from pyregselect.regression import Design, fit, lm
from pyregselect.regression.backends.gpu import GPUQRBackend


def _gpu_available():
    try:
        import torch
        return (torch.cuda.is_available() or
                (hasattr(torch.backends, 'mps') and torch.backends.mps.is_available()))
    except ImportError:
        return False


requires_gpu = pytest.mark.skipif(not _gpu_available(), reason="GPU not available")


@requires_gpu
class TestGPUMatchesCPU:

    def test_coefficients(self, simple_regression_data):
        X, y, _ = simple_regression_data
        X = np.column_stack([np.ones(len(y)), X])
        cpu = fit(X, y, backend='cpu')
        gpu = fit(X, y, backend='gpu')
        tol = select_tolerance(gpu.backend_name)
        np.testing.assert_allclose(gpu.coefficients, cpu.coefficients, rtol=tol.rtol, atol=tol.atol)
        np.testing.assert_allclose(gpu.standard_errors, cpu.standard_errors, rtol=tol.rtol, atol=tol.atol)
        assert gpu.rss == pytest.approx(cpu.rss, rel=tol.rtol)

    def test_formula_model(self, insurance_like):
        cpu = lm("charges ~ age + bmi + smoker + region", insurance_like, backend='cpu')
        gpu = lm("charges ~ age + bmi + smoker + region", insurance_like, backend='gpu')
        tol = select_tolerance(gpu.backend_name)
        np.testing.assert_allclose(gpu.fitted_values, cpu.fitted_values, rtol=tol.rtol, atol=1e-3)
        np.testing.assert_allclose(gpu.hat_values, cpu.hat_values, rtol=tol.rtol, atol=tol.atol)

    def test_rank_deficient_refused(self, collinear_data):
        X, y = collinear_data
        backend = GPUQRBackend(device=select_device('gpu').device_type, force=True)
        with pytest.raises(SingularMatrixError) as exc:
            backend.solve(Design.from_arrays(X, y))
        assert exc.value.expected_rank == X.shape[1]


@pytest.mark.skipif(_gpu_available(), reason="GPU present")
def test_gpu_request_without_gpu(simple_regression_data):
    X, y, _ = simple_regression_data
    with warnings.catch_warnings():
        warnings.simplefilter('ignore')
        with pytest.raises(RuntimeError):
            fit(X, y, backend='gpu')


def test_auto_uses_cpu_for_small_designs(simple_regression_data):
    X, y, _ = simple_regression_data
    assert fit(X, y, backend='auto').backend_name == 'cpu_qr'
