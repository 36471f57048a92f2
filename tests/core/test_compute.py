"""
Tests for device selection, tolerance tiers and the Backend protocol.
"""

import pytest

from pyregselect.core.compute.device import DeviceInfo, get_cpu_info, select_device
from pyregselect.core.compute.tolerances import (
    CPU_FP64,
    GPU_FP32,
    GPU_FP64,
    select_tolerance,
)
from pyregselect.core.protocols import Backend
from pyregselect.regression.backends.cpu import CPUQRBackend
from pyregselect.regression.backends.cpu_glm import CPUIRLSBackend
from pyregselect.regression.families import Binomial


class TestDevice:

    def test_cpu_requested(self):
        device = select_device('cpu')
        assert device.device_type == 'cpu'
        assert not device.is_gpu
        assert str(device).startswith("CPU (")

    def test_cpu_info(self):
        assert get_cpu_info().device_index is None

    def test_gpu_string(self):
        info = DeviceInfo('cuda', 0, 'Test Card', 8 * 1024 ** 3)
        assert info.is_gpu
        assert str(info) == "CUDA:0 (Test Card, 8.0GB)"

    def test_mps_without_memory(self):
        info = DeviceInfo('mps', 0, 'Apple Silicon GPU', None)
        assert str(info) == "MPS:0 (Apple Silicon GPU)"


class TestTolerances:

    @pytest.mark.parametrize("name,tier", [
        ('cpu_qr', CPU_FP64),
        ('cpu_irls', CPU_FP64),
        ('gpu_qr_fp64', GPU_FP64),
        ('gpu_qr_fp32', GPU_FP32),
    ])
    def test_select_tolerance(self, name, tier):
        assert select_tolerance(name) is tier


class TestBackendProtocol:

    def test_cpu_backends_conform(self):
        assert isinstance(CPUQRBackend(), Backend)
        assert isinstance(CPUIRLSBackend(Binomial()), Backend)

    def test_backend_names(self):
        assert CPUQRBackend().name == 'cpu_qr'
        assert CPUIRLSBackend(Binomial()).name == 'cpu_irls'


def test_linalg_exports():
    from pyregselect.core.compute import linalg
    assert sorted(linalg.__all__) == ['QRResult', 'qr_pivoted', 'qr_solve']
