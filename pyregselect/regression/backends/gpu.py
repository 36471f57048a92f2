"""
GPU backend for linear regression using PyTorch.

Performance path for large problems, validated against the CPU
reference. Supports CUDA (Linux/Windows) and MPS (macOS Apple Silicon).
"""

from typing import Any
import numpy as np

from pyregselect.core.result import Result
from pyregselect.core.exceptions import NumericalError, SingularMatrixError
from pyregselect.core.compute.timing import Timer
from pyregselect.core.compute.tolerances import GPU_CONDITION_THRESHOLD
from pyregselect.regression.design import Design
from pyregselect.regression.solution import LinearParams


class GPUQRBackend:
    """
    GPU backend using PyTorch for linear regression.

    Uses Cholesky decomposition on the normal equations X'X β = X'y.
    Faster than QR for well-conditioned problems, but squares the
    condition number: ill-conditioned matrices are refused unless
    force=True, and rank-deficient ones always are (only the CPU QR
    path reports aliased coefficients).

    FP32 by default for performance on consumer GPUs.
    """

    def __init__(self, use_fp64: bool = False, device: str = 'cuda', force: bool = False):
        """
        Args:
            use_fp64: If True, use FP64 (slow on consumer GPUs).
                     If False, use FP32 (fast, statistically equivalent).
            device: GPU device type ('cuda', 'cuda:0', 'mps')
            force: Proceed even when the design is ill-conditioned
        """
        import torch

        self.force = force
        if device.startswith('cuda'):
            if not torch.cuda.is_available():
                raise RuntimeError(
                    "CUDA not available. Install PyTorch with CUDA support, "
                    "or use backend='cpu'."
                )
            self.device = torch.device(device)
            self.dtype = torch.float64 if use_fp64 else torch.float32
            self.use_fp64 = use_fp64
            self.device_name = torch.cuda.get_device_properties(self.device).name

        elif device == 'mps':
            if not (hasattr(torch.backends, 'mps') and torch.backends.mps.is_available()):
                raise RuntimeError(
                    "MPS not available. Requires macOS with Apple Silicon "
                    "and PyTorch with MPS support."
                )
            if use_fp64:
                raise RuntimeError(
                    "MPS does not support float64. Use use_fp64=False "
                    "or use backend='cpu' for double precision."
                )
            self.device = torch.device('mps')
            self.dtype = torch.float32
            self.use_fp64 = False
            self.device_name = 'Apple Silicon GPU (MPS)'

        else:
            raise ValueError(
                f"Unknown GPU device: {device!r}. Use 'cuda' or 'mps'."
            )

    @property
    def name(self) -> str:
        precision = "fp64" if self.use_fp64 else "fp32"
        return f'gpu_qr_{precision}'

    def solve(self, design: Design) -> Result[LinearParams]:
        """
        Solve linear regression on GPU using the Cholesky method.

        Raises:
            SingularMatrixError: If X is rank-deficient
            NumericalError: If X is ill-conditioned and force is False
        """
        import torch

        timer = Timer(sync_cuda=self.device.type == 'cuda')
        timer.start()

        n, p = design.n, design.p

        with timer.section('data_transfer_to_gpu'):
            X = torch.from_numpy(design.X).to(device=self.device, dtype=self.dtype)
            y = torch.from_numpy(design.y).to(device=self.device, dtype=self.dtype)

        # svdvals is not implemented on MPS; run the check on CPU there
        with timer.section('condition_check'):
            try:
                sv = torch.linalg.svdvals(X)
            except (NotImplementedError, RuntimeError):
                sv = torch.linalg.svdvals(X.cpu()).to(X.device)
            sv_min = float(sv[-1].item())
            sv_max = float(sv[0].item())
            cond = sv_max / sv_min if sv_min > 0 else float('inf')
            threshold = max(n, p) * torch.finfo(self.dtype).eps * sv_max
            effective_rank = int((sv > threshold).sum().item())

        if effective_rank < p:
            timer.stop()
            raise SingularMatrixError(
                f"Design matrix is rank-deficient (rank {effective_rank} < {p}); "
                f"use backend='cpu' to get aliased (NA) coefficients",
                matrix_name='X',
                rank=effective_rank,
                expected_rank=p,
            )

        if cond > GPU_CONDITION_THRESHOLD and not self.force:
            timer.stop()
            raise NumericalError(
                f"Design matrix is ill-conditioned (condition number: {cond:.2e}). "
                f"Cholesky on the normal equations is likely to be unstable. "
                f"Use backend='cpu' for pivoted QR, or pass force=True."
            )

        with timer.section('normal_equations'):
            XtX = X.T @ X
            Xty = X.T @ y

        with timer.section('cholesky_solve'):
            L = torch.linalg.cholesky(XtX)
            coef_gpu = torch.cholesky_solve(Xty.unsqueeze(1), L).squeeze(1)
            XtX_inv = torch.cholesky_inverse(L)

        with timer.section('fitted_residuals'):
            fitted_gpu = X @ coef_gpu
            residuals_gpu = y - fitted_gpu
            hat_gpu = ((X @ XtX_inv) * X).sum(dim=1)

        with timer.section('data_transfer_to_cpu'):
            coefficients = coef_gpu.cpu().numpy().astype(np.float64)
            fitted_values = fitted_gpu.cpu().numpy().astype(np.float64)
            residuals = residuals_gpu.cpu().numpy().astype(np.float64)
            unscaled = XtX_inv.cpu().numpy().astype(np.float64)
            hat_values = hat_gpu.cpu().numpy().astype(np.float64)

        timer.stop()

        y_np = design.y
        rss = float(residuals @ residuals)
        if design.has_intercept:
            tss = float(np.sum((y_np - y_np.mean()) ** 2))
        else:
            tss = float(y_np @ y_np)

        params = LinearParams(
            coefficients=coefficients,
            residuals=residuals,
            fitted_values=fitted_values,
            rss=rss,
            tss=tss,
            rank=p,
            df_residual=n - p,
            unscaled_covariance=unscaled,
            hat_values=hat_values,
        )

        info: dict[str, Any] = {
            'method': 'cholesky',
            'rank': p,
            'device': str(self.device),
            'dtype': str(self.dtype),
            'device_name': self.device_name,
            'condition_number': cond,
            'n_dropped': design.n_dropped,
        }

        return Result(
            params=params,
            info=info,
            timing=timer.result(),
            backend_name=self.name,
            warnings=(),
        )
