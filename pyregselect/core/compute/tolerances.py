"""
Numerical defaults and tolerance tiers.

Fitting defaults mirror R's: lm.fit's rank tolerance, glm.control's
epsilon and maxit, MASS::boxcox's near-zero threshold. Every public
function takes these as keyword defaults, so a call can override them.

The tiers are used by the test suite and by the GPU backend to decide
how closely a result must match the CPU reference.
"""

from dataclasses import dataclass

# lm.fit(tol = 1e-07): relative column-norm threshold for aliasing
QR_TOL = 1e-7

# glm.control(epsilon = 1e-8, maxit = 25)
IRLS_TOL = 1e-8
IRLS_MAX_ITER = 25

# Fitted binomial probabilities closer than this to 0 or 1 trigger
# R's "fitted probabilities numerically 0 or 1 occurred" warning
BINOMIAL_BOUNDARY_EPS = 10 * 2.220446049250313e-16

# MASS::boxcox uses a series expansion when |lambda| <= eps
BOXCOX_EPS = 1.0 / 50.0

# Cap on the number of terms fitall() enumerates (2^15 - 1 models)
FITALL_MAX_TERMS = 15

# Cond(X) above which the GPU Cholesky path refuses to run;
# cond(X'X) = cond(X)^2 is then near float64 epsilon
GPU_CONDITION_THRESHOLD = 1e6

# backend='auto' only moves lm to a CUDA device from this many rows on;
# below it the transfer costs more than the solve
GPU_AUTO_MIN_ROWS = 100_000


@dataclass(frozen=True)
class ToleranceTier:
    """Tolerance specification for numerical comparison."""
    rtol: float
    atol: float
    name: str
    description: str


CPU_FP64 = ToleranceTier(
    rtol=1e-10,
    atol=1e-12,
    name='cpu_fp64',
    description='CPU double precision, R reference values',
)

# Hand-copied reference values (printed by R to 4-6 significant digits)
R_PRINTED = ToleranceTier(
    rtol=1e-4,
    atol=1e-4,
    name='r_printed',
    description='Values transcribed from printed R output',
)

GPU_FP64 = ToleranceTier(
    rtol=1e-10,
    atol=1e-12,
    name='gpu_fp64',
    description='GPU double precision, matches CPU reference',
)

GPU_FP32 = ToleranceTier(
    rtol=1e-4,
    atol=1e-5,
    name='gpu_fp32',
    description='GPU single precision, statistically equivalent',
)


def select_tolerance(backend_name: str) -> ToleranceTier:
    """Tolerance tier for comparing a backend's output to the CPU reference."""
    if 'gpu' in backend_name:
        return GPU_FP64 if 'fp64' in backend_name else GPU_FP32
    return CPU_FP64
