"""
Solver dispatch for regression.

This module provides the public fitting functions and backend selection:

    fit(X, y, family=None)      array API (or a prebuilt Design)
    lm(formula, data)           linear model from a formula
    glm(formula, data, family)  generalized linear model from a formula
"""

from __future__ import annotations

import warnings
from typing import Literal
from numpy.typing import ArrayLike

from pyregselect.core.compute.device import select_device
from pyregselect.core.compute.tolerances import (
    GPU_AUTO_MIN_ROWS,
    IRLS_MAX_ITER,
    IRLS_TOL,
)
from pyregselect.core.datasource import DataSource
from pyregselect.core.exceptions import ConvergenceError, ValidationError
from pyregselect.core.protocols import Backend
from pyregselect.formula import Formula
from pyregselect.regression.design import Design
from pyregselect.regression.families import Family, Link, resolve_family
from pyregselect.regression.solution import GLMSolution, LinearSolution
from pyregselect.regression.backends.cpu import CPUQRBackend
from pyregselect.regression.backends.cpu_glm import CPUIRLSBackend


BackendChoice = Literal['auto', 'cpu', 'gpu']


def fit(
    X: ArrayLike | Design,
    y: ArrayLike | None = None,
    *,
    family: str | Family | None = None,
    link: str | Link | None = None,
    backend: BackendChoice = 'auto',
    names: list[str] | None = None,
    tol: float = IRLS_TOL,
    max_iter: int = IRLS_MAX_ITER,
    strict: bool = False,
) -> LinearSolution | GLMSolution:
    """
    Fit a linear model or GLM.

    This is the boundary: input validation, design construction, backend
    selection and result wrapping all happen here.

    Args:
        X: Design matrix (n x p) or a prebuilt Design (then y must be None)
        y: Response vector (n,)
        family: None for ordinary least squares, or a GLM family
            ('gaussian', 'binomial', 'poisson' or a Family instance)
        link: Link for a family given by name
        backend: 'auto', 'cpu' or 'gpu'. GLMs always run on the CPU.
        names: Column names for X
        tol: IRLS convergence tolerance
        max_iter: Maximum IRLS iterations
        strict: Raise ConvergenceError instead of warning when IRLS
            does not converge

    Returns:
        LinearSolution when family is None, else GLMSolution

    Raises:
        ValidationError: If inputs are invalid (non-numeric data, a
            non-binary binomial response, bad tolerances)
        DimensionError: If X and y have inconsistent dimensions
        ConvergenceError: If strict and IRLS did not converge
    """
    if isinstance(X, Design):
        if y is not None:
            raise ValidationError("y: must be None when a Design is passed")
        design = X
    else:
        if y is None:
            raise ValidationError("y: required when X is an array")
        design = Design.from_arrays(X, y, names=names)

    if family is None:
        if link is not None:
            raise ValidationError("link: only meaningful together with a family")
        backend_impl = _get_backend(backend, design)
        result = backend_impl.solve(design)
        _emit(result.warnings)
        return LinearSolution(_result=result, _design=design)

    if tol <= 0:
        raise ValidationError(f"tol: must be positive, got {tol}")
    if max_iter < 1:
        raise ValidationError(f"max_iter: must be at least 1, got {max_iter}")
    if backend not in ('auto', 'cpu', 'gpu'):
        raise ValidationError(f"Unknown backend: {backend!r}")

    fam = resolve_family(family, link)
    fam.validate_response(design.y, design.response_name)

    result = CPUIRLSBackend(fam, tol=tol, max_iter=max_iter).solve(design)
    if strict and not result.params.converged:
        raise ConvergenceError(
            f"IRLS did not converge in {max_iter} iterations",
            iterations=result.params.n_iter,
            final_change=result.info.get('final_change'),
            reason='max_iterations',
            threshold=tol,
        )
    _emit(result.warnings)
    return GLMSolution(_result=result, _design=design)


def lm(
    formula: str | Formula,
    data: DataSource,
    *,
    backend: BackendChoice = 'auto',
) -> LinearSolution:
    """
    Fit a linear model from a formula, like R's lm().

    Rows with missing values in any variable used are dropped; the count
    is in solution.n_dropped and info['n_dropped'].

    Example:
        >>> m = lm("charges ~ age + bmi + smoker", ds)
        >>> print(m.summary())
    """
    design = Design.from_formula(formula, data)
    return fit(design, backend=backend)


def glm(
    formula: str | Formula,
    data: DataSource,
    *,
    family: str | Family = 'binomial',
    link: str | Link | None = None,
    tol: float = IRLS_TOL,
    max_iter: int = IRLS_MAX_ITER,
    strict: bool = False,
) -> GLMSolution:
    """
    Fit a generalized linear model from a formula, like R's glm().

    A factor response is coded 0 for its first (reference) level and 1
    otherwise, as glm(family = binomial) does.

    Example:
        >>> m = glm("admit ~ gre + gpa + rank", ds, family='binomial')
        >>> m.odds_ratios()
    """
    design = Design.from_formula(formula, data)
    return fit(
        design, family=family, link=link, tol=tol, max_iter=max_iter, strict=strict,
    )


def refit(model: LinearSolution | GLMSolution, formula: str | Formula) -> LinearSolution | GLMSolution:
    """
    Fit `formula` with the same model type and rows as `model` (R's update()).

    Warnings from the refit are recorded on the result but not re-emitted.
    """
    design = model.design.refit_formula(formula)
    return refit_design(model, design)


def refit_design(model: LinearSolution | GLMSolution, design: Design) -> LinearSolution | GLMSolution:
    """Fit another Design with the same model type as `model`."""
    if isinstance(model, GLMSolution):
        result = CPUIRLSBackend(model.family).solve(design)
        return GLMSolution(_result=result, _design=design)
    result = CPUQRBackend().solve(design)
    return LinearSolution(_result=result, _design=design)


def _emit(messages: tuple[str, ...]) -> None:
    for message in messages:
        warnings.warn(message, RuntimeWarning, stacklevel=3)


def _get_backend(choice: BackendChoice, design: Design) -> Backend:
    """
    Select and instantiate the linear-model backend.

    'auto' uses CUDA only for large designs; MPS is never auto-selected
    (float32 only).

    Raises:
        ValidationError: If unknown backend specified
        RuntimeError: If GPU requested but unavailable
    """
    if choice == 'auto':
        if design.n < GPU_AUTO_MIN_ROWS:
            return CPUQRBackend()
        device = select_device('auto')
        if device.device_type == 'cuda':
            from pyregselect.regression.backends.gpu import GPUQRBackend
            return GPUQRBackend(use_fp64=True, device='cuda')
        return CPUQRBackend()

    elif choice == 'cpu':
        return CPUQRBackend()

    elif choice == 'gpu':
        device = select_device('gpu')  # raises RuntimeError if no GPU
        from pyregselect.regression.backends.gpu import GPUQRBackend
        return GPUQRBackend(device=device.device_type)

    else:
        raise ValidationError(f"Unknown backend: {choice!r}")
