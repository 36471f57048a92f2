"""
Linear and generalized linear models.

Public API:
    lm(formula, data, ...) -> LinearSolution
    glm(formula, data, family='binomial', ...) -> GLMSolution
    fit(X, y, family=None, ...) -> LinearSolution | GLMSolution
    refit(model, formula) -> same model type, same rows (R's update())

lm() and glm() are the entry points the analyses use. They handle:
    - Formula parsing and model-matrix construction (na.omit)
    - Input validation
    - Backend selection
    - Result wrapping

Example:
    >>> from pyregselect.regression import lm
    >>> model = lm("charges ~ age + bmi + smoker", ds)
    >>> print(model.coef_table())
    >>> print(model.summary())
"""

from pyregselect.regression.design import Design
from pyregselect.regression.families import (
    Family,
    Gaussian,
    Binomial,
    Poisson,
    Link,
    resolve_family,
)
from pyregselect.regression.solution import (
    LinearSolution,
    LinearParams,
    GLMSolution,
    GLMParams,
)
from pyregselect.regression.solvers import fit, lm, glm, refit, refit_design

__all__ = [
    "fit",
    "lm",
    "glm",
    "refit",
    "refit_design",
    "Design",
    "Family",
    "Gaussian",
    "Binomial",
    "Poisson",
    "Link",
    "resolve_family",
    "LinearSolution",
    "LinearParams",
    "GLMSolution",
    "GLMParams",
]
