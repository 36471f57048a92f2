"""
Variance inflation factors (car::vif).

GVIF for term j, from the coefficient correlation matrix R without the
intercept:

    GVIF_j = det(R_jj) · det(R_-j,-j) / det(R)

For a 1-df term this is the ordinary VIF, 1 / (1 - R²_j). For a factor
with Df indicator columns, GVIF^(1/(2·Df)) is comparable across terms.
"""

from __future__ import annotations

import warnings
import numpy as np

from pyregselect.core.exceptions import ValidationError
from pyregselect.core.result import Result
from pyregselect.core.compute.timing import Timer
from pyregselect.diagnostics._common import VIFParams
from pyregselect.diagnostics.solution import VIFSolution
from pyregselect.regression.solution import GLMSolution, LinearSolution


def vif(model: LinearSolution | GLMSolution) -> VIFSolution:
    """
    Generalized variance inflation factors for each model term.

    Raises:
        ValidationError: If the model has aliased coefficients or fewer
            than two terms
    """
    if not isinstance(model, (LinearSolution, GLMSolution)):
        raise ValidationError(
            f"model: expected a fitted lm or glm, got {type(model).__name__}"
        )
    if model.aliased:
        raise ValidationError(
            f"there are aliased coefficients in the model: {list(model.aliased)}"
        )

    timer = Timer()
    timer.start()

    design = model.design
    v = model.vcov().to_numpy()
    assign = np.asarray(design.assign)
    warn: list[str] = []
    if design.has_intercept:
        keep = assign != 0
        v = v[np.ix_(keep, keep)]
        assign = assign[keep]
    else:
        warn.append("No intercept: vifs may not be sensible.")

    terms = design.term_labels
    if len(terms) < 2:
        timer.stop()
        raise ValidationError(
            f"model contains fewer than 2 terms: {list(terms)}"
        )

    sd = np.sqrt(np.diag(v))
    R = v / np.outer(sd, sd)
    det_R = np.linalg.det(R)

    gvif = np.empty(len(terms))
    dfs = np.empty(len(terms), dtype=np.int_)
    for k in range(len(terms)):
        sub = assign == k + 1
        gvif[k] = (
            np.linalg.det(R[np.ix_(sub, sub)])
            * np.linalg.det(R[np.ix_(~sub, ~sub)])
            / det_R
        )
        dfs[k] = int(sub.sum())
    adjusted = gvif ** (1.0 / (2.0 * dfs))

    timer.stop()
    for message in warn:
        warnings.warn(message, UserWarning, stacklevel=2)

    return VIFSolution(_result=Result(
        params=VIFParams(terms=tuple(terms), gvif=gvif, df=dfs, adjusted=adjusted),
        info={'det_correlation': float(det_R)},
        timing=timer.result(),
        backend_name='cpu',
        warnings=tuple(warn),
    ))
