"""
Regression diagnostics.

Public API:
    hat_values(model), rstandard(model), rstudent(model),
    cooks_distance(model), dffits(model), covratio(model) -> ndarray
    influence_measures(model) -> DataFrame with influence flags
    cooks_outliers(model, cutoff=None) -> row numbers with large Cook's D
    outlier_test(model) -> OutlierTestSolution     # car::outlierTest
    vif(model) -> VIFSolution                      # car::vif
    boxcox(model) -> BoxCoxSolution                # MASS::boxcox
    shapiro_test(model), breusch_pagan(model) -> HTestSolution
    residual_summary(model) -> Series
    diagnostic_frame(model) -> DataFrame           # plot.lm coordinates

Every function accepts a fitted lm or glm unless noted otherwise
(boxcox and breusch_pagan need an lm).
"""

from pyregselect.diagnostics._influence import (
    hat_values,
    rstandard,
    rstudent,
    cooks_distance,
    dffits,
    covratio,
    influence_measures,
    cooks_outliers,
    outlier_test,
    residual_summary,
    diagnostic_frame,
)
from pyregselect.diagnostics._vif import vif
from pyregselect.diagnostics._boxcox import boxcox, boxcox_transform, default_lambdas
from pyregselect.diagnostics._tests import shapiro_test, breusch_pagan
from pyregselect.diagnostics.solution import (
    HTestSolution,
    BoxCoxSolution,
    VIFSolution,
    OutlierTestSolution,
)

__all__ = [
    "hat_values",
    "rstandard",
    "rstudent",
    "cooks_distance",
    "dffits",
    "covratio",
    "influence_measures",
    "cooks_outliers",
    "outlier_test",
    "residual_summary",
    "diagnostic_frame",
    "vif",
    "boxcox",
    "boxcox_transform",
    "default_lambdas",
    "shapiro_test",
    "breusch_pagan",
    "HTestSolution",
    "BoxCoxSolution",
    "VIFSolution",
    "OutlierTestSolution",
]
