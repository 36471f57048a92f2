"""
pyregselect: fitting, diagnosing and selecting regression models.

Linear and logistic regression with R-compatible output, plus the
diagnostics and model-selection tools built on them.

Submodules:
    regression: lm, glm and the array-level fit
    anova: sequential tables and nested-model comparisons
    diagnostics: influence, VIF, Box-Cox, residual tests
    selection: best subsets, all subsets, stepwise AIC
    evaluation: confusion matrices and prediction accuracy
    datasets: typed loaders for the four analysis datasets
    workflows: the scripted analyses behind the command line
"""

__version__ = "0.1.0"

from pyregselect import regression
from pyregselect import anova
from pyregselect import diagnostics
from pyregselect import selection
from pyregselect import evaluation
from pyregselect.core.datasource import DataSource
from pyregselect.regression import lm, glm

__all__ = [
    "__version__",
    "regression",
    "anova",
    "diagnostics",
    "selection",
    "evaluation",
    "DataSource",
    "lm",
    "glm",
]
