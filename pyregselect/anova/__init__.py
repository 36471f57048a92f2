"""
Analysis of variance and deviance tables.

Public API:
    anova(model) -> AnovaSolution            # sequential (Type I) table
    anova(m1, m2, ...) -> AnovaSolution      # nested model comparison

Linear models give F tables (Sum Sq / RSS); GLMs give analysis of
deviance tables with Chisq or F tests.
"""

from pyregselect.anova.solvers import anova
from pyregselect.anova.solution import AnovaSolution
from pyregselect.anova._common import AnovaParams

__all__ = [
    "anova",
    "AnovaSolution",
    "AnovaParams",
]
