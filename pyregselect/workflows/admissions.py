"""
Graduate admissions: logistic regression on GRE, GPA and institution rank.

    1. binomial glm admit ~ gre + gpa + rank
    2. Wald intervals and odds ratios
    3. sequential analysis of deviance and single-term deletions
    4. predicted admission probability per rank at mean GRE and GPA
    5. confusion matrix of the fitted classes
"""

from __future__ import annotations

import numpy as np
import pandas as pd

from pyregselect.anova import anova
from pyregselect.core.datasource import DataSource
from pyregselect.datasets import ADMISSIONS
from pyregselect.evaluation import confusion_matrix
from pyregselect.regression import glm
from pyregselect.selection import drop1
from pyregselect.workflows._common import prepare
from pyregselect.workflows._report import WorkflowReport
from pyregselect.workflows.config import WorkflowConfig


def run(source: DataSource, config: WorkflowConfig | None = None) -> WorkflowReport:
    config = config or WorkflowConfig()
    report = WorkflowReport(
        'admissions', f"{ADMISSIONS.description} ({source.n_observations} rows)",
    )
    data = prepare(source, ADMISSIONS.response, config)

    model = glm(ADMISSIONS.formula, data, family='binomial')
    report.keep('model', model)
    report.add('Logistic regression', model.summary())
    report.add(f'Confidence intervals ({config.level:.0%})', model.confint(config.level))
    report.add('Odds ratios', model.odds_ratios(config.level))
    report.add('Analysis of deviance', anova(model, test='Chisq').summary())
    report.add('Single term deletions', drop1(model, test='Chisq').summary())

    ranks = data.levels('rank')
    grid = pd.DataFrame({
        'gre': [float(np.nanmean(data['gre']))] * len(ranks),
        'gpa': [float(np.nanmean(data['gpa']))] * len(ranks),
        'rank': list(ranks),
    })
    grid['P(admit)'] = model.predict(grid, type='response')
    report.add('Admission probability by rank at mean gre and gpa', grid.set_index('rank'))

    cm = confusion_matrix(model.y, model.fitted_values, threshold=config.threshold)
    report.keep('confusion', cm)
    report.add(f'Confusion matrix (threshold {config.threshold:g})', cm.summary())
    return report
