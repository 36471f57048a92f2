"""
Wine quality: subset and stepwise selection on standardized predictors.

    1. standardize the physicochemical columns, lm of quality on all of them
    2. VIF of the full model
    3. best subsets (regsubsets) and all-subsets AIC ranking (fitall)
    4. stepwise AIC
    5. F test of the selected model against the full model
"""

from __future__ import annotations

from pyregselect.anova import anova
from pyregselect.core.datasource import DataSource
from pyregselect.datasets import WINE
from pyregselect.diagnostics import vif
from pyregselect.regression import lm
from pyregselect.selection import fitall, regsubsets
from pyregselect.workflows._common import stepwise
from pyregselect.workflows._report import WorkflowReport
from pyregselect.workflows.config import WorkflowConfig


def run(source: DataSource, config: WorkflowConfig | None = None) -> WorkflowReport:
    config = config or WorkflowConfig()
    report = WorkflowReport(
        'wine', f"{WINE.description} ({source.n_observations} rows)",
    )
    data = source.scale(exclude=[WINE.response])

    full = lm(WINE.formula, data)
    report.keep('full', full)
    report.add('Full model (standardized predictors)', full.summary())
    report.add('Variance inflation factors', vif(full).summary())

    subsets = regsubsets(full, nvmax=config.nvmax)
    report.keep('subsets', subsets)
    report.add('Best subsets', subsets.summary())
    best = subsets.best_size('bic')
    report.add(
        f'Coefficients of the BIC-best subset ({best} variables)',
        subsets.coef(best).to_frame('Estimate'),
    )

    ranked = fitall(full)
    report.keep('fitall', ranked)
    report.add('All subsets by AIC', ranked.summary(n=10))

    selected = stepwise(full, config)
    report.keep('step', selected)
    report.add('Stepwise selection', selected.summary())

    comparison = anova(selected.model, full)
    report.keep('comparison', comparison)
    report.add('Selected versus full model', comparison.summary())
    return report
