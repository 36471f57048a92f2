"""
Insurance charges: linear model, diagnostics, transformation, selection.

    1. full lm of charges on every predictor
    2. coefficients, confidence intervals, sequential ANOVA
    3. VIF and residual tests
    4. Box-Cox profile of the response, then a log(charges) refit
    5. Cook's distance outliers removed and the log model refitted
    6. stepwise AIC and best subsets on the cleaned log model
"""

from __future__ import annotations

from pyregselect.anova import anova
from pyregselect.core.datasource import DataSource
from pyregselect.datasets import INSURANCE
from pyregselect.diagnostics import (
    boxcox,
    breusch_pagan,
    cooks_outliers,
    influence_measures,
    shapiro_test,
    vif,
)
from pyregselect.regression import lm
from pyregselect.selection import regsubsets
from pyregselect.workflows._common import prepare, stepwise, without_rows
from pyregselect.workflows._report import WorkflowReport
from pyregselect.workflows.config import WorkflowConfig


def run(source: DataSource, config: WorkflowConfig | None = None) -> WorkflowReport:
    config = config or WorkflowConfig()
    report = WorkflowReport(
        'insurance', f"{INSURANCE.description} ({source.n_observations} rows)",
    )
    data = prepare(source, INSURANCE.response, config)

    full = lm(INSURANCE.formula, data)
    report.keep('full', full)
    report.add('Full model', full.summary())
    report.add(f'Confidence intervals ({config.level:.0%})', full.confint(config.level))
    report.add('Sequential ANOVA', anova(full).summary())
    report.add('Variance inflation factors', vif(full).summary())
    report.add('Normality of residuals', shapiro_test(full).summary())
    report.add('Constant variance', breusch_pagan(full).summary())

    bc = boxcox(full, level=config.level)
    report.keep('boxcox', bc)
    report.add('Box-Cox transformation', bc.summary())

    rhs = ' + '.join(full.term_labels)
    log_formula = f"log({INSURANCE.response}) ~ {rhs}"
    logged = lm(log_formula, data)
    report.keep('log', logged)
    report.add('log(charges) model', logged.summary())

    outliers = cooks_outliers(logged, config.cooks_cutoff)
    cutoff = config.cooks_cutoff or 4.0 / logged.nobs
    if len(outliers):
        table = influence_measures(logged, cooks_cutoff=cutoff).loc[
            outliers, ['hat', 'rstudent', 'cooks_d']
        ]
        report.add(
            "Influential rows (Cook's distance)",
            f"{len(outliers)} rows with Cook's D > {cutoff:.4g}\n"
            + table.sort_values('cooks_d', ascending=False).head(10).to_string(),
        )
        cleaned = lm(log_formula, without_rows(data, outliers))
        report.add('log(charges) model without influential rows', cleaned.summary())
    else:
        report.add("Influential rows (Cook's distance)", f"none with Cook's D > {cutoff:.4g}")
        cleaned = logged
    report.keep('cleaned', cleaned)

    selected = stepwise(cleaned, config)
    report.keep('step', selected)
    report.add('Stepwise selection', selected.summary())

    subsets = regsubsets(cleaned, nvmax=config.nvmax)
    report.keep('subsets', subsets)
    report.add('Best subsets', subsets.summary())
    report.add(
        'Best subset size by criterion',
        ', '.join(f"{name}: {size}" for name, size in subsets.best_sizes.items()),
    )
    return report
