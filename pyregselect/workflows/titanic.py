"""
Titanic survival: logistic regression with a held-out test set.

    1. count and drop rows with missing values in the model columns
    2. random train/test split
    3. binomial glm of Survived on class, sex, age, family, fare and port
    4. stepwise AIC on the training fit
    5. confusion matrices on the training and test sets
"""

from __future__ import annotations

import pandas as pd

from pyregselect.core.datasource import DataSource
from pyregselect.datasets import TITANIC
from pyregselect.evaluation import confusion_matrix
from pyregselect.regression import glm
from pyregselect.workflows._common import count_missing, prepare, stepwise
from pyregselect.workflows._report import WorkflowReport
from pyregselect.workflows.config import WorkflowConfig


def run(source: DataSource, config: WorkflowConfig | None = None) -> WorkflowReport:
    config = config or WorkflowConfig()
    report = WorkflowReport(
        'titanic', f"{TITANIC.description} ({source.n_observations} rows)",
    )

    missing = count_missing(source, TITANIC.columns)
    complete = source.dropna(TITANIC.columns)
    report.add(
        'Missing values',
        pd.Series(missing, name='NA').to_string()
        + f"\n\n{source.n_observations - complete.n_observations} rows dropped, "
        f"{complete.n_observations} complete rows kept",
    )
    data = prepare(complete, TITANIC.response, config)

    train, test = data.split(config.train_fraction, seed=config.seed)
    report.add(
        'Train/test split',
        f"{train.n_observations} training rows, {test.n_observations} test rows "
        f"(fraction {config.train_fraction:g}, seed {config.seed})",
    )

    model = glm(TITANIC.formula, train, family='binomial')
    report.keep('model', model)
    report.add('Logistic regression (training set)', model.summary())
    report.add('Odds ratios', model.odds_ratios(config.level))

    selected = stepwise(model, config)
    report.keep('step', selected)
    report.add('Stepwise selection', selected.summary())
    final = selected.model

    fitted = confusion_matrix(final.y, final.fitted_values, threshold=config.threshold)
    report.keep('train_confusion', fitted)
    report.add('Confusion matrix (training set)', fitted.summary())

    prob = final.predict(test, type='response')
    held_out = confusion_matrix(test[TITANIC.response], prob, threshold=config.threshold)
    report.keep('test_confusion', held_out)
    report.add('Confusion matrix (test set)', held_out.summary())
    return report
