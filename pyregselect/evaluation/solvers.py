"""
Classification and prediction accuracy.

Public API:
    classify(model, newdata=None, threshold=0.5) -> ndarray
    confusion_matrix(actual, predicted_prob, threshold=0.5) -> ConfusionSolution
    prediction_metrics(actual, predicted) -> MetricsSolution

Rows with a missing prediction (NA predictors in newdata) are left out
of every summary and counted in info['n_missing'].
"""

from __future__ import annotations

import warnings
from typing import Any
import numpy as np
from numpy.typing import ArrayLike, NDArray

from pyregselect.core.exceptions import ValidationError
from pyregselect.core.result import Result
from pyregselect.core.validation import (
    check_1d,
    check_array,
    check_binary,
    check_consistent_length,
    check_min_samples,
)
from pyregselect.evaluation._common import ConfusionParams, MetricsParams
from pyregselect.evaluation.solution import ConfusionSolution, MetricsSolution
from pyregselect.regression.solution import GLMSolution


def _check_threshold(threshold: float) -> None:
    if not 0.0 < threshold < 1.0:
        raise ValidationError(f"threshold: must be in (0, 1), got {threshold}")


def classify(
    model: GLMSolution,
    newdata: Any = None,
    threshold: float = 0.5,
) -> NDArray[np.floating[Any]]:
    """
    0/1 class predictions of a binomial glm: 1 where P(y = 1) > threshold.

    Returns a float array so rows without a prediction can be NaN.
    """
    if not isinstance(model, GLMSolution) or model.family_name != 'binomial':
        raise ValidationError("classify: needs a fitted binomial glm")
    _check_threshold(threshold)
    prob = model.predict(newdata, type='response')
    with np.errstate(invalid='ignore'):
        return np.where(np.isnan(prob), np.nan, (prob > threshold).astype(np.float64))


def confusion_matrix(
    actual: ArrayLike,
    predicted_prob: ArrayLike,
    threshold: float = 0.5,
    labels: tuple[str, str] = ('0', '1'),
) -> ConfusionSolution:
    """
    Cross-tabulate thresholded probabilities against 0/1 outcomes.

    Args:
        actual: Observed classes coded 0/1
        predicted_prob: Predicted P(y = 1), same length
        threshold: Probabilities above this predict class 1
        labels: Display names of classes 0 and 1

    Returns:
        ConfusionSolution (rows predicted, columns actual)

    Raises:
        ValidationError: If actual isn't 0/1 or probabilities fall
            outside [0, 1]
        DimensionError: On a length mismatch
    """
    _check_threshold(threshold)
    y = check_array(actual, 'actual')
    prob = check_array(predicted_prob, 'predicted_prob')
    check_1d(y, 'actual')
    check_1d(prob, 'predicted_prob')
    check_consistent_length(y, prob, names=('actual', 'predicted_prob'))

    ok = ~(np.isnan(y) | np.isnan(prob))
    n_missing = int((~ok).sum())
    y, prob = y[ok], prob[ok]
    check_min_samples(y, 1, 'actual')
    check_binary(y, 'actual')
    if np.any((prob < 0) | (prob > 1)):
        raise ValidationError("predicted_prob: values must lie in [0, 1]")

    pred = (prob > threshold).astype(np.int_)
    obs = y.astype(np.int_)
    table = np.zeros((2, 2), dtype=np.int_)
    np.add.at(table, (pred, obs), 1)

    warn = ()
    if n_missing:
        warn = (f"{n_missing} observations with missing values were left out",)
        warnings.warn(warn[0], UserWarning, stacklevel=2)

    return ConfusionSolution(_result=Result(
        params=ConfusionParams(
            table=table, threshold=threshold, labels=(str(labels[0]), str(labels[1])),
        ),
        info={'n_missing': n_missing},
        timing=None,
        backend_name='cpu',
        warnings=warn,
    ))


def prediction_metrics(actual: ArrayLike, predicted: ArrayLike) -> MetricsSolution:
    """
    RMSE, MAE and out-of-sample R² = 1 - SSE / SST (SST about the mean
    of `actual`).

    Raises:
        DimensionError: On a length mismatch
        ValidationError: If fewer than 2 complete pairs remain
    """
    y = check_array(actual, 'actual')
    yhat = check_array(predicted, 'predicted')
    check_1d(y, 'actual')
    check_1d(yhat, 'predicted')
    check_consistent_length(y, yhat, names=('actual', 'predicted'))

    ok = np.isfinite(y) & np.isfinite(yhat)
    n_missing = int((~ok).sum())
    y, yhat = y[ok], yhat[ok]
    check_min_samples(y, 2, 'actual')

    resid = y - yhat
    sse = float(resid @ resid)
    sst = float(np.sum((y - y.mean()) ** 2))
    r2 = 1.0 - sse / sst if sst > 0 else float('nan')

    warn = ()
    if n_missing:
        warn = (f"{n_missing} observations with missing values were left out",)
        warnings.warn(warn[0], UserWarning, stacklevel=2)

    return MetricsSolution(_result=Result(
        params=MetricsParams(
            rmse=float(np.sqrt(sse / y.size)),
            mae=float(np.mean(np.abs(resid))),
            r_squared=r2,
            n=int(y.size),
            residuals=resid,
        ),
        info={'n_missing': n_missing},
        timing=None,
        backend_name='cpu',
        warnings=warn,
    ))
