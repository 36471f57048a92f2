"""
Evaluation of fitted models on held-out data.

Public API:
    classify(model, newdata=None, threshold=0.5) -> ndarray of 0/1
    confusion_matrix(actual, predicted_prob, threshold=0.5) -> ConfusionSolution
    prediction_metrics(actual, predicted) -> MetricsSolution

Example:
    >>> train, test = ds.split(0.7, seed=1)
    >>> m = glm("Survived ~ Pclass + Sex + Age", train)
    >>> cm = confusion_matrix(test['Survived'], m.predict(test, type='response'))
    >>> cm.accuracy
"""

from pyregselect.evaluation.solvers import classify, confusion_matrix, prediction_metrics
from pyregselect.evaluation.solution import ConfusionSolution, MetricsSolution
from pyregselect.evaluation._common import ConfusionParams, MetricsParams

__all__ = [
    "classify",
    "confusion_matrix",
    "prediction_metrics",
    "ConfusionSolution",
    "MetricsSolution",
    "ConfusionParams",
    "MetricsParams",
]
