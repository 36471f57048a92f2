"""
Scripted analyses of the four datasets.

Public API:
    run_workflow(name, path, config=None) -> WorkflowReport
    WORKFLOWS: name -> Workflow(loader, run, description)
    WorkflowConfig, WorkflowReport

Each workflow is a linear script: load the CSV, type the columns, fit,
diagnose, select, and collect the printed output into a report.

Example:
    >>> from pyregselect.workflows import run_workflow
    >>> print(run_workflow('admissions', 'binary.csv').render())
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from pyregselect.core.datasource import DataSource
from pyregselect.core.exceptions import ValidationError
from pyregselect.datasets import LOADERS, SCHEMAS
from pyregselect.workflows import admissions, insurance, titanic, wine
from pyregselect.workflows._report import Section, WorkflowReport, format_frame
from pyregselect.workflows.config import RANDOM_SEED, WorkflowConfig


@dataclass(frozen=True)
class Workflow:
    name: str
    loader: Callable[[str | Path], DataSource]
    run: Callable[[DataSource, WorkflowConfig | None], WorkflowReport]
    description: str


WORKFLOWS: dict[str, Workflow] = {
    name: Workflow(name, LOADERS[name], module.run, SCHEMAS[name].description)
    for name, module in (
        ('insurance', insurance),
        ('wine', wine),
        ('admissions', admissions),
        ('titanic', titanic),
    )
}


def run_workflow(
    name: str,
    path: str | Path,
    config: WorkflowConfig | None = None,
) -> WorkflowReport:
    """
    Load `path` with the workflow's loader and run the analysis.

    Warnings raised along the way (non-convergence, fitted probabilities
    of 0 or 1, dropped rows) are collected into a final 'Warnings'
    section instead of going to stderr.

    Raises:
        ValidationError: On an unknown workflow name or unusable data
    """
    if name not in WORKFLOWS:
        raise ValidationError(
            f"workflow: unknown name {name!r}. Available: {sorted(WORKFLOWS)}"
        )
    workflow = WORKFLOWS[name]
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter('always')
        source = workflow.loader(path)
        report = workflow.run(source, config or WorkflowConfig())
    messages = list(dict.fromkeys(str(w.message) for w in caught))
    if messages:
        report.add('Warnings', "\n".join(messages))
    return report


__all__ = [
    "run_workflow",
    "Workflow",
    "WORKFLOWS",
    "WorkflowConfig",
    "WorkflowReport",
    "Section",
    "format_frame",
    "RANDOM_SEED",
]
