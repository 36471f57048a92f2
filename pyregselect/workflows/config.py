"""
Settings shared by the workflows.

A WorkflowConfig is frozen; use dataclasses.replace() or from_json() to
vary it. JSON files hold a flat object whose keys are field names:

    {"seed": 7, "train_fraction": 0.8, "k": "log"}
"""

from __future__ import annotations

import json
from dataclasses import dataclass, fields
from pathlib import Path

import numpy as np

from pyregselect.core.exceptions import ValidationError

RANDOM_SEED = 42


@dataclass(frozen=True)
class WorkflowConfig:
    """
    Attributes:
        seed: Seed of the train/test split
        train_fraction: Share of rows used for fitting in split workflows
        threshold: Probability cut-off for classifying a case as 1
        level: Confidence level of intervals
        nvmax: Largest subset size for regsubsets
        k: Stepwise penalty per parameter; 'log' means log(n) (BIC)
        direction: Stepwise direction: 'both', 'backward' or 'forward'
        cooks_cutoff: Cook's distance above which a row is influential;
            None uses 4/n
        scale_numeric: Standardize numeric predictors before fitting
    """
    seed: int = RANDOM_SEED
    train_fraction: float = 0.7
    threshold: float = 0.5
    level: float = 0.95
    nvmax: int = 8
    k: float | str = 2.0
    direction: str = 'both'
    cooks_cutoff: float | None = None
    scale_numeric: bool = False

    def __post_init__(self):
        if not 0.0 < self.train_fraction < 1.0:
            raise ValidationError(
                f"train_fraction: must be in (0, 1), got {self.train_fraction}"
            )
        if not 0.0 < self.threshold < 1.0:
            raise ValidationError(f"threshold: must be in (0, 1), got {self.threshold}")
        if not 0.0 < self.level < 1.0:
            raise ValidationError(f"level: must be in (0, 1), got {self.level}")
        if self.nvmax < 1:
            raise ValidationError(f"nvmax: must be at least 1, got {self.nvmax}")
        if isinstance(self.k, str):
            if self.k != 'log':
                raise ValidationError(f"k: expected a number or 'log', got {self.k!r}")
        elif not self.k > 0:
            raise ValidationError(f"k: must be positive, got {self.k}")
        if self.direction not in ('both', 'backward', 'forward'):
            raise ValidationError(
                f"direction: expected 'both', 'backward' or 'forward', got {self.direction!r}"
            )
        if self.cooks_cutoff is not None and not self.cooks_cutoff > 0:
            raise ValidationError(f"cooks_cutoff: must be positive, got {self.cooks_cutoff}")

    def penalty(self, n: int) -> float:
        """Stepwise penalty for a model fitted on n rows."""
        if self.k == 'log':
            return float(np.log(n))
        return float(self.k)

    @classmethod
    def from_dict(cls, values: dict) -> WorkflowConfig:
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValidationError(
                f"config: unknown settings {unknown}. Known: {sorted(known)}"
            )
        return cls(**values)

    @classmethod
    def from_json(cls, path: str | Path) -> WorkflowConfig:
        """
        Read settings from a JSON object; absent keys keep their defaults.

        Raises:
            ValidationError: If the file is missing, isn't a JSON object,
                or names an unknown setting
        """
        path = Path(path)
        try:
            values = json.loads(path.read_text(encoding='utf-8'))
        except FileNotFoundError as e:
            raise ValidationError(f"config: file not found: {path}") from e
        except json.JSONDecodeError as e:
            raise ValidationError(f"config: {path.name} is not valid JSON: {e}") from e
        if not isinstance(values, dict):
            raise ValidationError(
                f"config: expected a JSON object, got {type(values).__name__}"
            )
        return cls.from_dict(values)
