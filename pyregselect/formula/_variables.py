"""
Formula variables: a column reference, optionally transformed.

Supported forms:
    x             column as-is (numeric or factor)
    log(x)        natural log; also log2, log10, sqrt, exp
    I(x^k)        power (I(x**k) also accepted)

Transforms apply to numeric columns only.
"""

import re
from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray

from pyregselect.core.datasource import DataSource, level_label
from pyregselect.core.exceptions import FormulaError, ValidationError

NAME_PATTERN = r'[A-Za-z.][A-Za-z0-9._]*'

_NAME_RE = re.compile(rf'^{NAME_PATTERN}$')
_FUNC_RE = re.compile(rf'^(log|log2|log10|sqrt|exp)\(({NAME_PATTERN})\)$')
_POWER_RE = re.compile(rf'^I\(({NAME_PATTERN})(?:\^|\*\*)(-?\d+(?:\.\d+)?)\)$')

_TRANSFORMS = {
    'log': np.log,
    'log2': np.log2,
    'log10': np.log10,
    'sqrt': np.sqrt,
    'exp': np.exp,
}

# Transforms defined only on a restricted domain
_DOMAIN = {
    'log': ('strictly positive', lambda v: v > 0),
    'log2': ('strictly positive', lambda v: v > 0),
    'log10': ('strictly positive', lambda v: v > 0),
    'sqrt': ('non-negative', lambda v: v >= 0),
}


@dataclass(frozen=True)
class Variable:
    """A parsed formula variable."""
    expr: str
    column: str
    transform: str | None = None
    power: float | None = None

    @property
    def is_plain(self) -> bool:
        return self.transform is None


def parse_variable(expr: str, formula: str | None = None) -> Variable:
    """
    Parse a single variable expression.

    Raises:
        FormulaError: If the expression isn't a supported form
    """
    text = re.sub(r'\s+', '', expr)
    if _NAME_RE.match(text):
        return Variable(expr=text, column=text)

    m = _FUNC_RE.match(text)
    if m:
        return Variable(expr=text, column=m.group(2), transform=m.group(1))

    m = _POWER_RE.match(text)
    if m:
        power = float(m.group(2))
        return Variable(expr=text, column=m.group(1), transform='power', power=power)

    raise FormulaError(
        f"Unsupported variable expression {text!r}. Use a column name, "
        f"log()/log2()/log10()/sqrt()/exp() of a column, or I(x^k)",
        formula=formula,
        token=text,
    )


def evaluate_numeric(var: Variable, source: DataSource) -> NDArray[np.floating[Any]]:
    """
    Evaluate a numeric variable on a DataSource. Missing values stay NaN.

    Raises:
        FormulaError: If the column is missing, or a transform is applied
            to a factor
        ValidationError: If a transform is applied outside its domain
    """
    column = _column(var, source)
    if source.is_factor(var.column):
        raise FormulaError(
            f"{var.expr}: column {var.column!r} is a factor; "
            f"numeric transforms need a numeric column",
            token=var.expr,
        )
    if var.transform is None:
        return column

    present = ~np.isnan(column)
    if var.transform in _DOMAIN:
        domain, ok = _DOMAIN[var.transform]
        bad = present & ~ok(np.where(present, column, 1.0))
        if np.any(bad):
            raise ValidationError(
                f"{var.expr}: {var.column} must be {domain}, "
                f"found {int(bad.sum())} values outside the domain"
            )

    if var.transform == 'power':
        if var.power < 0 and np.any(present & (column == 0)):
            raise ValidationError(f"{var.expr}: negative power of zero")
        return np.power(column, var.power)
    return _TRANSFORMS[var.transform](column)


def factor_labels(var: Variable, source: DataSource) -> NDArray:
    """
    Level labels of a factor variable, as an object array (None = missing).

    A numeric column is accepted when the caller already knows the
    levels (prediction on new data): its values are labelled the same
    way DataSource.as_factor would label them.
    """
    column = _column(var, source)
    if not var.is_plain:
        raise FormulaError(
            f"{var.expr}: transforms can't be applied to a factor",
            token=var.expr,
        )
    if source.is_factor(var.column):
        return column
    return np.array(
        [None if np.isnan(v) else level_label(v) for v in column], dtype=object,
    )


def _column(var: Variable, source: DataSource) -> NDArray:
    if var.column not in source:
        raise FormulaError(
            f"Variable {var.column!r} not found. Available: {list(source.keys())}",
            token=var.column,
        )
    return source[var.column]
