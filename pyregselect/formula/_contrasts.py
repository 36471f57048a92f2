"""
Contrast coding and model matrix construction.

Translates a Formula plus a DataSource into a numeric design matrix the
way R's model.matrix does with treatment contrasts:

    - Numeric variables give one column each, named by their expression
    - A factor gives k-1 indicator columns (reference level dropped),
      named '<variable><level>' ('smokeryes', 'rank2')
    - When a term's margin (the term with that factor removed) is not in
      the model, the factor is coded with all k indicators instead; this
      is how 'y ~ 0 + f' and 'y ~ a + a:f' get a full set of columns
    - Interaction columns are elementwise products, named 'a:b'
    - `assign` maps each column to its term (0 = intercept)

Rows with a missing value in any variable the formula uses are dropped
(na.omit), and factor levels that no longer occur are dropped too
(model.frame's drop.unused.levels = TRUE).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np
from numpy.typing import NDArray

from pyregselect.core.datasource import DataSource
from pyregselect.core.exceptions import FormulaError, ValidationError
from pyregselect.formula._parser import Formula, Term, parse_formula
from pyregselect.formula._variables import (
    evaluate_numeric,
    factor_labels,
    parse_variable,
)

INTERCEPT = '(Intercept)'


@dataclass(frozen=True)
class Encoding:
    """
    Everything needed to encode new rows exactly like the fitting data.

    Attributes:
        formula: The formula the matrix was built from
        factor_levels: factor variable -> levels used in the fit (R's xlevels)
        numeric_variables: expressions evaluated as numeric
    """
    formula: Formula
    factor_levels: dict[str, tuple[str, ...]]
    numeric_variables: tuple[str, ...]

    def encode_new(self, source: DataSource) -> tuple[NDArray[np.floating[Any]], NDArray[np.bool_]]:
        """
        Encode the predictor columns of new data.

        Rows with missing predictor values are kept as NaN rows so the
        output stays aligned with `source` (predict's na.pass).

        Returns:
            (X, complete) where `complete` marks rows without missing values

        Raises:
            ValidationError: If a factor has a level not seen in the fit
        """
        values, missing = _evaluate(self.formula, source, self.factor_levels)
        complete = ~missing
        for name, levels in self.factor_levels.items():
            labels = values[name]
            present = labels[complete]
            unknown = sorted(set(present) - set(levels))
            if unknown:
                raise ValidationError(
                    f"{name}: factor has new levels {unknown} "
                    f"(levels in the fit: {list(levels)})"
                )
        X, _, _ = _assemble(self.formula, values, self.factor_levels, len(source))
        X[~complete, :] = np.nan
        return X, complete


@dataclass(frozen=True)
class ModelMatrix:
    """
    Encoded design matrix with the metadata model building needs.

    Attributes:
        X: (n, p) float64 design matrix
        y: (n,) response, or None for a one-sided formula
        column_names: R-style column names, '(Intercept)' first if present
        assign: term index of each column (0 = intercept, i = terms[i-1])
        term_labels: ordered term labels
        has_intercept: whether column 0 is the intercept
        encoding: how to encode new data consistently
        row_mask: which rows of the source were used (False = dropped)
        response_levels: levels of a factor response, None if numeric
    """
    X: NDArray[np.floating[Any]]
    y: NDArray[np.floating[Any]] | None
    column_names: tuple[str, ...]
    assign: tuple[int, ...]
    term_labels: tuple[str, ...]
    has_intercept: bool
    encoding: Encoding
    row_mask: NDArray[np.bool_]
    response_levels: tuple[str, ...] | None = None
    response_name: str | None = field(default=None)

    @property
    def n(self) -> int:
        return self.X.shape[0]

    @property
    def p(self) -> int:
        return self.X.shape[1]

    @property
    def n_dropped(self) -> int:
        return int(np.sum(~self.row_mask))

    def term_columns(self, label: str) -> list[int]:
        """Column indices belonging to a term."""
        idx = self.term_labels.index(label) + 1
        return [j for j, a in enumerate(self.assign) if a == idx]


def encode_treatment(
    labels: NDArray,
    levels: tuple[str, ...],
    name: str,
    full: bool = False,
) -> tuple[NDArray[np.floating[Any]], list[str]]:
    """
    Treatment (dummy) coding of one factor.

    Args:
        labels: object array of level labels
        levels: level order, reference first
        name: variable name used as the column-name prefix
        full: if True, one indicator per level (no reference dropped)

    Returns:
        (X_coded, column_names)
    """
    coded = levels if full else levels[1:]
    X = np.zeros((len(labels), len(coded)), dtype=np.float64)
    for j, level in enumerate(coded):
        X[:, j] = (labels == level).astype(np.float64)
    return X, [f"{name}{level}" for level in coded]


def interaction_columns(
    X_a: NDArray, names_a: list[str],
    X_b: NDArray, names_b: list[str],
) -> tuple[NDArray, list[str]]:
    """
    Interaction columns: the product of every column pair of A and B.

    R orders interaction columns with the first variable varying
    fastest, so the loop nests B outside A.
    """
    n = X_a.shape[0]
    X_int = np.empty((n, X_a.shape[1] * X_b.shape[1]), dtype=np.float64)
    names: list[str] = []
    col = 0
    for j in range(X_b.shape[1]):
        for i in range(X_a.shape[1]):
            X_int[:, col] = X_a[:, i] * X_b[:, j]
            names.append(f"{names_a[i]}:{names_b[j]}")
            col += 1
    return X_int, names


def build_model_matrix(
    formula: str | Formula,
    source: DataSource,
    *,
    require_response: bool = True,
) -> ModelMatrix:
    """
    Build the design matrix (and response) for a formula.

    Args:
        formula: Formula text or parsed Formula
        source: The data
        require_response: Raise if the formula is one-sided

    Returns:
        ModelMatrix

    Raises:
        FormulaError: On unknown variables or unsupported expressions
        ValidationError: If no rows survive NA removal, a factor has
            fewer than 2 levels, or the response is unusable
    """
    parsed = parse_formula(formula, columns=source.keys())
    if parsed.response is None and require_response:
        raise FormulaError(f"Formula has no response: {parsed}", formula=str(parsed))

    # Factor levels come from the data; unused levels are dropped below
    factor_levels = {
        var.expr: source.levels(var.column)
        for var in parsed.parsed_variables()
        if var.is_plain and var.column in source and source.is_factor(var.column)
    }

    values, missing = _evaluate(parsed, source, factor_levels)

    y_raw = None
    response_levels = None
    if parsed.response is not None:
        resp_var = parse_variable(parsed.response, str(parsed))
        if resp_var.column not in source:
            raise FormulaError(
                f"Response {resp_var.column!r} not found. Available: {list(source.keys())}",
                formula=str(parsed), token=resp_var.column,
            )
        if resp_var.is_plain and source.is_factor(resp_var.column):
            labels = source[resp_var.column]
            response_levels = source.levels(resp_var.column)
            y_raw = np.array(
                [np.nan if v is None else float(v != response_levels[0]) for v in labels],
                dtype=np.float64,
            )
        else:
            y_raw = evaluate_numeric(resp_var, source)
        missing = missing | np.isnan(y_raw)

    row_mask = ~missing
    n_used = int(row_mask.sum())
    if n_used == 0:
        raise ValidationError(
            f"No complete rows for {parsed}: every row has a missing value"
        )

    used_values = {k: v[row_mask] for k, v in values.items()}
    used_levels: dict[str, tuple[str, ...]] = {}
    for name, levels in factor_levels.items():
        present = set(used_values[name])
        used_levels[name] = tuple(level for level in levels if level in present)

    X, column_names, assign = _assemble(parsed, used_values, used_levels, n_used)

    if X.shape[1] == 0:
        raise ValidationError(f"Model {parsed} has no columns")

    encoding = Encoding(
        formula=parsed,
        factor_levels=used_levels,
        numeric_variables=tuple(v for v in parsed.variables if v not in used_levels),
    )

    return ModelMatrix(
        X=X,
        y=None if y_raw is None else y_raw[row_mask],
        column_names=tuple(column_names),
        assign=tuple(assign),
        term_labels=parsed.term_labels,
        has_intercept=parsed.intercept,
        encoding=encoding,
        row_mask=row_mask,
        response_levels=response_levels,
        response_name=parsed.response,
    )


def _evaluate(
    formula: Formula,
    source: DataSource,
    factor_levels: dict[str, tuple[str, ...]],
) -> tuple[dict[str, NDArray], NDArray[np.bool_]]:
    """Evaluate every right-hand-side variable; return values and NA mask."""
    n = len(source)
    missing = np.zeros(n, dtype=bool)
    values: dict[str, NDArray] = {}
    for var in formula.parsed_variables():
        if var.expr in factor_levels:
            labels = factor_labels(var, source)
            missing |= np.array([v is None for v in labels], dtype=bool)
            values[var.expr] = labels
        else:
            col = evaluate_numeric(var, source)
            missing |= np.isnan(col)
            values[var.expr] = col
    return values, missing


def _assemble(
    formula: Formula,
    values: dict[str, NDArray],
    factor_levels: dict[str, tuple[str, ...]],
    n: int,
) -> tuple[NDArray[np.floating[Any]], list[str], list[int]]:
    """Lay out intercept and term columns."""
    blocks: list[NDArray] = []
    names: list[str] = []
    assign: list[int] = []

    if formula.intercept:
        blocks.append(np.ones((n, 1), dtype=np.float64))
        names.append(INTERCEPT)
        assign.append(0)

    for idx, term in enumerate(formula.terms, start=1):
        X_term, term_names = _term_columns(term, formula, values, factor_levels, n)
        blocks.append(X_term)
        names.extend(term_names)
        assign.extend([idx] * X_term.shape[1])

    X = np.hstack(blocks) if blocks else np.empty((n, 0), dtype=np.float64)
    return X, names, assign


def _term_columns(
    term: Term,
    formula: Formula,
    values: dict[str, NDArray],
    factor_levels: dict[str, tuple[str, ...]],
    n: int,
) -> tuple[NDArray[np.floating[Any]], list[str]]:
    X = np.ones((n, 1), dtype=np.float64)
    names = ['']
    for var in term.variables:
        if var in factor_levels:
            levels = factor_levels[var]
            full = not _margin_present(term, var, formula)
            if len(levels) < (1 if full else 2):
                raise ValidationError(
                    f"{var}: contrasts need a factor with 2 or more levels, "
                    f"got {list(levels)}"
                )
            X_v, names_v = encode_treatment(values[var], levels, var, full=full)
        else:
            X_v = values[var].reshape(-1, 1).astype(np.float64)
            names_v = [var]

        if names == ['']:
            X, names = X_v, names_v
        else:
            X, names = interaction_columns(X, names, X_v, names_v)
    return X, names


def _margin_present(term: Term, var: str, formula: Formula) -> bool:
    """
    Whether `term` without `var` is in the model (R's contrast rule).

    For a main effect the margin is the intercept.
    """
    rest = tuple(v for v in term.variables if v != var)
    if not rest:
        return formula.intercept
    margin = Term(rest)
    return any(t.same_as(margin) for t in formula.terms)
