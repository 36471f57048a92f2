"""
Regression Design.

Design holds what a backend needs (X, y) plus what the model layer
needs afterwards: column names, the column-to-term map, the formula and
the Encoding for new data, and the rows actually used. Selection and
diagnostics refit sub-models from the same Design.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Sequence
import numpy as np
from numpy.typing import ArrayLike, NDArray

from pyregselect.core.datasource import DataSource
from pyregselect.core.exceptions import ValidationError
from pyregselect.core.validation import (
    check_array,
    check_finite,
    check_2d,
    check_1d,
    check_consistent_length,
    check_min_samples,
)
from pyregselect.formula import (
    INTERCEPT,
    Encoding,
    Formula,
    build_model_matrix,
    parse_formula,
)


@dataclass(frozen=True)
class Design:
    """
    Regression design: response, model matrix and its provenance.

    Immutable after construction.

    Construction:
        Design.from_formula("charges ~ age + smoker", ds)
        Design.from_arrays(X, y, names=['(Intercept)', 'x'])
    """
    X: NDArray[np.floating[Any]]
    y: NDArray[np.floating[Any]]
    column_names: tuple[str, ...]
    assign: tuple[int, ...]
    term_labels: tuple[str, ...]
    has_intercept: bool
    formula: Formula | None = None
    encoding: Encoding | None = None
    source: DataSource | None = None
    row_mask: NDArray[np.bool_] | None = None
    response_levels: tuple[str, ...] | None = None

    @classmethod
    def from_formula(cls, formula: str | Formula, source: DataSource) -> Design:
        """
        Build a Design from a formula and a DataSource.

        Rows with missing values in any variable used are dropped.

        Raises:
            FormulaError: If the formula can't be parsed or uses unknown columns
            ValidationError: If fewer rows remain than model columns
        """
        if not isinstance(source, DataSource):
            raise ValidationError(
                f"data: expected a DataSource, got {type(source).__name__}"
            )
        mm = build_model_matrix(formula, source)
        check_min_samples(mm.X, 1, 'model frame')
        return cls(
            X=mm.X,
            y=mm.y,
            column_names=mm.column_names,
            assign=mm.assign,
            term_labels=mm.term_labels,
            has_intercept=mm.has_intercept,
            formula=mm.encoding.formula,
            encoding=mm.encoding,
            source=source,
            row_mask=mm.row_mask,
            response_levels=mm.response_levels,
        )

    @classmethod
    def from_arrays(
        cls,
        X: ArrayLike,
        y: ArrayLike,
        names: Sequence[str] | None = None,
    ) -> Design:
        """
        Build a Design directly from arrays.

        Each column is its own term. A column of all ones named
        '(Intercept)' (or unnamed, in position 0) is treated as the
        intercept.
        """
        X_arr = check_array(X, 'X')
        y_arr = check_array(y, 'y')
        if X_arr.ndim == 1:
            X_arr = X_arr.reshape(-1, 1)
        if y_arr.ndim == 2 and y_arr.shape[1] == 1:
            y_arr = y_arr.ravel()

        check_2d(X_arr, 'X')
        check_1d(y_arr, 'y')
        check_finite(X_arr, 'X')
        check_finite(y_arr, 'y')
        check_consistent_length(X_arr, y_arr, names=('X', 'y'))
        check_min_samples(X_arr, 1, 'X')

        p = X_arr.shape[1]
        if names is None:
            has_intercept = p > 0 and bool(np.all(X_arr[:, 0] == 1.0))
            names = [INTERCEPT if (j == 0 and has_intercept) else f"x{j}" for j in range(p)]
        else:
            names = [str(n) for n in names]
            if len(names) != p:
                raise ValidationError(
                    f"names: expected {p} names for the columns of X, got {len(names)}"
                )
            has_intercept = INTERCEPT in names

        assign: list[int] = []
        labels: list[str] = []
        for name in names:
            if name == INTERCEPT:
                assign.append(0)
            else:
                labels.append(name)
                assign.append(len(labels))

        return cls(
            X=X_arr,
            y=y_arr,
            column_names=tuple(names),
            assign=tuple(assign),
            term_labels=tuple(labels),
            has_intercept=has_intercept,
        )

    # === Properties ===

    @property
    def n(self) -> int:
        """Number of observations used."""
        return self.X.shape[0]

    @property
    def p(self) -> int:
        """Number of model-matrix columns."""
        return self.X.shape[1]

    @property
    def n_dropped(self) -> int:
        """Rows removed because of missing values."""
        if self.row_mask is None:
            return 0
        return int(np.sum(~self.row_mask))

    @property
    def response_name(self) -> str:
        if self.formula is not None and self.formula.response is not None:
            return self.formula.response
        return 'y'

    def row_labels(self) -> NDArray[np.int_]:
        """1-based row numbers in the source of the observations used."""
        if self.row_mask is None:
            return np.arange(1, self.n + 1)
        return np.flatnonzero(self.row_mask) + 1

    # === Sub-models ===

    def model_source(self) -> DataSource | None:
        """The source restricted to the rows this design used."""
        if self.source is None:
            return None
        if self.row_mask is None or self.row_mask.all():
            return self.source
        return self.source.subset(self.row_mask)

    def refit_formula(self, formula: str | Formula) -> Design:
        """
        Design for another formula over the same rows.

        Sub-models built this way stay comparable (same n) even when
        they use fewer variables than this one.

        Raises:
            ValidationError: If this design wasn't built from a formula
        """
        source = self.model_source()
        if source is None:
            raise ValidationError(
                "Design was built from arrays; sub-models need a formula design"
            )
        if isinstance(formula, str):
            formula = parse_formula(formula, columns=source.keys())
        return Design.from_formula(formula, source)

    def subset_columns(self, columns: Sequence[int]) -> Design:
        """Design restricted to the given model-matrix columns."""
        cols = list(columns)
        kept_assign = [self.assign[j] for j in cols]
        kept_terms = sorted({a for a in kept_assign if a > 0})
        remap = {old: new for new, old in enumerate(kept_terms, start=1)}
        return replace(
            self,
            X=self.X[:, cols],
            column_names=tuple(self.column_names[j] for j in cols),
            assign=tuple(remap.get(a, 0) for a in kept_assign),
            term_labels=tuple(self.term_labels[a - 1] for a in kept_terms),
            has_intercept=INTERCEPT in (self.column_names[j] for j in cols),
            formula=None,
            encoding=None,
        )

    def term_columns(self, label: str) -> list[int]:
        """Model-matrix columns belonging to a term."""
        if label not in self.term_labels:
            raise ValidationError(
                f"Term {label!r} not in model. Terms: {list(self.term_labels)}"
            )
        idx = self.term_labels.index(label) + 1
        return [j for j, a in enumerate(self.assign) if a == idx]
