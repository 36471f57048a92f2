"""
Model formulas and model matrices.

Public API:
    parse_formula(text, columns=None) -> Formula
    build_model_matrix(formula, source) -> ModelMatrix

A Formula is the parsed, term-ordered form of "y ~ a + b*c - 1". A
ModelMatrix is its numeric encoding against a DataSource: treatment
coded factors, interaction products, the assign map, and an Encoding
that reproduces the same columns for new data.

Example:
    >>> from pyregselect.formula import parse_formula, build_model_matrix
    >>> f = parse_formula("charges ~ age + smoker*bmi")
    >>> f.term_labels
    ('age', 'smoker', 'bmi', 'smoker:bmi')
    >>> mm = build_model_matrix(f, source)
    >>> mm.column_names
    ('(Intercept)', 'age', 'smokeryes', 'bmi', 'smokeryes:bmi')
"""

from pyregselect.formula._parser import Formula, Term, parse_formula
from pyregselect.formula._variables import Variable, parse_variable
from pyregselect.formula._contrasts import (
    INTERCEPT,
    Encoding,
    ModelMatrix,
    build_model_matrix,
    encode_treatment,
    interaction_columns,
)

__all__ = [
    "Formula",
    "Term",
    "parse_formula",
    "Variable",
    "parse_variable",
    "INTERCEPT",
    "Encoding",
    "ModelMatrix",
    "build_model_matrix",
    "encode_treatment",
    "interaction_columns",
]
