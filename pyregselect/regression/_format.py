"""
Text formatting shared by the summary() methods.

Produces R's printed layout: coefficient tables with significance
stars, p-values with the '< 2e-16' floor, residual quantiles.
"""

from __future__ import annotations

import numpy as np
import pandas as pd

SIGNIF_LEGEND = "Signif. codes:  0 '***' 0.001 '**' 0.01 '*' 0.05 '.' 0.1 ' ' 1"

# R's format.pval(eps = .Machine$double.eps) prints this floor
_PVALUE_FLOOR = 2.2e-16


def significance_stars(p: float | None) -> str:
    """Return significance stars for a p-value."""
    if p is None or np.isnan(p):
        return ""
    if p < 0.001:
        return "***"
    if p < 0.01:
        return "**"
    if p < 0.05:
        return "*"
    if p < 0.1:
        return "."
    return ""


def format_pvalue(p: float, digits: int = 3) -> str:
    if p is None or np.isnan(p):
        return "NA"
    if p < _PVALUE_FLOOR:
        return "< 2e-16"
    return f"{p:.{digits}g}"


def format_number(x: float, digits: int = 4) -> str:
    if x is None or np.isnan(x):
        return "NA"
    return f"{x:.{digits}g}"


def format_table(
    frame: pd.DataFrame,
    pvalue_columns: tuple[str, ...] = (),
    digits: int = 5,
    stars: bool = True,
    integer_columns: tuple[str, ...] = (),
    blank_missing: bool = False,
) -> list[str]:
    """
    Render a numeric table the way R prints coefficient and ANOVA tables.

    The last p-value column drives the significance stars. With
    blank_missing, NaN cells print empty (ANOVA tables) instead of NA.
    """
    missing = "" if blank_missing else "NA"
    body = pd.DataFrame(index=[str(i) for i in frame.index])
    for col in frame.columns:
        values = frame[col].to_numpy(dtype=np.float64)
        if col in pvalue_columns:
            body[col] = [missing if np.isnan(v) else format_pvalue(v) for v in values]
        elif col in integer_columns:
            body[col] = [missing if np.isnan(v) else str(int(v)) for v in values]
        else:
            body[col] = [missing if np.isnan(v) else format_number(v, digits) for v in values]

    if stars and pvalue_columns:
        p_col = pvalue_columns[-1]
        body[""] = [significance_stars(v) for v in frame[p_col].to_numpy(dtype=np.float64)]

    return body.to_string().splitlines()


def quantile_line(values: np.ndarray, digits: int = 4) -> list[str]:
    """Min / 1Q / Median / 3Q / Max of a vector as two aligned lines."""
    qs = np.quantile(values, [0.0, 0.25, 0.5, 0.75, 1.0])
    labels = ['Min', '1Q', 'Median', '3Q', 'Max']
    cells = [format_number(q, digits) for q in qs]
    width = max(max(len(c) for c in cells), max(len(lbl) for lbl in labels))
    return [
        ' '.join(lbl.rjust(width) for lbl in labels),
        ' '.join(c.rjust(width) for c in cells),
    ]
