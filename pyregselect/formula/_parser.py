"""
Model formula parsing.

Implements the subset of R's formula language the analyses use:

    y ~ a + b          main effects
    y ~ a * b          a + b + a:b
    y ~ a:b            interaction only
    y ~ .              every column except the response
    y ~ . - region     '.' minus a term
    y ~ a + b - 1      no intercept (also '+ 0')
    y ~ 1              intercept only
    log(y) ~ I(x^2)    transformed variables (see _variables)

Terms are ordered like R's terms.formula: by interaction order, then by
first appearance.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from itertools import combinations
from typing import Iterable, Sequence

from pyregselect.core.exceptions import FormulaError
from pyregselect.formula._variables import Variable, parse_variable


@dataclass(frozen=True)
class Term:
    """
    A model term: one variable (main effect) or several (interaction).

    `variables` keeps the order of first appearance, which fixes the
    column naming of interaction columns ('smokeryes:bmi').
    """
    variables: tuple[str, ...]

    @property
    def label(self) -> str:
        return ':'.join(self.variables)

    @property
    def order(self) -> int:
        return len(self.variables)

    def contains(self, other: Term) -> bool:
        """True if every variable of `other` appears in this term."""
        return set(other.variables) <= set(self.variables)

    def same_as(self, other: Term) -> bool:
        return set(self.variables) == set(other.variables)

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True)
class Formula:
    """
    A parsed model formula.

    Attributes:
        response: Response expression, or None for a one-sided formula
        terms: Ordered model terms
        intercept: Whether the model has an intercept
    """
    response: str | None
    terms: tuple[Term, ...]
    intercept: bool = True

    @property
    def term_labels(self) -> tuple[str, ...]:
        return tuple(t.label for t in self.terms)

    @property
    def variables(self) -> tuple[str, ...]:
        """Distinct variable expressions on the right-hand side."""
        seen: list[str] = []
        for term in self.terms:
            for v in term.variables:
                if v not in seen:
                    seen.append(v)
        return tuple(seen)

    def parsed_variables(self) -> tuple[Variable, ...]:
        return tuple(parse_variable(v, str(self)) for v in self.variables)

    def term(self, label: str) -> Term:
        """Look up a term by label (variable order within ':' ignored)."""
        wanted = Term(tuple(_normalize(label).split(':')))
        for t in self.terms:
            if t.same_as(wanted):
                return t
        raise FormulaError(
            f"Term {label!r} not in formula. Terms: {list(self.term_labels)}",
            formula=str(self),
            token=label,
        )

    def has_term(self, label: str) -> bool:
        wanted = Term(tuple(_normalize(label).split(':')))
        return any(t.same_as(wanted) for t in self.terms)

    def with_terms(
        self,
        terms: Iterable[Term],
        intercept: bool | None = None,
    ) -> Formula:
        """Same response, new terms (re-sorted into R order)."""
        return Formula(
            response=self.response,
            terms=_order_terms(list(terms)),
            intercept=self.intercept if intercept is None else intercept,
        )

    def add_term(self, term: Term) -> Formula:
        return self.with_terms([*self.terms, term])

    def drop_term(self, term: Term) -> Formula:
        return self.with_terms([t for t in self.terms if not t.same_as(term)])

    def __str__(self) -> str:
        rhs = ' + '.join(self.term_labels)
        if not self.intercept:
            rhs = f"{rhs} - 1" if rhs else '0'
        elif not rhs:
            rhs = '1'
        lhs = self.response if self.response is not None else ''
        return f"{lhs} ~ {rhs}".strip()


def parse_formula(
    text: str | Formula,
    columns: Sequence[str] | None = None,
) -> Formula:
    """
    Parse a formula string.

    Args:
        text: Formula such as "charges ~ age + bmi + smoker". A Formula
            is returned unchanged.
        columns: Column names of the data, required to expand '.'

    Returns:
        Formula

    Raises:
        FormulaError: On malformed syntax, unsupported expressions,
            or '.' without `columns`
    """
    if isinstance(text, Formula):
        return text
    if not isinstance(text, str):
        raise FormulaError(f"formula must be a string, got {type(text).__name__}")

    if text.count('~') != 1:
        raise FormulaError(
            f"Formula must contain exactly one '~': {text!r}", formula=text,
        )
    lhs, rhs = (part.strip() for part in text.split('~'))

    response: str | None = None
    if lhs:
        response = parse_variable(lhs, text).expr

    if not rhs:
        raise FormulaError(f"Empty right-hand side: {text!r}", formula=text)

    _check_parentheses(rhs, text)

    intercept = True
    included: list[Term] = []
    removed: list[Term] = []

    for sign, chunk in _split_signed(rhs, text):
        if chunk in ('1', '0'):
            if chunk == '0':
                intercept = False
            else:
                intercept = (sign == '+')
            continue

        if chunk == '.':
            if columns is None:
                raise FormulaError(
                    "'.' in formula requires the data's column names", formula=text,
                )
            dot_terms = _expand_dot(columns, response)
            (included if sign == '+' else removed).extend(dot_terms)
            continue

        terms = _expand_product(chunk, text)
        (included if sign == '+' else removed).extend(terms)

    kept = [t for t in _dedupe(included) if not any(t.same_as(r) for r in removed)]
    return Formula(response=response, terms=_order_terms(kept), intercept=intercept)


def _normalize(expr: str) -> str:
    return re.sub(r'\s+', '', expr)


def _check_parentheses(rhs: str, text: str) -> None:
    depth = 0
    for ch in rhs:
        if ch == '(':
            depth += 1
        elif ch == ')':
            depth -= 1
            if depth < 0:
                raise FormulaError(f"Unbalanced parentheses: {text!r}", formula=text)
    if depth != 0:
        raise FormulaError(f"Unbalanced parentheses: {text!r}", formula=text)


def _split_signed(rhs: str, text: str) -> list[tuple[str, str]]:
    """Split the right-hand side at top-level '+' and '-'."""
    chunks: list[tuple[str, str]] = []
    depth = 0
    sign = '+'
    current: list[str] = []

    for ch in rhs:
        if ch == '(':
            depth += 1
        elif ch == ')':
            depth -= 1
        if depth == 0 and ch in '+-':
            chunk = _normalize(''.join(current))
            if chunk:
                chunks.append((sign, chunk))
            elif chunks:
                raise FormulaError(f"Malformed formula: {text!r}", formula=text)
            sign = ch
            current = []
            continue
        current.append(ch)

    chunk = _normalize(''.join(current))
    if not chunk:
        raise FormulaError(f"Formula ends with an operator: {text!r}", formula=text)
    chunks.append((sign, chunk))
    return chunks


def _split_top(expr: str, sep: str) -> list[str]:
    """Split at a separator that is not inside parentheses."""
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    i = 0
    while i < len(expr):
        ch = expr[i]
        if ch == '(':
            depth += 1
        elif ch == ')':
            depth -= 1
        if depth == 0 and expr.startswith(sep, i) and not expr.startswith('**', i):
            parts.append(''.join(current))
            current = []
            i += len(sep)
            continue
        current.append(ch)
        i += 1
    parts.append(''.join(current))
    return parts


def _expand_product(chunk: str, text: str) -> list[Term]:
    """Expand 'a*b:c' into its terms: a, b:c, a:b:c."""
    factors = _split_top(chunk, '*')
    if any(not f for f in factors):
        raise FormulaError(f"Malformed term {chunk!r} in {text!r}", formula=text, token=chunk)

    base_terms: list[tuple[str, ...]] = []
    for factor in factors:
        names = _split_top(factor, ':')
        if any(not n for n in names):
            raise FormulaError(f"Malformed term {factor!r} in {text!r}", formula=text, token=factor)
        exprs = []
        for name in names:
            if name in ('.', '1', '0'):
                raise FormulaError(
                    f"{name!r} can't be part of an interaction: {text!r}",
                    formula=text, token=name,
                )
            exprs.append(parse_variable(name, text).expr)
        base_terms.append(tuple(dict.fromkeys(exprs)))

    expanded: list[Term] = []
    for size in range(1, len(base_terms) + 1):
        for combo in combinations(base_terms, size):
            merged: list[str] = []
            for part in combo:
                for v in part:
                    if v not in merged:
                        merged.append(v)
            expanded.append(Term(tuple(merged)))
    return expanded


def _expand_dot(columns: Sequence[str], response: str | None) -> list[Term]:
    excluded: set[str] = set()
    if response is not None:
        excluded.add(parse_variable(response).column)
    return [Term((c,)) for c in columns if c not in excluded]


def _dedupe(terms: list[Term]) -> list[Term]:
    out: list[Term] = []
    for t in terms:
        if not any(t.same_as(o) for o in out):
            out.append(t)
    return out


def _order_terms(terms: list[Term]) -> tuple[Term, ...]:
    """Stable sort by interaction order (R's terms.formula ordering)."""
    unique = _dedupe(terms)
    return tuple(sorted(unique, key=lambda t: t.order))
