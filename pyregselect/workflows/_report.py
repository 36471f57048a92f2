"""
Text report assembled by a workflow: ordered, titled sections.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
import pandas as pd

RULE_WIDTH = 72


@dataclass(frozen=True)
class Section:
    title: str
    body: str


@dataclass
class WorkflowReport:
    """
    Ordered sections of one analysis run.

    Attributes:
        name: Workflow name
        sections: Sections in the order they were added
        results: Named objects produced along the way (models, tables)
            for callers that want more than the text
    """
    name: str
    description: str = ''
    sections: list[Section] = field(default_factory=list)
    results: dict[str, object] = field(default_factory=dict)

    def add(self, title: str, body: str | pd.DataFrame | pd.Series) -> None:
        if isinstance(body, (pd.DataFrame, pd.Series)):
            body = format_frame(body)
        self.sections.append(Section(title, body.strip('\n')))

    def keep(self, key: str, value: object) -> None:
        self.results[key] = value

    @property
    def titles(self) -> tuple[str, ...]:
        return tuple(s.title for s in self.sections)

    def section(self, title: str) -> str:
        for s in self.sections:
            if s.title == title:
                return s.body
        raise KeyError(f"no section {title!r}. Sections: {list(self.titles)}")

    def render(self) -> str:
        lines = [f"=== {self.name} ==="]
        if self.description:
            lines.append(self.description)
        for s in self.sections:
            lines.append("")
            lines.append(s.title)
            lines.append("-" * min(len(s.title), RULE_WIDTH))
            lines.append(s.body)
        return "\n".join(lines) + "\n"

    def __str__(self) -> str:
        return self.render()


def format_frame(frame: pd.DataFrame | pd.Series, digits: int = 4) -> str:
    """Print a table with `digits` significant digits, NaN shown as blank."""
    def fmt(v: float) -> str:
        return f"{v:.{digits}g}" if np.isfinite(v) else str(v)
    return frame.to_string(float_format=fmt, na_rep='')
