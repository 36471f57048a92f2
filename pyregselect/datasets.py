"""
Loaders for the four analysis datasets.

Each dataset is described by a DatasetSchema: the columns it must have,
which are factors and their reference levels, the response, and the
formula the analysis starts from. The loaders read the file through
DataSource.from_file, then apply the casts and relevels the schema
names, so every column has its modeling type before any fit.

Usage:
    from pyregselect.datasets import load_insurance

    ds = load_insurance("insurance.csv")
    ds.reference("smoker")   # 'no'
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

import numpy as np

from pyregselect.core.datasource import DataSource
from pyregselect.core.exceptions import ValidationError
from pyregselect.core.validation import check_binary


@dataclass(frozen=True)
class DatasetSchema:
    """
    Column layout and typing of a dataset.

    Attributes:
        name: Short dataset name (also the workflow name)
        columns: Required columns, after R-style name normalisation
        response: Response column
        factors: Factor column -> reference level (None keeps the
            first sorted level)
        formula: Formula of the full analysis model
        binary: Columns that must be coded 0/1
        aliases: Alternative column name -> canonical name
        keep_extra: Keep columns beyond `columns` (otherwise dropped)
        description: One-line description
    """
    name: str
    columns: tuple[str, ...]
    response: str
    factors: dict[str, str | None] = field(default_factory=dict)
    formula: str = ''
    binary: tuple[str, ...] = ()
    aliases: dict[str, str] = field(default_factory=dict)
    keep_extra: bool = False
    description: str = ''

    @property
    def numeric(self) -> tuple[str, ...]:
        return tuple(c for c in self.columns if c not in self.factors)


INSURANCE = DatasetSchema(
    name='insurance',
    columns=('age', 'sex', 'bmi', 'children', 'smoker', 'region', 'charges'),
    response='charges',
    factors={'sex': 'female', 'smoker': 'no', 'region': None},
    formula='charges ~ age + sex + bmi + children + smoker + region',
    aliases={'gender': 'sex'},
    description='Medical insurance charges by age, sex, BMI, children, smoking and region',
)

WINE = DatasetSchema(
    name='wine',
    columns=(
        'fixed.acidity', 'volatile.acidity', 'citric.acid', 'residual.sugar',
        'chlorides', 'free.sulfur.dioxide', 'total.sulfur.dioxide', 'density',
        'pH', 'sulphates', 'alcohol', 'quality',
    ),
    response='quality',
    formula='quality ~ .',
    description='Wine quality scores against physicochemical measurements',
)

ADMISSIONS = DatasetSchema(
    name='admissions',
    columns=('admit', 'gre', 'gpa', 'rank'),
    response='admit',
    factors={'rank': '1'},
    formula='admit ~ gre + gpa + rank',
    binary=('admit',),
    description='Graduate admission outcomes by GRE, GPA and undergraduate institution rank',
)

TITANIC = DatasetSchema(
    name='titanic',
    columns=('Survived', 'Pclass', 'Sex', 'Age', 'SibSp', 'Parch', 'Fare', 'Embarked'),
    response='Survived',
    factors={'Pclass': '1', 'Sex': 'female', 'Embarked': None},
    formula='Survived ~ Pclass + Sex + Age + SibSp + Parch + Fare + Embarked',
    binary=('Survived',),
    description='Titanic passenger survival by class, sex, age, family aboard, fare and port',
)

SCHEMAS: dict[str, DatasetSchema] = {
    s.name: s for s in (INSURANCE, WINE, ADMISSIONS, TITANIC)
}


def load_dataset(path: str | Path, schema: DatasetSchema) -> DataSource:
    """
    Read a delimited file and type its columns according to `schema`.

    The delimiter is ',' unless the header line only splits on ';'
    (the UCI wine files) or the file is a .tsv. Empty strings and 'NA'
    are read as missing.

    Raises:
        ValidationError: If the file is unreadable, a required column is
            missing, a numeric column holds text, or a binary column
            holds values other than 0/1
    """
    path = Path(path)
    ds = DataSource.from_file(path, check_names=True, sep=_detect_sep(path))

    renames = {
        alias: canonical for alias, canonical in schema.aliases.items()
        if alias in ds and canonical not in ds
    }
    if renames:
        ds = ds.rename(renames)

    missing = [c for c in schema.columns if c not in ds]
    if missing:
        raise ValidationError(
            f"{schema.name}: missing columns {missing} in {path.name}. "
            f"Found: {list(ds.keys())}"
        )
    if not schema.keep_extra:
        ds = ds.select(schema.columns)

    for col in schema.numeric:
        ds = ds.as_numeric(col)
    for col, ref in schema.factors.items():
        ds = ds.as_factor(col)
        if ref is not None:
            ds = ds.relevel(col, ref)
    for col in schema.binary:
        values = ds[col]
        check_binary(values[~np.isnan(values)], col)
    return ds


def load_insurance(path: str | Path) -> DataSource:
    """Insurance charges; sex, smoker and region are factors (smoker reference 'no')."""
    return load_dataset(path, INSURANCE)


def load_wine(path: str | Path) -> DataSource:
    """Wine quality; every column numeric, names normalised ('fixed acidity' -> 'fixed.acidity')."""
    return load_dataset(path, WINE)


def load_admissions(path: str | Path) -> DataSource:
    """Admissions; rank is a factor with reference '1', admit is 0/1."""
    return load_dataset(path, ADMISSIONS)


def load_titanic(path: str | Path) -> DataSource:
    """Titanic passengers; Pclass, Sex and Embarked are factors, Age may be missing."""
    return load_dataset(path, TITANIC)


LOADERS: dict[str, Callable[[str | Path], DataSource]] = {
    'insurance': load_insurance,
    'wine': load_wine,
    'admissions': load_admissions,
    'titanic': load_titanic,
}


def _detect_sep(path: Path) -> str | None:
    if path.suffix.lower() == '.tsv' or not path.exists():
        return None
    with path.open('r', encoding='utf-8', errors='replace') as fh:
        header = fh.readline()
    if ';' in header and ',' not in header:
        return ';'
    return None
