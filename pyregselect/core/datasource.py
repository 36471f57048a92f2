"""
Tabular DataSource for pyregselect.

DataSource is the "I have a table" abstraction: a pandas DataFrame plus
the one piece of typing modeling needs, which columns are factors and
in what level order. The first level of a factor is its reference level.

DataSource doesn't know what model will consume it. Formulas and
designs ask it for columns; it hands back arrays.

Every transformation (casting, releveling, scaling, subsetting) returns
a new DataSource. The wrapped frame is never modified in place.

Usage:
    from pyregselect.core import DataSource

    ds = DataSource.from_file("insurance.csv", factors=["sex", "smoker", "region"])
    ds = ds.relevel("smoker", "no").scale(exclude=["charges"])
    ds.levels("region")   # ('northeast', 'northwest', 'southeast', 'southwest')
    ds["bmi"]             # float64 ndarray
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Sequence, TYPE_CHECKING

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from pyregselect.core.exceptions import ValidationError

if TYPE_CHECKING:
    from numpy.typing import ArrayLike


DEFAULT_NA_VALUES = ('', 'NA', 'NaN', 'nan')


@dataclass
class DataSource:
    """
    Typed table. Construct via the factory classmethods, not directly.

    Factor columns are stored as pandas Categoricals whose categories are
    the level labels (strings) in level order.
    """
    _frame: pd.DataFrame
    _metadata: dict[str, Any] = field(default_factory=dict)

    # === Column Access ===

    def keys(self) -> tuple[str, ...]:
        """Column names in table order."""
        return tuple(str(c) for c in self._frame.columns)

    def __getitem__(self, key: str) -> NDArray:
        """
        Access a column as a numpy array.

        Numeric columns come back as float64 (missing values are NaN).
        Factor columns come back as an object array of level labels
        (missing values are None).

        Raises:
            KeyError: If the column doesn't exist, listing what does
        """
        if key not in self._frame.columns:
            raise KeyError(
                f"DataSource has no column '{key}'. Available: {list(self.keys())}"
            )
        col = self._frame[key]
        if isinstance(col.dtype, pd.CategoricalDtype):
            values = col.astype(object).to_numpy()
            return np.array([None if pd.isna(v) else v for v in values], dtype=object)
        return col.to_numpy(dtype=np.float64, na_value=np.nan)

    def __contains__(self, key: str) -> bool:
        return key in self._frame.columns

    def __len__(self) -> int:
        return len(self._frame)

    # === Properties ===

    @property
    def n_observations(self) -> int:
        """Number of rows."""
        return len(self._frame)

    @property
    def metadata(self) -> dict[str, Any]:
        return self._metadata.copy()

    @property
    def frame(self) -> pd.DataFrame:
        """A copy of the underlying DataFrame."""
        return self._frame.copy()

    @property
    def factors(self) -> dict[str, tuple[str, ...]]:
        """Factor column -> level labels (reference first)."""
        return {
            str(c): tuple(self._frame[c].cat.categories)
            for c in self._frame.columns
            if isinstance(self._frame[c].dtype, pd.CategoricalDtype)
        }

    def is_factor(self, column: str) -> bool:
        self._require(column)
        return isinstance(self._frame[column].dtype, pd.CategoricalDtype)

    def levels(self, column: str) -> tuple[str, ...]:
        """Level labels of a factor column, reference level first."""
        if not self.is_factor(column):
            raise ValidationError(f"{column}: not a factor column")
        return tuple(self._frame[column].cat.categories)

    def reference(self, column: str) -> str:
        """Reference (baseline) level of a factor column."""
        return self.levels(column)[0]

    def missing(self, column: str) -> NDArray[np.bool_]:
        """Boolean mask of missing values in a column."""
        self._require(column)
        return self._frame[column].isna().to_numpy()

    # === Transformations (each returns a new DataSource) ===

    def as_factor(
        self,
        column: str,
        levels: Sequence[Any] | None = None,
    ) -> DataSource:
        """
        Cast a column to a factor.

        Args:
            column: Column to cast
            levels: Level order. If None, the sorted unique values are used
                (numerically sorted when the column is numeric), so the
                smallest value becomes the reference.

        Raises:
            ValidationError: If `levels` omits values present in the data
        """
        self._require(column)
        frame = self._frame.copy()
        frame[column] = _to_categorical(frame[column], levels, column)
        return self._derive(frame)

    def as_numeric(self, column: str) -> DataSource:
        """
        Cast a column to float64.

        Factor columns are converted through their labels, not their codes.

        Raises:
            ValidationError: If any non-missing value is not numeric
        """
        self._require(column)
        frame = self._frame.copy()
        series = frame[column]
        if isinstance(series.dtype, pd.CategoricalDtype):
            series = series.astype(object)
        try:
            frame[column] = pd.to_numeric(series, errors='raise').astype(np.float64)
        except (ValueError, TypeError) as e:
            raise ValidationError(f"{column}: cannot cast to numeric: {e}") from e
        return self._derive(frame)

    def relevel(self, column: str, ref: Any) -> DataSource:
        """
        Make `ref` the reference level of a factor.

        Raises:
            ValidationError: If the column isn't a factor or `ref` is not a level
        """
        levels = list(self.levels(column))
        label = level_label(ref)
        if label not in levels:
            raise ValidationError(
                f"{column}: reference level {label!r} not in levels {levels}"
            )
        levels.remove(label)
        frame = self._frame.copy()
        frame[column] = frame[column].cat.reorder_categories([label] + levels)
        return self._derive(frame)

    def scale(
        self,
        columns: Iterable[str] | None = None,
        *,
        center: bool = True,
        scale: bool = True,
        exclude: Iterable[str] = (),
    ) -> DataSource:
        """
        Standardize numeric columns like R's scale().

        Subtracts the column mean and divides by the sample standard
        deviation (ddof=1). Missing values are ignored in the moments and
        stay missing.

        Args:
            columns: Columns to scale. Default: every numeric column.
            center: Subtract the mean
            scale: Divide by the standard deviation
            exclude: Columns to leave untouched (typically the response)

        Raises:
            ValidationError: If a column is a factor or has zero variance
        """
        skip = set(exclude)
        if columns is None:
            targets = [c for c in self.keys() if not self.is_factor(c) and c not in skip]
        else:
            targets = [c for c in columns if c not in skip]

        frame = self._frame.copy()
        moments: dict[str, tuple[float, float]] = {}
        for col in targets:
            if self.is_factor(col):
                raise ValidationError(f"{col}: cannot scale a factor column")
            values = frame[col].astype(np.float64)
            mean = float(values.mean()) if center else 0.0
            sd = float(values.std(ddof=1)) if scale else 1.0
            if scale and (not np.isfinite(sd) or sd == 0.0):
                raise ValidationError(f"{col}: zero variance, cannot scale")
            frame[col] = (values - mean) / sd
            moments[col] = (mean, sd)

        derived = self._derive(frame)
        derived._metadata['scaling'] = {**self._metadata.get('scaling', {}), **moments}
        return derived

    def assign(self, **columns: ArrayLike) -> DataSource:
        """Add or replace numeric columns."""
        frame = self._frame.copy()
        for name, values in columns.items():
            arr = np.asarray(values)
            if arr.shape[0] != len(frame):
                raise ValidationError(
                    f"{name}: length {arr.shape[0]} doesn't match table length {len(frame)}"
                )
            frame[name] = arr
        return self._derive(frame)

    def rename(self, mapping: dict[str, str]) -> DataSource:
        """Rename columns; factor levels and values are kept."""
        for old, new in mapping.items():
            self._require(old)
            if new in self._frame.columns and new != old:
                raise ValidationError(f"rename: column {new!r} already exists")
        return self._derive(self._frame.rename(columns=mapping))

    def select(self, columns: Iterable[str]) -> DataSource:
        cols = list(columns)
        for c in cols:
            self._require(c)
        return self._derive(self._frame[cols].copy())

    def drop(self, columns: Iterable[str]) -> DataSource:
        cols = list(columns)
        for c in cols:
            self._require(c)
        return self._derive(self._frame.drop(columns=cols))

    def subset(self, mask: ArrayLike) -> DataSource:
        """Keep the rows where `mask` is True."""
        mask_arr = np.asarray(mask, dtype=bool)
        if mask_arr.shape != (len(self._frame),):
            raise ValidationError(
                f"mask: expected shape ({len(self._frame)},), got {mask_arr.shape}"
            )
        return self._derive(self._frame.loc[mask_arr].reset_index(drop=True))

    def dropna(self, columns: Iterable[str] | None = None) -> DataSource:
        """Drop rows with a missing value in any of `columns` (default: all)."""
        subset = list(columns) if columns is not None else None
        if subset is not None:
            for c in subset:
                self._require(c)
        return self._derive(self._frame.dropna(subset=subset).reset_index(drop=True))

    def split(self, fraction: float, seed: int | None = None) -> tuple[DataSource, DataSource]:
        """
        Random train/test split by sampling rows without replacement.

        Args:
            fraction: Share of rows in the training part, in (0, 1)
            seed: Seed for np.random.default_rng

        Returns:
            (train, test), each keeping the original row order
        """
        if not 0.0 < fraction < 1.0:
            raise ValidationError(f"fraction: must be in (0, 1), got {fraction}")
        n = len(self._frame)
        n_train = int(np.floor(fraction * n))
        if n_train == 0 or n_train == n:
            raise ValidationError(
                f"fraction: {fraction} of {n} rows leaves an empty partition"
            )
        rng = np.random.default_rng(seed)
        train_idx = np.sort(rng.choice(n, size=n_train, replace=False))
        mask = np.zeros(n, dtype=bool)
        mask[train_idx] = True
        return self.subset(mask), self.subset(~mask)

    # === Factory Methods ===

    @classmethod
    def from_dataframe(
        cls,
        df: pd.DataFrame,
        *,
        factors: Iterable[str] = (),
        numeric: Iterable[str] = (),
        levels: dict[str, Sequence[Any]] | None = None,
        check_names: bool = False,
        source_path: str | None = None,
    ) -> DataSource:
        """
        Construct from a pandas DataFrame.

        String (object) columns and existing categoricals become factors.
        Columns named in `factors` are cast to factors, columns named in
        `numeric` to float64. `levels` fixes the level order of a factor.
        """
        frame = df.copy()
        if check_names:
            frame.columns = make_names([str(c) for c in frame.columns])
        frame.columns = [str(c) for c in frame.columns]
        levels = dict(levels or {})

        for col in numeric:
            if col not in frame.columns:
                raise ValidationError(f"numeric: no column {col!r}")
            try:
                frame[col] = pd.to_numeric(frame[col], errors='raise').astype(np.float64)
            except (ValueError, TypeError) as e:
                raise ValidationError(f"{col}: cannot cast to numeric: {e}") from e

        requested = set(factors) | set(levels)
        for col in requested:
            if col not in frame.columns:
                raise ValidationError(f"factors: no column {col!r}")

        for col in frame.columns:
            series = frame[col]
            is_text = series.dtype == object or pd.api.types.is_string_dtype(series.dtype)
            if col in requested or is_text or isinstance(series.dtype, pd.CategoricalDtype):
                frame[col] = _to_categorical(series, levels.get(col), col)
            elif pd.api.types.is_bool_dtype(series.dtype) or pd.api.types.is_numeric_dtype(series.dtype):
                frame[col] = series.astype(np.float64)
            else:
                raise ValidationError(
                    f"{col}: unsupported column dtype {series.dtype}"
                )

        metadata: dict[str, Any] = {
            'n_observations': len(frame),
            'source': 'dataframe',
            'columns': list(frame.columns),
        }
        if source_path:
            metadata['source'] = 'file'
            metadata['source_path'] = source_path
        return cls(_frame=frame.reset_index(drop=True), _metadata=metadata)

    @classmethod
    def from_file(
        cls,
        path: str | Path,
        *,
        factors: Iterable[str] = (),
        numeric: Iterable[str] = (),
        levels: dict[str, Sequence[Any]] | None = None,
        check_names: bool = True,
        na_values: Sequence[str] = DEFAULT_NA_VALUES,
        sep: str | None = None,
    ) -> DataSource:
        """
        Construct from a delimited text file (.csv, .tsv, .txt).

        Column names are normalised like R's read.csv (check_names=True):
        'fixed acidity' becomes 'fixed.acidity'.

        Raises:
            ValidationError: If the file is missing or the format unknown
        """
        path = Path(path)
        suffix = path.suffix.lower()
        if suffix not in ('.csv', '.tsv', '.txt'):
            raise ValidationError(f"Unknown file format: {suffix}")
        if not path.exists():
            raise ValidationError(f"No such file: {path}")
        if sep is None:
            sep = '\t' if suffix == '.tsv' else ','

        df = pd.read_csv(
            path, sep=sep, na_values=list(na_values), keep_default_na=False,
        )
        return cls.from_dataframe(
            df,
            factors=factors,
            numeric=numeric,
            levels=levels,
            check_names=check_names,
            source_path=str(path),
        )

    @classmethod
    def from_arrays(cls, **columns: ArrayLike) -> DataSource:
        """Construct from named 1D arrays. String arrays become factors."""
        if not columns:
            raise ValidationError("from_arrays: at least one column required")
        lengths = {name: len(np.asarray(v)) for name, v in columns.items()}
        if len(set(lengths.values())) > 1:
            raise ValidationError(f"from_arrays: inconsistent lengths {lengths}")
        df = pd.DataFrame({name: np.asarray(v) for name, v in columns.items()})
        ds = cls.from_dataframe(df)
        ds._metadata['source'] = 'arrays'
        return ds

    # === Internals ===

    def _require(self, column: str) -> None:
        if column not in self._frame.columns:
            raise KeyError(
                f"DataSource has no column '{column}'. Available: {list(self.keys())}"
            )

    def _derive(self, frame: pd.DataFrame) -> DataSource:
        metadata = self._metadata.copy()
        metadata['n_observations'] = len(frame)
        metadata['columns'] = [str(c) for c in frame.columns]
        return DataSource(_frame=frame, _metadata=metadata)

    def __repr__(self) -> str:
        n_factors = len(self.factors)
        return (
            f"DataSource(n={self.n_observations}, columns={len(self.keys())}, "
            f"factors={n_factors})"
        )


def level_label(value: Any) -> str:
    """Label used for a factor level: 2.0 -> '2', 'yes' -> 'yes'."""
    if isinstance(value, (bool, np.bool_)):
        return 'TRUE' if value else 'FALSE'
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        return str(int(value))
    return str(value)


def _to_categorical(
    series: pd.Series,
    levels: Sequence[Any] | None,
    name: str,
) -> pd.Categorical:
    """Convert a column to a Categorical of string labels."""
    if isinstance(series.dtype, pd.CategoricalDtype):
        observed = [v for v in series.cat.categories]
        series = series.astype(object)
    else:
        observed = list(pd.unique(series.dropna()))
        try:
            observed = sorted(observed)
        except TypeError:
            observed = sorted(observed, key=str)

    labels = series.map(lambda v: None if pd.isna(v) else level_label(v))

    if levels is None:
        categories: list[str] = []
        for v in observed:
            lab = level_label(v)
            if lab not in categories:
                categories.append(lab)
    else:
        categories = [level_label(v) for v in levels]
        unknown = sorted(set(labels.dropna()) - set(categories))
        if unknown:
            raise ValidationError(
                f"{name}: values {unknown} not among the given levels {categories}"
            )

    return pd.Categorical(labels, categories=categories)


def make_names(names: Sequence[str]) -> list[str]:
    """
    Syntactically valid, unique column names (R's make.names(unique=TRUE)).

    Invalid characters become '.', names that don't start with a letter
    (or a dot not followed by a digit) get an 'X' prefix, and duplicates
    get '.1', '.2', ... suffixes.
    """
    cleaned = []
    for name in names:
        valid = re.sub(r'[^A-Za-z0-9._]', '.', name)
        if not re.match(r'^([A-Za-z]|\.(?![0-9]))', valid):
            valid = 'X' + valid
        cleaned.append(valid)

    seen: dict[str, int] = {}
    result = []
    taken = set(cleaned)
    for name in cleaned:
        if name not in seen:
            seen[name] = 0
            result.append(name)
            continue
        seen[name] += 1
        candidate = f"{name}.{seen[name]}"
        while candidate in taken:
            seen[name] += 1
            candidate = f"{name}.{seen[name]}"
        taken.add(candidate)
        result.append(candidate)
    return result
