"""
Named columns for formula evaluation.

Every formula front end (lm, glm, lmer, anova) goes through
DataSource.build, so a DataFrame, a dict of arrays, keyword arrays or a
file path all reach the model-matrix builder in the same shape:

    ds = DataSource.build(df)
    ds = DataSource.build({'x': x, 'y': y})
    ds = DataSource.build("sleep.csv")
    ds['x'], ds.keys(), ds.n_observations

Numeric columns are stored as float64 with NaN for missing values.
Anything else (strings, booleans, pandas Categoricals) is kept as given
so that factor coding sees the original labels and level order.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
import numpy as np
import pandas as pd

from pylinmodels.core.exceptions import ValidationError, DimensionError


def _coerce_column(values: Any, name: str) -> Any:
    if isinstance(values, pd.Categorical):
        return values
    if isinstance(values, pd.Series):
        dtype = values.dtype
        if isinstance(dtype, pd.CategoricalDtype):
            return pd.Categorical(values)
        if pd.api.types.is_bool_dtype(dtype):
            return values.to_numpy()
        if pd.api.types.is_numeric_dtype(dtype):
            return values.to_numpy(dtype=np.float64, na_value=np.nan)
        return values.to_numpy(dtype=object)

    arr = np.asarray(values)
    if arr.ndim != 1:
        raise DimensionError(f"{name}: columns must be 1D, got shape {arr.shape}")
    if np.issubdtype(arr.dtype, np.number) and arr.dtype != np.bool_:
        return arr.astype(np.float64)
    return arr


def _row_count(columns: dict[str, Any]) -> int:
    lengths = {name: len(col) for name, col in columns.items()}
    if len(set(lengths.values())) > 1:
        details = ", ".join(f"{k}={v}" for k, v in lengths.items())
        raise DimensionError(f"Inconsistent column lengths: {details}")
    return next(iter(lengths.values()), 0)


@dataclass
class DataSource:
    """
    Equal-length named columns. Build through the from_* classmethods
    or build(); names starting with '_' are hidden from keys().
    """
    _data: dict[str, Any]
    _metadata: dict[str, Any] = field(default_factory=dict)

    def keys(self) -> frozenset[str]:
        return frozenset(self.columns())

    def columns(self) -> list[str]:
        """Visible column names, in insertion order."""
        return [k for k in self._data if not k.startswith('_')]

    def __getitem__(self, key: str) -> Any:
        try:
            return self._data[key]
        except KeyError:
            raise KeyError(
                f"DataSource has no column '{key}'. Available: {sorted(self.keys())}"
            ) from None

    def __contains__(self, key: str) -> bool:
        return key in self._data

    @property
    def n_observations(self) -> int:
        return self._metadata.get('n_observations', 0)

    @property
    def metadata(self) -> dict[str, Any]:
        return dict(self._metadata)

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame({k: self._data[k] for k in self.columns()})

    @classmethod
    def from_arrays(cls, **columns: Any) -> DataSource:
        data = {name: _coerce_column(values, name) for name, values in columns.items()}
        return cls(_data=data, _metadata={'n_observations': _row_count(data), 'source': 'arrays'})

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> DataSource:
        return cls.from_arrays(**{str(k): v for k, v in mapping.items()})

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame, *, source_path: str | None = None) -> DataSource:
        names = [str(c) for c in df.columns]
        data = {name: _coerce_column(df[col], name) for name, col in zip(names, df.columns)}
        metadata: dict[str, Any] = {
            'n_observations': len(df),
            'source': 'dataframe',
            'columns': names,
        }
        if source_path:
            metadata['source_path'] = source_path
        return cls(_data=data, _metadata=metadata)

    @classmethod
    def from_file(cls, path: str | Path, *, columns: list[str] | None = None) -> DataSource:
        """
        Read a .csv, .tsv or .npy file.

        For .csv/.tsv, columns selects which to read. A .npy file must
        hold a 2D array; columns then names its columns (default V1, V2, ...).
        """
        path = Path(path)
        suffix = path.suffix.lower()

        if suffix in ('.csv', '.tsv'):
            df = pd.read_csv(path, usecols=columns, sep='\t' if suffix == '.tsv' else ',')
            return cls.from_dataframe(df, source_path=str(path))
        if suffix != '.npy':
            raise ValidationError(f"Unknown file format: {suffix}")

        matrix = np.load(path)
        if matrix.ndim != 2:
            raise DimensionError(f"{path.name}: expected a 2D array, got {matrix.ndim}D")
        names = columns or [f'V{j + 1}' for j in range(matrix.shape[1])]
        if len(names) != matrix.shape[1]:
            raise DimensionError(f"{path.name}: {matrix.shape[1]} columns but {len(names)} names")
        ds = cls.from_arrays(**dict(zip(names, matrix.T)))
        ds._metadata['source_path'] = str(path)
        return ds

    @classmethod
    def build(cls, data: Any = None, **kwargs: Any) -> DataSource:
        """
        DataSource from whatever a model function was given: an existing
        DataSource, a DataFrame, a mapping, a path, or keyword arrays.
        """
        if isinstance(data, DataSource):
            return data
        if data is None:
            return cls.from_arrays(**kwargs)
        if isinstance(data, (str, Path)):
            return cls.from_file(data, **kwargs)
        if isinstance(data, pd.DataFrame):
            return cls.from_dataframe(data)
        if isinstance(data, Mapping):
            return cls.from_mapping(data)
        raise ValidationError(f"Cannot build a DataSource from {type(data).__name__}")
