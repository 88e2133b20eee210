"""
Regression Design.

Design wraps the inputs of a fit: the design matrix X, the response y,
the column names and whether the model has an intercept. It can be built
from raw arrays, from a DataSource, or from a formula plus data, in which
case it keeps the ModelMatrix so that prediction and ANOVA can rebuild
columns later.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
import numpy as np
from numpy.typing import NDArray

from pylinmodels.core.datasource import DataSource
from pylinmodels.core.exceptions import DimensionError, ValidationError
from pylinmodels.core.validation import (
    check_array, check_finite, check_2d, check_1d,
    check_consistent_length, check_min_samples,
)
from pylinmodels.formula import ModelMatrix, build_model_matrix


@dataclass(frozen=True)
class Design:
    """
    Regression design specification.

    Immutable after construction.

    Construction:
        Design.from_arrays(X, y)                         # Direct from arrays
        Design.from_arrays(X, y, names=['(Intercept)', 'x'])
        Design.from_datasource(ds, x=['a', 'b'], y='c')  # Named columns
        Design.from_formula('y ~ x + g', df)             # R-style formula
    """
    _X: NDArray[np.floating[Any]]
    _y: NDArray[np.floating[Any]]
    _n: int
    _p: int
    _names: tuple[str, ...]
    _has_intercept: bool
    _model_matrix: ModelMatrix | None = None
    _source: DataSource | None = None

    @classmethod
    def from_arrays(
        cls,
        X: Any,
        y: Any,
        *,
        names: list[str] | None = None,
        has_intercept: bool | None = None,
    ) -> Design:
        """
        Build Design directly from arrays.

        Args:
            X: Design matrix (n x p) or a single predictor (n,)
            y: Response (n,)
            names: Column names. Defaults to '(Intercept)' for a column of
                ones and 'x1', 'x2', ... for the rest.
            has_intercept: Whether X contains an intercept. Detected from a
                constant non-zero column when not given.
        """
        X_arr = check_array(X, 'X')
        y_arr = check_array(y, 'y')
        return cls._build(X_arr, y_arr, names=names, has_intercept=has_intercept)

    @classmethod
    def from_datasource(
        cls,
        source: DataSource,
        *,
        x: str | list[str],
        y: str,
        add_intercept: bool = True,
    ) -> Design:
        """
        Build Design from named numeric columns of a DataSource.

        Args:
            source: The DataSource
            x: Predictor column(s)
            y: Response column
            add_intercept: Prepend a column of ones
        """
        x_cols = [x] if isinstance(x, str) else list(x)
        columns = [check_array(source[c], c) for c in x_cols]
        y_arr = check_array(source[y], y)

        names = list(x_cols)
        if add_intercept:
            columns.insert(0, np.ones(len(y_arr)))
            names.insert(0, '(Intercept)')
        X_arr = np.column_stack(columns)
        return cls._build(
            X_arr, y_arr, names=names, has_intercept=add_intercept, source=source
        )

    @classmethod
    def from_formula(cls, formula: str, data: Any) -> Design:
        """
        Build Design from an R-style formula.

        Rows with missing values in any used variable are dropped; the
        kept rows are recorded in model_matrix.row_mask.

        Raises:
            FormulaError: If the formula is malformed
            ValidationError: If it has no response or names unknown variables
        """
        source = DataSource.build(data)
        mm = build_model_matrix(formula, source)
        if mm.y is None:
            raise ValidationError(f"Formula {formula!r} has no response")
        return cls._build(
            mm.X, mm.y,
            names=mm.column_names,
            has_intercept=mm.has_intercept,
            model_matrix=mm,
            source=source,
        )

    @classmethod
    def _build(
        cls,
        X: NDArray,
        y: NDArray,
        *,
        names: list[str] | None,
        has_intercept: bool | None,
        model_matrix: ModelMatrix | None = None,
        source: DataSource | None = None,
    ) -> Design:
        """Internal builder with validation."""
        if X.ndim == 1:
            X = X.reshape(-1, 1)
        if y.ndim == 2 and y.shape[1] == 1:
            y = y.ravel()

        check_2d(X, 'X')
        check_1d(y, 'y')
        check_finite(X, 'X')
        check_finite(y, 'y')
        check_consistent_length(X, y, names=('X', 'y'))

        n, p = X.shape
        check_min_samples(X, max(p, 1), 'X')

        if has_intercept is None:
            has_intercept = _detect_intercept(X)
        if names is None:
            names = _default_names(X)
        if len(names) != p:
            raise DimensionError(f"names: expected {p} names, got {len(names)}")

        return cls(
            _X=X.astype(np.float64, copy=False),
            _y=y.astype(np.float64, copy=False),
            _n=n,
            _p=p,
            _names=tuple(str(nm) for nm in names),
            _has_intercept=bool(has_intercept),
            _model_matrix=model_matrix,
            _source=source,
        )

    # === Properties ===

    @property
    def X(self) -> NDArray[np.floating[Any]]:
        """Design matrix (n x p)."""
        return self._X

    @property
    def y(self) -> NDArray[np.floating[Any]]:
        """Response vector (n,)."""
        return self._y

    @property
    def n(self) -> int:
        """Number of observations."""
        return self._n

    @property
    def p(self) -> int:
        """Number of columns of X."""
        return self._p

    @property
    def names(self) -> list[str]:
        """Column names."""
        return list(self._names)

    @property
    def has_intercept(self) -> bool:
        return self._has_intercept

    @property
    def model_matrix(self) -> ModelMatrix | None:
        """ModelMatrix when the design came from a formula."""
        return self._model_matrix

    @property
    def source(self) -> DataSource | None:
        """Original DataSource, if available."""
        return self._source

    def XtX(self) -> NDArray[np.floating[Any]]:
        """Compute X'X."""
        return self._X.T @ self._X

    def Xty(self) -> NDArray[np.floating[Any]]:
        """Compute X'y."""
        return self._X.T @ self._y

    def subset_columns(self, columns: list[int] | NDArray[np.intp]) -> Design:
        """A design on a subset of the columns (same y, same rows)."""
        columns = list(columns)
        X_sub = self._X[:, columns]
        names = [self._names[j] for j in columns]
        return Design._build(
            X_sub, self._y,
            names=names,
            has_intercept=self._has_intercept and _detect_intercept(X_sub),
            source=self._source,
        )


def _detect_intercept(X: NDArray) -> bool:
    """A constant, non-zero column counts as an intercept."""
    if X.shape[0] == 0:
        return False
    first = X[0]
    constant = np.all(X == first, axis=0) & (first != 0)
    return bool(np.any(constant))


def _default_names(X: NDArray) -> list[str]:
    names = []
    k = 0
    for j in range(X.shape[1]):
        col = X[:, j]
        if np.all(col == 1.0) and '(Intercept)' not in names:
            names.append('(Intercept)')
        else:
            k += 1
            names.append(f"x{k}")
    return names
