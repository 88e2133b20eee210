"""
Factor coding for model matrices.

Translates categorical factors into numeric columns.

Key concepts:
    - Treatment coding: k-1 indicator columns (baseline = first level)
    - Full (indicator) coding: k columns, used when marginality requires it
    - Interaction: row-wise product of the per-factor column blocks, first
      factor varying fastest (R's column order)
"""

from typing import Any, Sequence

import numpy as np
from numpy.typing import NDArray
import pandas as pd


def as_categorical(values: Any) -> pd.Categorical:
    """
    Coerce a column to a pandas Categorical.

    An existing Categorical keeps its category order; anything else gets
    sorted unique levels, the way R's factor() does.
    """
    if isinstance(values, pd.Categorical):
        return values
    if isinstance(values, pd.Series) and isinstance(values.dtype, pd.CategoricalDtype):
        return pd.Categorical(values)
    return pd.Categorical(np.asarray(values))


def is_categorical(values: Any) -> bool:
    """Whether a column must be coded as a factor rather than used numerically."""
    if isinstance(values, pd.Categorical):
        return True
    if isinstance(values, pd.Series):
        return not pd.api.types.is_numeric_dtype(values.dtype) or pd.api.types.is_bool_dtype(values.dtype)
    arr = np.asarray(values)
    return arr.dtype == np.bool_ or not np.issubdtype(arr.dtype, np.number)


def encode_treatment(
    codes: NDArray[np.integer[Any]],
    levels: Sequence[Any],
) -> tuple[NDArray[np.floating[Any]], list[str]]:
    """
    Treatment (dummy) coding for a single factor.

    Drops the first level (baseline) and creates k-1 indicator columns.
    Missing values (code -1) give NaN rows.

    Args:
        codes: Integer level codes (n,), -1 for missing
        levels: Level labels, baseline first

    Returns:
        (X_coded, level_names): the (n, k-1) indicator matrix and the
        labels of the k-1 non-baseline levels
    """
    X = encode_full(codes, levels)[0][:, 1:]
    return X, [str(lv) for lv in levels[1:]]


def encode_full(
    codes: NDArray[np.integer[Any]],
    levels: Sequence[Any],
) -> tuple[NDArray[np.floating[Any]], list[str]]:
    """
    Indicator coding with one column per level.

    Used for a factor whose lower-order margin is absent from the model,
    e.g. g in ``y ~ 0 + g`` or in ``y ~ x:g``.
    """
    n = len(codes)
    k = len(levels)
    X = np.zeros((n, k), dtype=np.float64)
    observed = codes >= 0
    X[np.flatnonzero(observed), codes[observed]] = 1.0
    X[~observed, :] = np.nan
    return X, [str(lv) for lv in levels]


def interaction_columns(
    blocks: list[NDArray[np.floating[Any]]],
    names: list[list[str]],
) -> tuple[NDArray[np.floating[Any]], list[str]]:
    """
    Columns of an interaction term.

    Every combination of one column from each block is multiplied
    element-wise. The first block varies fastest, so for factors a and b
    the order is a2:b2, a3:b2, a2:b3, a3:b3.

    Args:
        blocks: Per-factor column blocks, each (n, p_i)
        names: Per-factor column labels

    Returns:
        (X_int, labels): (n, prod p_i) columns and their ':'-joined labels
    """
    X_int = blocks[0]
    labels = list(names[0])
    for block, block_names in zip(blocks[1:], names[1:]):
        n = X_int.shape[0]
        p_a = X_int.shape[1]
        p_b = block.shape[1]
        combined = np.empty((n, p_a * p_b), dtype=np.float64)
        combined_labels: list[str] = []
        col = 0
        for j in range(p_b):
            for i in range(p_a):
                combined[:, col] = X_int[:, i] * block[:, j]
                combined_labels.append(f"{labels[i]}:{block_names[j]}")
                col += 1
        X_int = combined
        labels = combined_labels
    return X_int, labels
