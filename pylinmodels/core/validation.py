"""
Argument checks shared by the public entry points.

Model front ends (fit, lm, glm, lmm, the simulators) call these before
any numerical work, so that a bad argument is reported by name instead
of surfacing later as a LinAlgError or a NaN coefficient. Code behind
the entry points assumes its inputs have passed.

Every message starts with the offending parameter's name.
"""

import numpy as np
from numpy.typing import ArrayLike, NDArray
from typing import Any

from pylinmodels.core.exceptions import ValidationError, DimensionError


def check_array(
    array: ArrayLike,
    name: str,
) -> NDArray[np.floating[Any]]:
    """
    Convert an array-like of numbers to a floating-point ndarray.

    Booleans and integers become float64; float32 is kept. Text, mixed
    or object data is rejected, since categorical predictors belong in a
    data table passed to a formula, not in a design matrix.

    Raises:
        ValidationError: If the values are not numeric
    """
    try:
        result = np.asarray(array)
    except (ValueError, TypeError) as e:
        raise ValidationError(f"{name}: not convertible to an array ({e})") from e

    if result.dtype == object:
        raise ValidationError(
            f"{name}: object dtype; use a formula with a data table for "
            "non-numeric columns"
        )
    if result.dtype == np.bool_ or np.issubdtype(result.dtype, np.integer):
        return result.astype(np.float64)
    if not np.issubdtype(result.dtype, np.floating):
        raise ValidationError(f"{name}: expected numbers, got dtype {result.dtype}")
    return result


def check_finite(array: NDArray[np.floating[Any]], name: str) -> None:
    """
    Reject NaN and ±Inf.

    Formula fits drop incomplete rows before they get here, so a missing
    value at this point came in through a raw matrix.
    """
    finite = np.isfinite(array)
    if finite.all():
        return
    n_nan = int(np.isnan(array).sum())
    n_inf = int(np.isinf(array).sum())
    raise ValidationError(f"{name}: {n_nan} NaN, {n_inf} Inf; drop or impute them first")


def check_ndim(array: NDArray[np.floating[Any]], ndim: int, name: str) -> None:
    if array.ndim != ndim:
        raise DimensionError(
            f"{name}: expected {ndim}D, got shape {array.shape}"
        )


def check_1d(array: NDArray[np.floating[Any]], name: str) -> None:
    check_ndim(array, 1, name)


def check_2d(array: NDArray[np.floating[Any]], name: str) -> None:
    check_ndim(array, 2, name)


def check_consistent_length(
    *arrays: NDArray[np.floating[Any]],
    names: tuple[str, ...]
) -> None:
    """
    Require one row per observation in every array.

    Raises:
        ValueError: If names and arrays differ in number (a caller bug)
        DimensionError: If the first dimensions disagree
    """
    if len(arrays) != len(names):
        raise ValueError(f"got {len(arrays)} arrays but {len(names)} names")

    lengths = [arr.shape[0] for arr in arrays]
    if len(set(lengths)) > 1:
        details = ", ".join(f"{nm}={k}" for nm, k in zip(names, lengths))
        raise DimensionError(f"Inconsistent lengths: {details}")


def check_min_samples(array: NDArray[np.floating[Any]], min_samples: int, name: str) -> None:
    """Require at least min_samples rows, e.g. more observations than coefficients."""
    n = array.shape[0]
    if n < min_samples:
        raise ValidationError(f"{name}: needs at least {min_samples} observations, has {n}")


def check_positive_int(value: Any, name: str) -> None:
    """Sample sizes, group counts, draw counts."""
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value < 1:
        raise ValidationError(f"{name}: must be a positive integer, got {value!r}")


def check_in_range(
    array: NDArray[np.floating[Any]],
    name: str,
    *,
    low: float | None = None,
    high: float | None = None,
    low_inclusive: bool = True,
    high_inclusive: bool = True,
) -> None:
    """
    Require every value to lie in an interval.

    Families use this for their response domain: [0, 1] for binomial,
    [0, inf] for Poisson, (0, inf] for Gamma and inverse Gaussian.

    Raises:
        ValidationError: Reporting how many values fall outside
    """
    below = np.zeros(array.shape, dtype=bool)
    above = np.zeros(array.shape, dtype=bool)
    if low is not None:
        below = array < low if low_inclusive else array <= low
    if high is not None:
        above = array > high if high_inclusive else array >= high
    n_bad = int(np.count_nonzero(below | above))
    if n_bad == 0:
        return

    left = ('[' if low_inclusive else '(') + ('-inf' if low is None else str(low))
    right = ('inf' if high is None else str(high)) + (']' if high_inclusive else ')')
    raise ValidationError(f"{name}: {n_bad} value(s) outside {left}, {right}")


def check_level(level: float, name: str = 'level') -> None:
    """Confidence levels are fractions: 0.95, not 95."""
    if not 0.0 < level < 1.0:
        raise ValidationError(f"{name}: must be in (0, 1), got {level}")
