"""
Input checks for the array interface to mixed models.

lmer() builds its arrays from a formula and a data table; lmm() takes
them directly. Either way they pass through MixedDesign.validate before
the random-effect structure is assembled.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray

from pylinmodels.core.exceptions import DimensionError, ValidationError
from pylinmodels.core.validation import (
    check_array, check_finite, check_consistent_length, check_min_samples,
)


def _grouping_factors(groups: dict[str, Any], n: int) -> dict[str, NDArray]:
    if not groups:
        raise ValidationError("groups: a mixed model needs a grouping factor")

    factors = {}
    for name, labels in groups.items():
        labels = np.asarray(labels)
        if labels.shape[0] != n:
            raise DimensionError(
                f"groups['{name}']: {labels.shape[0]} labels for {n} observations"
            )
        n_levels = np.unique(labels).size
        if n_levels < 2:
            raise ValidationError(
                f"groups['{name}']: only {n_levels} level(s); "
                "a variance cannot be estimated from one group"
            )
        factors[name] = labels
    return factors


def _covariates(random_data: dict[str, Any], n: int) -> dict[str, NDArray]:
    columns = {}
    for name, values in random_data.items():
        label = f"random_data['{name}']"
        col = check_array(values, label).ravel()
        check_finite(col, label)
        if col.shape[0] != n:
            raise DimensionError(f"{label}: {col.shape[0]} values for {n} observations")
        columns[name] = col
    return columns


@dataclass(frozen=True)
class MixedDesign:
    """
    Response, fixed-effect matrix and grouping structure of an LMM.

    groups maps each grouping factor to its per-observation labels;
    random_effects maps a factor to the terms that vary over it
    ('1' for an intercept, otherwise a key of random_data).
    """
    y: NDArray
    X: NDArray
    groups: dict[str, NDArray]
    random_effects: dict[str, list[str]] | None
    random_data: dict[str, NDArray] | None
    n: int
    p: int

    @classmethod
    def validate(
        cls,
        y: Any,
        X: Any,
        groups: dict[str, Any],
        random_effects: dict[str, list[str]] | None = None,
        random_data: dict[str, Any] | None = None,
    ) -> MixedDesign:
        y = check_array(y, 'y').ravel()
        check_finite(y, 'y')
        check_min_samples(y, 3, 'y')

        X = check_array(X, 'X')
        if X.ndim == 1:
            X = X[:, None]
        check_finite(X, 'X')
        check_consistent_length(y, X, names=('y', 'X'))
        n, p = X.shape
        if n <= p:
            raise ValidationError(f"X: {p} fixed-effect columns need more than {n} observations")

        factors = _grouping_factors(groups, n)
        for name in random_effects or {}:
            if name not in factors:
                raise ValidationError(
                    f"random_effects: '{name}' not found in groups {sorted(factors)}"
                )

        covariates = None if random_data is None else _covariates(random_data, n)
        return cls(
            y=y, X=X, groups=factors,
            random_effects=random_effects, random_data=covariates,
            n=n, p=p,
        )
