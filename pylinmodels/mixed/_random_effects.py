"""
Random-effect structure: the Z matrix and the relative covariance factor.

For a grouping factor with J levels and q terms, Z has J*q columns laid
out term-major (all levels of term 0, then all levels of term 1, ...).
The covariance of that factor's effects is σ² T Tᵀ ⊗ I_J, where T is
the q × q lower-triangular factor whose entries, read row by row, form
that factor's slice of θ. Λ_θ is the block diagonal of the T ⊗ I_J.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, Sequence

import numpy as np
from numpy.typing import NDArray
from scipy.linalg import block_diag

from pylinmodels.core.exceptions import DimensionError, ValidationError


@dataclass(frozen=True)
class RandomEffectSpec:
    """
    One grouping factor and the terms that vary over it.

    group_ids holds 0-based level indices into group_levels, one per
    observation; Z_block is that factor's (n, n_groups * n_terms) slice
    of Z.
    """
    group_name: str
    group_ids: NDArray
    group_levels: tuple[Any, ...]
    terms: tuple[str, ...]
    Z_block: NDArray
    n_groups: int
    n_terms: int
    theta_size: int


def make_spec(
    group_name: str,
    group_values: Any,
    Z_within: NDArray,
    term_names: Sequence[str],
) -> RandomEffectSpec:
    """
    Z_within has one column per term, evaluated at every observation:
    a column of ones for a random intercept, the covariate for a slope.
    """
    labels = np.asarray(group_values)
    n, q = Z_within.shape
    if labels.shape[0] != n:
        raise DimensionError(f"groups['{group_name}']: {labels.shape[0]} labels for {n} observations")

    levels, ids = np.unique(labels, return_inverse=True)
    J = levels.size
    Z = np.zeros((n, J * q), dtype=np.float64)
    for t in range(q):
        Z[np.arange(n), t * J + ids] = Z_within[:, t]

    return RandomEffectSpec(
        group_name=group_name,
        group_ids=ids,
        group_levels=tuple(levels.tolist()),
        terms=tuple(term_names),
        Z_block=Z,
        n_groups=J,
        n_terms=q,
        theta_size=q * (q + 1) // 2,
    )


def parse_random_effects(
    groups: dict[str, Any],
    random_effects: dict[str, list[str]] | None,
    random_data: dict[str, Any] | None,
    n: int,
) -> list[RandomEffectSpec]:
    """
    Specs for the array interface.

    random_effects maps a factor to its terms, '1' standing for the
    intercept, so {'subject': ['1', 'time']} is (1 + time | subject).
    A factor without an entry gets a random intercept. Slope terms are
    looked up in random_data.
    """
    random_effects = random_effects or {}
    random_data = random_data or {}

    specs = []
    for group_name, labels in groups.items():
        terms = random_effects.get(group_name, ['1'])
        if not terms:
            raise ValidationError(f"random_effects['{group_name}']: empty term list")

        columns, names = [], []
        for term in terms:
            if term == '1':
                columns.append(np.ones(n))
                names.append('(Intercept)')
                continue
            if term not in random_data:
                raise ValidationError(
                    f"random_effects['{group_name}']: slope '{term}' has no column "
                    f"in random_data {sorted(random_data)}"
                )
            values = np.asarray(random_data[term], dtype=np.float64)
            if values.shape[0] != n:
                raise DimensionError(
                    f"random_data['{term}']: {values.shape[0]} values for {n} observations"
                )
            columns.append(values)
            names.append(term)
        specs.append(make_spec(group_name, labels, np.column_stack(columns), names))
    return specs


def build_z_matrix(specs: list[RandomEffectSpec]) -> NDArray:
    if not specs:
        raise ValidationError("random effects: no grouping factor to build Z from")
    return np.hstack([s.Z_block for s in specs])


def relative_factors(theta: NDArray, specs: list[RandomEffectSpec]) -> list[NDArray]:
    """The lower-triangular T of each factor, filled row by row from θ."""
    factors = []
    start = 0
    for spec in specs:
        T = np.zeros((spec.n_terms, spec.n_terms))
        T[np.tril_indices(spec.n_terms)] = theta[start:start + spec.theta_size]
        factors.append(T)
        start += spec.theta_size
    return factors


def build_lambda(theta: NDArray, specs: list[RandomEffectSpec]) -> NDArray:
    return block_diag(*(
        np.kron(T, np.eye(spec.n_groups))
        for T, spec in zip(relative_factors(theta, specs), specs)
    ))


def _theta_slots(specs: list[RandomEffectSpec]) -> Iterator[tuple[int, int]]:
    # (row, col) of each θ entry within its factor's T
    for spec in specs:
        rows, cols = np.tril_indices(spec.n_terms)
        yield from zip(rows.tolist(), cols.tolist())


def theta_lower_bounds(specs: list[RandomEffectSpec]) -> NDArray:
    """Zero on the diagonal of each T, unbounded below it."""
    return np.array([0.0 if r == c else -np.inf for r, c in _theta_slots(specs)])


def theta_start(specs: list[RandomEffectSpec], slope_scale: float = 1.0) -> NDArray:
    """
    Identity T for every factor, except that slope_scale replaces the
    diagonal entries after the first. Slope fits retry from smaller
    values when the default start stalls.
    """
    start = []
    for r, c in _theta_slots(specs):
        if r != c:
            start.append(0.0)
        else:
            start.append(1.0 if r == 0 else slope_scale)
    return np.array(start)
