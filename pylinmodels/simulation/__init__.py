"""
Deterministic vs. stochastic models and synthetic data.

Public API:
    DeterministicModel(intercept, slope).predict(x)
    StochasticModel(intercept, slope, family, link, dispersion)
    simulate_paired_sample, simulate_family_sample,
    simulate_grouped_sample, simulate_ancova_sample, repeated_draws

Example:
    >>> from pylinmodels.simulation import StochasticModel
    >>> model = StochasticModel(1.0, 2.0, dispersion=0.5 ** 2)
    >>> model.sample([0.0, 1.0, 2.0], seed=1)
"""

from pylinmodels.simulation.models import (
    DeterministicModel, StochasticModel, make_rng,
)
from pylinmodels.simulation.sampling import (
    simulate_paired_sample,
    simulate_family_sample,
    simulate_grouped_sample,
    simulate_ancova_sample,
    repeated_draws,
)

__all__ = [
    "DeterministicModel",
    "StochasticModel",
    "make_rng",
    "simulate_paired_sample",
    "simulate_family_sample",
    "simulate_grouped_sample",
    "simulate_ancova_sample",
    "repeated_draws",
]
