"""
pylinmodels: linear, generalized linear and mixed models with R semantics.

Subpackages:
    simulation: deterministic vs. stochastic data-generating models
    formula: R-style formulas and model matrices
    regression: lm / glm fitting via QR and IRLS
    tidy: coefficient and model summaries as data frames
    diagnostics: influence measures and residual tests
    estimation: OLS, maximum likelihood and REML side by side
    mixed: linear mixed models (REML / ML)
    anova: ANOVA / ANCOVA tables and nested model comparison
    plotting: matplotlib figures for fits and diagnostics
"""

__version__ = "0.1.0"

from pylinmodels.regression import fit, lm, glm
from pylinmodels.tidy import tidy, glance, augment
from pylinmodels.anova import anova
from pylinmodels.mixed import lmm, lmer
from pylinmodels.diagnostics import diagnose

__all__ = [
    "__version__",
    "fit",
    "lm",
    "glm",
    "tidy",
    "glance",
    "augment",
    "anova",
    "lmm",
    "lmer",
    "diagnose",
]
