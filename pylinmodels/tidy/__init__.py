"""
Fitted models as tidy DataFrames.

Public API:
    tidy(model, conf_int=False, conf_level=0.95)
    glance(model)
    augment(model, data=None)
"""

from pylinmodels.tidy.solvers import tidy, glance, augment

__all__ = ["tidy", "glance", "augment"]
