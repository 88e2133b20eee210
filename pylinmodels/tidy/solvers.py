"""
Model summaries as pandas DataFrames.

    tidy(model)     one row per coefficient
    glance(model)   one row per model
    augment(model)  one row per observation

Column names follow the broom conventions with underscores
(std_error, p_value, conf_low, ...), and per-observation columns
added by augment are prefixed with a dot.
"""

from __future__ import annotations

from typing import Any, Literal

import numpy as np
from numpy.typing import NDArray
import pandas as pd

from pylinmodels.core.datasource import DataSource
from pylinmodels.core.exceptions import DimensionError
from pylinmodels.core.validation import check_level
from pylinmodels.diagnostics.solvers import influence
from pylinmodels.estimation.solution import MLSolution
from pylinmodels.formula.model_matrix import ModelMatrix
from pylinmodels.mixed.solution import LMMSolution
from pylinmodels.regression.solution import GLMSolution, LinearSolution

SUPPORTED = (LinearSolution, GLMSolution, LMMSolution, MLSolution)


def _check_supported(model: Any, func: str) -> None:
    if not isinstance(model, SUPPORTED):
        names = ', '.join(t.__name__ for t in SUPPORTED)
        raise TypeError(
            f"{func}() does not support {type(model).__name__}; expected one of {names}"
        )


def _statistics(model: Any) -> NDArray[np.floating[Any]]:
    if isinstance(model, LinearSolution):
        return model.t_statistics
    if isinstance(model, GLMSolution):
        return model.test_statistics
    if isinstance(model, LMMSolution):
        return model.z_values
    return model.z_statistics


def tidy(
    model: LinearSolution | GLMSolution | LMMSolution | MLSolution,
    conf_int: bool = False,
    conf_level: float = 0.95,
) -> pd.DataFrame:
    """
    Coefficient table as a DataFrame.

    Columns: term, estimate, std_error, statistic, p_value, and with
    conf_int=True also conf_low, conf_high. Aliased coefficients of a
    rank-deficient fit appear with NaN entries. For mixed models the
    rows are the fixed effects.

    Raises:
        TypeError: If model is not a supported fitted model

    Example:
        >>> tidy(lm('y ~ x', df), conf_int=True)
                  term  estimate  std_error  statistic   p_value  conf_low  conf_high
        0  (Intercept)  ...
    """
    _check_supported(model, 'tidy')
    frame = pd.DataFrame({
        'term': list(model.names),
        'estimate': np.asarray(model.coefficients, dtype=np.float64),
        'std_error': np.asarray(model.standard_errors, dtype=np.float64),
        'statistic': np.asarray(_statistics(model), dtype=np.float64),
        'p_value': np.asarray(model.p_values, dtype=np.float64),
    })
    if conf_int:
        check_level(conf_level, 'conf_level')
        ci = model.conf_int(conf_level)
        frame['conf_low'] = ci[:, 0]
        frame['conf_high'] = ci[:, 1]
    return frame


def glance(
    model: LinearSolution | GLMSolution | LMMSolution | MLSolution,
) -> pd.DataFrame:
    """
    One-row model summary.

    Linear models report r_squared, adj_r_squared, sigma, the overall F
    statistic with its p_value and numerator df, log_lik, aic, bic,
    deviance (the RSS), df_residual and nobs. GLMs report null_deviance,
    df_null, log_lik, aic, bic, deviance, df_residual and nobs. Mixed
    models report sigma, log_lik, aic, bic, the REML criterion or
    deviance, and nobs.

    Raises:
        TypeError: If model is not a supported fitted model
    """
    _check_supported(model, 'glance')
    if isinstance(model, LinearSolution):
        row = {
            'r_squared': model.r_squared,
            'adj_r_squared': model.adjusted_r_squared,
            'sigma': model.sigma,
            'statistic': model.f_statistic,
            'p_value': model.f_pvalue,
            'df': model.df_model,
            'log_lik': model.log_likelihood,
            'aic': model.aic,
            'bic': model.bic,
            'deviance': model.rss,
            'df_residual': model.df_residual,
            'nobs': model.nobs,
        }
    elif isinstance(model, GLMSolution):
        row = {
            'null_deviance': model.null_deviance,
            'df_null': model.df_null,
            'log_lik': model.log_likelihood,
            'aic': model.aic,
            'bic': model.bic,
            'deviance': model.deviance,
            'df_residual': model.df_residual,
            'nobs': model.nobs,
        }
    elif isinstance(model, LMMSolution):
        row = {
            'nobs': model.nobs,
            'sigma': model.sigma,
            'log_lik': model.log_likelihood,
            'aic': model.aic,
            'bic': model.bic,
            'REMLcrit' if model.reml else 'deviance': model.deviance,
        }
    else:
        row = {
            'sigma': model.sigma,
            'log_lik': model.log_likelihood,
            'aic': model.aic,
            'bic': model.bic,
            'nobs': model.nobs,
        }
    return pd.DataFrame([row])


def _model_matrix(model: Any) -> ModelMatrix | None:
    if isinstance(model, LMMSolution):
        return model.model_matrix
    return model.design.model_matrix


def _fitted_source(model: Any) -> Any:
    if isinstance(model, LMMSolution):
        return model.source
    return model.design.source


def _base_frame(model: Any, data: Any) -> pd.DataFrame:
    """The data the model was fit to, restricted to the rows it used."""
    mm = _model_matrix(model)
    if data is None:
        data = _fitted_source(model)

    if data is None:
        if isinstance(model, LMMSolution):
            return pd.DataFrame(index=pd.RangeIndex(model.nobs))
        # array fit: rebuild the columns from the design
        design = model.design
        name = mm.response_name if mm is not None else 'y'
        frame = pd.DataFrame({name: design.y})
        for j, col in enumerate(design.names):
            if col != '(Intercept)':
                frame[col] = design.X[:, j]
        return frame

    frame = DataSource.build(data).to_dataframe()
    if mm is not None and len(frame) == len(mm.row_mask) and len(frame) != model.nobs:
        frame = frame.loc[mm.row_mask]
    if len(frame) != model.nobs:
        raise DimensionError(
            f"data has {len(frame)} rows but the model was fit to {model.nobs}"
        )
    return frame.reset_index(drop=True)


def augment(
    model: LinearSolution | GLMSolution | LMMSolution | MLSolution,
    data: Any = None,
    type_predict: Literal['link', 'response'] = 'link',
) -> pd.DataFrame:
    """
    The model's data with per-observation fit statistics added.

    Linear models and GLMs gain .fitted, .resid, .hat, .sigma (leave-one-out
    residual scale), .cooksd and .std_resid. For GLMs .fitted is on the
    scale named by type_predict and .resid are deviance residuals. Mixed
    models gain .fitted (conditional), .fixed (marginal) and .resid.

    Args:
        model: Fitted model
        data: Data to attach the columns to. Defaults to the data the
            model was fit with; rows dropped for missing values are
            removed.
        type_predict: GLM fitted-value scale, 'link' or 'response'

    Raises:
        TypeError: If model is not a supported fitted model
        DimensionError: If data does not match the fitted observations
    """
    _check_supported(model, 'augment')
    frame = _base_frame(model, data)

    if isinstance(model, LMMSolution):
        frame['.fitted'] = model.fitted_values
        frame['.fixed'] = model.fixed_fitted_values
        frame['.resid'] = model.residuals
        return frame
    if isinstance(model, MLSolution):
        frame['.fitted'] = model.fitted_values
        frame['.resid'] = model.residuals
        return frame

    infl = influence(model)
    if isinstance(model, GLMSolution):
        if type_predict not in ('link', 'response'):
            raise ValueError(f"type_predict must be 'link' or 'response', got {type_predict!r}")
        frame['.fitted'] = (
            model.linear_predictor if type_predict == 'link' else model.fitted_values
        )
        frame['.resid'] = model.residuals_deviance
    else:
        frame['.fitted'] = model.fitted_values
        frame['.resid'] = model.residuals
    frame['.hat'] = infl.hat
    frame['.sigma'] = infl.sigma
    frame['.cooksd'] = infl.cooks_distance
    frame['.std_resid'] = infl.std_residuals
    return frame
