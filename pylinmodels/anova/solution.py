"""
Printable ANOVA and model-comparison tables.

anova(lm_fit) gives an AnovaSolution; anova(m1, m2, ...) and
anova(glm_fit) give a ComparisonSolution. Both print in R's layout and
convert to DataFrames with R's column names.
"""

from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd

from pylinmodels.anova._common import (
    AnovaParams, AnovaTableRow, ComparisonParams, ComparisonRow,
)
from pylinmodels.core.result import Result
from pylinmodels.regression.solution import SIGNIF_LEGEND, format_pvalue, significance_stars


def _nan_if_none(value: float | None) -> float:
    return float('nan') if value is None else value


def _test_cell(statistic: float | None, p_value: float | None, width: int) -> str:
    if statistic is None:
        return ''
    return f" {statistic:>{width}.4f} {format_pvalue(p_value):>10} {significance_stars(p_value)}"


@dataclass
class AnovaSolution:
    """
    Sums-of-squares table of one linear model, ending with a
    'Residuals' row. Look up a term with row(term).
    """
    _result: Result[AnovaParams]

    @property
    def params(self) -> AnovaParams:
        return self._result.params

    @property
    def table(self) -> tuple[AnovaTableRow, ...]:
        return self.params.table

    @property
    def ss_type(self) -> int:
        return self.params.ss_type

    @property
    def n_obs(self) -> int:
        return self.params.n_obs

    @property
    def residual_df(self) -> int:
        return self.params.residual_df

    @property
    def residual_ss(self) -> float:
        return self.params.residual_ss

    @property
    def residual_ms(self) -> float:
        return self.params.residual_ms

    @property
    def eta_squared(self) -> dict[str, float]:
        """SS_term / SS_total."""
        return self.params.eta_squared

    @property
    def partial_eta_squared(self) -> dict[str, float]:
        """SS_term / (SS_term + SS_residual)."""
        return self.params.partial_eta_squared

    def row(self, term: str) -> AnovaTableRow:
        by_term = {r.term: r for r in self.table}
        if term not in by_term:
            raise KeyError(f"No term {term!r} in the table. Available: {list(by_term)}")
        return by_term[term]

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing

    @property
    def backend_name(self) -> str:
        return self._result.backend_name

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    def to_dataframe(self) -> pd.DataFrame:
        frame = pd.DataFrame(
            [
                (r.df, r.sum_sq, r.mean_sq, _nan_if_none(r.f_value), _nan_if_none(r.p_value))
                for r in self.table
            ],
            columns=['df', 'sum_sq', 'mean_sq', 'f_value', 'p_value'],
            index=[r.term for r in self.table],
        )
        frame.index.name = 'term'
        return frame

    def summary(self) -> str:
        w = max([10, *(len(r.term) for r in self.table)])
        lines = [f"Analysis of Variance Table (Type {self.ss_type} SS)", ""]
        if self.params.formula:
            lines.append(f"Response: {self.params.formula.split('~')[0].strip()}")
        lines.append(
            f"{'':<{w}} {'Df':>6} {'Sum Sq':>12} {'Mean Sq':>12} {'F value':>10} {'Pr(>F)':>10}"
        )
        for r in self.table:
            lines.append(
                f"{r.term:<{w}} {r.df:>6} {r.sum_sq:>12.5g} {r.mean_sq:>12.5g}"
                + _test_cell(r.f_value, r.p_value, 10)
            )
        lines += ["---", SIGNIF_LEGEND]

        if self.eta_squared:
            lines += ["", "Effect sizes:"]
            lines += [
                f"  {term}: eta^2 = {eta:.4f}, "
                f"partial eta^2 = {self.partial_eta_squared.get(term, eta):.4f}"
                for term, eta in self.eta_squared.items()
            ]
        return "\n".join(lines)

    def __repr__(self) -> str:
        terms = [r.term for r in self.table if r.term != 'Residuals']
        return f"AnovaSolution(type={self.ss_type}, n={self.n_obs}, terms={terms})"


@dataclass
class ComparisonSolution:
    """
    Rows of nested models, or of terms added one at a time to a GLM.
    Each row after the first tests the change from the row above; for
    linear models the deviance columns are residual sums of squares.
    """
    _result: Result[ComparisonParams]

    @property
    def params(self) -> ComparisonParams:
        return self._result.params

    @property
    def rows(self) -> tuple[ComparisonRow, ...]:
        return self.params.rows

    @property
    def kind(self) -> str:
        return self.params.kind

    @property
    def test(self) -> str:
        """'F' or 'Chisq'."""
        return self.params.test

    @property
    def statistics(self) -> np.ndarray:
        return np.array([_nan_if_none(r.statistic) for r in self.rows])

    @property
    def p_values(self) -> np.ndarray:
        return np.array([_nan_if_none(r.p_value) for r in self.rows])

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    def _headers(self) -> list[str]:
        if self.kind == 'lm':
            cols = ['Res.Df', 'RSS', 'Df', 'Sum of Sq']
        else:
            cols = ['Resid. Df', 'Resid. Dev', 'Df', 'Deviance']
        return cols + (['F', 'Pr(>F)'] if self.test == 'F' else ['Chisq', 'Pr(>Chi)'])

    def to_dataframe(self) -> pd.DataFrame:
        frame = pd.DataFrame(
            [
                (r.resid_df, r.resid_dev, _nan_if_none(r.df), _nan_if_none(r.deviance),
                 _nan_if_none(r.statistic), _nan_if_none(r.p_value))
                for r in self.rows
            ],
            columns=self._headers(),
            index=[r.label for r in self.rows],
        )
        frame.index.name = 'model'
        return frame

    def summary(self) -> str:
        p = self.params
        if p.kind == 'lm':
            lines = ["Analysis of Variance Table", ""]
        else:
            lines = ["Analysis of Deviance Table", "", f"Model: {p.family_name}, link: {p.link_name}"]
            if p.sequential:
                lines.append("Terms added sequentially (first to last)")
            lines.append("")

        if p.sequential:
            labels = [r.label for r in self.rows]
        else:
            lines += [f"Model {i}: {r.label}" for i, r in enumerate(self.rows, start=1)]
            lines.append("")
            labels = [str(i) for i in range(1, len(self.rows) + 1)]

        w = max([6, *(len(s) for s in labels)])
        res_df, res_dev, df, dev, stat, p_col = self._headers()
        lines.append(f"{'':<{w}} {res_df:>9} {res_dev:>12} {df:>5} {dev:>12} {stat:>9} {p_col:>10}")
        for label, r in zip(labels, self.rows):
            line = f"{label:<{w}} {r.resid_df:>9} {r.resid_dev:>12.5g}"
            if r.df is not None:
                line += f" {r.df:>5} {r.deviance:>12.5g}" + _test_cell(r.statistic, r.p_value, 9)
            lines.append(line)
        lines += ["---", SIGNIF_LEGEND]
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"ComparisonSolution(kind={self.kind!r}, test={self.test!r}, rows={len(self.rows)})"
