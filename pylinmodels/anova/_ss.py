"""
Sums of squares computation for ANOVA.

Both SS types work by fitting multiple OLS models via regression.fit()
and comparing residual sums of squares. No new solver math, just model
comparisons.

Type I (Sequential):
    Add terms one at a time. SS(term) = RSS(without) - RSS(with).

Type II (Marginal, respects marginality):
    SS(A) = RSS(model without A but with everything A doesn't contain)
            - RSS(same model plus A).
    An interaction A:B contains both A and B, so when computing SS(A),
    A:B is dropped from both models.

Degrees of freedom are rank increases, so aliased columns of a
rank-deficient design contribute nothing.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray
from scipy import stats as sp_stats

from pylinmodels.anova._common import AnovaTableRow
from pylinmodels.core.compute.linalg.qr import qr_solve, fitted_from
from pylinmodels.regression.design import Design


@dataclass(frozen=True)
class TermLayout:
    """Which columns of X belong to which model term."""
    terms: list[str]                       # excludes the intercept
    slices: dict[str, list[int]]
    intercept: list[int]                   # [] or [index of intercept column]


def term_layout(design: Design) -> TermLayout:
    """
    Term structure of a design.

    Formula designs use the model matrix's terms; array designs treat
    each non-intercept column as its own term.
    """
    mm = design.model_matrix
    if mm is not None:
        slices = {}
        intercept: list[int] = []
        for name in mm.term_names:
            sl = mm.term_slices[name]
            cols = list(range(sl.start, sl.stop))
            if name == '(Intercept)':
                intercept = cols
            else:
                slices[name] = cols
        return TermLayout(terms=list(slices), slices=slices, intercept=intercept)

    names = design.names
    intercept = [j for j, nm in enumerate(names) if nm == '(Intercept)']
    if not intercept and design.has_intercept:
        X = design.X
        constant = np.flatnonzero(np.all(X == X[0], axis=0) & (X[0] != 0))
        intercept = [int(constant[0])]
    slices = {names[j]: [j] for j in range(design.p) if j not in intercept}
    return TermLayout(terms=list(slices), slices=slices, intercept=intercept)


def _fit_rss(X: NDArray, y: NDArray) -> tuple[float, int]:
    """
    RSS and rank of the OLS fit of y on X, via regression.fit().

    An empty X gives RSS = y'y with rank 0.
    """
    from pylinmodels.regression import fit

    if X.shape[1] == 0:
        return float(y @ y), 0
    sol = fit(X, y)
    return sol.rss, sol.rank


def _columns(design: Design, cols: list[int]) -> NDArray:
    return design.X[:, sorted(cols)]


def compute_f_and_p(
    ss: float,
    df: int,
    rss_error: float,
    df_error: int,
) -> tuple[float | None, float | None]:
    """F statistic and p-value of a term against the residual mean square."""
    if df <= 0 or df_error <= 0 or rss_error <= 0:
        return None, None
    f_val = (ss / df) / (rss_error / df_error)
    return float(f_val), float(sp_stats.f.sf(f_val, df, df_error))


def _term_contains(candidate: str, target: str) -> bool:
    """
    Whether term `candidate` contains term `target`.

    'A:B' contains 'A' and 'B'; 'A:B:C' contains 'A:B'. No term
    contains itself.
    """
    c = set(candidate.split(':'))
    t = set(target.split(':'))
    return t < c


def _residual_row(rss: float, df: int) -> AnovaTableRow:
    return AnovaTableRow(
        term='Residuals',
        df=df,
        sum_sq=rss,
        mean_sq=rss / df if df > 0 else float('nan'),
        f_value=None,
        p_value=None,
    )


def compute_ss_type1(design: Design, layout: TermLayout) -> list[AnovaTableRow]:
    """
    Type I (Sequential) Sums of Squares.

    Terms are added in model order. Order-dependent for unbalanced
    designs; matches R's anova(lm(...)).
    """
    y = design.y
    cols = list(layout.intercept)
    rss_prev, rank_prev = _fit_rss(_columns(design, cols), y)

    partial: list[tuple[str, int, float]] = []
    for term in layout.terms:
        cols = cols + layout.slices[term]
        rss_cur, rank_cur = _fit_rss(_columns(design, cols), y)
        df_term = rank_cur - rank_prev
        if df_term > 0:
            partial.append((term, df_term, rss_prev - rss_cur))
        rss_prev, rank_prev = rss_cur, rank_cur

    df_residual = design.n - rank_prev
    rows = []
    for term, df_term, ss in partial:
        f_val, p_val = compute_f_and_p(ss, df_term, rss_prev, df_residual)
        rows.append(AnovaTableRow(
            term=term, df=df_term, sum_sq=ss, mean_sq=ss / df_term,
            f_value=f_val, p_value=p_val,
        ))
    rows.append(_residual_row(rss_prev, df_residual))
    return rows


def compute_ss_type2(design: Design, layout: TermLayout) -> list[AnovaTableRow]:
    """
    Type II (Marginal) Sums of Squares.

    For each term, compare the model of all terms that do not contain it,
    with and without the term. Matches car::Anova(lm(...), type="II").
    """
    y = design.y
    all_cols = list(layout.intercept) + [
        j for term in layout.terms for j in layout.slices[term]
    ]
    rss_full, rank_full = _fit_rss(_columns(design, all_cols), y)
    df_residual = design.n - rank_full

    rows = []
    for term in layout.terms:
        base = list(layout.intercept)
        for other in layout.terms:
            if other == term or _term_contains(other, term):
                continue
            base.extend(layout.slices[other])
        rss_reduced, rank_reduced = _fit_rss(_columns(design, base), y)
        rss_aug, rank_aug = _fit_rss(_columns(design, base + layout.slices[term]), y)
        df_term = rank_aug - rank_reduced
        if df_term <= 0:
            continue
        ss = rss_reduced - rss_aug
        f_val, p_val = compute_f_and_p(ss, df_term, rss_full, df_residual)
        rows.append(AnovaTableRow(
            term=term, df=df_term, sum_sq=ss, mean_sq=ss / df_term,
            f_value=f_val, p_value=p_val,
        ))
    rows.append(_residual_row(rss_full, df_residual))
    return rows


def effect_sizes(rows: list[AnovaTableRow]) -> tuple[dict[str, float], dict[str, float]]:
    """
    eta² = SS_term / SS_total and partial eta² = SS_term / (SS_term + SS_resid).

    SS_total is the sum of the table's SS column, which for Type I with an
    intercept equals the centred total sum of squares.
    """
    resid = rows[-1].sum_sq
    total = sum(r.sum_sq for r in rows)
    eta: dict[str, float] = {}
    partial: dict[str, float] = {}
    for row in rows[:-1]:
        eta[row.term] = row.sum_sq / total if total > 0 else float('nan')
        denom = row.sum_sq + resid
        partial[row.term] = row.sum_sq / denom if denom > 0 else float('nan')
    return eta, partial


def span_contains(X_big: NDArray, X_small: NDArray, tol: float = 1e-7) -> bool:
    """Whether every column of X_small lies in the column space of X_big."""
    if X_small.shape[1] == 0:
        return True
    for j in range(X_small.shape[1]):
        col = X_small[:, j]
        coef, _ = qr_solve(X_big, col)
        resid = col - fitted_from(X_big, coef)
        if np.linalg.norm(resid) > tol * max(np.linalg.norm(col), 1.0):
            return False
    return True
