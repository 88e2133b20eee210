"""
Diagnostics report.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray
import pandas as pd

from pylinmodels.core.result import Result
from pylinmodels.diagnostics._common import InfluenceParams, TestResult


@dataclass
class DiagnosticsSolution:
    """Influence measures, residual tests and flagged observations of one model."""
    _result: Result[InfluenceParams]

    @property
    def influence(self) -> InfluenceParams:
        return self._result.params

    @property
    def tests(self) -> dict[str, TestResult]:
        return dict(self._result.info['tests'])

    @property
    def high_leverage(self) -> NDArray[np.intp]:
        """Indices with h > 2p/n."""
        return self._result.info['high_leverage']

    @property
    def influential(self) -> NDArray[np.intp]:
        """Indices with Cook's distance > 4/n."""
        return self._result.info['influential']

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing

    def to_dataframe(self) -> pd.DataFrame:
        """One row per observation with every influence measure."""
        infl = self.influence
        frame = pd.DataFrame({
            'hat': infl.hat,
            'std_resid': infl.std_residuals,
            'student_resid': infl.student_residuals,
            'sigma': infl.sigma,
            'cooksd': infl.cooks_distance,
            'dffits': infl.dffits,
        })
        if infl.std_pearson_residuals is not None:
            frame['std_pearson'] = infl.std_pearson_residuals
        return frame

    def summary(self) -> str:
        info = self._result.info
        lines = [
            f"Regression diagnostics ({info['model_type']})",
            "=" * 60,
        ]
        for test in self.tests.values():
            lines.append(test.summary())
            lines.append("")

        cutoff = info['leverage_cutoff']
        lines.append(f"High leverage (h > {cutoff:.3g}): {_index_list(self.high_leverage)}")
        cutoff = info['cooks_cutoff']
        lines.append(f"Influential (Cook's D > {cutoff:.3g}): {_index_list(self.influential)}")
        if self.influential.size:
            worst = int(np.nanargmax(self.influence.cooks_distance))
            lines.append(
                f"Largest Cook's distance: obs {worst} "
                f"(D = {self.influence.cooks_distance[worst]:.4g})"
            )
        for w in self.warnings:
            lines.append(f"Warning: {w}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"DiagnosticsSolution(n={len(self.influence.hat)}, "
            f"high_leverage={self.high_leverage.size}, "
            f"influential={self.influential.size})"
        )


def _index_list(idx: NDArray[Any], limit: int = 10) -> str:
    if idx.size == 0:
        return 'none'
    shown = ', '.join(f"obs {int(i)}" for i in idx[:limit])
    if idx.size > limit:
        shown += f", ... ({idx.size} total)"
    return shown
