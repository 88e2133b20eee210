"""
The envelope every solver returns.

A Result pairs a domain payload (LinearParams, LMMParams, AnovaParams, ...)
with what is common to every computation: free-form info, the timing
breakdown, the backend that ran, non-fatal warnings, and the versions of
the numeric stack. Solution classes wrap a Result and read from it.
"""

from __future__ import annotations

import platform
from dataclasses import dataclass, field
from typing import TypeVar, Generic, Any

P = TypeVar('P')


def _default_provenance() -> dict[str, str]:
    """Versions of the interpreter and numeric stack used for a computation."""
    import numpy
    import scipy
    import pandas

    from pylinmodels import __version__

    return {
        'pylinmodels': __version__,
        'python': platform.python_version(),
        'numpy': numpy.__version__,
        'scipy': scipy.__version__,
        'pandas': pandas.__version__,
    }


@dataclass(frozen=True)
class Result(Generic[P]):
    """
    Frozen output of one fit, test or comparison.

    Attributes:
        params: The domain payload
        info: Method details such as rank, iterations or convergence
        timing: Timer.result(), or None
        backend_name: e.g. 'cpu_qr', 'cpu_irls', 'cpu_pls'
        warnings: Messages also emitted through warnings.warn
        provenance: Package, Python, numpy, scipy and pandas versions
    """
    params: P
    info: dict[str, Any]
    timing: dict[str, float] | None
    backend_name: str
    warnings: tuple[str, ...] = field(default_factory=tuple)
    provenance: dict[str, str] = field(default_factory=_default_provenance)

    def has_warning(self, substring: str) -> bool:
        """Whether any warning mentions substring."""
        return any(substring in w for w in self.warnings)
