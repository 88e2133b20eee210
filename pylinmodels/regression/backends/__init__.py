"""
Regression backends.

Available backends:
    CPUQRBackend: least squares via QR with R-style aliasing
    CPUIRLSBackend: GLM fitting via IRLS (Fisher scoring)
"""

from pylinmodels.regression.backends.cpu import CPUQRBackend
from pylinmodels.regression.backends.cpu_glm import CPUIRLSBackend

__all__ = [
    "CPUQRBackend",
    "CPUIRLSBackend",
]
