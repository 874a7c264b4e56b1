"""
Linear module: Jacobian factors, Gaussian conditionals and QR elimination.
"""

from hybridsam.linear.gaussian import (
    JacobianFactor,
    GaussianConditional,
    GaussianBayesNet,
    collect_dims,
    eliminate_gaussian,
)

__all__ = [
    "JacobianFactor",
    "GaussianConditional",
    "GaussianBayesNet",
    "collect_dims",
    "eliminate_gaussian",
]
