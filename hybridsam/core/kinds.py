"""
hybridsam/core/kinds.py

Variant tags for factors and conditionals.

Every factor and conditional carries a `kind`; elimination dispatches on it
instead of on a class hierarchy.
"""

from __future__ import annotations

from enum import Enum


class FactorKind(Enum):
    """Kind of factor in a hybrid factor graph."""
    CONTINUOUS = 1   # Gaussian factor on continuous keys only
    DISCRETE = 2     # Table on discrete keys only
    HYBRID = 3       # Mixture: continuous factor selected by discrete keys


class ConditionalKind(Enum):
    """Kind of conditional in a hybrid Bayes net."""
    CONTINUOUS = 1   # GaussianConditional
    DISCRETE = 2     # DiscreteConditional
    HYBRID = 3       # GaussianMixture
