"""
Algebra module: decision trees and elimination semirings.
"""

from hybridsam.algebra.semiring import (
    ProbSemiring,
    MaxProductSemiring,
    EliminationPolicy,
    DEFAULT_POLICY,
    get_policy,
    get_semiring,
)
from hybridsam.algebra.decision_tree import DecisionTree, combine, combine_all

__all__ = [
    "ProbSemiring",
    "MaxProductSemiring",
    "EliminationPolicy",
    "DEFAULT_POLICY",
    "get_policy",
    "get_semiring",
    "DecisionTree",
    "combine",
    "combine_all",
]
