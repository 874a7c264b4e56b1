"""
hybridsam: hybrid discrete/continuous elimination

Variable elimination over factor graphs that mix Gaussian factors, discrete
tables and mixture factors whose Gaussian depends on a discrete mode.
Produces hybrid Bayes nets and Bayes trees, prunes the discrete mode space
by probability, and maintains a Bayes tree incrementally.

Key components:
- core: keys, discrete assignments, variant tags and typed errors
- algebra: decision trees and elimination semirings
- discrete: decision-tree factors and conditionals
- linear: Jacobian factors and QR elimination
- topology: variable index, orderings, elimination and junction trees
- hybrid: mixture factors, hybrid elimination, Bayes nets and trees,
  pruning and incremental updates
"""

__version__ = "1.0.0"
__author__ = "hybridsam Team"

from hybridsam.core.keys import DiscreteKey, symbol, shorthand, key_name
from hybridsam.core.errors import (
    ErrorKind,
    HybridError,
    OrderingViolation,
    CardinalityMismatch,
    InconsistentAssignment,
    SingularElimination,
)
from hybridsam.algebra.decision_tree import DecisionTree
from hybridsam.algebra.semiring import EliminationPolicy
from hybridsam.discrete.factor import DecisionTreeFactor
from hybridsam.discrete.conditional import DiscreteConditional
from hybridsam.linear.gaussian import JacobianFactor, GaussianConditional, GaussianBayesNet
from hybridsam.hybrid.factors import MixtureFactor
from hybridsam.hybrid.conditional import GaussianMixture, HybridConditional
from hybridsam.hybrid.bayes_net import HybridBayesNet
from hybridsam.hybrid.bayes_tree import Clique, HybridBayesTree
from hybridsam.hybrid.factor_graph import HybridGaussianFactorGraph
from hybridsam.hybrid.isam import HybridGaussianISAM

__all__ = [
    # Keys
    "DiscreteKey",
    "symbol",
    "shorthand",
    "key_name",
    # Errors
    "ErrorKind",
    "HybridError",
    "OrderingViolation",
    "CardinalityMismatch",
    "InconsistentAssignment",
    "SingularElimination",
    # Algebra
    "DecisionTree",
    "EliminationPolicy",
    # Factors and conditionals
    "DecisionTreeFactor",
    "DiscreteConditional",
    "JacobianFactor",
    "GaussianConditional",
    "GaussianBayesNet",
    "MixtureFactor",
    "GaussianMixture",
    "HybridConditional",
    # Elimination
    "HybridBayesNet",
    "Clique",
    "HybridBayesTree",
    "HybridGaussianFactorGraph",
    "HybridGaussianISAM",
]
