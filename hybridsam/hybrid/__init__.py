"""
Hybrid module: mixture factors, hybrid elimination, Bayes nets and trees,
pruning and incremental updates.
"""

from hybridsam.hybrid.factors import MixtureFactor
from hybridsam.hybrid.conditional import GaussianMixture, HybridConditional
from hybridsam.hybrid.elimination import (
    EliminationResult,
    eliminate,
    eliminate_continuous,
    eliminate_discrete,
)
from hybridsam.hybrid.pruning import KeepSet, top_assignments, prune_conditionals
from hybridsam.hybrid.bayes_net import HybridBayesNet
from hybridsam.hybrid.bayes_tree import Clique, HybridBayesTree
from hybridsam.hybrid.factor_graph import HybridGaussianFactorGraph, eliminate_clusters
from hybridsam.hybrid.isam import HybridGaussianISAM

__all__ = [
    "MixtureFactor",
    "GaussianMixture",
    "HybridConditional",
    "EliminationResult",
    "eliminate",
    "eliminate_continuous",
    "eliminate_discrete",
    "KeepSet",
    "top_assignments",
    "prune_conditionals",
    "HybridBayesNet",
    "Clique",
    "HybridBayesTree",
    "HybridGaussianFactorGraph",
    "eliminate_clusters",
    "HybridGaussianISAM",
]
