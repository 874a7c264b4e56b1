"""
hybridsam/hybrid/factor_graph.py

Hybrid Gaussian factor graphs and their elimination into Bayes nets and
Bayes trees.

Sequential elimination removes one frontal block at a time in ordering
order. Multifrontal elimination groups keys into junction-tree clusters and
eliminates each cluster as one block, children before parents; the
residual factors of a cluster are handed to the cluster owning their
first-eliminated key.

Partial variants stop at the keys of the ordering and return the remaining
factors: untouched input factors in input order, then residual factors in
creation order.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from hybridsam.algebra.semiring import EliminationPolicy, get_policy
from hybridsam.core.keys import DiscreteKey, Key, key_name
from hybridsam.core.kinds import FactorKind
from hybridsam.discrete.conditional import DiscreteConditional
from hybridsam.hybrid.bayes_net import HybridBayesNet
from hybridsam.hybrid.bayes_tree import Clique, HybridBayesTree
from hybridsam.hybrid.elimination import Factor, eliminate
from hybridsam.topology.elimination_tree import (
    build_elimination_tree,
    build_junction_tree,
    children_of,
    cluster_postorder,
)
from hybridsam.topology.ordering import (
    OrderingEntry,
    check_ordering,
    default_ordering,
    flatten,
    frontal_groups,
)
from hybridsam.topology.structure import VariableIndex

_logger = logging.getLogger(__name__)

PolicyArg = Union[EliminationPolicy, str, None]


def eliminate_clusters(
    factors: Sequence[Factor],
    ordering: Sequence[Key],
    policy: PolicyArg = None,
    rank_tol: float = 1e-9,
    structural_scopes: Sequence[Sequence[Key]] = (),
) -> Tuple[List[Clique], List[Factor]]:
    """
    Multifrontal elimination of `factors` over the keys of `ordering`.

    Args:
        factors: Factors to eliminate
        ordering: Keys in elimination order
        policy: Discrete elimination policy
        rank_tol: QR rank tolerance
        structural_scopes: Extra scopes that shape the cluster tree only

    Returns:
        (root cliques, remaining factors)
    """
    policy = get_policy(policy)
    index = VariableIndex.from_factors(factors)
    check_ordering(ordering, index)
    keys = flatten(ordering)
    position = {k: i for i, k in enumerate(keys)}

    etree = build_elimination_tree([f.keys for f in factors], keys, structural_scopes)
    jtree = build_junction_tree(etree, index.is_discrete)

    owner: Dict[Key, Key] = {}
    for top, data in jtree.nodes(data=True):
        for k in data["frontals"]:
            owner[k] = top
    incoming: Dict[Key, List[Factor]] = {top: [] for top in jtree.nodes}
    cliques: Dict[Key, Clique] = {}
    residual_roots: List[Factor] = []

    for top in cluster_postorder(jtree):
        data = jtree.nodes[top]
        involved = [factors[i] for i in data["factors"]] + incoming.pop(top)
        result = eliminate(involved, data["frontals"], policy, rank_tol)
        cliques[top] = Clique(result.conditional, [cliques.pop(c) for c in children_of(jtree, top)])
        for f in result.factors:
            ordered = [k for k in f.keys if k in position]
            if ordered:
                incoming[owner[min(ordered, key=position.__getitem__)]].append(f)
            else:
                residual_roots.append(f)

    roots = [cliques[r] for r in jtree.graph["roots"]]
    remaining = [factors[i] for i in jtree.graph["unassigned"]] + residual_roots
    _logger.debug(
        "Multifrontal elimination of %d keys: %d cliques, %d remaining factors",
        len(keys), jtree.number_of_nodes(), len(remaining),
    )
    return roots, remaining


class HybridGaussianFactorGraph:
    """
    Factor graph of JacobianFactors, DecisionTreeFactors and MixtureFactors.
    """

    def __init__(self, factors: Iterable = ()):
        self.factors: List[Factor] = []
        self.push_back(factors)

    def add(self, factor) -> None:
        """Add one factor; a DiscreteConditional is added as its table."""
        if isinstance(factor, DiscreteConditional):
            factor = factor.to_factor()
        if getattr(factor, "kind", None) not in (FactorKind.CONTINUOUS, FactorKind.DISCRETE, FactorKind.HYBRID):
            raise TypeError(f"Not a hybrid factor: {factor!r}")
        self.factors.append(factor)

    def push_back(self, factors) -> None:
        """Add a factor, or every factor of an iterable or graph."""
        if hasattr(factors, "kind"):
            self.add(factors)
        else:
            for f in factors:
                self.add(f)

    def __len__(self) -> int:
        return len(self.factors)

    def __iter__(self) -> Iterator[Factor]:
        return iter(self.factors)

    def __getitem__(self, i: int) -> Factor:
        return self.factors[i]

    def variable_index(self) -> VariableIndex:
        return VariableIndex.from_factors(self.factors)

    def keys(self) -> List[Key]:
        return self.variable_index().all_keys()

    def continuous_keys(self) -> List[Key]:
        return self.variable_index().continuous_keys()

    def discrete_keys(self) -> List[DiscreteKey]:
        return self.variable_index().discrete_keys()

    def fix_discrete(self, assignment: Mapping[Key, int]) -> "HybridGaussianFactorGraph":
        """
        Gaussian factors of one mode assignment: mixtures are resolved to
        their component and discrete factors are dropped.
        """
        out = HybridGaussianFactorGraph()
        for f in self.factors:
            if f.kind is FactorKind.CONTINUOUS:
                out.add(f)
            elif f.kind is FactorKind.HYBRID:
                component = f.factor_for(assignment)
                if component is None:
                    raise KeyError(f"{f!r} has no component for the given assignment")
                out.add(component)
        return out

    # ------------------------------------------------------------------
    # Sequential elimination
    # ------------------------------------------------------------------
    def eliminate_partial_sequential(
        self,
        ordering: Sequence[OrderingEntry],
        policy: PolicyArg = None,
        rank_tol: float = 1e-9,
    ) -> Tuple[HybridBayesNet, "HybridGaussianFactorGraph"]:
        """
        Eliminate the keys of `ordering` one block at a time.

        Returns:
            (Bayes net in elimination order, remaining factor graph)
        """
        policy = get_policy(policy)
        check_ordering(ordering, self.variable_index())

        used = [False] * len(self.factors)
        residuals: List[List] = []
        net = HybridBayesNet()
        for group in frontal_groups(ordering):
            frontal = set(group)
            involved: List[Factor] = []
            for i, f in enumerate(self.factors):
                if not used[i] and frontal.intersection(f.keys):
                    used[i] = True
                    involved.append(f)
            for entry in residuals:
                if entry[1] and frontal.intersection(entry[0].keys):
                    entry[1] = False
                    involved.append(entry[0])
            if not involved:
                raise ValueError(f"No factor left involves [{' '.join(key_name(k) for k in group)}]")
            result = eliminate(involved, group, policy, rank_tol)
            net.push_back(result.conditional)
            residuals.extend([f, True] for f in result.factors)

        remaining = [f for i, f in enumerate(self.factors) if not used[i]]
        remaining += [f for f, alive in residuals if alive]
        _logger.debug("Sequential elimination: %d conditionals, %d remaining factors", len(net), len(remaining))
        return net, HybridGaussianFactorGraph(remaining)

    def eliminate_sequential(
        self,
        ordering: Optional[Sequence[OrderingEntry]] = None,
        policy: PolicyArg = None,
        rank_tol: float = 1e-9,
    ) -> HybridBayesNet:
        """
        Eliminate every key; the default ordering puts continuous keys first.

        Raises:
            ValueError: the ordering leaves factors behind
        """
        if ordering is None:
            ordering = default_ordering(self.variable_index())
        net, remaining = self.eliminate_partial_sequential(ordering, policy, rank_tol)
        if len(remaining):
            raise ValueError(f"Ordering leaves {len(remaining)} factors uneliminated")
        return net

    # ------------------------------------------------------------------
    # Multifrontal elimination
    # ------------------------------------------------------------------
    def eliminate_partial_multifrontal(
        self,
        ordering: Sequence[Key],
        policy: PolicyArg = None,
        rank_tol: float = 1e-9,
    ) -> Tuple[HybridBayesTree, "HybridGaussianFactorGraph"]:
        """
        Eliminate the keys of `ordering` cluster by cluster.

        Returns:
            (Bayes tree, remaining factor graph)
        """
        roots, remaining = eliminate_clusters(self.factors, ordering, policy, rank_tol)
        return HybridBayesTree(roots), HybridGaussianFactorGraph(remaining)

    def eliminate_multifrontal(
        self,
        ordering: Optional[Sequence[Key]] = None,
        policy: PolicyArg = None,
        rank_tol: float = 1e-9,
    ) -> HybridBayesTree:
        """
        Eliminate every key into a Bayes tree.

        Raises:
            ValueError: the ordering leaves factors behind
        """
        if ordering is None:
            ordering = default_ordering(self.variable_index())
        tree, remaining = self.eliminate_partial_multifrontal(ordering, policy, rank_tol)
        if len(remaining):
            raise ValueError(f"Ordering leaves {len(remaining)} factors uneliminated")
        return tree

    def __repr__(self) -> str:
        return f"HybridGaussianFactorGraph(factors={len(self)})"
