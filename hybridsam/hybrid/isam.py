"""
hybridsam/hybrid/isam.py

Incremental smoothing: keep a hybrid Bayes tree up to date as factors
arrive, re-eliminating only the affected part of the tree.

update(new_factors):
1. Mark every clique whose frontal or separator keys meet the keys of the
   new factors, together with all of its ancestors.
2. Turn the conditionals of the marked cliques back into factors; the
   unmarked children of marked cliques become orphans.
3. Eliminate those factors and the new ones multifrontally. Orphan
   separators shape the new cluster tree.
4. Hang every orphan under the new clique owning its first-eliminated
   separator key.

The updater exclusively owns its tree. An update either completes or leaves
the previous tree untouched.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Union

from hybridsam.algebra.semiring import EliminationPolicy, get_policy
from hybridsam.core.keys import Key, key_name
from hybridsam.discrete.factor import DecisionTreeFactor
from hybridsam.hybrid.bayes_tree import Clique, HybridBayesTree
from hybridsam.hybrid.factor_graph import HybridGaussianFactorGraph, eliminate_clusters
from hybridsam.linear.gaussian import GaussianBayesNet
from hybridsam.topology.ordering import flatten
from hybridsam.topology.structure import VariableIndex

_logger = logging.getLogger(__name__)


class HybridGaussianISAM:
    """
    Incremental updater owning one hybrid Bayes tree.

    Args:
        policy: Discrete elimination policy used by every update
        rank_tol: QR rank tolerance
    """

    def __init__(self, policy: Union[EliminationPolicy, str, None] = None, rank_tol: float = 1e-9):
        self.policy = get_policy(policy)
        self.rank_tol = rank_tol
        self._tree = HybridBayesTree()
        self._ordering: List[Key] = []

    @property
    def bayes_tree(self) -> HybridBayesTree:
        return self._tree

    @property
    def ordering(self) -> List[Key]:
        """Keys in the order they were last eliminated."""
        return list(self._ordering)

    def __getitem__(self, key: Key) -> Clique:
        return self._tree[key]

    def clique(self, key: Key) -> Clique:
        return self._tree[key]

    def __contains__(self, key: Key) -> bool:
        return key in self._tree

    def size(self) -> int:
        """Number of cliques."""
        return self._tree.size()

    def __len__(self) -> int:
        return self.size()

    def choose(self, assignment: Mapping[Key, int]) -> GaussianBayesNet:
        return self._tree.choose(assignment)

    def sub_ordering(self, factors: Sequence, ordering: Optional[Sequence] = None) -> List[Key]:
        """
        Elimination order for a re-elimination sub-problem.

        Keys listed in `ordering` come first, in that order. The other keys
        follow: previously eliminated continuous keys in their previous
        order, new continuous keys ascending, then discrete keys the same way.
        """
        index = VariableIndex.from_factors(factors)
        given = flatten(ordering) if ordering is not None else []
        listed = set(given)
        previous = {k: i for i, k in enumerate(self._ordering)}

        def split(discrete: bool) -> List[Key]:
            keys = [k for k in index.all_keys() if k not in listed and index.is_discrete(k) == discrete]
            old = sorted((k for k in keys if k in previous), key=previous.__getitem__)
            new = [k for k in keys if k not in previous]
            return old + new

        return given + split(False) + split(True)

    def update(self, new_factors: Iterable, ordering: Optional[Sequence] = None) -> None:
        """
        Add factors and re-eliminate the affected part of the tree.

        Args:
            new_factors: Factor graph or iterable of factors
            ordering: Optional keys to eliminate first

        Raises:
            Any elimination error; the tree is then left as it was.
        """
        new_factors = list(HybridGaussianFactorGraph(new_factors))
        new_keys: Set[Key] = {k for f in new_factors for k in f.keys}

        marked: Set[int] = set()
        for clique in self._tree.cliques():
            if new_keys.intersection(clique.frontals) or new_keys.intersection(clique.separator):
                c: Optional[Clique] = clique
                while c is not None and id(c) not in marked:
                    marked.add(id(c))
                    c = c.parent
        removed = [c for c in self._tree.cliques() if id(c) in marked]
        orphans = [ch for c in removed for ch in c.children if id(ch) not in marked]

        factors = [c.conditional.to_factor() for c in removed] + new_factors
        keys = self.sub_ordering(factors, ordering)
        roots, remaining = eliminate_clusters(
            factors, keys, self.policy, self.rank_tol,
            structural_scopes=[o.separator for o in orphans],
        )
        if remaining:
            raise ValueError(f"Update leaves {len(remaining)} factors uneliminated")

        owner: Dict[Key, Clique] = {}
        for root in roots:
            for clique in root.subtree():
                for k in clique.frontals:
                    owner[k] = clique
        position = {k: i for i, k in enumerate(keys)}
        grafts = []
        for orphan in orphans:
            sep = [k for k in orphan.separator if k in position]
            if not sep:
                raise ValueError(f"Orphan {orphan!r} has no separator key in the re-eliminated part")
            grafts.append((owner[min(sep, key=position.__getitem__)], orphan))

        for parent, orphan in grafts:
            parent.add_child(orphan)
        kept_roots = [r for r in self._tree.roots if id(r) not in marked]
        self._tree = HybridBayesTree(kept_roots + roots)
        self._ordering = [k for k in self._ordering if k not in position] + keys

        _logger.debug(
            "ISAM update: %d new factors on %d keys, %d cliques re-eliminated, %d orphans, %d cliques total",
            len(new_factors), len(new_keys), len(removed), len(orphans), self._tree.size(),
        )

    def prune(self, target: Union[Key, DecisionTreeFactor], max_nr_leaves: int) -> None:
        """Replace the owned tree by its pruned version."""
        self._tree = self._tree.prune(target, max_nr_leaves)
        _logger.debug(
            "ISAM prune on %s to %d leaves",
            key_name(target) if isinstance(target, int) else repr(target), max_nr_leaves,
        )
