"""
hybridsam/hybrid/bayes_tree.py

Hybrid Bayes trees: a forest of cliques, each holding one conditional.

A clique owns its children; the link to its parent is a weak reference used
for lookup only. The tree keeps a map from every frontal key to the clique
that owns it.
"""

from __future__ import annotations

import weakref
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

from hybridsam.core.keys import Key, key_name
from hybridsam.discrete.factor import DecisionTreeFactor
from hybridsam.hybrid.bayes_net import HybridBayesNet, choose_conditionals
from hybridsam.hybrid.conditional import HybridConditional
from hybridsam.hybrid.pruning import prune_conditionals
from hybridsam.linear.gaussian import GaussianBayesNet


class Clique:
    """
    Node of a Bayes tree.

    Attributes:
        conditional: HybridConditional on the clique's frontals
        children: Child cliques, owned by this clique
    """
    __slots__ = ("conditional", "children", "_parent", "__weakref__")

    def __init__(self, conditional: HybridConditional, children: Iterable["Clique"] = ()):
        self.conditional = conditional
        self.children: List[Clique] = []
        self._parent: Optional[weakref.ReferenceType] = None
        for child in children:
            self.add_child(child)

    @property
    def parent(self) -> Optional["Clique"]:
        return self._parent() if self._parent is not None else None

    def add_child(self, child: "Clique") -> None:
        child._parent = weakref.ref(self)
        self.children.append(child)

    @property
    def frontals(self) -> Tuple[Key, ...]:
        return self.conditional.frontals

    @property
    def separator(self) -> Tuple[Key, ...]:
        return self.conditional.parents

    def subtree(self) -> Iterator["Clique"]:
        """This clique and its descendants, parents first."""
        stack = [self]
        while stack:
            c = stack.pop()
            yield c
            stack.extend(reversed(c.children))

    def __repr__(self) -> str:
        f = " ".join(key_name(k) for k in self.frontals)
        s = " ".join(key_name(k) for k in self.separator)
        return f"Clique({f} | {s})" if s else f"Clique({f})"


class HybridBayesTree:
    """
    Rooted forest of cliques with key lookup.

    Attributes:
        roots: Root cliques
        nodes: Frontal key -> owning clique
    """

    def __init__(self, roots: Iterable[Clique] = ()):
        self.roots: List[Clique] = list(roots)
        self.nodes: Dict[Key, Clique] = {}
        for clique in self.cliques():
            for k in clique.frontals:
                if k in self.nodes:
                    raise ValueError(f"Key {key_name(k)} is a frontal of two cliques")
                self.nodes[k] = clique

    def cliques(self) -> Iterator[Clique]:
        """All cliques, parents before children."""
        for root in self.roots:
            yield from root.subtree()

    def __getitem__(self, key: Key) -> Clique:
        try:
            return self.nodes[key]
        except KeyError:
            raise KeyError(f"No clique owns {key_name(key)}") from None

    def clique(self, key: Key) -> Clique:
        return self[key]

    def __contains__(self, key: Key) -> bool:
        return key in self.nodes

    def size(self) -> int:
        """Number of cliques."""
        return sum(1 for _ in self.cliques())

    def __len__(self) -> int:
        return self.size()

    def empty(self) -> bool:
        return not self.roots

    def conditionals(self) -> List[HybridConditional]:
        """Conditionals children-first, a valid elimination order."""
        return [c.conditional for c in reversed(list(self.cliques()))]

    def to_bayes_net(self) -> HybridBayesNet:
        return HybridBayesNet(self.conditionals())

    def choose(self, assignment: Mapping[Key, int]) -> GaussianBayesNet:
        """
        Gaussian conditionals of every clique at a full discrete assignment.

        Raises:
            InconsistentAssignment: a selected branch has been pruned
        """
        return choose_conditionals(self.conditionals(), assignment)

    def optimize(self, assignment: Mapping[Key, int]):
        return self.choose(assignment).optimize()

    def prune(self, target: Union[Key, DecisionTreeFactor], max_nr_leaves: int) -> "HybridBayesTree":
        """
        Pruned copy with the same clique structure; the input is unchanged.
        """
        cliques = list(self.cliques())
        pruned = prune_conditionals([c.conditional for c in cliques], target, max_nr_leaves)
        copies: Dict[int, Clique] = {}
        for clique, conditional in zip(reversed(cliques), reversed(pruned)):
            copies[id(clique)] = Clique(conditional, [copies[id(ch)] for ch in clique.children])
        return HybridBayesTree([copies[id(r)] for r in self.roots])

    def equals(self, other: "HybridBayesTree", tol: float = 1e-9) -> bool:
        if set(self.nodes) != set(other.nodes):
            return False
        for k, c in self.nodes.items():
            o = other.nodes[k]
            if not c.conditional.equals(o.conditional, tol):
                return False
        return True

    def __repr__(self) -> str:
        return f"HybridBayesTree(cliques={self.size()})"
