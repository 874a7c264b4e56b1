"""
hybridsam/topology/structure.py

Variable index of a hybrid factor graph (topology only, no values).

Tracks for every key whether it is continuous or discrete (with its
cardinality), and for every factor its scope and whether it is a mixture.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Set, Tuple

from hybridsam.core.keys import DiscreteKey, Key, key_name
from hybridsam.core.kinds import FactorKind


@dataclass(frozen=True)
class FactorScope:
    """
    Scope of one factor.

    Attributes:
        index: Position of the factor in its graph
        keys: All keys, sorted
        discrete: Discrete keys, sorted
        kind: Variant tag of the factor
    """
    index: int
    keys: Tuple[Key, ...]
    discrete: Tuple[Key, ...]
    kind: FactorKind

    @property
    def continuous(self) -> Tuple[Key, ...]:
        d = set(self.discrete)
        return tuple(k for k in self.keys if k not in d)


class VariableIndex:
    """
    Key-to-factor incidence of a hybrid factor graph.

    Maintains:
    - Discrete key cardinalities
    - The set of continuous keys
    - Factor scopes
    - Key-to-factor incidence
    """

    def __init__(self):
        self.discrete_card: Dict[Key, int] = {}
        self.continuous: Set[Key] = set()
        self.scopes: List[FactorScope] = []
        self.var_to_factors: Dict[Key, List[int]] = {}

    @classmethod
    def from_factors(cls, factors: Iterable) -> "VariableIndex":
        """Index any sequence of objects exposing kind, keys and discrete_keys."""
        index = cls()
        for f in factors:
            index.add_factor(f.kind, f.continuous_keys, f.discrete_keys)
        return index

    def add_factor(
        self,
        kind: FactorKind,
        continuous_keys: Iterable[Key],
        discrete_keys: Iterable[DiscreteKey],
    ) -> int:
        """Add a factor scope; returns its index."""
        cont = tuple(continuous_keys)
        disc = tuple(discrete_keys)
        for k in cont:
            if k in self.discrete_card:
                raise ValueError(f"Key {key_name(k)} used as both continuous and discrete")
            self.continuous.add(k)
        for dk in disc:
            if dk.key in self.continuous:
                raise ValueError(f"Key {key_name(dk.key)} used as both continuous and discrete")
            seen = self.discrete_card.setdefault(dk.key, dk.cardinality)
            if seen != dk.cardinality:
                raise ValueError(
                    f"Key {key_name(dk.key)} used with cardinalities {seen} and {dk.cardinality}"
                )
        i = len(self.scopes)
        keys = tuple(sorted(set(cont) | {dk.key for dk in disc}))
        self.scopes.append(FactorScope(i, keys, tuple(sorted(dk.key for dk in disc)), kind))
        for k in keys:
            self.var_to_factors.setdefault(k, []).append(i)
        return i

    def is_discrete(self, key: Key) -> bool:
        return key in self.discrete_card

    def discrete_key(self, key: Key) -> DiscreteKey:
        return DiscreteKey(key, self.discrete_card[key])

    def all_keys(self) -> List[Key]:
        """All keys, sorted."""
        return sorted(self.var_to_factors)

    def continuous_keys(self) -> List[Key]:
        return sorted(self.continuous)

    def discrete_keys(self) -> List[DiscreteKey]:
        return [DiscreteKey(k, c) for k, c in sorted(self.discrete_card.items())]

    def factors_containing(self, key: Key) -> List[int]:
        return self.var_to_factors.get(key, [])

    def mixture_neighbors(self, key: Key) -> Set[Key]:
        """Continuous keys sharing a mixture factor with discrete `key`."""
        out: Set[Key] = set()
        for i in self.factors_containing(key):
            scope = self.scopes[i]
            if scope.kind is FactorKind.HYBRID:
                out.update(scope.continuous)
        return out

    def __contains__(self, key: Key) -> bool:
        return key in self.var_to_factors

    def __repr__(self) -> str:
        return (
            f"VariableIndex(continuous={len(self.continuous)}, "
            f"discrete={len(self.discrete_card)}, factors={len(self.scopes)})"
        )
