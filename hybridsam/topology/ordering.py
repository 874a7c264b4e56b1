"""
hybridsam/topology/ordering.py

Elimination orderings.

An ordering is a sequence whose entries are single keys or tuples of keys
eliminated together as one frontal block. Continuous keys must be eliminated
before any discrete key that selects a mixture touching them.
"""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple, Union

from hybridsam.core.errors import OrderingViolation
from hybridsam.core.keys import Key, key_name
from hybridsam.topology.structure import VariableIndex

OrderingEntry = Union[Key, Tuple[Key, ...]]


def default_ordering(index: VariableIndex) -> List[Key]:
    """Continuous keys ascending, then discrete keys ascending."""
    return index.continuous_keys() + [dk.key for dk in index.discrete_keys()]


def frontal_groups(ordering: Sequence[OrderingEntry]) -> List[Tuple[Key, ...]]:
    """
    Normalize an ordering into frontal blocks.

    Raises ValueError on an empty block or a key listed twice.
    """
    groups: List[Tuple[Key, ...]] = []
    seen = set()
    for entry in ordering:
        group = tuple(entry) if isinstance(entry, (tuple, list)) else (entry,)
        if not group:
            raise ValueError("Empty frontal block in ordering")
        for k in group:
            if k in seen:
                raise ValueError(f"Key {key_name(k)} appears twice in ordering")
            seen.add(k)
        groups.append(group)
    return groups


def flatten(ordering: Sequence[OrderingEntry]) -> List[Key]:
    return [k for group in frontal_groups(ordering) for k in group]


def check_ordering(ordering: Sequence[OrderingEntry], index: VariableIndex) -> None:
    """
    Validate an ordering against a variable index.

    Raises:
        KeyError: a key of the ordering is not in the graph
        OrderingViolation: a discrete key comes before (or instead of) a
            continuous key that shares a mixture factor with it
    """
    position: Dict[Key, int] = {}
    for i, group in enumerate(frontal_groups(ordering)):
        for k in group:
            if k not in index:
                raise KeyError(f"Ordering key {key_name(k)} does not appear in the graph")
            position[k] = i
    for k, p in position.items():
        if not index.is_discrete(k):
            continue
        for c in index.mixture_neighbors(k):
            if position.get(c, len(position)) >= p:
                raise OrderingViolation(
                    f"Discrete key {key_name(k)} is eliminated while continuous key "
                    f"{key_name(c)} still depends on it through a mixture"
                )
