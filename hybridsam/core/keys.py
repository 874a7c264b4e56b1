"""
hybridsam/core/keys.py

Variable keys and discrete assignments.

Keys are plain integers. A symbolic key packs a one-character category and an
index into a single integer:

    key = (ord(category) << 56) | index

so that X(1), M(2), ... can be produced without any global registry.
"""

from __future__ import annotations

import functools
import itertools
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Iterator, Mapping, Sequence, Tuple

Key = int
Assignment = Dict[Key, int]

_INDEX_BITS = 56
_INDEX_MASK = (1 << _INDEX_BITS) - 1


def symbol(category: str, index: int) -> Key:
    """Pack a (category, index) pair into an integer key."""
    if len(category) != 1:
        raise ValueError(f"Symbol category must be a single character, got {category!r}")
    if not 0 <= index <= _INDEX_MASK:
        raise ValueError(f"Symbol index {index} out of range")
    return (ord(category) << _INDEX_BITS) | index


def shorthand(category: str) -> Callable[[int], Key]:
    """Return a key factory for one category, e.g. X = shorthand("x")."""
    return functools.partial(symbol, category)


def symbol_category(key: Key) -> str:
    return chr(key >> _INDEX_BITS)


def symbol_index(key: Key) -> int:
    return key & _INDEX_MASK


def key_name(key: Key) -> str:
    """Human-readable name: 'x3' for symbolic keys, the integer otherwise."""
    c = key >> _INDEX_BITS
    if c and chr(c).isprintable():
        return f"{chr(c)}{key & _INDEX_MASK}"
    return str(key)


@dataclass(frozen=True, order=True)
class DiscreteKey:
    """A key together with the number of values it can take."""
    key: Key
    cardinality: int

    def __post_init__(self):
        if self.cardinality < 2:
            raise ValueError(
                f"Discrete key {key_name(self.key)} needs cardinality >= 2, got {self.cardinality}"
            )

    def __repr__(self) -> str:
        return f"({key_name(self.key)}, {self.cardinality})"


def sorted_discrete_keys(keys: Iterable[DiscreteKey]) -> Tuple[DiscreteKey, ...]:
    """
    Deduplicate and sort discrete keys by key id.

    Raises ValueError if the same key appears with two cardinalities.
    """
    by_key: Dict[Key, DiscreteKey] = {}
    for dk in keys:
        seen = by_key.get(dk.key)
        if seen is not None and seen.cardinality != dk.cardinality:
            raise ValueError(
                f"Key {key_name(dk.key)} used with cardinalities "
                f"{seen.cardinality} and {dk.cardinality}"
            )
        by_key[dk.key] = dk
    return tuple(by_key[k] for k in sorted(by_key))


def assignments(keys: Sequence[DiscreteKey]) -> Iterator[Assignment]:
    """
    Enumerate all assignments of `keys` in canonical order.

    The first key varies slowest, so for keys sorted by id this is the
    lexicographic order used as the tie-break throughout the package.
    """
    ids = [dk.key for dk in keys]
    for values in itertools.product(*(range(dk.cardinality) for dk in keys)):
        yield dict(zip(ids, values))


def project(assignment: Mapping[Key, int], keys: Iterable[Key]) -> Tuple[int, ...]:
    """Values of `assignment` for `keys`, in the given key order."""
    return tuple(assignment[k] for k in keys)


def format_assignment(assignment: Mapping[Key, int]) -> str:
    return "{" + ", ".join(f"{key_name(k)}={v}" for k, v in sorted(assignment.items())) + "}"
