"""
hybridsam/algebra/decision_tree.py

Immutable decision trees: functions of a discrete assignment.

A DecisionTree[T] branches on discrete keys in ascending key-id order and
stores a value of type T at every leaf. A leaf may hold None, marking a
pruned or infeasible branch.

Key operations:
  - restrict: follow branches for the keys fixed by an assignment
  - combine:  pointwise op over the union of two trees' keys
  - fold:     reduce the leaves in canonical order
  - prune:    replace rejected leaves, keeping the tree shape

Design constraints:
  - Nodes are never mutated, so subtrees are shared between trees.
  - Trees built here are full: every path branches on every key of the tree,
    and every internal node has exactly `cardinality` children.
  - Canonical leaf order is lexicographic in the assignment with the lowest
    key most significant. It is the tie-break wherever leaf order matters.
"""

from __future__ import annotations

from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
)

from hybridsam.core.keys import (
    Assignment,
    DiscreteKey,
    Key,
    assignments,
    key_name,
    sorted_discrete_keys,
)

T = TypeVar("T")
U = TypeVar("U")
R = TypeVar("R")


class _Leaf:
    __slots__ = ("value",)

    def __init__(self, value: Any):
        self.value = value


class _Choice:
    __slots__ = ("key", "branches")

    def __init__(self, key: DiscreteKey, branches: Tuple[Any, ...]):
        self.key = key
        self.branches = branches


def _build(keys: Sequence[DiscreteKey], fn: Callable[[Assignment], Any]):
    partial: Dict[Key, int] = {}

    def rec(i: int):
        if i == len(keys):
            return _Leaf(fn(dict(partial)))
        dk = keys[i]
        branches = []
        for v in range(dk.cardinality):
            partial[dk.key] = v
            branches.append(rec(i + 1))
        del partial[dk.key]
        return _Choice(dk, tuple(branches))

    return rec(0)


def _apply2(a, b, op):
    if isinstance(a, _Leaf) and isinstance(b, _Leaf):
        return _Leaf(op(a.value, b.value))
    # Branch on the lowest key at the top of either tree
    if isinstance(a, _Choice) and (isinstance(b, _Leaf) or a.key.key <= b.key.key):
        key = a.key
    else:
        key = b.key
    a_br = a.branches if isinstance(a, _Choice) and a.key.key == key.key else (a,) * key.cardinality
    b_br = b.branches if isinstance(b, _Choice) and b.key.key == key.key else (b,) * key.cardinality
    return _Choice(key, tuple(_apply2(x, y, op) for x, y in zip(a_br, b_br)))


class DecisionTree(Generic[T]):
    """
    A function from assignments of `keys` to values of type T.

    Attributes:
        keys: DiscreteKeys the tree branches on, sorted by key id.
    """
    __slots__ = ("_root", "_keys")

    def __init__(self, keys: Tuple[DiscreteKey, ...], root: Any):
        self._keys = keys
        self._root = root

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    @staticmethod
    def leaf(value: T) -> "DecisionTree[T]":
        """Constant tree with no keys."""
        return DecisionTree((), _Leaf(value))

    @staticmethod
    def from_function(keys: Iterable[DiscreteKey], fn: Callable[[Assignment], T]) -> "DecisionTree[T]":
        """
        Build a full tree by evaluating `fn` at every assignment.

        `fn` is called once per assignment, in canonical order, and each call
        fills its own leaf.
        """
        ordered = sorted_discrete_keys(keys)
        return DecisionTree(ordered, _build(ordered, fn))

    @staticmethod
    def from_leaves(keys: Sequence[DiscreteKey], values: Sequence[T]) -> "DecisionTree[T]":
        """
        Build a tree from leaf values listed in assignment order of `keys`.

        The first key in `keys` varies slowest. `keys` need not be sorted;
        the values are re-indexed into canonical order.
        """
        keys = tuple(keys)
        expected = 1
        for dk in keys:
            expected *= dk.cardinality
        if len(values) != expected:
            names = ", ".join(repr(dk) for dk in keys)
            raise ValueError(f"Expected {expected} leaves for keys [{names}], got {len(values)}")
        ids = [dk.key for dk in keys]
        table = {tuple(a[k] for k in ids): v for a, v in zip(assignments(keys), values)}
        return DecisionTree.from_function(keys, lambda a: table[tuple(a[k] for k in ids)])

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def keys(self) -> Tuple[DiscreteKey, ...]:
        return self._keys

    @property
    def key_ids(self) -> Tuple[Key, ...]:
        return tuple(dk.key for dk in self._keys)

    def is_leaf(self) -> bool:
        return isinstance(self._root, _Leaf)

    def __call__(self, assignment: Mapping[Key, int]) -> T:
        """
        Value at a full assignment of the tree's keys.

        Extra keys in `assignment` are ignored; a missing key raises KeyError.
        """
        node = self._root
        while isinstance(node, _Choice):
            k = node.key.key
            if k not in assignment:
                raise KeyError(f"Assignment has no value for {key_name(k)}")
            node = node.branches[self._check_value(node.key, assignment[k])]
        return node.value

    @staticmethod
    def _check_value(dk: DiscreteKey, v: int) -> int:
        if not 0 <= v < dk.cardinality:
            raise ValueError(f"Value {v} out of range for {dk!r}")
        return v

    # ------------------------------------------------------------------
    # Algebra
    # ------------------------------------------------------------------
    def restrict(self, assignment: Mapping[Key, int]) -> "DecisionTree[T]":
        """
        Sub-tree obtained by fixing the keys present in `assignment`.

        Untouched subtrees are shared with this tree.
        """
        fixed = {dk.key for dk in self._keys if dk.key in assignment}
        if not fixed:
            return self

        def rec(node):
            if isinstance(node, _Leaf):
                return node
            k = node.key.key
            if k in fixed:
                return rec(node.branches[self._check_value(node.key, assignment[k])])
            new = tuple(rec(b) for b in node.branches)
            if all(n is o for n, o in zip(new, node.branches)):
                return node
            return _Choice(node.key, new)

        keys = tuple(dk for dk in self._keys if dk.key not in fixed)
        return DecisionTree(keys, rec(self._root))

    def apply(self, other: "DecisionTree[U]", op: Callable[[T, U], R]) -> "DecisionTree[R]":
        """Pointwise op(self, other) over the union of both key sets."""
        return combine(self, other, op)

    def map(self, fn: Callable[[T], U]) -> "DecisionTree[U]":
        """Apply `fn` to every leaf value."""

        def rec(node):
            if isinstance(node, _Leaf):
                return _Leaf(fn(node.value))
            return _Choice(node.key, tuple(rec(b) for b in node.branches))

        return DecisionTree(self._keys, rec(self._root))

    def map_with_assignment(self, fn: Callable[[Assignment, T], U]) -> "DecisionTree[U]":
        """Apply fn(assignment, value) to every leaf."""
        return DecisionTree.from_function(self._keys, lambda a: fn(a, self(a)))

    def fold(self, op: Callable[[R, T], R], init: R) -> R:
        """
        Reduce leaves left to right: op(...op(op(init, v0), v1)..., vn).

        The traversal visits keys by increasing id and values by increasing
        value, i.e. canonical order.
        """
        acc = init
        for v in self.leaves():
            acc = op(acc, v)
        return acc

    def prune(
        self,
        keep: Callable[[Assignment, T], bool],
        replacement: Optional[Any] = None,
    ) -> "DecisionTree[T]":
        """
        Replace every leaf for which keep(assignment, value) is False.

        The shape of the tree is preserved and subtrees with no rejected
        leaf are shared with this tree.
        """
        partial: Dict[Key, int] = {}

        def rec(node):
            if isinstance(node, _Leaf):
                if keep(dict(partial), node.value):
                    return node
                return _Leaf(replacement)
            new = []
            for v, b in enumerate(node.branches):
                partial[node.key.key] = v
                new.append(rec(b))
            del partial[node.key.key]
            if all(n is o for n, o in zip(new, node.branches)):
                return node
            return _Choice(node.key, tuple(new))

        return DecisionTree(self._keys, rec(self._root))

    # ------------------------------------------------------------------
    # Iteration
    # ------------------------------------------------------------------
    def leaves(self) -> Iterator[T]:
        """Leaf values in canonical order."""
        stack = [self._root]
        while stack:
            node = stack.pop()
            if isinstance(node, _Leaf):
                yield node.value
            else:
                stack.extend(reversed(node.branches))

    def enumerate(self) -> List[Tuple[Assignment, T]]:
        """(assignment, value) pairs in canonical order."""
        return [(a, self(a)) for a in assignments(self._keys)]

    def nr_leaves(self) -> int:
        return sum(1 for _ in self.leaves())

    def count(self, pred: Callable[[T], bool]) -> int:
        return self.fold(lambda acc, v: acc + 1 if pred(v) else acc, 0)

    def equals(
        self,
        other: "DecisionTree[Any]",
        leaf_equal: Optional[Callable[[Any, Any], bool]] = None,
    ) -> bool:
        """Same keys and pairwise-equal leaves."""
        if self.key_ids != other.key_ids:
            return False
        if leaf_equal is None:
            leaf_equal = lambda x, y: x == y
        return all(leaf_equal(x, y) for x, y in zip(self.leaves(), other.leaves()))

    def __repr__(self) -> str:
        names = ", ".join(repr(dk) for dk in self._keys)
        return f"DecisionTree(keys=[{names}], leaves={self.nr_leaves()})"


def combine(a: DecisionTree[T], b: DecisionTree[U], op: Callable[[T, U], R]) -> DecisionTree[R]:
    """
    Pointwise combination of two trees.

    The result branches on the union of both key sets; a tree lacking a key
    is replicated under each of that key's branches.
    """
    keys = sorted_discrete_keys(a.keys + b.keys)
    return DecisionTree(keys, _apply2(a._root, b._root, op))


def combine_all(trees: Sequence[DecisionTree[T]], op: Callable[[T, T], T], init: T) -> DecisionTree[T]:
    """Fold `combine` over several trees, starting from a constant tree."""
    acc: DecisionTree[T] = DecisionTree.leaf(init)
    for t in trees:
        acc = combine(acc, t, op)
    return acc
