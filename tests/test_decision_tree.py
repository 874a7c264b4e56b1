"""
Tests for keys and the decision-tree algebra.
"""

import pytest

from hybridsam.algebra.decision_tree import DecisionTree, combine, combine_all
from hybridsam.core.keys import (
    DiscreteKey,
    assignments,
    key_name,
    shorthand,
    sorted_discrete_keys,
    symbol,
    symbol_category,
    symbol_index,
)

M = shorthand("m")


class TestKeys:
    def test_symbol_roundtrip(self):
        k = symbol("x", 7)
        assert symbol_category(k) == "x"
        assert symbol_index(k) == 7
        assert key_name(k) == "x7"

    def test_categories_sort_by_character(self):
        assert symbol("m", 100) < symbol("x", 0)

    def test_shorthand_is_pure(self):
        X = shorthand("x")
        assert X(3) == symbol("x", 3)
        assert X(3) == X(3)

    def test_bad_symbol(self):
        with pytest.raises(ValueError):
            symbol("xy", 1)

    def test_cardinality_must_be_at_least_two(self):
        with pytest.raises(ValueError):
            DiscreteKey(M(1), 1)

    def test_sorted_discrete_keys_dedupes(self):
        a, b = DiscreteKey(M(2), 2), DiscreteKey(M(1), 3)
        assert sorted_discrete_keys([a, b, a]) == (b, a)

    def test_conflicting_cardinality(self):
        with pytest.raises(ValueError):
            sorted_discrete_keys([DiscreteKey(M(1), 2), DiscreteKey(M(1), 3)])

    def test_assignments_first_key_slowest(self):
        keys = [DiscreteKey(M(1), 2), DiscreteKey(M(2), 3)]
        values = [(a[M(1)], a[M(2)]) for a in assignments(keys)]
        assert values == [(0, 0), (0, 1), (0, 2), (1, 0), (1, 1), (1, 2)]


class TestDecisionTree:
    @pytest.fixture
    def keys(self):
        return DiscreteKey(M(1), 2), DiscreteKey(M(2), 2)

    @pytest.fixture
    def tree(self, keys):
        # f(m1, m2) = 10 * m1 + m2
        return DecisionTree.from_function(keys, lambda a: 10 * a[M(1)] + a[M(2)])

    def test_leaf(self):
        t = DecisionTree.leaf(3.0)
        assert t.is_leaf()
        assert t({}) == 3.0
        assert t.keys == ()

    def test_evaluate(self, tree):
        assert tree({M(1): 1, M(2): 0}) == 10
        assert tree({M(1): 0, M(2): 1, M(3): 5}) == 1

    def test_missing_key(self, tree):
        with pytest.raises(KeyError):
            tree({M(1): 1})

    def test_value_out_of_range(self, tree):
        with pytest.raises(ValueError):
            tree({M(1): 2, M(2): 0})

    def test_keys_sorted(self, keys):
        t = DecisionTree.from_function(reversed(keys), lambda a: 0)
        assert t.key_ids == (M(1), M(2))

    def test_from_leaves_reorders(self, keys):
        m1, m2 = keys
        # Listed with m2 slowest
        t = DecisionTree.from_leaves([m2, m1], [0, 10, 1, 11])
        assert t({M(1): 1, M(2): 0}) == 10
        assert t({M(1): 0, M(2): 1}) == 1
        assert list(t.leaves()) == [0, 1, 10, 11]

    def test_from_leaves_wrong_count(self, keys):
        with pytest.raises(ValueError):
            DecisionTree.from_leaves(keys, [1, 2, 3])

    def test_restrict_partial(self, tree):
        sub = tree.restrict({M(1): 1})
        assert sub.key_ids == (M(2),)
        assert list(sub.leaves()) == [10, 11]

    def test_restrict_full(self, tree):
        sub = tree.restrict({M(1): 0, M(2): 1})
        assert sub.is_leaf()
        assert sub({}) == 1

    def test_restrict_unrelated_key_shares_tree(self, tree):
        assert tree.restrict({M(9): 0}) is tree

    def test_fold_canonical_order(self, tree):
        seen = tree.fold(lambda acc, v: acc + [v], [])
        assert seen == [0, 1, 10, 11]

    def test_enumerate(self, tree):
        pairs = tree.enumerate()
        assert [v for _, v in pairs] == [0, 1, 10, 11]
        assert pairs[2][0] == {M(1): 1, M(2): 0}

    def test_map(self, tree):
        doubled = tree.map(lambda v: 2 * v)
        assert list(doubled.leaves()) == [0, 2, 20, 22]

    def test_combine_replicates_missing_key(self, keys):
        m1, m2 = keys
        a = DecisionTree.from_leaves([m1], [1.0, 2.0])
        b = DecisionTree.from_leaves([m2], [10.0, 20.0])
        c = combine(a, b, lambda x, y: x * y)
        assert c.key_ids == (M(1), M(2))
        assert list(c.leaves()) == [10.0, 20.0, 20.0, 40.0]

    def test_map_with_assignment(self, tree):
        t = tree.map_with_assignment(lambda a, v: v if a[M(2)] == 0 else -v)
        assert list(t.leaves()) == [0, -1, 10, -11]

    def test_combine_all(self, keys):
        m1, m2 = keys
        trees = [DecisionTree.from_leaves([m1], [1, 2]), DecisionTree.from_leaves([m2], [3, 5])]
        total = combine_all(trees, lambda x, y: x * y, 1)
        assert total.key_ids == (M(1), M(2))
        assert list(total.leaves()) == [3, 5, 6, 10]

    def test_combine_with_leaf(self, tree):
        c = tree.apply(DecisionTree.leaf(1), lambda x, y: x + y)
        assert list(c.leaves()) == [1, 2, 11, 12]

    def test_combine_different_branching_depths(self):
        k1, k2, k3 = DiscreteKey(M(1), 2), DiscreteKey(M(2), 3), DiscreteKey(M(3), 2)
        a = DecisionTree.from_function([k1, k3], lambda x: x[M(1)] + 2 * x[M(3)])
        b = DecisionTree.from_function([k2], lambda x: 10 * x[M(2)])
        c = combine(a, b, lambda x, y: x + y)
        for asg in assignments([k1, k2, k3]):
            assert c(asg) == a(asg) + b(asg)
        assert c.nr_leaves() == 12

    def test_combine_conflicting_cardinality(self):
        a = DecisionTree.from_leaves([DiscreteKey(M(1), 2)], [1, 2])
        b = DecisionTree.from_leaves([DiscreteKey(M(1), 3)], [1, 2, 3])
        with pytest.raises(ValueError):
            combine(a, b, lambda x, y: x)

    def test_prune_keeps_shape(self, tree):
        pruned = tree.prune(lambda a, v: v % 2 == 0)
        assert pruned.key_ids == tree.key_ids
        assert list(pruned.leaves()) == [0, None, 10, None]
        assert pruned.nr_leaves() == tree.nr_leaves()

    def test_prune_replacement(self, tree):
        pruned = tree.prune(lambda a, v: a[M(1)] == 0, replacement=-1)
        assert list(pruned.leaves()) == [0, 1, -1, -1]

    def test_prune_does_not_modify_input(self, tree):
        tree.prune(lambda a, v: False)
        assert list(tree.leaves()) == [0, 1, 10, 11]

    def test_count(self, tree):
        assert tree.count(lambda v: v > 5) == 2

    def test_equals(self, tree, keys):
        same = DecisionTree.from_leaves(keys, [0, 1, 10, 11])
        other = DecisionTree.from_leaves(keys, [0, 1, 10, 12])
        assert tree.equals(same)
        assert not tree.equals(other)
        assert tree.equals(other, lambda x, y: abs(x - y) <= 1)
