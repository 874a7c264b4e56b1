"""
Tests for hybrid Bayes trees: clique structure, lookup and pruning.
"""

import gc

import pytest

from hybridsam.core.errors import InconsistentAssignment
from hybridsam.core.keys import assignments
from hybridsam.hybrid.bayes_tree import Clique, HybridBayesTree
from hybridsam.switching import M, X, Switching


class TestClique:
    @pytest.fixture
    def tree(self):
        return Switching(3).linearized_factor_graph.eliminate_multifrontal()

    def test_parent_is_weak(self, tree):
        child = tree[X(1)]
        assert child.parent is tree[X(2)]
        parent = Clique(tree[M(1)].conditional)
        orphan = Clique(child.conditional)
        parent.add_child(orphan)
        assert orphan.parent is parent
        del parent
        gc.collect()
        assert orphan.parent is None

    def test_subtree_parents_first(self, tree):
        order = [c.frontals for c in tree.roots[0].subtree()]
        assert order == [(M(1), M(2)), (X(2), X(3)), (X(1),)]

    def test_repr(self, tree):
        assert repr(tree[X(1)]) == "Clique(x1 | x2 m1)"
        assert repr(tree[M(1)]) == "Clique(m1 m2)"


class TestHybridBayesTree:
    @pytest.fixture
    def switching(self):
        return Switching(3)

    @pytest.fixture
    def tree(self, switching):
        return switching.linearized_factor_graph.eliminate_multifrontal()

    def test_lookup(self, tree):
        assert X(3) in tree
        assert M(3) not in tree
        assert tree.clique(X(3)) is tree[X(2)]
        with pytest.raises(KeyError):
            tree[X(4)]

    def test_size(self, tree):
        assert tree.size() == 3
        assert len(tree) == 3
        assert not tree.empty()
        assert HybridBayesTree().empty()

    def test_key_owned_twice(self, tree):
        c = tree[X(1)]
        with pytest.raises(ValueError):
            HybridBayesTree([Clique(c.conditional), Clique(c.conditional)])

    def test_to_bayes_net(self, tree):
        net = tree.to_bayes_net()
        assert [c.frontals for c in net] == [(X(1),), (X(2), X(3)), (M(1), M(2))]

    def test_choose(self, switching, tree):
        graph = switching.linearized_factor_graph
        for assignment in assignments(switching.modes):
            chosen = tree.choose(assignment)
            assert len(chosen) == 2
            fixed = graph.fix_discrete(assignment).eliminate_multifrontal(switching.continuous_ordering())
            assert chosen.equals(fixed.choose(assignment), tol=1e-9)

    def test_equals(self, switching, tree):
        other = switching.linearized_factor_graph.eliminate_multifrontal(switching.ordering())
        assert tree.equals(other)
        assert not tree.equals(HybridBayesTree())

    def test_prune_keeps_structure(self, tree):
        pruned = tree.prune(M(2), 2)
        assert pruned.size() == tree.size()
        assert pruned[X(1)].parent is pruned[X(2)]
        assert pruned[X(2)].parent is pruned[M(1)]
        assert pruned[X(2)] is not tree[X(2)]

    def test_prune_values(self, tree):
        pruned = tree.prune(M(2), 2)
        joint = pruned[M(1)].conditional.as_discrete()
        assert joint.to_factor().nr_nonzero() == 2
        assert pruned[X(2)].conditional.as_mixture().nr_components() == 2
        assert tree[X(2)].conditional.as_mixture().nr_components() == 4
        with pytest.raises(InconsistentAssignment):
            pruned.choose({M(1): 0, M(2): 0})
