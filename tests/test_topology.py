"""
Tests for topology module.
"""

import pytest

from hybridsam.core.errors import OrderingViolation
from hybridsam.core.keys import DiscreteKey
from hybridsam.core.kinds import FactorKind
from hybridsam.switching import M, X, Switching
from hybridsam.topology.elimination_tree import (
    build_elimination_tree,
    build_junction_tree,
    cluster_postorder,
    describe,
)
from hybridsam.topology.ordering import check_ordering, default_ordering, flatten, frontal_groups
from hybridsam.topology.structure import VariableIndex


class TestVariableIndex:
    @pytest.fixture
    def index(self):
        return Switching(3).linearized_factor_graph.variable_index()

    def test_keys(self, index):
        assert index.continuous_keys() == [X(1), X(2), X(3)]
        assert [dk.key for dk in index.discrete_keys()] == [M(1), M(2)]
        assert index.is_discrete(M(1))
        assert not index.is_discrete(X(1))
        assert index.discrete_key(M(2)) == DiscreteKey(M(2), 2)

    def test_scopes(self, index):
        assert len(index.scopes) == 7
        mixture = index.scopes[1]
        assert mixture.kind is FactorKind.HYBRID
        assert mixture.discrete == (M(1),)
        assert set(mixture.continuous) == {X(1), X(2)}

    def test_incidence(self, index):
        assert index.factors_containing(X(2)) == [1, 2, 3]
        assert index.factors_containing(M(1)) == [1, 5, 6]
        assert index.factors_containing(X(9)) == []

    def test_mixture_neighbors(self, index):
        assert index.mixture_neighbors(M(1)) == {X(1), X(2)}
        assert index.mixture_neighbors(M(2)) == {X(2), X(3)}

    def test_key_used_as_both_types(self):
        index = VariableIndex()
        index.add_factor(FactorKind.CONTINUOUS, [X(1)], [])
        with pytest.raises(ValueError):
            index.add_factor(FactorKind.DISCRETE, [], [DiscreteKey(X(1), 2)])

    def test_cardinality_conflict(self):
        index = VariableIndex()
        index.add_factor(FactorKind.DISCRETE, [], [DiscreteKey(M(1), 2)])
        with pytest.raises(ValueError):
            index.add_factor(FactorKind.DISCRETE, [], [DiscreteKey(M(1), 3)])


class TestOrdering:
    @pytest.fixture
    def index(self):
        return Switching(3).linearized_factor_graph.variable_index()

    def test_default_ordering(self, index):
        assert default_ordering(index) == [X(1), X(2), X(3), M(1), M(2)]

    def test_frontal_groups(self):
        assert frontal_groups([1, (2, 3), [4]]) == [(1,), (2, 3), (4,)]
        assert flatten([1, (2, 3)]) == [1, 2, 3]

    def test_duplicate_key(self):
        with pytest.raises(ValueError):
            frontal_groups([1, (2, 1)])

    def test_empty_group(self):
        with pytest.raises(ValueError):
            frontal_groups([1, ()])

    def test_valid_orderings(self, index):
        check_ordering(default_ordering(index), index)
        check_ordering([X(1), X(2)], index)
        check_ordering([X(1), X(2), X(3), (M(1), M(2))], index)

    def test_unknown_key(self, index):
        with pytest.raises(KeyError):
            check_ordering([X(4)], index)

    def test_discrete_first(self, index):
        with pytest.raises(OrderingViolation):
            check_ordering([M(1), X(1), X(2)], index)

    def test_discrete_without_its_continuous_neighbors(self, index):
        with pytest.raises(OrderingViolation):
            check_ordering([X(1), M(1)], index)

    def test_discrete_in_same_block(self, index):
        with pytest.raises(OrderingViolation):
            check_ordering([(X(1), M(1))], index)


class TestEliminationTree:
    @pytest.fixture
    def switching(self):
        return Switching(3)

    @pytest.fixture
    def etree(self, switching):
        scopes = [f.keys for f in switching.linearized_factor_graph]
        return build_elimination_tree(scopes, switching.ordering())

    def test_chain(self, etree):
        assert etree.graph["roots"] == [M(2)]
        assert etree.graph["unassigned"] == []
        assert list(etree.predecessors(X(1))) == [X(2)]
        assert list(etree.predecessors(X(2))) == [X(3)]
        assert list(etree.predecessors(X(3))) == [M(1)]
        assert list(etree.predecessors(M(1))) == [M(2)]

    def test_separators(self, etree):
        assert etree.nodes[X(1)]["separator"] == (X(2), M(1))
        assert etree.nodes[X(2)]["separator"] == (X(3), M(1), M(2))
        assert etree.nodes[X(3)]["separator"] == (M(1), M(2))
        assert etree.nodes[M(2)]["separator"] == ()

    def test_factor_assignment(self, etree):
        assert etree.nodes[X(1)]["factors"] == [0, 1]
        assert etree.nodes[X(2)]["factors"] == [2, 3]
        assert etree.nodes[X(3)]["factors"] == [4]
        assert etree.nodes[M(1)]["factors"] == [5, 6]

    def test_partial_ordering(self, switching):
        scopes = [f.keys for f in switching.linearized_factor_graph]
        etree = build_elimination_tree(scopes, switching.continuous_ordering())
        assert etree.graph["roots"] == [X(3)]
        assert etree.graph["unassigned"] == [5, 6]

    def test_structural_scopes(self):
        etree = build_elimination_tree([(1,), (2,)], [1, 2], structural_scopes=[(1, 2)])
        assert etree.nodes[1]["separator"] == (2,)
        assert etree.graph["roots"] == [2]
        assert etree.nodes[1]["factors"] == [0]

    def test_forest(self):
        etree = build_elimination_tree([(1,), (2,)], [1, 2])
        assert etree.graph["roots"] == [1, 2]

    def test_duplicate_key(self):
        with pytest.raises(ValueError):
            build_elimination_tree([(1,)], [1, 1])


class TestJunctionTree:
    @pytest.fixture
    def jtree(self):
        s = Switching(3)
        graph = s.linearized_factor_graph
        scopes = [f.keys for f in graph]
        etree = build_elimination_tree(scopes, s.ordering())
        return build_junction_tree(etree, graph.variable_index().is_discrete)

    def test_clusters(self, jtree):
        assert jtree.number_of_nodes() == 3
        assert jtree.nodes[X(1)]["frontals"] == (X(1),)
        assert jtree.nodes[X(3)]["frontals"] == (X(2), X(3))
        assert jtree.nodes[M(2)]["frontals"] == (M(1), M(2))

    def test_cluster_factors(self, jtree):
        assert jtree.nodes[X(1)]["factors"] == [0, 1]
        assert jtree.nodes[X(3)]["factors"] == [2, 3, 4]
        assert jtree.nodes[M(2)]["factors"] == [5, 6]

    def test_unmerged_children_keep_their_cluster(self, jtree):
        assert set(jtree.edges()) == {(X(3), X(1)), (M(2), X(3))}
        for _, data in jtree.nodes(data=True):
            assert "frontals" in data
            assert "separator" in data

    def test_postorder(self, jtree):
        assert cluster_postorder(jtree) == [X(1), X(3), M(2)]

    def test_describe(self, jtree):
        assert describe(jtree) == ["x1 | x2 m1", "x2 x3 | m1 m2", "m1 m2"]

    def test_discrete_and_continuous_never_merge(self):
        # x1's separator is exactly m1, but they differ in type
        etree = build_elimination_tree([(X(1), M(1))], [X(1), M(1)])
        jtree = build_junction_tree(etree, lambda k: k == M(1))
        assert jtree.number_of_nodes() == 2
