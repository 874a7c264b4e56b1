"""
hybridsam/topology/elimination_tree.py

Symbolic elimination: elimination trees and junction trees.

The elimination tree has one node per eliminated key. Every factor is
assigned to the node of its first-eliminated key, and a node's parent is the
first-eliminated key of its separator. The junction tree groups chains of
nodes into clusters that are eliminated together as one frontal block.

Both trees are networkx DiGraphs with edges parent -> child.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set

import networkx as nx

from hybridsam.core.keys import Key, key_name

_logger = logging.getLogger(__name__)


def _sorted_by_position(keys: Iterable[Key], position: Dict[Key, int]):
    return tuple(sorted(keys, key=lambda k: (position.get(k, math.inf), k)))


def build_elimination_tree(
    scopes: Sequence[Sequence[Key]],
    ordering: Sequence[Key],
    structural_scopes: Sequence[Sequence[Key]] = (),
) -> nx.DiGraph:
    """
    Build the elimination tree of a set of factor scopes.

    Args:
        scopes: Key scopes of the factors, by factor index
        ordering: Keys in elimination order; keys not listed are kept
        structural_scopes: Extra scopes that shape the tree but carry no
            factor (e.g. separators of subtrees kept aside)

    Returns:
        DiGraph with one node per ordered key. Node attributes:
        - position: index in the ordering
        - factors: indices of the factors assigned to the node
        - separator: keys remaining after the node, in elimination order
        Graph attributes:
        - roots: root keys in elimination order
        - unassigned: indices of factors that touch no ordered key
    """
    position = {k: i for i, k in enumerate(ordering)}
    if len(position) != len(ordering):
        raise ValueError("Ordering lists a key twice")

    assigned: Dict[Key, List[int]] = {k: [] for k in ordering}
    pending: Dict[Key, Set[Key]] = {k: set() for k in ordering}
    unassigned: List[int] = []

    for i, scope in enumerate(scopes):
        ordered = [k for k in scope if k in position]
        if not ordered:
            unassigned.append(i)
            continue
        first = min(ordered, key=position.__getitem__)
        assigned[first].append(i)
        pending[first].update(scope)
    for scope in structural_scopes:
        ordered = [k for k in scope if k in position]
        if ordered:
            pending[min(ordered, key=position.__getitem__)].update(scope)

    tree = nx.DiGraph()
    roots: List[Key] = []
    for k in ordering:
        sep = pending.pop(k)
        sep.discard(k)
        separator = _sorted_by_position(sep, position)
        tree.add_node(k, position=position[k], factors=assigned[k], separator=separator)
        parent: Optional[Key] = separator[0] if separator and separator[0] in position else None
        if parent is None:
            roots.append(k)
        else:
            pending[parent].update(sep)
            tree.add_edge(parent, k)

    tree.graph["roots"] = roots
    tree.graph["unassigned"] = unassigned
    return tree


def children_of(tree: nx.DiGraph, node) -> List:
    """Children of a node in elimination order."""
    return sorted(tree.successors(node), key=lambda c: tree.nodes[c]["position"])


def _postorder(tree: nx.DiGraph, root) -> List:
    """Nodes of the subtree at `root`, children first, siblings in elimination order."""
    out: List = []
    stack = [(root, False)]
    while stack:
        node, expanded = stack.pop()
        if expanded:
            out.append(node)
            continue
        stack.append((node, True))
        for child in reversed(children_of(tree, node)):
            stack.append((child, False))
    return out


def build_junction_tree(etree: nx.DiGraph, is_discrete: Callable[[Key], bool]) -> nx.DiGraph:
    """
    Group elimination-tree nodes into clusters.

    A child is merged into its parent when the parent's separator plus the
    parent cluster's frontals has the size of the child's separator (the
    child's conditional would have exactly the parent's frontals as extra
    parents), and both nodes are of the same type: continuous with
    continuous, discrete with discrete. Children are visited in post-order.

    Returns:
        DiGraph keyed by the top node of each cluster. Node attributes:
        - position: position of the top node
        - frontals: cluster keys in elimination order
        - factors: indices of the factors assigned to the cluster
        - separator: separator of the top node
        Graph attributes roots and unassigned are carried over.
    """
    position = {k: d["position"] for k, d in etree.nodes(data=True)}
    clusters: Dict[Key, dict] = {}

    for root in etree.graph["roots"]:
        for node in _postorder(etree, root):
            data = etree.nodes[node]
            cluster = {
                "frontals": [node],
                "factors": list(data["factors"]),
                "children": [],
            }
            nr_separator = len(data["separator"])
            for child in children_of(etree, node):
                c = clusters[child]
                child_sep = etree.nodes[child]["separator"]
                if (
                    nr_separator + len(cluster["frontals"]) == len(child_sep)
                    and is_discrete(node) == is_discrete(child)
                ):
                    cluster["frontals"].extend(c["frontals"])
                    cluster["factors"].extend(c["factors"])
                    cluster["children"].extend(c["children"])
                    del clusters[child]
                else:
                    cluster["children"].append(child)
            clusters[node] = cluster

    jtree = nx.DiGraph()
    for top, cluster in clusters.items():
        jtree.add_node(
            top,
            position=position[top],
            frontals=_sorted_by_position(cluster["frontals"], position),
            factors=sorted(cluster["factors"]),
            separator=etree.nodes[top]["separator"],
        )
    for top, cluster in clusters.items():
        for child in cluster["children"]:
            jtree.add_edge(top, child)

    jtree.graph["roots"] = list(etree.graph["roots"])
    jtree.graph["unassigned"] = list(etree.graph["unassigned"])
    _logger.debug(
        "Junction tree: %d nodes grouped into %d clusters", etree.number_of_nodes(), jtree.number_of_nodes()
    )
    return jtree


def cluster_postorder(jtree: nx.DiGraph) -> List[Key]:
    """Cluster ids children-first, roots in elimination order."""
    out: List[Key] = []
    for root in jtree.graph["roots"]:
        out.extend(_postorder(jtree, root))
    return out


def describe(jtree: nx.DiGraph) -> List[str]:
    """One line per cluster, e.g. 'x2 x3 | m1 m2'."""
    lines = []
    for top in cluster_postorder(jtree):
        data = jtree.nodes[top]
        frontals = " ".join(key_name(k) for k in data["frontals"])
        sep = " ".join(key_name(k) for k in data["separator"])
        lines.append(f"{frontals} | {sep}" if sep else frontals)
    return lines
