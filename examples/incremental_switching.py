"""
Example: Switching chain, incremental updates with pruning.

States arrive one at a time. After every update the mode space is pruned
to the best few sequences, which keeps the Bayes tree small.
"""

from hybridsam.hybrid.isam import HybridGaussianISAM
from hybridsam.switching import M, X, Switching


def main():
    K = 6
    max_nr_leaves = 4
    switching = Switching(K)
    graph = switching.linearized_factor_graph

    isam = HybridGaussianISAM()

    # prior on x1
    first = [graph[0]]
    for k in range(1, K):
        new_factors = first + [
            graph[k],          # mixture between x_k and x_(k+1)
            graph[K + k - 1],  # measurement of x_(k+1)
        ]
        first = []
        isam.update(new_factors)
        isam.prune(M(k), max_nr_leaves)

        mixture = isam[X(k + 1)].conditional.as_mixture()
        print(f"Step {k}: {isam.size()} cliques, "
              f"{mixture.nr_components()} live components at x{k + 1}")

    print("\nFinal Bayes tree:")
    for clique in isam.bayes_tree.cliques():
        print(f"  {clique!r}")


if __name__ == "__main__":
    main()
