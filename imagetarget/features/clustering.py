"""
Hierarchical k-medoids clustering of binary feature descriptors.

The tree is used at query time for approximate nearest-neighbour
matching: a query descriptor descends into the child whose medoid is
closest in Hamming distance.

Tree layout (plain dicts, so it serializes as-is)::

    {"root_node": node}
    leaf node:  {"leaf": True, "center_point_index": int | None, "point_indexes": [int, ...]}
    inner node: {"leaf": False, "center_point_index": int | None, "children": [node, ...]}
"""

import numpy as np

from imagetarget.core.base import FeaturePoint, check_descriptor
from imagetarget.core.config import ClusterSettings


# Number of set bits for every byte value
POPCOUNT = np.array([bin(i).count("1") for i in range(256)], dtype=np.uint16)


def hamming_distances(descriptors: np.ndarray, centers: np.ndarray) -> np.ndarray:
    """
    Pairwise Hamming distances between packed binary descriptors.

    Args:
        descriptors: NxB uint8 array
        centers: MxB uint8 array

    Returns:
        NxM array of bit distances
    """
    xor = np.bitwise_xor(descriptors[:, None, :], centers[None, :, :])
    return POPCOUNT[xor].sum(axis=2, dtype=np.int64)


class HierarchicalClusterBuilder:
    """
    Default ClusterIndexBuilder.

    Every build starts from a fresh generator seeded with
    ``settings.seed``, so identical inputs give identical trees.
    """

    def __init__(self, settings: ClusterSettings | None = None):
        self.settings = settings or ClusterSettings()

    def build(self, points: list[FeaturePoint]) -> dict:
        rng = np.random.default_rng(self.settings.seed)
        if points:
            descriptors = np.stack([check_descriptor(p.descriptor) for p in points])
        else:
            descriptors = np.zeros((0, 0), dtype=np.uint8)
        root = self._build_node(descriptors, list(range(len(points))), None, rng)
        return {"root_node": root}

    def _compute_k_medoids(
        self,
        descriptors: np.ndarray,
        point_indexes: list[int],
        rng: np.random.Generator,
    ) -> list[int]:
        """
        Assign each point to one of ``num_centers`` random medoids.

        Several random medoid sets are tried; the assignment with the
        lowest total distance wins.

        Returns:
            For each point, the position (in point_indexes) of its medoid
        """
        subset = descriptors[point_indexes]
        num_centers = self.settings.num_centers
        best_sum = None
        best_assignment = None
        for _ in range(self.settings.num_hypotheses):
            centers = rng.choice(len(point_indexes), size=num_centers, replace=False)
            distances = hamming_distances(subset, subset[centers])
            nearest = distances.argmin(axis=1)
            total = int(distances[np.arange(len(point_indexes)), nearest].sum())
            if best_sum is None or total < best_sum:
                best_sum = total
                best_assignment = centers[nearest]
        return [int(a) for a in best_assignment]

    def _build_node(
        self,
        descriptors: np.ndarray,
        point_indexes: list[int],
        center_point_index: int | None,
        rng: np.random.Generator,
    ) -> dict:
        is_leaf = (
            len(point_indexes) <= self.settings.num_centers
            or len(point_indexes) <= self.settings.min_features_per_node
        )

        clusters: dict[int, list[int]] = {}
        if not is_leaf:
            assignment = self._compute_k_medoids(descriptors, point_indexes, rng)
            for i, a in enumerate(assignment):
                clusters.setdefault(point_indexes[a], []).append(point_indexes[i])
            if len(clusters) == 1:
                is_leaf = True

        if is_leaf:
            return {
                "leaf": True,
                "center_point_index": center_point_index,
                "point_indexes": list(point_indexes),
            }

        return {
            "leaf": False,
            "center_point_index": center_point_index,
            "children": [
                self._build_node(descriptors, clusters[center], center, rng)
                for center in sorted(clusters)
            ],
        }


def build_cluster_tree(
    points: list[FeaturePoint],
    settings: ClusterSettings | None = None,
) -> dict:
    """Build a cluster tree over ``points`` with default or given settings."""
    return HierarchicalClusterBuilder(settings).build(points)


def tree_point_indexes(tree: dict) -> list[int]:
    """Collect the point indexes stored in the leaves of a tree."""
    indexes = []
    stack = [tree["root_node"]]
    while stack:
        node = stack.pop()
        if node["leaf"]:
            indexes.extend(node["point_indexes"])
        else:
            stack.extend(node["children"])
    return indexes
