"""
Features module - Scale pyramids, feature detection and clustering.

This module provides:
- ImagePyramidBuilder: Matching and tracking scale pyramids
- Detector: Difference-of-Gaussians detector with binary descriptors
- HierarchicalClusterBuilder: k-medoids cluster trees over descriptors
"""

from imagetarget.features.pyramid import (
    ImagePyramidBuilder,
    matching_scales,
    tracking_scales,
)
from imagetarget.features.detector import (
    Detector,
    partition_points,
)
from imagetarget.features.clustering import (
    HierarchicalClusterBuilder,
    build_cluster_tree,
    hamming_distances,
    tree_point_indexes,
)

__all__ = [
    "ImagePyramidBuilder",
    "matching_scales",
    "tracking_scales",
    "Detector",
    "partition_points",
    "HierarchicalClusterBuilder",
    "build_cluster_tree",
    "hamming_distances",
    "tree_point_indexes",
]
