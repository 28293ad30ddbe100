"""
Connectome Streamline

A streamline that has already been assigned to a pair of nodes, carrying
the weight it contributes toward connectome edges and exemplars.
"""

import numpy as np
from typing import Tuple

from ..tractography.streamline_utils import StreamlineUtils


NodePair = Tuple[int, int]


class Streamline:
    """
    Streamline points with an associated weight and terminating node pair

    The node pair is ordered: nodes[0] is the node at the first point and
    nodes[1] the node at the last point.
    """

    def __init__(
        self,
        points: np.ndarray,
        weight: float = 1.0,
        nodes: NodePair = (0, 0)
    ):
        """
        Args:
            points: Streamline coordinates (M, 3), M >= 1
            weight: Contribution of this streamline (e.g. SIFT2 weight)
            nodes: Node identifiers at the (first, last) points
        """
        points = np.asarray(points, dtype=np.float64)
        if points.ndim != 2 or points.shape[1] != 3:
            raise ValueError(f"Streamline points must have shape (M, 3), got {points.shape}")
        if len(points) == 0:
            raise ValueError("Streamline must contain at least one point")
        if not np.all(np.isfinite(points)):
            raise ValueError("Streamline points must be finite")

        weight = float(weight)
        if not np.isfinite(weight):
            raise ValueError(f"Streamline weight must be finite, got {weight}")

        if len(nodes) != 2:
            raise ValueError(f"Streamline nodes must be a pair, got {nodes}")

        self.points = points
        self.weight = weight
        self.nodes = (int(nodes[0]), int(nodes[1]))

    def get_nodes(self) -> NodePair:
        return self.nodes

    def __len__(self) -> int:
        return len(self.points)

    def __getitem__(self, index):
        return self.points[index]

    @property
    def length(self) -> float:
        """Arc length in mm"""
        return StreamlineUtils.compute_length(self.points)

    def reversed(self) -> 'Streamline':
        """Same streamline traversed from its last point, nodes swapped"""
        return Streamline(
            self.points[::-1].copy(),
            weight=self.weight,
            nodes=(self.nodes[1], self.nodes[0])
        )

    def __repr__(self) -> str:
        return (
            f"Streamline(n_points={len(self.points)}, weight={self.weight}, "
            f"nodes={self.nodes})"
        )
