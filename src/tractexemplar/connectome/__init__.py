"""
Connectome Module

Connectome edge exemplars built from streamlines assigned to node pairs.

Main components:
- Streamline: Streamline points with weight and terminating node pair
- Exemplar: Thread-safe weighted mean streamline of one edge
- ExemplarSet: One exemplar per edge, with concurrent accumulation
- compute_node_centroids: Node centres of mass from a parcellation
"""

from .streamline import Streamline
from .exemplar import Exemplar, ExemplarError
from .exemplar_set import ExemplarSet
from .node_centroids import compute_node_centroids, load_node_centroids

__all__ = [
    'Streamline',
    'Exemplar',
    'ExemplarError',
    'ExemplarSet',
    'compute_node_centroids',
    'load_node_centroids'
]
