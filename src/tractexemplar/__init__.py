"""
TractExemplar

Representative streamlines (exemplars) for the edges of a structural
connectome.
"""

__version__ = "0.1.0"

from .config import ExemplarConfig
from .connectome import (
    Exemplar,
    ExemplarError,
    ExemplarSet,
    Streamline,
    compute_node_centroids,
    load_node_centroids,
)
from .tractography import StreamlineUtils

__all__ = [
    'ExemplarConfig',
    'Exemplar',
    'ExemplarError',
    'ExemplarSet',
    'Streamline',
    'StreamlineUtils',
    'compute_node_centroids',
    'load_node_centroids'
]
