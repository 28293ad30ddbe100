"""
Tractography Module

Streamline geometry: lengths, index-based resampling, endpoint
convergence and fixed-step resampling.
"""

from .streamline_utils import StreamlineUtils

__all__ = [
    'StreamlineUtils'
]
