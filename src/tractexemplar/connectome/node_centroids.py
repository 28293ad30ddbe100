"""
Node Centres of Mass

Computes the centre of mass of every parcel in a parcellation image, in
the world (scanner) coordinates that streamlines are expressed in. These
are the anchor points for the ends of connectome exemplars.
"""

import numpy as np
from typing import Dict, Iterable, Optional, Tuple
from scipy import ndimage

from ..utils.logger import get_logger

logger = get_logger(__name__)


def compute_node_centroids(
    parcellation: np.ndarray,
    affine: Optional[np.ndarray] = None,
    labels: Optional[Iterable[int]] = None
) -> Dict[int, np.ndarray]:
    """
    Compute node centres of mass from a parcellation

    Args:
        parcellation: 3D integer parcellation map (x, y, z); 0 is background
        affine: Voxel-to-world affine (4x4). If None, centroids are returned
            in voxel coordinates.
        labels: Node labels to compute (default: all non-zero labels present)

    Returns:
        Dictionary mapping node label to centre of mass (3,)
    """
    parcellation = np.asarray(parcellation)
    if parcellation.ndim != 3:
        raise ValueError(f"Parcellation must be 3D, got shape {parcellation.shape}")

    if labels is None:
        labels = [int(l) for l in np.unique(parcellation) if l > 0]
    else:
        labels = [int(l) for l in labels]

    if not labels:
        logger.warning("Parcellation contains no nodes")
        return {}

    present = set(int(l) for l in np.unique(parcellation))
    empty = [l for l in labels if l not in present]
    if empty:
        logger.warning(f"Skipping {len(empty)} nodes with no voxels: {empty}")
    labels = [l for l in labels if l in present]

    voxel_coms = ndimage.center_of_mass(
        np.ones(parcellation.shape, dtype=np.float64),
        labels=parcellation,
        index=labels
    )
    voxel_coms = np.asarray(voxel_coms, dtype=np.float64).reshape(-1, 3)

    if affine is not None:
        affine = np.asarray(affine, dtype=np.float64)
        homogeneous = np.hstack([voxel_coms, np.ones((len(voxel_coms), 1))])
        world_coms = (affine @ homogeneous.T).T[:, :3]
    else:
        world_coms = voxel_coms

    centroids = {label: world_coms[i] for i, label in enumerate(labels)}

    logger.info(f"Computed centres of mass for {len(centroids)} nodes")

    return centroids


def load_node_centroids(
    parcellation_file: str
) -> Tuple[Dict[int, np.ndarray], np.ndarray]:
    """
    Load a parcellation image and compute its node centres of mass

    Args:
        parcellation_file: Path to parcellation NIfTI

    Returns:
        Tuple of (centroids in world coordinates, affine matrix)
    """
    import nibabel as nib

    logger.info(f"Loading parcellation from {parcellation_file}")

    img = nib.load(parcellation_file)
    parcellation = np.asarray(img.dataobj).astype(int)
    affine = img.affine

    return compute_node_centroids(parcellation, affine=affine), affine
