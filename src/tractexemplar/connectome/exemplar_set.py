"""
Exemplar Set

Holds one exemplar per connectome edge and distributes streamlines to them.
Accumulation may run on several worker threads at once; each exemplar
serializes its own updates.
"""

import itertools
import numpy as np
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, Iterator, List, Optional, Tuple
from tqdm import tqdm

from ..config import ExemplarConfig
from ..tractography.streamline_utils import StreamlineUtils
from ..utils.logger import get_logger
from .exemplar import Exemplar, ExemplarError
from .streamline import NodePair, Streamline

logger = get_logger(__name__)


class ExemplarSet:
    """
    Exemplars for every edge (including self-edges) of a set of nodes
    """

    def __init__(
        self,
        node_centroids: Dict[int, np.ndarray],
        n_points: Optional[int] = None,
        config: Optional[ExemplarConfig] = None
    ):
        """
        Initialize exemplar set

        Args:
            node_centroids: Mapping of node label to centre of mass (3,)
            n_points: Points per exemplar buffer (default: config.n_points)
            config: Exemplar parameters
        """
        self.config = config if config is not None else ExemplarConfig()
        self.n_points = int(n_points) if n_points is not None else self.config.n_points
        self.node_centroids = {
            int(node): np.asarray(com, dtype=np.float64)
            for node, com in node_centroids.items()
        }
        self.is_finalized = False

        nodes = sorted(self.node_centroids)
        self._exemplars: Dict[NodePair, Exemplar] = {}
        for a, b in itertools.combinations_with_replacement(nodes, 2):
            self._exemplars[(a, b)] = Exemplar(
                self.n_points,
                (a, b),
                (self.node_centroids[a], self.node_centroids[b]),
                config=self.config
            )

        logger.info(
            f"Exemplar set initialized: {len(nodes)} nodes, "
            f"{len(self._exemplars)} edges, {self.n_points} points per exemplar"
        )

    @staticmethod
    def edge_key(nodes: NodePair) -> NodePair:
        """Canonical (ascending) key of the edge joining a node pair"""
        a, b = int(nodes[0]), int(nodes[1])
        return (a, b) if a <= b else (b, a)

    def get(self, a: int, b: int) -> Exemplar:
        """Exemplar of the edge between nodes a and b (either order)"""
        key = self.edge_key((a, b))
        if key not in self._exemplars:
            raise KeyError(f"No exemplar for edge {key}")
        return self._exemplars[key]

    def __getitem__(self, nodes: NodePair) -> Exemplar:
        return self.get(*nodes)

    def __len__(self) -> int:
        return len(self._exemplars)

    def __iter__(self) -> Iterator[Exemplar]:
        return iter(self._exemplars.values())

    def items(self) -> Iterable[Tuple[NodePair, Exemplar]]:
        return self._exemplars.items()

    def add(self, streamline: Streamline):
        """Route a streamline to the exemplar of its edge"""
        self.get(*streamline.get_nodes()).add(streamline)

    def add_all(
        self,
        streamlines: Iterable[Streamline],
        n_workers: Optional[int] = None,
        show_progress: bool = False
    ) -> int:
        """
        Accumulate streamlines using a pool of worker threads

        Args:
            streamlines: Streamlines with assigned node pairs
            n_workers: Worker threads (default: config.n_workers)
            show_progress: Display a progress bar

        Returns:
            Number of streamlines accumulated
        """
        if self.is_finalized:
            raise ExemplarError("Cannot add streamlines to a finalized exemplar set")

        n_workers = n_workers if n_workers is not None else self.config.n_workers
        streamlines = list(streamlines)

        logger.info(
            f"Accumulating {len(streamlines)} streamlines into exemplars "
            f"({n_workers} workers)"
        )

        with tqdm(
            total=len(streamlines), desc="Exemplars", unit="streamline",
            disable=not show_progress
        ) as pbar, ThreadPoolExecutor(max_workers=n_workers) as executor:
            # Consume results so that worker exceptions propagate
            for _ in executor.map(self.add, streamlines):
                pbar.update(1)

        return len(streamlines)

    def finalize(self, step_size: Optional[float] = None):
        """
        Finalize every exemplar

        Must only be called once all accumulation has completed.

        Args:
            step_size: Arc-length step in mm (default: config.step_size)
        """
        if self.is_finalized:
            raise ExemplarError("Exemplar set is already finalized")

        step_size = step_size if step_size is not None else self.config.step_size
        if not np.isfinite(step_size) or step_size <= 0:
            raise ValueError(f"step_size must be positive, got {step_size}")

        for exemplar in self._exemplars.values():
            exemplar.finalize(step_size)
        self.is_finalized = True

        connected = [
            e.points for e in self._exemplars.values() if e.weight and not e.is_diagonal()
        ]
        lengths = StreamlineUtils.compute_lengths(connected)
        mean_length = float(np.mean(lengths)) if len(lengths) else 0.0
        logger.info(
            f"Finalized {len(self._exemplars)} exemplars "
            f"({len(connected)} with streamlines, step={step_size}mm, "
            f"mean length={mean_length:.1f}mm)"
        )

    def to_streamlines(self) -> List[Tuple[np.ndarray, float]]:
        """
        Exemplar curves and weights in edge order, for writing to disk

        Returns:
            List of (points (M, 3), weight) tuples
        """
        if not self.is_finalized:
            raise ExemplarError("Exemplar set must be finalized before export")
        return [
            (np.array(e.points), e.weight) for e in self._exemplars.values()
        ]
