"""
Connectome Edge Exemplars

An exemplar is a single representative streamline for one edge of the
connectome. Streamlines assigned to the edge are accumulated as a weighted
running sum (safe for concurrent producers), then the sum is finalized into
a mean curve whose ends are anchored at the node centres of mass and whose
vertices are spaced at a fixed arc-length step.
"""

import threading
import numpy as np
from typing import Iterator, Optional, Tuple

from ..config import ExemplarConfig
from ..tractography.streamline_utils import StreamlineUtils
from ..utils.logger import get_logger
from .streamline import NodePair, Streamline

logger = get_logger(__name__)


class ExemplarError(Exception):
    """Exception raised when an exemplar is used out of order or fed a foreign streamline"""
    pass


class Exemplar:
    """
    Weighted mean streamline of one connectome edge

    Lifecycle: constructed with a zero buffer of fixed size, mutated by any
    number of add() calls, then finalized exactly once. After finalize()
    the curve has a new length and the exemplar is read-only.
    """

    def __init__(
        self,
        n_points: int,
        nodes: NodePair,
        node_coms: Tuple[np.ndarray, np.ndarray],
        config: Optional[ExemplarConfig] = None
    ):
        """
        Initialize exemplar

        Args:
            n_points: Number of points in the accumulation buffer (>= 2)
            nodes: Ordered node pair of the edge
            node_coms: Centres of mass of (nodes[0], nodes[1]) in the
                streamline coordinate space
            config: Convergence and resampling parameters
        """
        if int(n_points) != n_points or n_points < 2:
            raise ValueError(f"Exemplar requires at least 2 points, got {n_points}")

        node_coms = np.array(node_coms, dtype=np.float64)
        if node_coms.shape != (2, 3):
            raise ValueError(f"node_coms must be two 3D points, got shape {node_coms.shape}")
        node_coms.flags.writeable = False

        if len(nodes) != 2:
            raise ValueError(f"Exemplar nodes must be a pair, got {nodes}")

        self.config = config if config is not None else ExemplarConfig()
        self._nodes = (int(nodes[0]), int(nodes[1]))
        self._node_coms = node_coms
        self._points = np.zeros((int(n_points), 3), dtype=np.float64)
        self._weight = 0.0
        self._is_finalized = False
        self._lock = threading.Lock()

    @property
    def nodes(self) -> NodePair:
        return self._nodes

    @property
    def node_coms(self) -> np.ndarray:
        """Node centres of mass (2, 3), read-only"""
        return self._node_coms

    @property
    def weight(self) -> float:
        """Sum of the weights of all contributing streamlines"""
        return self._weight

    @property
    def is_finalized(self) -> bool:
        return self._is_finalized

    @property
    def points(self) -> np.ndarray:
        """Read-only view of the curve (running sum until finalized)"""
        view = self._points.view()
        view.flags.writeable = False
        return view

    @property
    def length(self) -> float:
        """Arc length of the current curve in mm"""
        return StreamlineUtils.compute_length(self._points)

    def get_nodes(self) -> NodePair:
        return self._nodes

    def get_node_coms(self) -> np.ndarray:
        return self._node_coms

    def is_diagonal(self) -> bool:
        """True for a self-edge (both ends in the same node)"""
        return self._nodes[0] == self._nodes[1]

    def __len__(self) -> int:
        return len(self._points)

    def __getitem__(self, index):
        return self.points[index]

    def __iter__(self) -> Iterator[np.ndarray]:
        return iter(self.points)

    def __repr__(self) -> str:
        state = "finalized" if self._is_finalized else "open"
        return (
            f"Exemplar(nodes={self._nodes}, n_points={len(self._points)}, "
            f"weight={self._weight:g}, {state})"
        )

    def add(self, streamline: Streamline):
        """
        Contribute a streamline to the weighted running sum

        The streamline is resampled by point index onto the exemplar's point
        count. If its node pair is the reverse of the exemplar's, it is
        traversed backwards.

        Args:
            streamline: Streamline assigned to this edge, in either direction

        Raises:
            ExemplarError: If the exemplar is finalized or the streamline
                belongs to a different edge
        """
        with self._lock:
            if self._is_finalized:
                raise ExemplarError(
                    f"Cannot add streamline to finalized exemplar {self._nodes}"
                )

            # Orientation is determined from the ordering of the node pair
            in_nodes = tuple(streamline.get_nodes())
            is_reversed = False
            if in_nodes != self._nodes:
                if in_nodes != (self._nodes[1], self._nodes[0]):
                    raise ExemplarError(
                        f"Streamline with nodes {in_nodes} does not belong to "
                        f"exemplar {self._nodes}"
                    )
                is_reversed = True

            resampled = StreamlineUtils.interpolate_by_index(
                streamline.points, len(self._points), reverse=is_reversed
            )
            self._points += resampled * streamline.weight
            self._weight += streamline.weight

    def finalize(self, step_size: float):
        """
        Convert the accumulated sum into the final exemplar curve

        Edges without contributions and self-edges become a straight line
        between the two node centres of mass. Otherwise the sum is divided by
        the total weight, both ends are converged onto the node centres of
        mass and the curve is resampled to step_size.

        Args:
            step_size: Arc-length distance between consecutive vertices (mm)

        Raises:
            ExemplarError: If the exemplar was already finalized
        """
        if not np.isfinite(step_size) or step_size <= 0:
            raise ValueError(f"step_size must be positive, got {step_size}")

        with self._lock:
            if self._is_finalized:
                raise ExemplarError(f"Exemplar {self._nodes} is already finalized")

            if not self._weight or self.is_diagonal():
                self._points = np.array(self._node_coms, dtype=np.float64)
                self._is_finalized = True
                logger.debug(
                    f"Exemplar {self._nodes}: "
                    f"{'self-edge' if self.is_diagonal() else 'no streamlines'}, "
                    f"using straight line between node centres"
                )
                return

            mean_curve = self._points / self._weight

            converged = StreamlineUtils.converge_endpoints(
                mean_curve,
                self._node_coms[0],
                self._node_coms[1],
                fraction=self.config.converge_fraction
            )

            self._points = StreamlineUtils.resample_fixed_step(
                converged,
                step_size,
                min_iterations=self.config.bisection_iterations,
                tolerance=self.config.step_tolerance
            )
            self._is_finalized = True

            logger.debug(
                f"Exemplar {self._nodes} finalized: weight={self._weight:g}, "
                f"{len(self._points)} points, length={self.length:.1f}mm"
            )

    def copy(self) -> 'Exemplar':
        """Independent copy of the exemplar state, with its own lock"""
        with self._lock:
            duplicate = Exemplar(
                len(self._points), self._nodes, self._node_coms, config=self.config
            )
            duplicate._points = self._points.copy()
            duplicate._weight = self._weight
            duplicate._is_finalized = self._is_finalized
        return duplicate
