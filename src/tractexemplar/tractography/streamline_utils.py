"""
Streamline Geometry Utilities

Provides the curve operations used to build connectome exemplars:
- Length and segment length computation
- Resampling onto a fixed number of points by point index
- Endpoint convergence toward node centres of mass
- Resampling to a fixed arc-length step via bisection
"""

import numpy as np
from typing import List, Optional

from ..utils.logger import get_logger

logger = get_logger(__name__)


# Hard cap on bisection iterations regardless of the requested tolerance
MAX_BISECTION_ITERATIONS = 64


class StreamlineUtils:
    """Utilities for streamline and exemplar curve geometry"""

    @staticmethod
    def compute_length(streamline: np.ndarray) -> float:
        """
        Compute streamline length in mm

        Args:
            streamline: Array of points (N, 3)

        Returns:
            Total length in mm
        """
        if len(streamline) < 2:
            return 0.0

        segments = np.diff(streamline, axis=0)
        lengths = np.linalg.norm(segments, axis=1)
        return float(np.sum(lengths))

    @staticmethod
    def compute_lengths(streamlines: List[np.ndarray]) -> np.ndarray:
        """
        Compute lengths for multiple streamlines

        Args:
            streamlines: List of streamlines

        Returns:
            Array of lengths (N,)
        """
        return np.array([StreamlineUtils.compute_length(s) for s in streamlines])

    @staticmethod
    def compute_segment_lengths(streamline: np.ndarray) -> np.ndarray:
        """Euclidean distances between consecutive points (N-1,)"""
        if len(streamline) < 2:
            return np.zeros(0)
        return np.linalg.norm(np.diff(streamline, axis=0), axis=1)

    @staticmethod
    def interpolate_by_index(
        streamline: np.ndarray,
        n_points: int,
        reverse: bool = False
    ) -> np.ndarray:
        """
        Resample a streamline onto n_points by linear interpolation along the
        point index (not arc length)

        Target point i samples the fractional source index (M-1) * i / n_points,
        mirrored to (M-1) - t when reversed. The final source point is never
        reached in the forward direction; in the reverse direction target 0
        is exactly the last source point.

        Args:
            streamline: Input points (M, 3), M >= 1
            n_points: Number of output points
            reverse: Traverse the input from its last point to its first

        Returns:
            Resampled points (n_points, 3)
        """
        streamline = np.asarray(streamline, dtype=np.float64)
        if len(streamline) == 0:
            raise ValueError("Cannot interpolate an empty streamline")

        last = len(streamline) - 1
        interp_pos = last * np.arange(n_points) / float(n_points)
        if reverse:
            interp_pos = last - interp_pos

        lower = np.floor(interp_pos).astype(int)
        mu = (interp_pos - lower)[:, np.newaxis]
        upper = np.minimum(lower + 1, last)

        resampled = ((1.0 - mu) * streamline[lower]) + (mu * streamline[upper])

        # Exact copy where the sample falls on the final point
        at_end = lower == last
        resampled[at_end] = streamline[last]

        return resampled

    @staticmethod
    def converge_endpoints(
        streamline: np.ndarray,
        start: np.ndarray,
        end: np.ndarray,
        fraction: float = 0.25
    ) -> np.ndarray:
        """
        Pull both ends of a curve toward fixed target points

        Over the first and last int(fraction * N) points (at least one, at most
        N // 2) each point is blended with its target using factor
        mu = k / n_converging, where k counts inward from the endpoint: the
        endpoint itself becomes the target and the correction tapers to zero
        at the edge of the zone.

        Args:
            streamline: Curve points (N, 3), N >= 2
            start: Target for the first point (3,)
            end: Target for the last point (3,)
            fraction: Fraction of points converged at each end

        Returns:
            New curve (N, 3)
        """
        n_total = len(streamline)
        converged = np.array(streamline, dtype=np.float64, copy=True)
        if n_total < 2:
            return converged

        n_converging = min(max(1, int(fraction * n_total)), n_total // 2)
        mu = (np.arange(n_converging) / float(n_converging))[:, np.newaxis]

        head = np.arange(n_converging)
        converged[head] = (mu * converged[head]) + ((1.0 - mu) * np.asarray(start))

        tail = n_total - 1 - np.arange(n_converging)
        converged[tail] = (mu * converged[tail]) + ((1.0 - mu) * np.asarray(end))

        return converged

    @staticmethod
    def bisect_step(
        origin: np.ndarray,
        target: np.ndarray,
        anchor: np.ndarray,
        step_size: float,
        min_iterations: int = 6,
        tolerance: float = 1e-3
    ) -> np.ndarray:
        """
        Find the point on segment [origin, target] at distance step_size from
        anchor, without exceeding it

        Expects origin within step_size of anchor and target beyond it. The
        blend factor is bracketed by squared-distance comparison; the search
        runs at least min_iterations times and continues until the bracket
        spans no more than tolerance * step_size along the segment. The lower
        bracket point is returned, so the result never lies further than
        step_size from anchor.

        Args:
            origin: Segment start (3,)
            target: Segment end (3,)
            anchor: Previous vertex (3,)
            step_size: Desired distance from anchor
            min_iterations: Minimum number of bisection iterations
            tolerance: Bracket width as a fraction of step_size

        Returns:
            New vertex (3,)
        """
        step_sq = step_size * step_size
        segment_length = float(np.linalg.norm(target - origin))
        if segment_length > 0.0:
            max_width = tolerance * step_size / segment_length
        else:
            max_width = 1.0

        lower, mu, upper = 0.0, 0.5, 1.0
        iteration = 0
        while iteration < min_iterations or (
            upper - lower > max_width and iteration < MAX_BISECTION_ITERATIONS
        ):
            p = ((1.0 - mu) * origin) + (mu * target)
            offset = p - anchor
            if np.dot(offset, offset) > step_sq:
                upper = mu
            else:
                lower = mu
            mu = 0.5 * (lower + upper)
            iteration += 1

        return ((1.0 - lower) * origin) + (lower * target)

    @staticmethod
    def _walk_fixed_step(
        streamline: np.ndarray,
        start_index: int,
        direction: int,
        step_size: float,
        min_iterations: int,
        tolerance: float
    ) -> List[np.ndarray]:
        """
        Walk from start_index toward one end of the curve emitting vertices
        step_size apart; the final vertex is the end point itself
        """
        step_sq = step_size * step_size
        boundary = 0 if direction < 0 else len(streamline) - 1

        index = start_index
        origin = streamline[index]
        vertices = [streamline[index].copy()]

        while index != boundary:
            # Skip buffer points that are still within one step of the last vertex
            while index != boundary:
                offset = streamline[index + direction] - vertices[-1]
                if np.dot(offset, offset) >= step_sq:
                    break
                index += direction
                origin = streamline[index]

            if index == boundary:
                vertices.append(streamline[index].copy())
            else:
                # Ideal vertex lies between the current position and the next point
                origin = StreamlineUtils.bisect_step(
                    origin,
                    streamline[index + direction],
                    vertices[-1],
                    step_size,
                    min_iterations=min_iterations,
                    tolerance=tolerance
                )
                vertices.append(origin)

        return vertices

    @staticmethod
    def resample_fixed_step(
        streamline: np.ndarray,
        step_size: float,
        min_iterations: int = 6,
        tolerance: float = 1e-3,
        start_index: Optional[int] = None
    ) -> np.ndarray:
        """
        Resample a curve so consecutive vertices are step_size apart

        Starts from the point nearest the middle of the curve, walks to the
        first point, then from the middle again to the last point. Both end
        points are copied exactly and may lie closer than step_size to their
        neighbour; every other pair of consecutive vertices is within
        tolerance * step_size below step_size.

        Args:
            streamline: Curve points (N, 3)
            step_size: Arc-length step in mm
            min_iterations: Minimum bisection iterations per vertex
            tolerance: Bisection precision as a fraction of step_size
            start_index: Index of the first vertex (default: N // 2)

        Returns:
            Resampled curve (M, 3)
        """
        if not np.isfinite(step_size) or step_size <= 0:
            raise ValueError(f"step_size must be positive, got {step_size}")

        streamline = np.asarray(streamline, dtype=np.float64)
        n_total = len(streamline)
        if n_total < 2:
            return streamline.copy()

        if start_index is None:
            start_index = n_total // 2

        backward = StreamlineUtils._walk_fixed_step(
            streamline, start_index, -1, step_size, min_iterations, tolerance
        )
        forward = StreamlineUtils._walk_fixed_step(
            streamline, start_index, 1, step_size, min_iterations, tolerance
        )

        vertices = backward[::-1] + forward[1:]
        resampled = np.array(vertices)

        logger.debug(
            f"Resampled {n_total} points to {len(resampled)} "
            f"(step={step_size:.3f}mm)"
        )

        return resampled
