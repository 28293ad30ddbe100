"""
Unit tests for connectome edge exemplars
"""

import threading
import pytest
import numpy as np
from tractexemplar.config import ExemplarConfig
from tractexemplar.connectome.exemplar import Exemplar, ExemplarError
from tractexemplar.connectome.streamline import Streamline
from tractexemplar.tractography.streamline_utils import StreamlineUtils


N_POINTS = 20
NODES = (2, 7)
NODE_COMS = ((0.0, 0.0, 0.0), (10.0, 0.0, 0.0))


def arc_points(n_points, bulge=3.0, offset=0.0):
    """Curved path from near (0,0,0) to near (10,0,0)"""
    s = np.linspace(0.0, 1.0, n_points)
    return np.column_stack([
        10.0 * s,
        bulge * np.sin(np.pi * s) + offset,
        0.5 * offset * s
    ])


def integer_points(n_points, seed):
    """Random integer-valued path; index resampling of these is exact"""
    rng = np.random.RandomState(seed)
    return np.cumsum(rng.randint(-2, 3, size=(n_points, 3)), axis=0).astype(np.float64)


class TestExemplarConstruction:
    """Test construction and accessors"""

    def test_initial_state(self):
        exemplar = Exemplar(N_POINTS, NODES, NODE_COMS)

        assert len(exemplar) == N_POINTS
        assert exemplar.nodes == NODES
        assert exemplar.get_nodes() == NODES
        assert exemplar.weight == 0.0
        assert not exemplar.is_finalized
        assert not exemplar.is_diagonal()
        np.testing.assert_array_equal(exemplar.points, np.zeros((N_POINTS, 3)))
        np.testing.assert_array_equal(exemplar.get_node_coms(), NODE_COMS)

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            Exemplar(1, NODES, NODE_COMS)
        with pytest.raises(ValueError):
            Exemplar(N_POINTS, NODES, ((0.0, 0.0), (1.0, 1.0)))
        with pytest.raises(ValueError):
            Exemplar(N_POINTS, (1, 2, 3), NODE_COMS)

    def test_points_read_only(self):
        exemplar = Exemplar(N_POINTS, NODES, NODE_COMS)
        with pytest.raises(ValueError):
            exemplar.points[0] = 1.0
        with pytest.raises(ValueError):
            exemplar.node_coms[0] = 1.0


class TestExemplarAccumulation:
    """Test the weighted running sum"""

    def test_weighted_sum(self):
        """Contributions are scaled by weight and not normalized"""
        points = integer_points(N_POINTS + 1, seed=1)
        exemplar = Exemplar(N_POINTS, NODES, NODE_COMS)

        exemplar.add(Streamline(points, weight=2.0, nodes=NODES))

        np.testing.assert_array_equal(exemplar.points, 2.0 * points[:N_POINTS])
        assert exemplar.weight == 2.0

    def test_reversed_node_pair(self):
        """Swapped node pair contributes the reversed geometry"""
        points = integer_points(N_POINTS + 1, seed=2)

        reversed_pair = Exemplar(N_POINTS, NODES, NODE_COMS)
        reversed_pair.add(Streamline(points, weight=1.5, nodes=(7, 2)))

        pre_reversed = Exemplar(N_POINTS, NODES, NODE_COMS)
        pre_reversed.add(Streamline(points[::-1], weight=1.5, nodes=(2, 7)))

        np.testing.assert_array_equal(reversed_pair.points, pre_reversed.points)
        assert reversed_pair.weight == pre_reversed.weight

    def test_reversed_node_pair_interpolated(self):
        """Reversal also holds when points do not align with the buffer"""
        points = arc_points(13)

        reversed_pair = Exemplar(N_POINTS, NODES, NODE_COMS)
        reversed_pair.add(Streamline(points, nodes=(7, 2)))

        pre_reversed = Exemplar(N_POINTS, NODES, NODE_COMS)
        pre_reversed.add(Streamline(points[::-1], nodes=(2, 7)))

        np.testing.assert_allclose(reversed_pair.points, pre_reversed.points, atol=1e-12)

    def test_foreign_node_pair(self):
        """A streamline of another edge is rejected without side effects"""
        exemplar = Exemplar(N_POINTS, NODES, NODE_COMS)

        with pytest.raises(ExemplarError):
            exemplar.add(Streamline(arc_points(10), nodes=(2, 8)))
        with pytest.raises(ExemplarError):
            exemplar.add(Streamline(arc_points(10), nodes=(7, 7)))

        assert exemplar.weight == 0.0
        np.testing.assert_array_equal(exemplar.points, np.zeros((N_POINTS, 3)))

    def test_add_after_finalize(self):
        exemplar = Exemplar(N_POINTS, NODES, NODE_COMS)
        exemplar.add(Streamline(arc_points(30), nodes=NODES))
        exemplar.finalize(1.0)

        with pytest.raises(ExemplarError):
            exemplar.add(Streamline(arc_points(30), nodes=NODES))

    def test_order_invariance(self):
        """A then B equals B then A"""
        a = Streamline(arc_points(17, bulge=2.0), weight=0.7, nodes=(2, 7))
        b = Streamline(arc_points(31, bulge=-1.0, offset=0.5)[::-1], weight=1.3, nodes=(7, 2))

        ab = Exemplar(N_POINTS, NODES, NODE_COMS)
        ab.add(a)
        ab.add(b)
        ab.finalize(0.5)

        ba = Exemplar(N_POINTS, NODES, NODE_COMS)
        ba.add(b)
        ba.add(a)
        ba.finalize(0.5)

        assert ab.points.shape == ba.points.shape
        np.testing.assert_allclose(ab.points, ba.points)
        assert ab.weight == pytest.approx(ba.weight)


class TestExemplarFinalization:
    """Test normalization, endpoint convergence and resampling"""

    def test_zero_weight_edge(self):
        """No contributions gives the straight line between node centres"""
        exemplar = Exemplar(N_POINTS, NODES, NODE_COMS)

        exemplar.finalize(1.0)

        assert exemplar.is_finalized
        np.testing.assert_array_equal(exemplar.points, [[0, 0, 0], [10, 0, 0]])

    def test_self_edge(self):
        """Self-edges collapse onto the node centre regardless of weight"""
        com = (4.0, -2.0, 1.0)
        exemplar = Exemplar(N_POINTS, (5, 5), (com, com))
        assert exemplar.is_diagonal()

        exemplar.add(Streamline(arc_points(25), weight=3.0, nodes=(5, 5)))
        exemplar.finalize(1.0)

        assert exemplar.is_finalized
        np.testing.assert_array_equal(exemplar.points, [com, com])
        assert exemplar.weight == 3.0

    def test_finalize_twice(self):
        exemplar = Exemplar(N_POINTS, NODES, NODE_COMS)
        exemplar.add(Streamline(arc_points(30), nodes=NODES))
        exemplar.finalize(1.0)

        with pytest.raises(ExemplarError):
            exemplar.finalize(1.0)

    def test_finalize_twice_degenerate(self):
        exemplar = Exemplar(N_POINTS, NODES, NODE_COMS)
        exemplar.finalize(1.0)

        with pytest.raises(ExemplarError):
            exemplar.finalize(1.0)

    def test_invalid_step_size(self):
        exemplar = Exemplar(N_POINTS, NODES, NODE_COMS)
        with pytest.raises(ValueError):
            exemplar.finalize(0.0)
        assert not exemplar.is_finalized

    @pytest.mark.parametrize("step_size", [float('nan'), float('inf'), -1.0])
    def test_non_finite_step_size(self, step_size):
        """Rejected step sizes leave the exemplar open for a valid finalize"""
        exemplar = Exemplar(N_POINTS, NODES, NODE_COMS)
        exemplar.add(Streamline(arc_points(30), nodes=NODES))

        with pytest.raises(ValueError):
            exemplar.finalize(step_size)

        assert not exemplar.is_finalized
        assert len(exemplar) == N_POINTS
        exemplar.finalize(1.0)
        assert exemplar.is_finalized

    def test_endpoint_anchoring(self):
        """Finalized curve starts and ends exactly at the node centres"""
        exemplar = Exemplar(N_POINTS, NODES, NODE_COMS)
        exemplar.add(Streamline(arc_points(40, offset=1.0) + 0.7, nodes=NODES))
        exemplar.add(Streamline(arc_points(12, bulge=-2.0)[::-1] - 0.3, nodes=(7, 2)))

        exemplar.finalize(0.5)

        np.testing.assert_array_equal(exemplar.points[0], NODE_COMS[0])
        np.testing.assert_array_equal(exemplar.points[-1], NODE_COMS[1])

    def test_step_size_bound(self):
        """Interior vertex spacing equals the step size within tolerance"""
        step = 0.5
        config = ExemplarConfig(step_tolerance=1e-3)
        exemplar = Exemplar(N_POINTS, NODES, NODE_COMS, config=config)
        for seed, bulge in enumerate([1.0, 2.5, 4.0]):
            exemplar.add(Streamline(arc_points(15 + 7 * seed, bulge=bulge), nodes=NODES))

        exemplar.finalize(step)

        steps = StreamlineUtils.compute_segment_lengths(exemplar.points)
        assert len(exemplar) > 10
        assert np.all(steps[1:-1] <= step + 1e-9)
        assert np.all(steps[1:-1] >= step * (1 - 1.5e-3))
        assert np.all(steps[[0, -1]] <= step + 1e-9)

    def test_weight_scale_invariance(self):
        """Scaling all weights leaves the finalized curve unchanged"""
        geometries = [arc_points(18, bulge=1.0), arc_points(26, bulge=3.0, offset=0.4)]
        weights = [1.0, 3.0]

        curves = []
        for scale in (1.0, 4.0):
            exemplar = Exemplar(N_POINTS, NODES, NODE_COMS)
            for points, weight in zip(geometries, weights):
                exemplar.add(Streamline(points, weight=weight * scale, nodes=NODES))
            exemplar.finalize(0.5)
            curves.append(np.array(exemplar.points))

        assert curves[0].shape == curves[1].shape
        np.testing.assert_allclose(curves[0], curves[1])

    def test_minimum_size_exemplar(self):
        """Two-point buffers still converge and resample"""
        exemplar = Exemplar(2, NODES, NODE_COMS)
        exemplar.add(Streamline(arc_points(9), nodes=NODES))

        exemplar.finalize(3.0)

        np.testing.assert_array_equal(exemplar.points[0], NODE_COMS[0])
        np.testing.assert_array_equal(exemplar.points[-1], NODE_COMS[1])
        assert len(exemplar) == 5

    def test_copy_is_independent(self):
        exemplar = Exemplar(N_POINTS, NODES, NODE_COMS)
        exemplar.add(Streamline(arc_points(30), nodes=NODES))

        duplicate = exemplar.copy()
        duplicate.add(Streamline(arc_points(30), nodes=NODES))
        exemplar.finalize(1.0)

        assert duplicate.weight == 2.0
        assert not duplicate.is_finalized
        assert len(duplicate) == N_POINTS


class TestExemplarConcurrency:
    """Test concurrent accumulation"""

    def test_threads_match_serial(self):
        """Concurrent add() calls match serial accumulation"""
        n_threads = 16
        streamlines = [
            Streamline(
                integer_points(N_POINTS + 1, seed=10 + i),
                weight=1.0,
                nodes=NODES if i % 2 == 0 else (7, 2)
            )
            for i in range(n_threads)
        ]

        serial = Exemplar(N_POINTS, NODES, NODE_COMS)
        for streamline in streamlines:
            serial.add(streamline)

        shared = Exemplar(N_POINTS, NODES, NODE_COMS)
        barrier = threading.Barrier(n_threads)

        def worker(streamline):
            barrier.wait()
            shared.add(streamline)

        threads = [threading.Thread(target=worker, args=(s,)) for s in streamlines]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert shared.weight == serial.weight == float(n_threads)
        np.testing.assert_array_equal(shared.points, serial.points)

        serial.finalize(0.75)
        shared.finalize(0.75)
        np.testing.assert_array_equal(shared.points, serial.points)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
