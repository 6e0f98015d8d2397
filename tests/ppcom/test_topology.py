"""
Unit tests for ppcom/topology.py

Tests the rate limiter, election gating and the pairwise matrix.
"""

import numpy as np
import pytest

from ppcom.election import RoleElection
from ppcom.geometry import BoxObstacle, BoxWorld, RayHit, RayOcclusionQuery
from ppcom.occlusion import OcclusionTester
from ppcom.pose import Pose, PoseCache
from ppcom.registry import Node, NodeRegistry
from ppcom.topology import (
    RateLimiter, SENTINEL_DISTANCE, TopologyBuilder, canonical_pairs
)


class CountingQuery(RayOcclusionQuery):
    """Open sky that counts how often it is asked"""

    def __init__(self):
        self.calls = 0

    def cast(self, start, end):
        self.calls += 1
        return RayHit(float("inf"))


class TestCanonicalPairs:
    """Tests for pair enumeration order"""

    def test_order(self):
        assert list(canonical_pairs(4)) == [(0, 1), (0, 2), (0, 3), (1, 2), (1, 3), (2, 3)]

    def test_small_rosters(self):
        assert list(canonical_pairs(0)) == []
        assert list(canonical_pairs(1)) == []


class TestRateLimiter:
    """Tests for RateLimiter"""

    def test_fires_after_period(self):
        limiter = RateLimiter(rate_hz=10.0, start_time=0.0)
        assert not limiter.ready(0.05)
        assert not limiter.ready(0.1)  # strictly more than one period
        assert limiter.ready(0.11)
        assert not limiter.ready(0.15)
        assert limiter.ready(0.22)

    def test_start_time(self):
        limiter = RateLimiter(rate_hz=1.0, start_time=100.0)
        assert not limiter.ready(100.5)
        assert limiter.ready(101.5)

    def test_fast_ticks_fire_at_most_once_per_period(self):
        limiter = RateLimiter(rate_hz=5.0)
        fired = [t for t in np.arange(0.001, 10.0, 0.001) if limiter.ready(t)]
        assert len(fired) <= 10.0 * 5.0
        assert all(b - a > 0.2 for a, b in zip(fired, fired[1:]))


class TestTopologyBuilderGating:
    """Tests for election and rate gating"""

    def test_non_manager_never_evaluates(self, builder_factory, empty_world):
        builder, cache = builder_factory(empty_world, self_index=1)
        cache.update_pose(0, Pose.from_position(0, 0, 1))
        cache.update_pose(1, Pose.from_position(10, 0, 1))

        for t in np.arange(0.0, 100.0, 0.5):
            assert builder.on_tick(t) is None
        assert builder.n_evaluations == 0
        assert builder.last_snapshot is None

    def test_manager_evaluates_after_period(self, builder_factory, empty_world):
        builder, _ = builder_factory(empty_world, self_index=0)
        assert builder.on_tick(0.05) is None
        snapshot = builder.on_tick(0.2)
        assert snapshot is not None
        assert snapshot.stamp == 0.2
        assert builder.n_evaluations == 1

    def test_rate_gating(self, builder_factory, empty_world):
        stamps = []
        builder, _ = builder_factory(empty_world, rate_hz=10.0)
        builder.on_snapshot = lambda s: stamps.append(s.stamp)

        for k in range(1, 101):
            builder.on_tick(k * 0.01)

        assert 8 <= len(stamps) <= 10
        assert all(b - a > 0.1 for a, b in zip(stamps, stamps[1:]))

    def test_custom_election(self, builder_factory, empty_world):
        builder, _ = builder_factory(empty_world, self_index=2)
        builder.election = lambda registry, idx: registry[idx].name == "C"
        assert builder.on_tick(1.0) is not None


class TestTopologyBuilderMatrix:
    """Tests for the pairwise visibility / distance matrix"""

    def test_two_visible_nodes(self, builder_factory, empty_world):
        builder, cache = builder_factory(empty_world)
        cache.update_pose(0, Pose.from_position(0, 0, 1))
        cache.update_pose(1, Pose.from_position(10, 0, 1))

        snapshot = builder.evaluate(1.0)
        a, b = snapshot.index_of("A"), snapshot.index_of("B")
        assert snapshot.is_visible(a, b)
        assert snapshot.distance(a, b) == pytest.approx(10.0, abs=0.1)

    def test_wall_blocks(self, builder_factory, walled_world):
        builder, cache = builder_factory(walled_world)
        cache.update_pose(0, Pose.from_position(0, 0, 1))
        cache.update_pose(1, Pose.from_position(10, 0, 1))

        snapshot = builder.evaluate(1.0)
        assert not snapshot.is_visible(0, 1)
        assert snapshot.distance(0, 1) == SENTINEL_DISTANCE
        assert snapshot.evaluated(0, 1)

    def test_missing_pose_node(self, builder_factory, empty_world):
        builder, cache = builder_factory(empty_world)
        cache.update_pose(0, Pose.from_position(0, 0, 1))
        cache.update_pose(1, Pose.from_position(10, 0, 1))

        snapshot = builder.evaluate(1.0)
        c = snapshot.index_of("C")

        assert snapshot.node_ids == ["A", "B", "C"]
        assert snapshot.node_roles == ["manager", "follower", "follower"]
        assert snapshot.node_poses[c].is_sentinel
        assert not snapshot.pose_received[c]
        for other in (0, 1):
            assert not snapshot.is_visible(c, other)
            assert snapshot.distance(c, other) == SENTINEL_DISTANCE
            assert not snapshot.evaluated(c, other)
        assert snapshot.ranges() == [pytest.approx(10.0), SENTINEL_DISTANCE, SENTINEL_DISTANCE]

    def test_missing_poses_are_not_tested(self, registry):
        query = CountingQuery()
        cache = PoseCache(len(registry))
        cache.update_pose(0, Pose.from_position(0, 0, 1))
        builder = TopologyBuilder(registry, cache, OcclusionTester(query),
                                  RoleElection(), self_index=0, rate_hz=10.0)
        builder.evaluate(1.0)
        assert query.calls == 0

    def test_no_poses_at_all(self, builder_factory, empty_world):
        builder, _ = builder_factory(empty_world)
        snapshot = builder.evaluate(0.5)
        assert np.all(snapshot.distances == SENTINEL_DISTANCE)
        assert not snapshot.visible.any()
        assert all(p.is_sentinel for p in snapshot.node_poses)

    def test_symmetric_and_idempotent(self, rng):
        """Test matrix symmetry and bit-identical re-evaluation"""
        nodes = [Node(f"n{k}", "manager" if k == 0 else "follower", 0.25) for k in range(8)]
        registry = NodeRegistry(nodes)
        obstacles = [
            BoxObstacle(f"b{k}", (float(x), float(y), 6.0), (6.0, 6.0, 12.0))
            for k, (x, y) in enumerate(rng.uniform(-25, 25, (6, 2)))
        ]
        world = BoxWorld(obstacles, ground_plane=True)
        cache = PoseCache(len(registry))
        for k in range(7):  # n7 never reports
            x, y, z = rng.uniform([-30, -30, 1], [30, 30, 15])
            cache.update_pose(k, Pose.from_position(x, y, z))

        builder = TopologyBuilder(registry, cache, OcclusionTester(world),
                                  RoleElection(), self_index=0, rate_hz=10.0)
        first = builder.evaluate(1.0)
        second = builder.evaluate(2.0)

        assert np.array_equal(first.visible, first.visible.T)
        assert np.array_equal(first.distances, first.distances.T)
        assert np.array_equal(first.visible, second.visible)
        assert np.array_equal(first.distances, second.distances)

        # Distances only where visible
        for i, j in canonical_pairs(8):
            assert (first.distances[i, j] >= 0) == first.visible[i, j]
        assert not first.visible[7].any()

    def test_visible_pairs(self, builder_factory, empty_world):
        builder, cache = builder_factory(empty_world)
        for k, x in enumerate((0.0, 5.0, 10.0)):
            cache.update_pose(k, Pose.from_position(x, 0, 1))
        snapshot = builder.evaluate(1.0)
        assert snapshot.visible_pairs() == [(0, 1), (0, 2), (1, 2)]
        assert snapshot.ranges() == pytest.approx([5.0, 10.0, 5.0])

    def test_snapshot_keeps_poses_at_evaluation_time(self, builder_factory, empty_world):
        builder, cache = builder_factory(empty_world)
        cache.update_pose(0, Pose.from_position(0, 0, 1))
        snapshot = builder.evaluate(1.0)
        cache.update_pose(0, Pose.from_position(99, 0, 1))
        assert snapshot.node_poses[0].position == (0.0, 0.0, 1.0)
