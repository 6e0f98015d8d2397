"""
Integration tests for ppcom/simulation.py

Tests trajectories and the fixed-step world loop.
"""

import math

import numpy as np
import pytest

from ppcom.errors import ConfigurationError
from ppcom.geometry import BoxObstacle, BoxWorld
from ppcom.registry import NodeRegistry
from ppcom.simulation import (
    Agent, CircularTrajectory, PPComSimulation, StaticTrajectory,
    WaypointTrajectory, create_random_scenario, yaw_to_quat
)
from ppcom.topology import SENTINEL_DISTANCE
from ppcom.transport import topology_topic


@pytest.fixture
def static_agents():
    """A and B hovering 10 m apart, C never reporting"""
    return [
        Agent("A", StaticTrajectory((0.0, 0.0, 1.0))),
        Agent("B", StaticTrajectory((10.0, 0.0, 1.0))),
        Agent("C", StaticTrajectory((5.0, 5.0, 1.0)), start_time=1e9),
    ]


class TestTrajectories:
    """Tests for trajectory models"""

    def test_static(self):
        traj = StaticTrajectory((1, 2, 3))
        assert np.allclose(traj.position(0.0), (1, 2, 3))
        assert np.allclose(traj.position(100.0), (1, 2, 3))

    def test_circular(self):
        traj = CircularTrajectory((0, 0, 5), radius=2.0, angular_speed=math.pi)
        assert np.allclose(traj.position(0.0), (2, 0, 5))
        assert np.allclose(traj.position(0.5), (0, 2, 5), atol=1e-9)
        assert np.allclose(traj.position(2.0), (2, 0, 5), atol=1e-9)

    def test_waypoints(self):
        traj = WaypointTrajectory([(0, 0, 1), (10, 0, 1)], speed=1.0, loop=False)
        assert np.allclose(traj.position(0.0), (0, 0, 1))
        assert np.allclose(traj.position(4.0), (4, 0, 1))
        assert np.allclose(traj.position(50.0), (10, 0, 1))
        assert traj.yaw(1.0) == pytest.approx(0.0)

    def test_waypoints_loop(self):
        traj = WaypointTrajectory([(0, 0, 1), (10, 0, 1)], speed=1.0, loop=True)
        assert traj.length == pytest.approx(20.0)
        assert np.allclose(traj.position(15.0), (5, 0, 1))
        assert traj.yaw(15.0) == pytest.approx(math.pi)

    def test_waypoints_invalid(self):
        with pytest.raises(ValueError):
            WaypointTrajectory([], speed=1.0)
        with pytest.raises(ValueError):
            WaypointTrajectory([(0, 0, 0)], speed=0.0)

    def test_yaw_to_quat(self):
        x, y, z, w = yaw_to_quat(math.pi / 2)
        assert (x, y) == (0.0, 0.0)
        assert z == pytest.approx(math.sqrt(0.5))
        assert w == pytest.approx(math.sqrt(0.5))

    def test_agent_pose(self):
        agent = Agent("A", StaticTrajectory((1, 2, 3)))
        pose = agent.pose_at(4.0)
        assert pose.position == (1.0, 2.0, 3.0)
        assert pose.stamp == 4.0
        assert not pose.is_sentinel


class TestPPComSimulation:
    """Tests for the world loop"""

    def test_single_evaluator(self, simulation_config, static_agents, empty_world):
        sim = PPComSimulation(simulation_config, static_agents, world=empty_world)
        assert sim.evaluators == ["A"]

    def test_run_publishes_topology(self, simulation_config, static_agents, empty_world):
        sim = PPComSimulation(simulation_config, static_agents, world=empty_world)
        messages = sim.run(30)

        assert len(messages) >= 5
        final = sim.latest_topology
        assert final.node_ids == ["A", "B", "C"]
        assert final.ranges[0] == pytest.approx(10.0)
        assert final.ranges[1] == SENTINEL_DISTANCE
        assert final.ranges[2] == SENTINEL_DISTANCE
        assert final.node_poses[2].is_sentinel

        # Only the manager's topic carries messages
        assert sim.bus.message_counts[topology_topic("A")] == len(messages)
        assert sim.bus.message_counts[topology_topic("B")] == 0

    def test_stamps_respect_rate(self, simulation_config, static_agents, empty_world):
        sim = PPComSimulation(simulation_config, static_agents, world=empty_world)
        stamps = [m.stamp for m in sim.run(100)]
        assert all(b - a > simulation_config.ppcom.evaluation_period
                   for a, b in zip(stamps, stamps[1:]))

    def test_wall_between_agents(self, simulation_config, static_agents, walled_world):
        sim = PPComSimulation(simulation_config, static_agents, world=walled_world)
        sim.run(10)
        assert sim.latest_topology.ranges[0] == SENTINEL_DISTANCE

    def test_late_agent_joins(self, simulation_config, empty_world):
        agents = [
            Agent("A", StaticTrajectory((0.0, 0.0, 1.0))),
            Agent("B", StaticTrajectory((10.0, 0.0, 1.0))),
            Agent("C", StaticTrajectory((0.0, 10.0, 1.0)), start_time=1.0),
        ]
        sim = PPComSimulation(simulation_config, agents, world=empty_world)
        sim.run(10)
        assert sim.latest_topology.ranges[1] == SENTINEL_DISTANCE
        sim.run(30)
        assert sim.latest_topology.ranges[1] == pytest.approx(10.0)

    def test_step_advances_clock(self, simulation_config, static_agents, empty_world):
        sim = PPComSimulation(simulation_config, static_agents, world=empty_world)
        sim.step()
        sim.step()
        assert sim.step_count == 2
        assert sim.time == pytest.approx(2 * simulation_config.dt)

    def test_unknown_agent(self, simulation_config, empty_world):
        agents = [Agent("A", StaticTrajectory((0, 0, 1))),
                  Agent("X", StaticTrajectory((1, 0, 1)))]
        with pytest.raises(ConfigurationError):
            PPComSimulation(simulation_config, agents, world=empty_world)

    def test_no_agents(self, simulation_config, empty_world):
        with pytest.raises(ConfigurationError):
            PPComSimulation(simulation_config, [], world=empty_world)

    def test_moving_agents_change_visibility(self, simulation_config, empty_world):
        """Test B flies behind a building and drops out of line of sight"""
        building = BoxObstacle("building", (10.0, 0.0, 10.0), (4.0, 4.0, 20.0))
        world = BoxWorld([building], ground_plane=True)
        agents = [
            Agent("A", StaticTrajectory((0.0, 0.0, 5.0))),
            Agent("B", WaypointTrajectory([(20.0, 20.0, 5.0), (20.0, 0.0, 5.0)],
                                          speed=10.0, loop=False)),
        ]
        sim = PPComSimulation(simulation_config, agents, world=world)
        sim.run(4)
        assert sim.latest_topology.ranges[0] > 0
        sim.run(60)
        assert sim.latest_topology.ranges[0] == SENTINEL_DISTANCE


class TestRandomScenario:
    """Tests for create_random_scenario"""

    def test_one_agent_per_node(self, registry):
        agents = create_random_scenario(registry, np.random.default_rng(0))
        assert [a.name for a in agents] == registry.names

    def test_deterministic(self, registry):
        a = create_random_scenario(registry, np.random.default_rng(7))
        b = create_random_scenario(registry, np.random.default_rng(7))
        for x, y in zip(a, b):
            assert np.allclose(x.trajectory.position(3.0), y.trajectory.position(3.0))

    def test_altitude_range(self, registry):
        agents = create_random_scenario(registry, np.random.default_rng(1), altitude=(5.0, 6.0))
        for agent in agents:
            assert 5.0 <= agent.trajectory.position(0.0)[2] <= 6.0
