"""
Pytest configuration and shared fixtures for PPCom tests.
"""

import sys
from pathlib import Path

import matplotlib
import numpy as np
import pytest

matplotlib.use("Agg")

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests"""
    return np.random.default_rng(42)


@pytest.fixture
def write_roster(tmp_path):
    """Factory writing roster lines to a temporary file"""
    def _write(lines, name="ppcom_network.txt"):
        path = tmp_path / name
        path.write_text("\n".join(lines) + "\n")
        return path
    return _write


@pytest.fixture
def two_node_roster(write_roster):
    """Manager A and follower B"""
    return write_roster(["A,manager,0.2", "B,follower,0.2"])


@pytest.fixture
def three_node_roster(write_roster):
    """Manager A and followers B, C"""
    return write_roster([
        "# test network",
        "A, manager, 0.2",
        "B, follower, 0.2",
        "",
        "C, follower, 0.2",
    ])


@pytest.fixture
def registry(three_node_roster):
    from ppcom.registry import NodeRegistry
    return NodeRegistry.load(three_node_roster, "A")


@pytest.fixture
def empty_world():
    """No obstacles, no ground"""
    from ppcom.geometry import BoxWorld
    return BoxWorld()


@pytest.fixture
def walled_world():
    """Opaque wall at x = 5 spanning the full height between A and B"""
    from ppcom.geometry import BoxWorld, BoxObstacle
    wall = BoxObstacle(name="wall", center=(5.0, 0.0, 25.0), size=(1.0, 40.0, 50.0))
    return BoxWorld([wall], ground_plane=True)


@pytest.fixture
def occlusion_config():
    from ppcom.config import OcclusionConfig
    return OcclusionConfig()


@pytest.fixture
def ppcom_config(three_node_roster):
    """Valid engine configuration for node A"""
    from ppcom.config import PPComConfig
    return PPComConfig(
        self_identity="A",
        self_link_name="base_link",
        roster_path=str(three_node_roster),
        evaluation_rate_hz=10.0,
    )


@pytest.fixture
def simulation_config(three_node_roster):
    from ppcom.config import create_small_test_config
    return create_small_test_config(str(three_node_roster), "A")


@pytest.fixture
def builder_factory(registry):
    """Factory for topology builders over the three-node registry"""
    from ppcom.election import RoleElection
    from ppcom.occlusion import OcclusionTester
    from ppcom.pose import PoseCache
    from ppcom.topology import TopologyBuilder

    def _make(world, self_index=0, rate_hz=10.0, start_time=0.0, reg=None):
        reg = reg or registry
        cache = PoseCache(len(reg))
        builder = TopologyBuilder(
            registry=reg,
            pose_cache=cache,
            tester=OcclusionTester(world),
            election=RoleElection("manager"),
            self_index=self_index,
            rate_hz=rate_hz,
            start_time=start_time,
        )
        return builder, cache
    return _make
