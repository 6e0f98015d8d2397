"""
PPCom Line-of-Sight Connectivity Engine
=======================================
Peer-to-peer communication topology for a fleet of simulated agents.

At a fixed rate, one elected node samples the latest pose of every
registered agent, tests line of sight between every pair with a
multi-ray occlusion test against the collision world, and publishes
the resulting range matrix and a LOS/NLOS line-list marker.

Visibility is a binary geometric test with a distance tolerance, not a
radio propagation model.

Modules:
--------
- config: Configuration dataclasses and defaults
- registry: Roster of nodes and self-index resolution
- pose: Pose records and the pose cache
- geometry: Ray occlusion capability and box world
- occlusion: Virtual antenna cross and line-of-sight test
- election: Choice of the evaluating node
- topology: Rate-limited pairwise evaluation
- publisher: Topology message and visualization marker
- transport: In-process topic bus
- plugin: Per-agent wiring of all of the above
- simulation: Fixed-step world loop with agent trajectories
- visualization: matplotlib plots and networkx analysis
- main: CLI runner

Example Usage:
--------------
>>> from ppcom import BoxWorld, BoxObstacle, OcclusionTester
>>> world = BoxWorld([BoxObstacle("wall", (5, 0, 5), (1, 20, 10))])
>>> OcclusionTester(world).is_visible((0, 0, 1), 0.2, (10, 0, 1), 0.2)
False
"""

__version__ = "1.0.0"

# Configuration
from .config import (
    SimulationConfig,
    PPComConfig,
    OcclusionConfig,
    VisualizationConfig,
    ElectionStrategy,
    create_default_config,
    create_small_test_config,
)

from .errors import (
    PPComError,
    ConfigurationError,
    GeometryQueryDegenerate,
)

# Core engine
from .registry import Node, NodeRegistry, parse_roster_line
from .pose import Pose, PoseCache, PoseRecord
from .geometry import (
    RayOcclusionQuery,
    RayHit,
    BoxObstacle,
    BoxWorld,
    load_world_from_sdf,
)
from .occlusion import OcclusionTester, antenna_cross
from .election import (
    RoleElection,
    LowestIdentityElection,
    DesignatedElection,
    create_election,
)
from .topology import (
    TopologyBuilder,
    TopologySnapshot,
    RateLimiter,
    SENTINEL_DISTANCE,
    canonical_pairs,
)
from .publisher import (
    SnapshotPublisher,
    TopologyMessage,
    LineListMarker,
)
from .transport import MessageBus
from .plugin import PPComPlugin

# Simulation
from .simulation import (
    PPComSimulation,
    Agent,
    StaticTrajectory,
    CircularTrajectory,
    WaypointTrajectory,
    create_random_scenario,
)

from .logging_config import setup_logging

__all__ = [
    "__version__",

    # Configuration
    "SimulationConfig",
    "PPComConfig",
    "OcclusionConfig",
    "VisualizationConfig",
    "ElectionStrategy",
    "create_default_config",
    "create_small_test_config",

    # Errors
    "PPComError",
    "ConfigurationError",
    "GeometryQueryDegenerate",

    # Registry and poses
    "Node",
    "NodeRegistry",
    "parse_roster_line",
    "Pose",
    "PoseCache",
    "PoseRecord",

    # Geometry
    "RayOcclusionQuery",
    "RayHit",
    "BoxObstacle",
    "BoxWorld",
    "load_world_from_sdf",

    # Line of sight
    "OcclusionTester",
    "antenna_cross",
    "RoleElection",
    "LowestIdentityElection",
    "DesignatedElection",
    "create_election",
    "TopologyBuilder",
    "TopologySnapshot",
    "RateLimiter",
    "SENTINEL_DISTANCE",
    "canonical_pairs",

    # Output
    "SnapshotPublisher",
    "TopologyMessage",
    "LineListMarker",
    "MessageBus",
    "PPComPlugin",

    # Simulation
    "PPComSimulation",
    "Agent",
    "StaticTrajectory",
    "CircularTrajectory",
    "WaypointTrajectory",
    "create_random_scenario",

    "setup_logging",
]
