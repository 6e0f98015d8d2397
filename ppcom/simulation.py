"""
PPCom Simulation Driver
=======================
Fixed-step world loop that moves agents along trajectories, feeds their
odometry onto the bus and gives every agent's plugin its update tick.

Each step:
1. advance the simulated clock by dt
2. publish one odometry sample per active agent
3. call on_update of every plugin, in roster order
"""

import dataclasses
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np

from .config import SimulationConfig
from .errors import ConfigurationError
from .geometry import BoxWorld, RayOcclusionQuery, load_world_from_sdf
from .plugin import PPComPlugin
from .pose import Pose
from .publisher import TopologyMessage
from .registry import NodeRegistry
from .transport import MessageBus, odometry_topic, topology_topic

logger = logging.getLogger(__name__)


def yaw_to_quat(yaw: float):
    """Quaternion (x, y, z, w) of a pure rotation about Z"""
    return (0.0, 0.0, float(math.sin(yaw / 2.0)), float(math.cos(yaw / 2.0)))


# =============================================================================
# TRAJECTORIES
# =============================================================================

class Trajectory(ABC):
    """Position and heading of an agent as a function of time"""

    @abstractmethod
    def position(self, t: float) -> np.ndarray:
        raise NotImplementedError

    def yaw(self, t: float) -> float:
        return 0.0


class StaticTrajectory(Trajectory):
    """Hovering in place"""

    def __init__(self, position: Sequence[float]):
        self._position = np.asarray(position, dtype=np.float64)

    def position(self, t: float) -> np.ndarray:
        return self._position.copy()


class CircularTrajectory(Trajectory):
    """Constant-altitude orbit around a center point"""

    def __init__(self, center: Sequence[float], radius: float,
                 angular_speed: float, phase: float = 0.0):
        self.center = np.asarray(center, dtype=np.float64)
        self.radius = float(radius)
        self.angular_speed = float(angular_speed)
        self.phase = float(phase)

    def position(self, t: float) -> np.ndarray:
        a = self.phase + self.angular_speed * t
        return self.center + np.array([self.radius * math.cos(a),
                                       self.radius * math.sin(a), 0.0])

    def yaw(self, t: float) -> float:
        # Tangent to the circle, in the direction of travel
        a = self.phase + self.angular_speed * t
        return a + math.copysign(math.pi / 2.0, self.angular_speed or 1.0)


class WaypointTrajectory(Trajectory):
    """Piecewise-linear path through waypoints at constant speed"""

    def __init__(self, waypoints: Sequence[Sequence[float]], speed: float, loop: bool = True):
        self.waypoints = np.asarray(waypoints, dtype=np.float64)
        if self.waypoints.ndim != 2 or self.waypoints.shape[1] != 3 or len(self.waypoints) == 0:
            raise ValueError("waypoints must be a non-empty (K, 3) sequence")
        if speed <= 0:
            raise ValueError("speed must be positive")
        self.speed = float(speed)
        self.loop = loop

        path = self.waypoints
        if loop and len(path) > 1:
            path = np.vstack([path, path[:1]])
        self._path = path
        seg_lengths = np.linalg.norm(np.diff(path, axis=0), axis=1)
        self._cumulative = np.concatenate([[0.0], np.cumsum(seg_lengths)])
        self.length = float(self._cumulative[-1])

    def _segment(self, t: float):
        s = self.speed * t
        if self.length == 0.0:
            return 0, 0.0
        if self.loop:
            s = s % self.length
        else:
            s = min(s, self.length)
        k = int(np.searchsorted(self._cumulative, s, side="right") - 1)
        k = min(k, len(self._path) - 2)
        seg = self._cumulative[k + 1] - self._cumulative[k]
        frac = 0.0 if seg == 0 else (s - self._cumulative[k]) / seg
        return k, frac

    def position(self, t: float) -> np.ndarray:
        if len(self._path) == 1:
            return self._path[0].copy()
        k, frac = self._segment(t)
        return self._path[k] + frac * (self._path[k + 1] - self._path[k])

    def yaw(self, t: float) -> float:
        if len(self._path) == 1:
            return 0.0
        k, _ = self._segment(t)
        d = self._path[k + 1] - self._path[k]
        return math.atan2(d[1], d[0])


@dataclass
class Agent:
    """A simulated vehicle publishing ground-truth odometry"""
    name: str
    trajectory: Trajectory
    start_time: float = 0.0  # no odometry is published before this

    def pose_at(self, t: float) -> Pose:
        p = self.trajectory.position(t)
        return Pose(position=(float(p[0]), float(p[1]), float(p[2])),
                    orientation=yaw_to_quat(self.trajectory.yaw(t)),
                    stamp=float(t))


# =============================================================================
# WORLD LOOP
# =============================================================================

def create_world(config: SimulationConfig) -> BoxWorld:
    """Collision world from the configured SDF file, if any"""
    obstacles = load_world_from_sdf(config.world_path) if config.world_path else []
    return BoxWorld(obstacles, ground_plane=config.ground_plane)


class PPComSimulation:
    """
    Runs one plugin per agent against a shared bus and collision world.
    """

    def __init__(self, config: SimulationConfig, agents: List[Agent],
                 world: Optional[RayOcclusionQuery] = None,
                 start_time: float = 0.0):
        self.agents = list(agents)
        if not self.agents:
            raise ConfigurationError("A simulation needs at least one agent")

        # Plugins get their own identity below; the base identity only has
        # to name some roster node for validation
        base = dataclasses.replace(
            config.ppcom, self_identity=config.ppcom.self_identity or self.agents[0].name
        )
        config = dataclasses.replace(config, ppcom=base)
        config.validate()
        self.config = config

        self.world = world if world is not None else create_world(config)
        self.bus = MessageBus()
        self.time = float(start_time)
        self.step_count = 0

        self.registry = NodeRegistry.load(base.roster_path, base.self_identity)
        for agent in self.agents:
            if agent.name not in self.registry.names:
                raise ConfigurationError(f"Agent {agent.name!r} is not declared in the roster")

        # One plugin per agent, each configured with its own identity
        self.plugins: Dict[str, PPComPlugin] = {}
        for agent in self.agents:
            plugin_config = dataclasses.replace(config.ppcom, self_identity=agent.name)
            self.plugins[agent.name] = PPComPlugin().load(
                plugin_config, self.bus, self.world, start_time=self.time,
                occlusion=config.occlusion, visualization=config.visualization,
            )

        self.topology_messages: List[TopologyMessage] = []
        for name in self.plugins:
            self.bus.subscribe(topology_topic(name, config.ppcom.output_topic),
                               self.topology_messages.append)

    def step(self) -> List[TopologyMessage]:
        """Advance one fixed step; returns topology messages published during it"""
        n_before = len(self.topology_messages)
        self.time += self.config.dt
        self.step_count += 1

        for agent in self.agents:
            if self.time >= agent.start_time:
                self.bus.publish(odometry_topic(agent.name), agent.pose_at(self.time))

        for name in self.registry.names:
            plugin = self.plugins.get(name)
            if plugin is not None:
                plugin.on_update(self.time)

        return self.topology_messages[n_before:]

    def run(self, n_steps: int) -> List[TopologyMessage]:
        """Run n_steps and return every topology message published"""
        n_before = len(self.topology_messages)
        for _ in range(n_steps):
            self.step()
        published = self.topology_messages[n_before:]
        logger.info("Simulated %d steps (t=%.2fs), %d topology messages",
                    n_steps, self.time, len(published))
        return published

    @property
    def evaluators(self) -> List[str]:
        return [name for name, plugin in self.plugins.items() if plugin.is_evaluator]

    @property
    def latest_topology(self) -> Optional[TopologyMessage]:
        return self.topology_messages[-1] if self.topology_messages else None


def create_random_scenario(registry: NodeRegistry,
                           rng: np.random.Generator,
                           extent: float = 50.0,
                           altitude: Sequence[float] = (2.0, 15.0),
                           speed: float = 2.0) -> List[Agent]:
    """
    Orbiting agents for every roster node.

    Orbit centers are drawn uniformly in [-extent, extent]^2 and altitudes
    in the given range.
    """
    agents = []
    lo, hi = float(altitude[0]), float(altitude[1])
    for node in registry:
        center = (rng.uniform(-extent, extent), rng.uniform(-extent, extent),
                  rng.uniform(lo, hi))
        radius = rng.uniform(2.0, extent / 4.0)
        direction = 1.0 if rng.random() < 0.5 else -1.0
        agents.append(Agent(
            name=node.name,
            trajectory=CircularTrajectory(center, radius, direction * speed / radius,
                                          phase=rng.uniform(0.0, 2.0 * math.pi)),
        ))
    return agents
