"""
PPCom Configuration
===================
Configuration dataclasses for the line-of-sight connectivity engine,
the occlusion tester, the visualization marker and the simulation driver.

Parameter names follow the plugin parameters of the original deployment:
ppcomId, linkName, ppcomConfig, ppcomHz, ppcomTopic, robotNamespace.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from .errors import ConfigurationError


# Color as (r, g, b, a)
RGBA = Tuple[float, float, float, float]


class ElectionStrategy(Enum):
    """How the single evaluating node of a roster is chosen"""
    ROLE = "role"  # node whose role equals manager_role
    LOWEST_IDENTITY = "lowest_identity"  # lexicographically smallest name
    DESIGNATED = "designated"  # explicitly named node


@dataclass
class PPComConfig:
    """Per-instance connectivity engine configuration"""
    self_identity: str = ""  # ppcomId
    self_link_name: str = ""  # linkName
    roster_path: str = ""  # ppcomConfig
    evaluation_rate_hz: float = 10.0  # ppcomHz
    output_topic: str = "ppcom"  # ppcomTopic
    namespace: str = ""  # robotNamespace

    # Evaluator election
    election: ElectionStrategy = ElectionStrategy.ROLE
    manager_role: str = "manager"
    designated_identity: Optional[str] = None

    def validate(self) -> bool:
        """Raise ConfigurationError for any absent or out-of-range parameter"""
        if not self.self_identity:
            raise ConfigurationError("Please specify a ppcomId (self_identity).")
        if not self.self_link_name:
            raise ConfigurationError("Please specify a linkName (self_link_name).")
        if not self.roster_path:
            raise ConfigurationError("Please specify ppcomConfig (roster_path).")
        rate = self.evaluation_rate_hz
        if not (isinstance(rate, (int, float)) and math.isfinite(rate) and rate > 0):
            raise ConfigurationError(
                f"ppcomHz must be a finite positive number, got {self.evaluation_rate_hz}"
            )
        if not self.output_topic:
            raise ConfigurationError("ppcomTopic must not be empty.")
        if self.election == ElectionStrategy.DESIGNATED and not self.designated_identity:
            raise ConfigurationError(
                "Designated election requires designated_identity."
            )
        return True

    @property
    def evaluation_period(self) -> float:
        return 1.0 / self.evaluation_rate_hz


@dataclass
class OcclusionConfig:
    """Multi-ray occlusion test parameters"""
    distance_tolerance: float = 0.1  # ray may stop this short of the target
    min_antenna_altitude: float = 0.1  # vertical antenna candidates stay above ground

    def validate(self) -> bool:
        if self.distance_tolerance < 0:
            raise ConfigurationError("distance_tolerance must be non-negative")
        return True


@dataclass
class VisualizationConfig:
    """Line-list marker published once per evaluation cycle"""
    frame_id: str = "world"
    namespace: str = "loop_marker"
    marker_id: int = 0
    scale: float = 0.15

    color: RGBA = (0.0, 1.0, 1.0, 1.0)
    los_color: RGBA = (0.0, 1.0, 0.5, 1.0)  # spring green
    nlos_color: RGBA = (1.0, 0.65, 0.0, 1.0)  # orange


@dataclass
class SimulationConfig:
    """Master configuration combining all subsystems"""
    ppcom: PPComConfig = field(default_factory=PPComConfig)
    occlusion: OcclusionConfig = field(default_factory=OcclusionConfig)
    visualization: VisualizationConfig = field(default_factory=VisualizationConfig)

    # Physics loop
    dt: float = 0.01  # fixed simulation step in seconds
    world_path: Optional[str] = None  # SDF world with box obstacles
    ground_plane: bool = True

    # Scenario
    scenario_name: str = "default"
    seed: int = 42

    def validate(self) -> bool:
        """Validate configuration consistency"""
        if self.dt <= 0:
            raise ConfigurationError(f"Simulation step must be positive, got {self.dt}")
        self.ppcom.validate()
        self.occlusion.validate()
        return True


def create_default_config() -> SimulationConfig:
    """Create default configuration"""
    return SimulationConfig()


def create_small_test_config(roster_path: str = "", self_identity: str = "") -> SimulationConfig:
    """Create small configuration for testing"""
    config = SimulationConfig()
    config.ppcom.roster_path = roster_path
    config.ppcom.self_identity = self_identity
    config.ppcom.self_link_name = "base_link"
    config.ppcom.evaluation_rate_hz = 10.0
    config.dt = 0.05
    config.ground_plane = False
    config.scenario_name = "small"
    return config
