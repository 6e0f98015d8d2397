"""
PPCom Plugin
============
One instance per simulated agent, wiring the roster, pose subscriptions,
occlusion tester, topology builder and publisher together.

Every agent loads the plugin with its own ppcomId; the election decides
which instance actually evaluates and publishes.
"""

import logging
from typing import Optional

from .config import OcclusionConfig, PPComConfig, VisualizationConfig
from .election import create_election
from .errors import ConfigurationError
from .geometry import RayOcclusionQuery
from .occlusion import OcclusionTester
from .pose import Pose, PoseCache
from .publisher import SnapshotPublisher
from .registry import NodeRegistry
from .topology import TopologyBuilder, TopologySnapshot
from .transport import MessageBus, odometry_topic

logger = logging.getLogger(__name__)


class PPComPlugin:
    """Line-of-sight connectivity plugin of a single agent"""

    def __init__(self):
        self.config: Optional[PPComConfig] = None
        self.registry: Optional[NodeRegistry] = None
        self.pose_cache: Optional[PoseCache] = None
        self.builder: Optional[TopologyBuilder] = None
        self.publisher: Optional[SnapshotPublisher] = None
        self.self_index = -1
        self.loaded = False

    def load(self,
             config: PPComConfig,
             bus: MessageBus,
             ray_query: RayOcclusionQuery,
             start_time: float = 0.0,
             occlusion: Optional[OcclusionConfig] = None,
             visualization: Optional[VisualizationConfig] = None) -> 'PPComPlugin':
        """
        Read parameters and the roster, then connect to the bus.

        Raises:
            ConfigurationError: on any missing parameter or a roster that
                does not declare this instance. Nothing is subscribed in
                that case.
        """
        try:
            config.validate()
            registry = NodeRegistry.load(config.roster_path, config.self_identity)
            self_index = registry.resolve_self_index(config.self_identity)
            election = create_election(config, registry)
        except ConfigurationError as e:
            logger.critical("PPCom plugin for %r failed to load: %s",
                            config.self_identity or "<unset>", e)
            raise

        self.config = config
        self.registry = registry
        self.self_index = self_index

        logger.info("PPCom Id %s is set. Linkname %s. Config %s!",
                    config.self_identity, config.self_link_name, config.roster_path)

        self.pose_cache = PoseCache(len(registry))
        for idx, node in enumerate(registry):
            bus.subscribe(odometry_topic(node.name), self._make_pose_callback(idx))

        self.publisher = SnapshotPublisher(bus, config.self_identity,
                                           config.output_topic, visualization)
        self.builder = TopologyBuilder(
            registry=registry,
            pose_cache=self.pose_cache,
            tester=OcclusionTester(ray_query, occlusion),
            election=election,
            self_index=self_index,
            rate_hz=config.evaluation_rate_hz,
            start_time=start_time,
            on_snapshot=self.publisher.publish,
        )
        self.loaded = True
        return self

    def _make_pose_callback(self, node_idx: int):
        def on_pose(pose: Pose):
            self.pose_cache.update_pose(node_idx, pose)
        return on_pose

    def on_update(self, sim_time: float) -> Optional[TopologySnapshot]:
        """World update hook, called once per simulation step"""
        if not self.loaded:
            return None
        return self.builder.on_tick(sim_time)

    @property
    def identity(self) -> str:
        return self.config.self_identity if self.config else ""

    @property
    def is_evaluator(self) -> bool:
        return self.loaded and self.builder.is_evaluator()
