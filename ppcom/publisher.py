"""
PPCom Snapshot Publisher
========================
Turns a topology snapshot into the outbound topology message and the
line-list visualization marker, and publishes both on the bus.

Topology message:
- frame, stamp
- node_ids, node_roles, node_poses in roster order (sentinel poses included)
- ranges: one distance per pair in canonical order, -1 if not visible

Marker: one segment per pair whose poses are both known, colored LOS or
NLOS. Pairs with a missing pose draw nothing.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .config import RGBA, VisualizationConfig
from .pose import Pose
from .topology import TopologySnapshot, canonical_pairs
from .transport import MessageBus, marker_topic, topology_topic

logger = logging.getLogger(__name__)

Point = Tuple[float, float, float]


@dataclass
class TopologyMessage:
    """Payload published once per evaluation cycle"""
    frame_id: str
    stamp: float
    node_ids: List[str]
    node_roles: List[str]
    node_poses: List[Pose]
    ranges: List[float]

    @classmethod
    def from_snapshot(cls, snapshot: TopologySnapshot) -> 'TopologyMessage':
        return cls(
            frame_id=snapshot.frame_id,
            stamp=snapshot.stamp,
            node_ids=list(snapshot.node_ids),
            node_roles=list(snapshot.node_roles),
            node_poses=list(snapshot.node_poses),
            ranges=snapshot.ranges(),
        )

    def range_between(self, i: int, j: int) -> float:
        """Look up a pair's range in the flat canonical list"""
        if i == j:
            raise ValueError("A node has no range to itself")
        if i > j:
            i, j = j, i
        n = len(self.node_ids)
        # Pairs preceding row i, then offset within the row
        k = i * n - i * (i + 1) // 2 + (j - i - 1)
        return self.ranges[k]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "header": {"frame_id": self.frame_id, "stamp": self.stamp},
            "node_id": list(self.node_ids),
            "node_role": list(self.node_roles),
            "node_odom": [pose.to_dict() for pose in self.node_poses],
            "range": list(self.ranges),
        }


@dataclass
class LineListMarker:
    """Line-list visualization marker, reused across cycles"""
    frame_id: str = "world"
    namespace: str = "loop_marker"
    marker_id: int = 0
    marker_type: str = "LINE_LIST"
    action: str = "ADD"
    orientation: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 1.0)
    scale: Tuple[float, float, float] = (0.15, 0.15, 0.15)
    color: RGBA = (0.0, 1.0, 1.0, 1.0)
    lifetime: float = 0.0  # 0 means forever
    stamp: float = 0.0

    points: List[Point] = field(default_factory=list)
    colors: List[RGBA] = field(default_factory=list)

    def clear(self):
        self.points.clear()
        self.colors.clear()

    def add_segment(self, a: Point, b: Point, color: RGBA):
        self.points.append(a)
        self.colors.append(color)
        self.points.append(b)
        self.colors.append(color)

    @property
    def n_segments(self) -> int:
        return len(self.points) // 2

    def segments(self) -> List[Tuple[Point, Point, RGBA]]:
        return [(self.points[k], self.points[k + 1], self.colors[k])
                for k in range(0, len(self.points), 2)]


class SnapshotPublisher:
    """
    Publishes topology and marker for one evaluating node.

    The marker is created once here and its point buffers are cleared and
    refilled on every publish.
    """

    def __init__(self, bus: MessageBus, self_identity: str,
                 output_topic: str = "ppcom",
                 config: Optional[VisualizationConfig] = None):
        self.bus = bus
        self.config = config or VisualizationConfig()

        self.topology_topic = bus.advertise(topology_topic(self_identity, output_topic))
        self.marker_topic = bus.advertise(marker_topic(self_identity))

        cfg = self.config
        self.marker = LineListMarker(
            frame_id=cfg.frame_id,
            namespace=cfg.namespace,
            marker_id=cfg.marker_id,
            scale=(cfg.scale, cfg.scale, cfg.scale),
            color=cfg.color,
        )
        self.n_published = 0

    def build_marker(self, snapshot: TopologySnapshot) -> LineListMarker:
        marker = self.marker
        marker.clear()
        marker.stamp = snapshot.stamp
        for i, j in canonical_pairs(snapshot.n_nodes):
            if snapshot.is_visible(i, j):
                color = self.config.los_color
            elif snapshot.evaluated(i, j):
                color = self.config.nlos_color
            else:
                continue
            marker.add_segment(snapshot.node_poses[i].position,
                               snapshot.node_poses[j].position, color)
        return marker

    def publish(self, snapshot: TopologySnapshot) -> TopologyMessage:
        """Emit the marker and the topology message for one snapshot"""
        marker = self.build_marker(snapshot)
        self.bus.publish(self.marker_topic, marker)

        message = TopologyMessage.from_snapshot(snapshot)
        self.bus.publish(self.topology_topic, message)

        self.n_published += 1
        return message
