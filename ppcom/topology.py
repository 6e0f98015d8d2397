"""
PPCom Topology Builder
======================
Periodic, election-gated evaluation of pairwise line of sight.

On a firing tick the builder takes one consistent copy of the pose
cache, runs the occlusion tester on every unordered pair (i, j), i < j,
whose nodes both have a pose, and assembles a symmetric visibility and
distance matrix. Unseen or unevaluated pairs keep the sentinel distance.

Nodes that never reported a pose are left out of every pairwise check,
but still appear in the snapshot with their sentinel pose.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Tuple

import numpy as np
from scipy.spatial.distance import pdist, squareform

from .election import Election
from .occlusion import OcclusionTester
from .pose import Pose, PoseCache
from .registry import NodeRegistry

logger = logging.getLogger(__name__)

SENTINEL_DISTANCE = -1.0


def canonical_pairs(n_nodes: int) -> Iterator[Tuple[int, int]]:
    """(0,1), (0,2), ..., (0,N-1), (1,2), ..., (N-2,N-1)"""
    for i in range(n_nodes):
        for j in range(i + 1, n_nodes):
            yield i, j


class RateLimiter:
    """
    Fires when more simulated time than one period has elapsed since the
    last firing. Ticks arriving faster than the rate are simply absorbed.
    """

    def __init__(self, rate_hz: float, start_time: float = 0.0):
        self.period = 1.0 / rate_hz
        self.last_time = start_time

    def ready(self, now: float) -> bool:
        if now - self.last_time > self.period:
            self.last_time = now
            return True
        return False


@dataclass
class TopologySnapshot:
    """
    One evaluation cycle's connectivity result.

    visible and distances are N x N, symmetric, with an unused diagonal.
    """
    stamp: float
    frame_id: str
    node_ids: List[str]
    node_roles: List[str]
    node_poses: List[Pose]
    pose_received: List[bool]
    visible: np.ndarray
    distances: np.ndarray

    @property
    def n_nodes(self) -> int:
        return len(self.node_ids)

    def ranges(self) -> List[float]:
        """Flat pairwise distances in canonical pair order"""
        return [float(self.distances[i, j]) for i, j in canonical_pairs(self.n_nodes)]

    def evaluated(self, i: int, j: int) -> bool:
        """Both poses were known, so the pair went through the occlusion test"""
        return self.pose_received[i] and self.pose_received[j]

    def is_visible(self, i: int, j: int) -> bool:
        return bool(self.visible[i, j])

    def distance(self, i: int, j: int) -> float:
        return float(self.distances[i, j])

    def index_of(self, name: str) -> int:
        return self.node_ids.index(name)

    def visible_pairs(self) -> List[Tuple[int, int]]:
        return [(i, j) for i, j in canonical_pairs(self.n_nodes) if self.visible[i, j]]


class TopologyBuilder:
    """
    Periodic driver of the pairwise line-of-sight evaluation.

    Only the elected evaluator does any work; every other instance returns
    immediately from on_tick regardless of elapsed time.
    """

    def __init__(self,
                 registry: NodeRegistry,
                 pose_cache: PoseCache,
                 tester: OcclusionTester,
                 election: Election,
                 self_index: int,
                 rate_hz: float,
                 start_time: float = 0.0,
                 frame_id: str = "world",
                 on_snapshot: Optional[Callable[[TopologySnapshot], None]] = None):
        self.registry = registry
        self.pose_cache = pose_cache
        self.tester = tester
        self.election = election
        self.self_index = self_index
        self.rate_limiter = RateLimiter(rate_hz, start_time)
        self.frame_id = frame_id
        self.on_snapshot = on_snapshot

        self.n_nodes = len(registry)
        self.last_snapshot: Optional[TopologySnapshot] = None
        self.n_evaluations = 0

    def is_evaluator(self) -> bool:
        return self.election(self.registry, self.self_index)

    def on_tick(self, sim_time: float) -> Optional[TopologySnapshot]:
        """
        Called once per simulation step.

        Returns the new snapshot when this tick fired an evaluation,
        None otherwise.
        """
        if not self.is_evaluator():
            return None
        if not self.rate_limiter.ready(sim_time):
            return None

        snapshot = self.evaluate(sim_time)
        if self.on_snapshot is not None:
            self.on_snapshot(snapshot)
        return snapshot

    def evaluate(self, stamp: float) -> TopologySnapshot:
        """Run one full O(N^2) evaluation on the current poses"""
        n = self.n_nodes
        records = self.pose_cache.snapshot()

        distances = np.full((n, n), SENTINEL_DISTANCE)
        visible = np.zeros((n, n), dtype=bool)

        positions = [r.pose.as_array() for r in records]
        separation = squareform(pdist(np.vstack(positions))) if n > 1 else np.zeros((n, n))
        for i, j in canonical_pairs(n):
            if not (records[i].received and records[j].received):
                continue

            node_i, node_j = self.registry[i], self.registry[j]
            los = self.tester.is_visible(positions[i], node_i.antenna_offset,
                                         positions[j], node_j.antenna_offset)
            visible[i, j] = visible[j, i] = los
            if los:
                distances[i, j] = distances[j, i] = float(separation[i, j])

        self.n_evaluations += 1
        snapshot = TopologySnapshot(
            stamp=stamp,
            frame_id=self.frame_id,
            node_ids=self.registry.names,
            node_roles=self.registry.roles,
            node_poses=[r.pose for r in records],
            pose_received=[r.received for r in records],
            visible=visible,
            distances=distances,
        )
        self.last_snapshot = snapshot
        logger.debug("Topology at t=%.3f: %d/%d pairs in line of sight",
                     stamp, len(snapshot.visible_pairs()), n * (n - 1) // 2)
        return snapshot
