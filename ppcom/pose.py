"""
PPCom Pose Cache
================
Latest known pose of every roster node.

Pose samples arrive from per-node odometry feeds, possibly on another
thread than the simulation step. Each sample replaces the stored record
as a whole, so a reader sees either the previous or the new pose of a
node, never a mix of both.
"""

import threading
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

# Covariance entries are set to this value until a sample is received
SENTINEL_COVARIANCE = -1.0
COVARIANCE_SIZE = 36


@dataclass(frozen=True)
class Pose:
    """
    Odometry pose sample.

    Orientation is a quaternion (x, y, z, w). It is carried through to the
    topology message but not used for the line-of-sight test.
    """
    position: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    orientation: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 1.0)
    covariance: Tuple[float, ...] = (0.0,) * COVARIANCE_SIZE
    stamp: float = 0.0

    @classmethod
    def sentinel(cls) -> 'Pose':
        """Pose of a node that never reported, covariance filled with -1"""
        return cls(covariance=(SENTINEL_COVARIANCE,) * COVARIANCE_SIZE)

    @classmethod
    def from_position(cls, x: float, y: float, z: float, stamp: float = 0.0) -> 'Pose':
        return cls(position=(float(x), float(y), float(z)), stamp=float(stamp))

    @property
    def is_sentinel(self) -> bool:
        return self.covariance[0] == SENTINEL_COVARIANCE

    def as_array(self) -> np.ndarray:
        return np.array(self.position, dtype=np.float64)

    def to_dict(self) -> dict:
        return {
            "position": list(self.position),
            "orientation": list(self.orientation),
            "covariance": list(self.covariance),
            "stamp": self.stamp,
        }


@dataclass(frozen=True)
class PoseRecord:
    """Pose and reception flag, swapped in as one object"""
    pose: Pose
    received: bool = False


class PoseCache:
    """Per-node latest pose, indexed by roster order"""

    def __init__(self, n_nodes: int):
        self.n_nodes = n_nodes
        self._records: List[PoseRecord] = [
            PoseRecord(Pose.sentinel(), False) for _ in range(n_nodes)
        ]
        self._lock = threading.Lock()

    def update_pose(self, index: int, pose: Pose):
        """Store a new sample for node index; no plausibility check"""
        record = PoseRecord(pose, True)
        with self._lock:
            self._records[index] = record

    def get_pose(self, index: int) -> Tuple[Pose, bool]:
        record = self._records[index]
        return record.pose, record.received

    def snapshot(self) -> List[PoseRecord]:
        """Consistent copy of every record, taken at evaluation time"""
        with self._lock:
            return list(self._records)

    def received_mask(self) -> np.ndarray:
        return np.array([r.received for r in self.snapshot()], dtype=bool)

    def __len__(self) -> int:
        return self.n_nodes
