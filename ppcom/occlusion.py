"""
PPCom Occlusion Tester
======================
Binary line-of-sight test between two agents.

Each agent is approximated by a virtual antenna cross: six points offset
by +/- the antenna offset along each principal axis. The two agents see
each other if any of the 6 x 6 point pairs has an unobstructed ray, where
"unobstructed" means the first intersection lies no closer than the
point-to-point distance minus a small tolerance. The tolerance absorbs
rays that graze the target's own collision shape.
"""

import logging
from typing import Optional

import numpy as np

from .config import OcclusionConfig
from .errors import GeometryQueryDegenerate
from .geometry import RayOcclusionQuery, Vector3

logger = logging.getLogger(__name__)

# Candidate order: +X, -X, +Y, -Y, +Z, -Z
_AXES = np.array([
    [1.0, 0.0, 0.0],
    [-1.0, 0.0, 0.0],
    [0.0, 1.0, 0.0],
    [0.0, -1.0, 0.0],
    [0.0, 0.0, 1.0],
    [0.0, 0.0, -1.0],
])
_VERTICAL = (4, 5)


def antenna_cross(center: Vector3, offset: float, min_altitude: float = 0.1) -> np.ndarray:
    """
    Six virtual antenna points around center.

    The downward (-Z) candidate is kept at or above min_altitude so no
    antenna is placed underground. The upward (+Z) candidate is floored
    the same way, since the altitude floor is defined on the +Z point;
    this only differs from clamping -Z alone for nodes centred below
    min_altitude - offset.

    Returns:
        (6, 3) array of points
    """
    points = np.asarray(center, dtype=np.float64)[None, :] + offset * _AXES
    for k in _VERTICAL:
        points[k, 2] = max(min_altitude, points[k, 2])
    return points


class OcclusionTester:
    """
    Multi-ray line-of-sight test against injected collision geometry.

    Fails closed: a ray the geometry service cannot answer counts as
    blocked, and the pair is only visible if some other ray gets through.
    """

    def __init__(self, query: RayOcclusionQuery, config: Optional[OcclusionConfig] = None):
        self.query = query
        self.config = config or OcclusionConfig()

        # Statistics
        self.rays_cast = 0
        self.degenerate_rays = 0

    def is_visible(self, pi: Vector3, offset_i: float, pj: Vector3, offset_j: float) -> bool:
        """True if any antenna point pair of the two nodes has line of sight"""
        pi = np.asarray(pi, dtype=np.float64)
        pj = np.asarray(pj, dtype=np.float64)

        # Always cast from the same end so swapping the nodes gives the same answer
        if (tuple(pj), offset_j) < (tuple(pi), offset_i):
            pi, offset_i, pj, offset_j = pj, offset_j, pi, offset_i

        cross_i = antenna_cross(pi, offset_i, self.config.min_antenna_altitude)
        cross_j = antenna_cross(pj, offset_j, self.config.min_antenna_altitude)

        for pa in cross_i:
            for pb in cross_j:
                if self._ray_clear(pa, pb):
                    return True
        return False

    def _ray_clear(self, pa: np.ndarray, pb: np.ndarray) -> bool:
        self.rays_cast += 1
        try:
            hit = self.query.cast(pa, pb)
        except GeometryQueryDegenerate as e:
            self.degenerate_rays += 1
            logger.debug("Degenerate ray treated as blocked: %s", e)
            return False

        distance = hit.distance
        if distance is None or np.isnan(distance):
            self.degenerate_rays += 1
            return False

        pp_dist = float(np.linalg.norm(pa - pb))
        return distance >= pp_dist - self.config.distance_tolerance
