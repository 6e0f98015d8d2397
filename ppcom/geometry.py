"""
PPCom Geometry Service
======================
Ray-occlusion capability used by the occlusion tester, and a box world
implementing it.

The occlusion tester only depends on RayOcclusionQuery: given a segment,
report how far along it the first collision body lies. BoxWorld answers
that query against yaw-oriented boxes (buildings, walls) and an optional
ground plane at z = 0, using the slab method over all boxes at once.
"""

import logging
import math
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import ConfigurationError, GeometryQueryDegenerate

logger = logging.getLogger(__name__)

GROUND_PLANE_ENTITY = "ground_plane"

Vector3 = Union[Sequence[float], np.ndarray]


@dataclass(frozen=True)
class RayHit:
    """Result of a single ray query"""
    distance: float  # from start to first intersection, inf if nothing hit
    entity: str = ""  # name of the intersected body

    @property
    def hit(self) -> bool:
        return math.isfinite(self.distance)


class RayOcclusionQuery(ABC):
    """Capability: first intersection along the segment start -> end"""

    @abstractmethod
    def cast(self, start: Vector3, end: Vector3) -> RayHit:
        """
        Cast a ray from start to end.

        Raises:
            GeometryQueryDegenerate: if no usable intersection can be computed
        """
        raise NotImplementedError


@dataclass(frozen=True)
class BoxObstacle:
    """Box collision body, rotated about Z by yaw"""
    name: str
    center: Tuple[float, float, float]
    size: Tuple[float, float, float]
    yaw: float = 0.0

    @property
    def half_extents(self) -> np.ndarray:
        return np.asarray(self.size, dtype=np.float64) / 2.0

    @property
    def top_z(self) -> float:
        return self.center[2] + self.size[2] / 2.0


class BoxWorld(RayOcclusionQuery):
    """
    Static collision world made of oriented boxes.

    Box parameters are packed into arrays once at construction so each
    cast is a handful of vectorised numpy operations.
    """

    def __init__(self, obstacles: Optional[List[BoxObstacle]] = None,
                 ground_plane: bool = False):
        self.obstacles: List[BoxObstacle] = list(obstacles or [])
        self.ground_plane = ground_plane

        n = len(self.obstacles)
        self._centers = np.zeros((n, 3))
        self._half = np.zeros((n, 3))
        self._cos = np.ones(n)
        self._sin = np.zeros(n)
        for i, box in enumerate(self.obstacles):
            self._centers[i] = box.center
            self._half[i] = box.half_extents
            self._cos[i] = math.cos(box.yaw)
            self._sin[i] = math.sin(box.yaw)

        # Number of casts that could not be answered
        self.degenerate_queries = 0

    def cast(self, start: Vector3, end: Vector3) -> RayHit:
        p0 = np.asarray(start, dtype=np.float64)
        p1 = np.asarray(end, dtype=np.float64)
        if p0.shape != (3,) or p1.shape != (3,) or not (
                np.all(np.isfinite(p0)) and np.all(np.isfinite(p1))):
            self.degenerate_queries += 1
            raise GeometryQueryDegenerate(f"Cannot cast ray {start} -> {end}")

        seg = p1 - p0
        length = float(np.linalg.norm(seg))
        if length == 0.0:
            return RayHit(math.inf)

        best_t = math.inf
        best_entity = ""

        if self.obstacles:
            t, idx = self._first_box_hit(p0, seg)
            if t < best_t:
                best_t, best_entity = t, self.obstacles[idx].name

        if self.ground_plane:
            t = self._ground_hit(p0[2], p1[2])
            if t < best_t:
                best_t, best_entity = t, GROUND_PLANE_ENTITY

        if not math.isfinite(best_t):
            return RayHit(math.inf)
        return RayHit(best_t * length, best_entity)

    def _first_box_hit(self, p0: np.ndarray, seg: np.ndarray) -> Tuple[float, int]:
        """Smallest segment parameter t in [0, 1] at which a box is entered"""
        rel = p0[None, :] - self._centers
        # Rotate into each box frame (rotation by -yaw about Z)
        s = np.empty_like(rel)
        s[:, 0] = self._cos * rel[:, 0] + self._sin * rel[:, 1]
        s[:, 1] = -self._sin * rel[:, 0] + self._cos * rel[:, 1]
        s[:, 2] = rel[:, 2]
        d = np.empty_like(rel)
        d[:, 0] = self._cos * seg[0] + self._sin * seg[1]
        d[:, 1] = -self._sin * seg[0] + self._cos * seg[1]
        d[:, 2] = seg[2]

        parallel = d == 0.0
        with np.errstate(divide="ignore", invalid="ignore"):
            t1 = (-self._half - s) / d
            t2 = (self._half - s) / d
        t_near = np.minimum(t1, t2)
        t_far = np.maximum(t1, t2)

        # Parallel to a slab: either always inside it or never
        inside_slab = np.abs(s) <= self._half
        t_near = np.where(parallel, np.where(inside_slab, -np.inf, np.inf), t_near)
        t_far = np.where(parallel, np.where(inside_slab, np.inf, -np.inf), t_far)

        t_enter = t_near.max(axis=1)
        t_exit = t_far.min(axis=1)
        hit = (t_enter <= t_exit) & (t_exit >= 0.0) & (t_enter <= 1.0)
        if not np.any(hit):
            return math.inf, -1

        # A segment starting inside a box hits it immediately
        t_hit = np.where(hit, np.maximum(t_enter, 0.0), np.inf)
        idx = int(np.argmin(t_hit))
        return float(t_hit[idx]), idx

    @staticmethod
    def _ground_hit(z0: float, z1: float) -> float:
        if z0 < 0.0:
            return 0.0
        if z1 < 0.0:
            return z0 / (z0 - z1)
        return math.inf

    def add_obstacle(self, obstacle: BoxObstacle) -> 'BoxWorld':
        """Return a new world with one more obstacle"""
        return BoxWorld(self.obstacles + [obstacle], ground_plane=self.ground_plane)

    def __len__(self) -> int:
        return len(self.obstacles)


# =============================================================================
# SDF WORLD LOADING
# =============================================================================

def _parse_pose(elem: Optional[ET.Element]) -> Tuple[float, float, float, float, float, float]:
    if elem is None or not elem.text or not elem.text.strip():
        return (0.0, 0.0, 0.0, 0.0, 0.0, 0.0)
    parts = [float(v) for v in elem.text.split()]
    if len(parts) == 3:
        parts += [0.0, 0.0, 0.0]
    if len(parts) != 6:
        raise ValueError(f"pose needs 3 or 6 values, got {elem.text!r}")
    return tuple(parts)


def _compose_planar(parent, child):
    """Compose two (x, y, z, yaw) frames, child expressed in parent"""
    px, py, pz, pyaw = parent
    cx, cy, cz, cyaw = child
    c, s = math.cos(pyaw), math.sin(pyaw)
    return (px + c * cx - s * cy, py + s * cx + c * cy, pz + cz, pyaw + cyaw)


def load_world_from_sdf(world_path: Union[str, Path]) -> List[BoxObstacle]:
    """
    Parse a Gazebo SDF world file and extract box collision bodies.

    Every <collision> with <box><size> geometry becomes one BoxObstacle,
    placed by composing the model, link and collision poses. Only yaw is
    honoured; roll and pitch are dropped with a warning.

    Args:
        world_path: Path to the .sdf or .world file.

    Returns:
        List of obstacles found in the world.

    Raises:
        ConfigurationError: if the file is missing or not valid SDF
    """
    path = Path(world_path)
    if not path.exists():
        raise ConfigurationError(f"World file {path} does not exist")
    try:
        root = ET.parse(str(path)).getroot()
    except ET.ParseError as e:
        raise ConfigurationError(f"World file {path} is not valid XML: {e}") from e

    out: List[BoxObstacle] = []
    try:
        for model in root.iter("model"):
            model_name = model.get("name", "model")
            mx, my, mz, mroll, mpitch, myaw = _parse_pose(model.find("pose"))
            model_frame = (mx, my, mz, myaw)
            model_tilted = bool(mroll or mpitch)

            for link in model.findall("link"):
                lx, ly, lz, lroll, lpitch, lyaw = _parse_pose(link.find("pose"))
                link_frame = _compose_planar(model_frame, (lx, ly, lz, lyaw))
                link_tilted = model_tilted or bool(lroll or lpitch)

                for collision in link.findall("collision"):
                    size_elem = collision.find("geometry/box/size")
                    if size_elem is None or not size_elem.text:
                        continue
                    sx, sy, sz = (float(v) for v in size_elem.text.split()[:3])
                    cx, cy, cz, croll, cpitch, cyaw = _parse_pose(collision.find("pose"))
                    x, y, z, yaw = _compose_planar(link_frame, (cx, cy, cz, cyaw))
                    if link_tilted or croll or cpitch:
                        logger.warning("Ignoring roll/pitch of %s in %s", model_name, path)

                    name = f"{model_name}::{link.get('name', 'link')}::{collision.get('name', 'collision')}"
                    out.append(BoxObstacle(name=name, center=(x, y, z),
                                           size=(sx, sy, sz), yaw=yaw))
    except ValueError as e:
        raise ConfigurationError(f"Malformed pose or size in {path}: {e}") from e

    logger.info("Loaded %d box obstacles from %s", len(out), path)
    return out
