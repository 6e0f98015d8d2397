"""
PPCom Topology Visualization
============================

Rendering and graph analysis of published topologies.

Shows:
- LOS / NLOS segments between agents, over the box obstacles
- Pairwise range matrix
- Connectivity of the LOS graph (components, degrees)

Tools: matplotlib + networkx
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import matplotlib.pyplot as plt
import networkx as nx
import numpy as np
from mpl_toolkits.mplot3d.art3d import Line3DCollection, Poly3DCollection

from .geometry import BoxObstacle
from .publisher import LineListMarker, TopologyMessage
from .topology import SENTINEL_DISTANCE, canonical_pairs


@dataclass
class TopologyVisualizerConfig:
    """Configuration for topology plots"""
    figsize: Tuple[int, int] = (12, 9)
    dpi: int = 100

    node_colors: Dict[str, str] = field(default_factory=lambda: {
        "manager": "#DC143C",   # Crimson
        "default": "#4169E1",   # Royal blue
    })
    node_size: int = 60
    missing_node_color: str = "#A9A9A9"  # Dark gray

    line_width: float = 1.5
    obstacle_color: str = "#8B8B83"
    obstacle_alpha: float = 0.25

    range_cmap: str = "viridis"
    show_labels: bool = True
    label_font_size: int = 8


def build_networkx_graph(message: TopologyMessage) -> nx.Graph:
    """LOS graph: nodes in roster order, edges for visible pairs weighted by range"""
    G = nx.Graph()
    for name, role, pose in zip(message.node_ids, message.node_roles, message.node_poses):
        G.add_node(name, role=role, position=pose.position, has_pose=not pose.is_sentinel)

    n = len(message.node_ids)
    for (i, j), rng in zip(canonical_pairs(n), message.ranges):
        if rng != SENTINEL_DISTANCE:
            G.add_edge(message.node_ids[i], message.node_ids[j], weight=rng)
    return G


def connectivity_summary(message: TopologyMessage) -> Dict[str, Any]:
    """Edge count, components and connectedness of the LOS graph"""
    G = build_networkx_graph(message)
    components = sorted((sorted(c) for c in nx.connected_components(G)),
                        key=lambda c: (-len(c), c))
    located = [name for name, has_pose in G.nodes(data="has_pose") if has_pose]
    located_graph = G.subgraph(located)
    return {
        "n_nodes": G.number_of_nodes(),
        "n_located": len(located),
        "n_links": G.number_of_edges(),
        "n_pairs": len(message.ranges),
        "components": components,
        "connected": bool(located) and nx.is_connected(located_graph),
        "degree": dict(G.degree()),
    }


def _box_faces(box: BoxObstacle) -> List[np.ndarray]:
    hx, hy, hz = box.half_extents
    c, s = math.cos(box.yaw), math.sin(box.yaw)
    corners = []
    for dz in (-hz, hz):
        for dx, dy in ((-hx, -hy), (hx, -hy), (hx, hy), (-hx, hy)):
            corners.append((box.center[0] + c * dx - s * dy,
                            box.center[1] + s * dx + c * dy,
                            box.center[2] + dz))
    v = np.array(corners)
    return [v[[0, 1, 2, 3]], v[[4, 5, 6, 7]], v[[0, 1, 5, 4]],
            v[[1, 2, 6, 5]], v[[2, 3, 7, 6]], v[[3, 0, 4, 7]]]


class TopologyVisualizer:
    """
    Plots of a topology message and its marker.

    Tracks link counts over successive calls to record() so the history
    of connectivity can be plotted at the end of a run.
    """

    def __init__(self, config: Optional[TopologyVisualizerConfig] = None):
        self.config = config or TopologyVisualizerConfig()

        # History
        self.stamps: List[float] = []
        self.link_counts: List[int] = []
        self.component_counts: List[int] = []

    def record(self, message: TopologyMessage):
        summary = connectivity_summary(message)
        self.stamps.append(message.stamp)
        self.link_counts.append(summary["n_links"])
        self.component_counts.append(len(summary["components"]))

    def plot_topology_3d(self, message: TopologyMessage,
                         marker: Optional[LineListMarker] = None,
                         obstacles: Optional[List[BoxObstacle]] = None,
                         title: Optional[str] = None) -> plt.Figure:
        """3D view of agents, LOS/NLOS segments and obstacles"""
        cfg = self.config
        fig = plt.figure(figsize=cfg.figsize, dpi=cfg.dpi)
        ax = fig.add_subplot(111, projection="3d")

        for box in obstacles or []:
            faces = Poly3DCollection(_box_faces(box), facecolor=cfg.obstacle_color,
                                     alpha=cfg.obstacle_alpha, edgecolor="k", linewidths=0.3)
            ax.add_collection3d(faces)

        if marker is not None and marker.n_segments:
            segments = [(a, b) for a, b, _ in marker.segments()]
            colors = [color for _, _, color in marker.segments()]
            ax.add_collection3d(Line3DCollection(segments, colors=colors,
                                                 linewidths=cfg.line_width))

        for name, role, pose in zip(message.node_ids, message.node_roles, message.node_poses):
            if pose.is_sentinel:
                continue
            color = cfg.node_colors.get(role, cfg.node_colors["default"])
            x, y, z = pose.position
            ax.scatter([x], [y], [z], c=color, s=cfg.node_size, depthshade=False)
            if cfg.show_labels:
                ax.text(x, y, z, f" {name}", fontsize=cfg.label_font_size)

        points = [p.position for p in message.node_poses if not p.is_sentinel]
        for box in obstacles or []:
            points.extend(f for face in _box_faces(box) for f in face)
        if points:
            pts = np.asarray(points, dtype=np.float64)
            lo, hi = pts.min(axis=0), pts.max(axis=0)
            pad = max(1.0, 0.05 * float(np.max(hi - lo)))
            ax.set_xlim(lo[0] - pad, hi[0] + pad)
            ax.set_ylim(lo[1] - pad, hi[1] + pad)
            ax.set_zlim(min(0.0, lo[2]), hi[2] + pad)

        ax.set_xlabel("x [m]")
        ax.set_ylabel("y [m]")
        ax.set_zlabel("z [m]")
        ax.set_title(title or f"PPCom topology at t={message.stamp:.2f}s "
                              f"(frame {message.frame_id})")
        return fig

    def plot_range_matrix(self, message: TopologyMessage,
                          title: Optional[str] = None) -> plt.Figure:
        """Heatmap of pairwise ranges, blank where there is no line of sight"""
        cfg = self.config
        n = len(message.node_ids)
        matrix = np.full((n, n), np.nan)
        for (i, j), rng in zip(canonical_pairs(n), message.ranges):
            if rng != SENTINEL_DISTANCE:
                matrix[i, j] = matrix[j, i] = rng

        fig, ax = plt.subplots(figsize=cfg.figsize, dpi=cfg.dpi)
        im = ax.imshow(np.ma.masked_invalid(matrix), cmap=cfg.range_cmap)
        fig.colorbar(im, ax=ax, label="range [m]")
        ax.set_xticks(range(n))
        ax.set_yticks(range(n))
        ax.set_xticklabels(message.node_ids, rotation=45, ha="right",
                           fontsize=cfg.label_font_size)
        ax.set_yticklabels(message.node_ids, fontsize=cfg.label_font_size)
        ax.set_title(title or "Line-of-sight ranges")
        return fig

    def plot_link_history(self, title: Optional[str] = None) -> plt.Figure:
        fig, ax = plt.subplots(figsize=self.config.figsize, dpi=self.config.dpi)
        ax.plot(self.stamps, self.link_counts, label="LOS links")
        ax.plot(self.stamps, self.component_counts, label="components")
        ax.set_xlabel("sim time [s]")
        ax.legend()
        ax.set_title(title or "Connectivity over time")
        return fig


def plot_topology(message: TopologyMessage, marker: Optional[LineListMarker] = None,
                  obstacles: Optional[List[BoxObstacle]] = None, **kwargs) -> plt.Figure:
    """Convenience wrapper around TopologyVisualizer.plot_topology_3d"""
    return TopologyVisualizer().plot_topology_3d(message, marker, obstacles, **kwargs)


def plot_range_matrix(message: TopologyMessage, **kwargs) -> plt.Figure:
    """Convenience wrapper around TopologyVisualizer.plot_range_matrix"""
    return TopologyVisualizer().plot_range_matrix(message, **kwargs)
