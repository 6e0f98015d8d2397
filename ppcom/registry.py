"""
PPCom Node Registry
===================
Static roster of the agents taking part in the network.

The roster is a text file with one record per line:

    # identity, role, antenna offset in meters
    firefly1, manager, 0.2
    firefly2, follower, 0.2

Whitespace is stripped before splitting, blank lines and lines starting
with '#' are skipped. Roster order is the canonical node index used by
every matrix and message.
"""

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Union

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Node:
    """One registered agent"""
    name: str
    role: str
    antenna_offset: float  # virtual antenna half-extent (m)


def parse_roster_line(line: str, line_no: int = 0) -> Optional[Node]:
    """
    Decode one roster record.

    Returns None for blank and comment lines.
    """
    stripped = "".join(line.split())
    if not stripped or stripped.startswith("#"):
        return None

    parts = stripped.split(",")
    if len(parts) != 3:
        raise ConfigurationError(
            f"Roster line {line_no}: expected 'identity,role,offset', got {line.strip()!r}"
        )
    name, role, offset_text = parts
    if not name:
        raise ConfigurationError(f"Roster line {line_no}: empty identity")

    try:
        offset = float(offset_text)
    except ValueError:
        raise ConfigurationError(
            f"Roster line {line_no}: antenna offset {offset_text!r} is not a number"
        ) from None
    if not (math.isfinite(offset) and offset >= 0.0):
        raise ConfigurationError(
            f"Roster line {line_no}: antenna offset must be finite and >= 0, got {offset}"
        )
    return Node(name=name, role=role, antenna_offset=offset)


class NodeRegistry:
    """
    Ordered, fixed roster of nodes.

    The roster never changes after loading; node indices are stable for
    the lifetime of a run.
    """

    def __init__(self, nodes: Iterable[Node]):
        self.nodes: List[Node] = list(nodes)

        seen = set()
        for node in self.nodes:
            if node.name in seen:
                raise ConfigurationError(f"Duplicate identity {node.name!r} in roster")
            seen.add(node.name)

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> 'NodeRegistry':
        nodes = []
        for line_no, line in enumerate(lines, start=1):
            logger.debug("Reading %s", line.rstrip("\n"))
            node = parse_roster_line(line, line_no)
            if node is not None:
                nodes.append(node)
        return cls(nodes)

    @classmethod
    def load(cls, source: Union[str, Path], self_identity: str) -> 'NodeRegistry':
        """
        Load a roster file and check that it contains this instance.

        Args:
            source: Path to the roster text file
            self_identity: Identity this instance is configured with

        Raises:
            ConfigurationError: if the file is unreadable, malformed or
                does not list self_identity
        """
        path = Path(source)
        try:
            with open(path, "r", encoding="utf-8") as f:
                registry = cls.from_lines(f)
        except OSError as e:
            raise ConfigurationError(f"Cannot read roster {path}: {e}") from e

        registry.resolve_self_index(self_identity)
        return registry

    def resolve_self_index(self, identity: str) -> int:
        """Index of the node named identity; aborts startup if absent"""
        for idx, node in enumerate(self.nodes):
            if node.name == identity:
                return idx
        raise ConfigurationError(
            f"PPCom Id {identity!r} is not declared in the roster "
            f"({', '.join(self.names) or 'empty'})"
        )

    @property
    def names(self) -> List[str]:
        return [node.name for node in self.nodes]

    @property
    def roles(self) -> List[str]:
        return [node.role for node in self.nodes]

    def __len__(self) -> int:
        return len(self.nodes)

    def __getitem__(self, idx: int) -> Node:
        return self.nodes[idx]

    def __iter__(self) -> Iterator[Node]:
        return iter(self.nodes)
