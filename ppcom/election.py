"""
PPCom Evaluator Election
========================
Decides which single roster node runs the pairwise evaluation and
publishes the authoritative topology.

An election is any callable (registry, self_index) -> bool. The topology
builder only asks "am I the evaluator?" and never looks at roles itself.
"""

from typing import Callable, Optional

from .config import ElectionStrategy, PPComConfig
from .errors import ConfigurationError
from .registry import NodeRegistry

Election = Callable[[NodeRegistry, int], bool]


class RoleElection:
    """The node whose role matches is the evaluator"""

    def __init__(self, role: str = "manager"):
        self.role = role

    def __call__(self, registry: NodeRegistry, self_index: int) -> bool:
        return registry[self_index].role == self.role


class LowestIdentityElection:
    """The node with the lexicographically smallest identity is the evaluator"""

    def __call__(self, registry: NodeRegistry, self_index: int) -> bool:
        return registry[self_index].name == min(registry.names)


class DesignatedElection:
    """An externally designated identity is the evaluator"""

    def __init__(self, identity: str):
        self.identity = identity

    def __call__(self, registry: NodeRegistry, self_index: int) -> bool:
        return registry[self_index].name == self.identity


def create_election(config: PPComConfig, registry: Optional[NodeRegistry] = None) -> Election:
    """Build the election predicate selected in the configuration"""
    if config.election == ElectionStrategy.ROLE:
        return RoleElection(config.manager_role)
    if config.election == ElectionStrategy.LOWEST_IDENTITY:
        return LowestIdentityElection()
    if config.election == ElectionStrategy.DESIGNATED:
        if registry is not None and config.designated_identity not in registry.names:
            raise ConfigurationError(
                f"Designated evaluator {config.designated_identity!r} is not in the roster"
            )
        return DesignatedElection(config.designated_identity)
    raise ConfigurationError(f"Unknown election strategy {config.election!r}")
