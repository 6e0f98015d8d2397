"""
PPCom Error Taxonomy
====================
Exceptions raised by the connectivity engine.

- ConfigurationError: fatal, raised during startup
- GeometryQueryDegenerate: local, absorbed by the occlusion tester

A node without a pose is not an error; it carries the sentinel pose instead.
"""


class PPComError(Exception):
    """Base class for all PPCom errors."""
    pass


class ConfigurationError(PPComError):
    """Raised when a deployment is misconfigured and startup must abort."""
    pass


class GeometryQueryDegenerate(PPComError):
    """Raised by a ray query that cannot produce a usable intersection."""
    pass
