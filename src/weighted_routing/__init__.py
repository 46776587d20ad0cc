"""
Weighted routing topology compiler.

Declares groups of service replicas, splits each group's traffic across its
replicas by integer weight through a service mesh, and wires service
discovery, DNS and network permissions between groups.
"""

__version__ = "0.1.0"

from .config import (
    EdgeConfig,
    Environment,
    GroupConfig,
    RouteConfig,
    TopologyConfig,
    TopologyConfigLoader,
    default_topology,
    load_topology_config,
)
from .errors import (
    ConfigurationError,
    DuplicateNameError,
    EnvironmentContextError,
    ValidationError,
)
from .topology import (
    CompiledTopology,
    EdgeExposure,
    ReplicaUnit,
    RouteGroup,
    TopologyGraph,
    compile_topology,
    plan_topology,
)

__all__ = [
    "CompiledTopology",
    "ConfigurationError",
    "DuplicateNameError",
    "EdgeConfig",
    "EdgeExposure",
    "Environment",
    "EnvironmentContextError",
    "GroupConfig",
    "ReplicaUnit",
    "RouteConfig",
    "RouteGroup",
    "TopologyConfig",
    "TopologyConfigLoader",
    "TopologyGraph",
    "ValidationError",
    "__version__",
    "compile_topology",
    "default_topology",
    "load_topology_config",
    "plan_topology",
]
