"""
Deployment primitives: the resource graph, shared network and health checks.
"""

from .core import ContainerHealthCheck, HealthCheck, validate_port
from .infrastructure import (
    InfrastructureManager,
    InfrastructureStack,
    ResourceConfig,
    ResourceType,
    StackOutput,
    get_att,
    logical_id,
    ref,
    scoped_logical_id,
)
from .network import NetworkContext, create_network

__all__ = [
    "ContainerHealthCheck",
    "HealthCheck",
    "InfrastructureManager",
    "InfrastructureStack",
    "NetworkContext",
    "ResourceConfig",
    "ResourceType",
    "StackOutput",
    "create_network",
    "get_att",
    "logical_id",
    "ref",
    "scoped_logical_id",
    "validate_port",
]
