"""
Service Mesh Integration

Shared mesh environment and the routing declarations built on top of it.
"""

from .core import (
    DEFAULT_HOSTED_ZONE,
    DEFAULT_NAMESPACE,
    ClusterHandle,
    HostedZone,
    MeshEnvironment,
    MeshHandle,
    ServiceRegistryNamespace,
    create_environment,
    ensure_environment,
)
from .traffic_management import (
    MeshRoute,
    VirtualNode,
    VirtualRouter,
    VirtualService,
    WeightedTarget,
)

__all__ = [
    "DEFAULT_HOSTED_ZONE",
    "DEFAULT_NAMESPACE",
    "ClusterHandle",
    "HostedZone",
    "MeshEnvironment",
    "MeshHandle",
    "MeshRoute",
    "ServiceRegistryNamespace",
    "VirtualNode",
    "VirtualRouter",
    "VirtualService",
    "WeightedTarget",
    "create_environment",
    "ensure_environment",
]
