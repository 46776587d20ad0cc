"""
Core Service Mesh Abstractions

The shared environment every topology component is built against: network,
mesh, container cluster, service-registry namespace and private DNS zone.
It is created once per stack and passed explicitly into each constructor.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from ..deployment.infrastructure import InfrastructureStack, ResourceType, get_att, ref
from ..deployment.network import NetworkContext, create_network
from ..errors import DuplicateNameError, EnvironmentContextError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "cloudmap.local"
DEFAULT_HOSTED_ZONE = "appmesh.local"


@dataclass
class MeshHandle:
    """Mesh that owns every virtual node, router and service."""

    logical_id: str
    name: str

    def virtual_node_path(self, node_name: str) -> str:
        """Resource path the Envoy sidecar uses to fetch its configuration."""
        return f"mesh/{self.name}/virtualNode/{node_name}"


@dataclass
class ClusterHandle:
    logical_id: str


@dataclass
class ServiceRegistryNamespace:
    """Private DNS namespace replicas register themselves in."""

    logical_id: str
    name: str
    registered: list[str] = field(default_factory=list)

    def register(self, service_name: str) -> None:
        """Claim ``service_name`` in the namespace. Names are unique topology-wide."""
        if not service_name:
            raise ValidationError("Service name is required for registration")
        if service_name in self.registered:
            raise DuplicateNameError(
                f"Service {service_name} is already registered in namespace {self.name}",
                details={"namespace": self.name, "service": service_name},
            )
        self.registered.append(service_name)


@dataclass
class HostedZone:
    """Private hosted zone holding the published group names."""

    logical_id: str
    zone_name: str

    def qualify(self, name: str) -> str:
        return f"{name}.{self.zone_name}".lower()


@dataclass
class MeshEnvironment:
    """Shared context threaded through every topology component."""

    stack: InfrastructureStack
    network: NetworkContext
    mesh: MeshHandle
    cluster: ClusterHandle
    namespace: ServiceRegistryNamespace
    hosted_zone: HostedZone
    region: Any = field(default_factory=lambda: ref("AWS::Region"))

    def validate(self) -> None:
        """Raise ``EnvironmentContextError`` if a shared member is missing."""
        missing = [
            name
            for name in ("stack", "network", "mesh", "cluster", "namespace", "hosted_zone")
            if getattr(self, name, None) is None
        ]
        if missing:
            raise EnvironmentContextError(
                f"Mesh environment is missing: {', '.join(missing)}",
                details={"missing": missing},
            )
        if not self.network.private_subnet_ids:
            raise EnvironmentContextError("Mesh environment network has no private subnets")
        for name in ("mesh", "cluster", "namespace", "hosted_zone"):
            handle = getattr(self, name)
            if not self.stack.has_resource(handle.logical_id):
                raise EnvironmentContextError(
                    f"Mesh environment {name} {handle.logical_id} is not declared in "
                    f"stack {self.stack.name}"
                )


def ensure_environment(environment: Any) -> MeshEnvironment:
    """Validate a component's environment argument."""
    if not isinstance(environment, MeshEnvironment):
        raise EnvironmentContextError(
            f"Expected a MeshEnvironment, got {type(environment).__name__}"
        )
    environment.validate()
    return environment


def create_environment(
    stack: InfrastructureStack,
    mesh_name: str,
    namespace_name: str = DEFAULT_NAMESPACE,
    zone_name: str = DEFAULT_HOSTED_ZONE,
    max_azs: int = 2,
    region: Any = None,
) -> MeshEnvironment:
    """Declare the network, mesh, cluster, namespace and hosted zone once."""
    network = create_network(stack, "VPC", max_azs=max_azs)

    stack.add_resource("Mesh", ResourceType.MESH, {"MeshName": mesh_name})

    # Cloud Map namespace: resolves the actual tasks behind each virtual node.
    stack.add_resource(
        "Namespace",
        ResourceType.CLOUDMAP_NAMESPACE,
        {"Name": namespace_name, "Vpc": ref(network.vpc_id)},
    )

    stack.add_resource(
        "Cluster",
        ResourceType.ECS_CLUSTER,
        {"ClusterSettings": [{"Name": "containerInsights", "Value": "disabled"}]},
    )

    # Kept apart from the Cloud Map zone; only holds the published group names.
    stack.add_resource(
        "PrivateHostedZone",
        ResourceType.HOSTED_ZONE,
        {
            "Name": zone_name,
            "VPCs": [{"VPCId": ref(network.vpc_id), "VPCRegion": ref("AWS::Region")}],
        },
    )

    environment = MeshEnvironment(
        stack=stack,
        network=network,
        mesh=MeshHandle(logical_id="Mesh", name=mesh_name),
        cluster=ClusterHandle(logical_id="Cluster"),
        namespace=ServiceRegistryNamespace(logical_id="Namespace", name=namespace_name),
        hosted_zone=HostedZone(logical_id="PrivateHostedZone", zone_name=zone_name),
        region=region if region is not None else ref("AWS::Region"),
    )
    logger.info(
        "Created mesh environment %s (namespace=%s, zone=%s)",
        mesh_name,
        namespace_name,
        zone_name,
    )
    return environment


def namespace_id(environment: MeshEnvironment) -> dict[str, Any]:
    return get_att(environment.namespace.logical_id, "Id")
