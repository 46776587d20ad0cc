"""
Traffic Management Components

Mesh routing declarations: virtual nodes, virtual routers with weighted
routes, and virtual services that publish one name for a router.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from ..deployment.core import HealthCheck
from ..deployment.infrastructure import ResourceType, get_att
from ..errors import DuplicateNameError, ValidationError
from .core import MeshEnvironment

logger = logging.getLogger(__name__)

ACCESS_LOG_PATH = "/dev/stdout"


@dataclass
class VirtualNode:
    """Mesh routing node for one replica unit."""

    logical_id: str
    name: str
    port: int
    health_check: HealthCheck
    environment: MeshEnvironment = field(repr=False)

    @classmethod
    def declare(
        cls,
        environment: MeshEnvironment,
        logical_id: str,
        name: str,
        port: int,
        health_check: HealthCheck,
        cloudmap_service_name: str,
        depends_on: list[str] | None = None,
    ) -> "VirtualNode":
        environment.stack.add_resource(
            logical_id,
            ResourceType.VIRTUAL_NODE,
            {
                "MeshName": get_att(environment.mesh.logical_id, "MeshName"),
                "VirtualNodeName": name,
                "Spec": {
                    "Listeners": [
                        {
                            "PortMapping": {"Port": port, "Protocol": "http"},
                            "HealthCheck": health_check.to_mesh_spec(port),
                        }
                    ],
                    "ServiceDiscovery": {
                        "AWSCloudMap": {
                            "NamespaceName": environment.namespace.name,
                            "ServiceName": cloudmap_service_name,
                        }
                    },
                    "Backends": [],
                    "Logging": {"AccessLog": {"File": {"Path": ACCESS_LOG_PATH}}},
                },
            },
            depends_on=depends_on,
        )
        return cls(
            logical_id=logical_id,
            name=name,
            port=port,
            health_check=health_check,
            environment=environment,
        )

    @property
    def backends(self) -> list[str]:
        """Virtual service names this node may call."""
        spec = self.environment.stack.get_resource(self.logical_id).properties["Spec"]
        return [b["VirtualService"]["VirtualServiceName"] for b in spec["Backends"]]

    def add_backend(self, virtual_service: "VirtualService") -> None:
        """Allow this node to resolve ``virtual_service`` as an upstream."""
        if virtual_service.name in self.backends:
            raise DuplicateNameError(
                f"Virtual node {self.name} already has backend {virtual_service.name}"
            )
        stack = self.environment.stack
        spec = stack.get_resource(self.logical_id).properties["Spec"]
        spec["Backends"].append(
            {"VirtualService": {"VirtualServiceName": virtual_service.name}}
        )
        stack.add_dependency(self.logical_id, virtual_service.logical_id)
        logger.debug("Virtual node %s -> backend %s", self.name, virtual_service.name)


@dataclass(frozen=True)
class WeightedTarget:
    """One target of a weighted route."""

    virtual_node: VirtualNode
    weight: int

    def to_spec(self) -> dict[str, Any]:
        return {"VirtualNode": self.virtual_node.name, "Weight": self.weight}


@dataclass
class MeshRoute:
    logical_id: str
    name: str
    weighted_targets: list[WeightedTarget]
    protocol: str = "http"
    prefix: str = "/"

    def spec(self) -> dict[str, Any]:
        """HTTP route spec: weighted round robin over the targets."""
        return {
            "HttpRoute": {
                "Match": {"Prefix": self.prefix},
                "Action": {
                    "WeightedTargets": [target.to_spec() for target in self.weighted_targets]
                },
            }
        }


@dataclass
class VirtualRouter:
    """Traffic splitter scoped to one route group."""

    logical_id: str
    name: str
    port: int
    environment: MeshEnvironment = field(repr=False)
    routes: list[MeshRoute] = field(default_factory=list)

    @classmethod
    def declare(
        cls, environment: MeshEnvironment, logical_id: str, name: str, port: int
    ) -> "VirtualRouter":
        environment.stack.add_resource(
            logical_id,
            ResourceType.VIRTUAL_ROUTER,
            {
                "MeshName": get_att(environment.mesh.logical_id, "MeshName"),
                "VirtualRouterName": name,
                "Spec": {
                    "Listeners": [{"PortMapping": {"Port": port, "Protocol": "http"}}]
                },
            },
        )
        return cls(logical_id=logical_id, name=name, port=port, environment=environment)

    def add_route(
        self, logical_id: str, route_name: str, weighted_targets: list[WeightedTarget]
    ) -> MeshRoute:
        if not weighted_targets:
            raise ValidationError(f"Route {route_name} needs at least one weighted target")

        route = MeshRoute(
            logical_id=logical_id,
            name=route_name,
            weighted_targets=list(weighted_targets),
        )
        self.environment.stack.add_resource(
            logical_id,
            ResourceType.MESH_ROUTE,
            {
                "MeshName": get_att(self.environment.mesh.logical_id, "MeshName"),
                "VirtualRouterName": get_att(self.logical_id, "VirtualRouterName"),
                "RouteName": route_name,
                "Spec": route.spec(),
            },
            depends_on=[self.logical_id]
            + [target.virtual_node.logical_id for target in weighted_targets],
        )
        self.routes.append(route)
        return route


@dataclass
class VirtualService:
    """The one externally-resolvable name of a route group."""

    logical_id: str
    name: str
    router: VirtualRouter

    @classmethod
    def declare(
        cls,
        environment: MeshEnvironment,
        logical_id: str,
        name: str,
        router: VirtualRouter,
    ) -> "VirtualService":
        environment.stack.add_resource(
            logical_id,
            ResourceType.VIRTUAL_SERVICE,
            {
                "MeshName": get_att(environment.mesh.logical_id, "MeshName"),
                "VirtualServiceName": name,
                "Spec": {
                    "Provider": {
                        "VirtualRouter": {
                            "VirtualRouterName": get_att(router.logical_id, "VirtualRouterName")
                        }
                    }
                },
            },
            depends_on=[router.logical_id],
        )
        return cls(logical_id=logical_id, name=name, router=router)
