"""
Route groups: one logical service name over weighted replicas.
"""

import logging
from typing import Any

from ..config import RouteConfig
from ..deployment.core import HealthCheck, validate_port
from ..deployment.infrastructure import ResourceType, logical_id, ref, scoped_logical_id
from ..errors import DuplicateNameError, ValidationError
from ..service_mesh.core import MeshEnvironment, ensure_environment
from ..service_mesh.traffic_management import (
    MeshRoute,
    VirtualRouter,
    VirtualService,
    WeightedTarget,
)
from .plan import compute_shares
from .replica import ReplicaUnit

logger = logging.getLogger(__name__)

# The mesh intercepts traffic to the published name before this address is
# ever dialed; the record only has to exist so the application's DNS lookup
# succeeds. See the App Mesh connectivity troubleshooting guide.
PLACEHOLDER_ADDRESS = "10.10.10.10"
PLACEHOLDER_TTL = "1800"


def _coerce_routes(routes: Any) -> list[RouteConfig]:
    if not isinstance(routes, (list, tuple)) or not routes:
        raise ValidationError("A route group needs at least one route")
    coerced = [r if isinstance(r, RouteConfig) else RouteConfig.from_dict(r) for r in routes]
    for route in coerced:
        route.validate()
    return coerced


class RouteGroup:
    """Replicas behind one virtual router and one published virtual service.

    Callers address the group by ``published_name`` whatever the number of
    replicas. The router splits traffic across them in proportion to their
    weights; a weight of 0 keeps a replica registered and health-checked but
    sends it no traffic.
    """

    def __init__(
        self,
        name: str,
        port: int,
        routes: list[RouteConfig] | list[dict[str, Any]],
        environment: MeshEnvironment,
        health_check: HealthCheck | None = None,
    ):
        if not isinstance(name, str) or not name.strip():
            raise ValidationError(f"Route group name must be a non-empty string, got {name!r}")
        validate_port(port, f"route group {name}")
        self.routes = _coerce_routes(routes)

        names = [route.name for route in self.routes]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise DuplicateNameError(
                f"Route group {name} declares duplicate routes: {', '.join(duplicates)}"
            )
        if sum(route.weight for route in self.routes) <= 0:
            raise ValidationError(f"Route group {name} must have a positive total weight")

        self.environment = ensure_environment(environment)
        self.name = name
        self.port = port
        self.scope_id = logical_id("RouteGroup", scoped_logical_id(name))

        self.replicas = [
            ReplicaUnit(
                route.name,
                port,
                self.environment,
                health_check=health_check,
                scope_id=self.scope_id,
            )
            for route in self.routes
        ]

        self.router = VirtualRouter.declare(
            self.environment,
            f"{self.scope_id}VirtualRouter",
            name=f"VirtualRouter_{name}",
            port=port,
        )

        weighted_targets = [
            WeightedTarget(virtual_node=replica.virtual_node, weight=route.weight)
            for replica, route in zip(self.replicas, self.routes)
        ]
        self.route: MeshRoute = self.router.add_route(
            f"{self.scope_id}VirtualRoute", f"Route_{name}", weighted_targets
        )

        self.published_name = self.environment.hosted_zone.qualify(name)
        self.virtual_service = VirtualService.declare(
            self.environment,
            f"{self.scope_id}VirtualService",
            name=self.published_name,
            router=self.router,
        )
        self.record_id = self._create_placeholder_record()

        logger.info(
            "Created route group %s -> %s with %d replicas",
            name,
            self.published_name,
            len(self.replicas),
        )

    def _create_placeholder_record(self) -> str:
        record_id = f"{self.scope_id}ARecord"
        self.environment.stack.add_resource(
            record_id,
            ResourceType.RECORD_SET,
            {
                "HostedZoneId": ref(self.environment.hosted_zone.logical_id),
                "Name": f"{self.published_name}.",
                "Type": "A",
                "TTL": PLACEHOLDER_TTL,
                "ResourceRecords": [PLACEHOLDER_ADDRESS],
            },
        )
        return record_id

    @property
    def weighted_targets(self) -> list[WeightedTarget]:
        return list(self.route.weighted_targets)

    def traffic_shares(self) -> dict[str, float]:
        """Fraction of the group's traffic each replica receives."""
        return compute_shares([(route.name, route.weight) for route in self.routes])

    def replica(self, name: str) -> ReplicaUnit:
        for replica in self.replicas:
            if replica.name == name:
                return replica
        raise ValidationError(f"Route group {self.name} has no replica {name!r}")

    def add_backends(self, other: "RouteGroup") -> None:
        """Make ``other`` reachable from every replica of this group.

        Each replica here gets ``other``'s virtual service as a mesh backend,
        and every (caller, callee) replica pair gets its own ingress rule on
        the callee's port: N callers and M callees yield N backends and N*M
        rules.
        """
        for source in self.replicas:
            source.add_backend(other.virtual_service)
            for target in other.replicas:
                source.allow_to(
                    target,
                    target.port,
                    f"Allow inbound traffic from {source.name} to {target.name} "
                    f"(TCP {target.port})",
                )
        logger.info("Route group %s may call %s", self.name, other.published_name)

    def __repr__(self) -> str:
        return f"RouteGroup(name={self.name!r}, replicas={[r.name for r in self.replicas]})"
