"""
Topology graph: the top-level assembly compiled into one stack.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from ..config import TopologyConfig, default_topology
from ..deployment.infrastructure import InfrastructureStack
from ..errors import ValidationError
from ..service_mesh.core import MeshEnvironment, create_environment
from .edge import EdgeExposure, PublicEndpoint
from .plan import TopologyPlan, plan_topology
from .replica import ReplicaUnit
from .route_group import RouteGroup

logger = logging.getLogger(__name__)


@dataclass
class CompiledTopology:
    """Result of one compilation: the stack plus handles into it."""

    stack: InfrastructureStack
    environment: MeshEnvironment
    plan: TopologyPlan
    groups: dict[str, RouteGroup] = field(default_factory=dict)
    endpoints: list[PublicEndpoint] = field(default_factory=list)

    def group(self, name: str) -> RouteGroup:
        try:
            return self.groups[name]
        except KeyError:
            raise ValidationError(f"Unknown route group {name!r}") from None

    def replica(self, name: str) -> ReplicaUnit:
        for group in self.groups.values():
            for replica in group.replicas:
                if replica.name == name:
                    return replica
        raise ValidationError(f"Unknown replica {name!r}")

    def to_template(self) -> dict[str, Any]:
        return self.stack.to_template()


class TopologyGraph:
    """Compiles a ``TopologyConfig`` into a deployable resource graph.

    Compilation is synchronous and deterministic: groups are built in
    declaration order and edges are wired in declaration order, so the same
    configuration always renders the same template. Every ``compile`` call
    starts from an empty stack; there is no incremental update.
    """

    def __init__(self, config: TopologyConfig | None = None):
        self.config = config or default_topology()

    def plan(self) -> TopologyPlan:
        return plan_topology(self.config)

    def compile(self) -> CompiledTopology:
        config = self.config
        plan = self.plan()

        stack = InfrastructureStack(
            config.stack_name,
            description="Weighted routing between service versions behind an App Mesh sidecar",
        )
        environment = create_environment(
            stack,
            mesh_name=config.mesh_name,
            namespace_name=config.namespace,
            zone_name=config.hosted_zone,
            max_azs=config.max_azs,
            region=config.region,
        )

        compiled = CompiledTopology(stack=stack, environment=environment, plan=plan)
        for group_config in config.groups:
            compiled.groups[group_config.name] = RouteGroup(
                group_config.name,
                group_config.port,
                group_config.routes,
                environment,
                health_check=group_config.health_check,
            )

        for edge in config.edges:
            compiled.group(edge.source).add_backends(compiled.group(edge.target))

        exposure = EdgeExposure(public_port=config.public_port)
        for replica_name in config.expose:
            compiled.endpoints.append(exposure.attach(compiled.replica(replica_name)))

        logger.info(
            "Compiled stack %s: %d groups, %d replicas, %d grants, %d resources",
            stack.name,
            len(compiled.groups),
            len(plan.replicas),
            len(plan.grants),
            stack.resource_count(),
        )
        return compiled


def compile_topology(config: TopologyConfig | None = None) -> CompiledTopology:
    """Compile ``config`` (or the reference topology) in one call."""
    return TopologyGraph(config).compile()
