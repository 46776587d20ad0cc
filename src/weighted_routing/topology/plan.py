"""
Pure expansion of a topology configuration.

``plan_topology`` turns the group -> [(replica, weight)] mapping into what
has to be built: the replicas, one weighted routing rule per group, the mesh
backend declarations and the pairwise network grants. It touches no
resource graph, so the same input always yields an equal plan.
"""

from dataclasses import dataclass, field

from ..config import TopologyConfig


def compute_shares(weights: list[tuple[str, int]]) -> dict[str, float]:
    """Fraction of traffic each target receives: weight / sum of weights."""
    total = sum(weight for _, weight in weights)
    if total <= 0:
        return {name: 0.0 for name, _ in weights}
    return {name: weight / total for name, weight in weights}


@dataclass(frozen=True)
class ReplicaPlan:
    name: str
    group: str
    port: int
    weight: int
    exposed: bool = False


@dataclass(frozen=True)
class RoutePlan:
    group: str
    published_name: str
    port: int
    targets: tuple[tuple[str, int], ...]

    def shares(self) -> dict[str, float]:
        return compute_shares(list(self.targets))


@dataclass(frozen=True)
class BackendDeclaration:
    """``replica`` may resolve ``virtual_service`` through the mesh."""

    replica: str
    virtual_service: str


@dataclass(frozen=True)
class PermissionGrant:
    """Network ingress on ``target``'s port from ``source``."""

    source: str
    target: str
    port: int

    @property
    def description(self) -> str:
        return f"Allow inbound traffic from {self.source} to {self.target} (TCP {self.port})"


@dataclass
class TopologyPlan:
    replicas: list[ReplicaPlan] = field(default_factory=list)
    routes: list[RoutePlan] = field(default_factory=list)
    backends: list[BackendDeclaration] = field(default_factory=list)
    grants: list[PermissionGrant] = field(default_factory=list)
    front_doors: list[str] = field(default_factory=list)

    def route_for(self, group: str) -> RoutePlan:
        for route in self.routes:
            if route.group == group:
                return route
        raise KeyError(group)


def published_name(group: str, zone: str) -> str:
    return f"{group}.{zone}".lower()


def plan_topology(config: TopologyConfig) -> TopologyPlan:
    """Validate ``config`` and expand it into a ``TopologyPlan``."""
    config.validate()
    exposed = set(config.expose)
    plan = TopologyPlan(front_doors=list(config.expose))

    for group in config.groups:
        for route in group.routes:
            plan.replicas.append(
                ReplicaPlan(
                    name=route.name,
                    group=group.name,
                    port=group.port,
                    weight=route.weight,
                    exposed=route.name in exposed,
                )
            )
        plan.routes.append(
            RoutePlan(
                group=group.name,
                published_name=published_name(group.name, config.hosted_zone),
                port=group.port,
                targets=tuple((route.name, route.weight) for route in group.routes),
            )
        )

    for edge in config.edges:
        source = config.get_group(edge.source)
        target = config.get_group(edge.target)
        virtual_service = published_name(target.name, config.hosted_zone)
        for caller in source.routes:
            plan.backends.append(BackendDeclaration(caller.name, virtual_service))
            for callee in target.routes:
                plan.grants.append(PermissionGrant(caller.name, callee.name, target.port))

    return plan
