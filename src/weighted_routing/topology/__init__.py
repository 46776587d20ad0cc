"""
Topology compiler: replicas, route groups, front doors and the graph that
wires them together.
"""

from .edge import EdgeExposure, PublicEndpoint
from .graph import CompiledTopology, TopologyGraph, compile_topology
from .plan import (
    BackendDeclaration,
    PermissionGrant,
    ReplicaPlan,
    RoutePlan,
    TopologyPlan,
    compute_shares,
    plan_topology,
)
from .replica import ReplicaUnit
from .route_group import PLACEHOLDER_ADDRESS, RouteGroup

__all__ = [
    "PLACEHOLDER_ADDRESS",
    "BackendDeclaration",
    "CompiledTopology",
    "EdgeExposure",
    "PermissionGrant",
    "PublicEndpoint",
    "ReplicaPlan",
    "ReplicaUnit",
    "RouteGroup",
    "RoutePlan",
    "TopologyGraph",
    "TopologyPlan",
    "compile_topology",
    "compute_shares",
    "plan_topology",
]
