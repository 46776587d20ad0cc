"""
Infrastructure as Code resource graph for the weighted routing topology.

The compiler never provisions anything itself. It accumulates resource
declarations and dependency edges in an ``InfrastructureStack`` and renders
them as a CloudFormation template for an external provisioning engine.
"""

import hashlib
import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from ..errors import DuplicateNameError, ValidationError

logger = logging.getLogger(__name__)

TEMPLATE_FORMAT_VERSION = "2010-09-09"


class ResourceType(Enum):
    """Provider resource types emitted by the compiler."""

    VPC = "AWS::EC2::VPC"
    SUBNET = "AWS::EC2::Subnet"
    INTERNET_GATEWAY = "AWS::EC2::InternetGateway"
    GATEWAY_ATTACHMENT = "AWS::EC2::VPCGatewayAttachment"
    ELASTIC_IP = "AWS::EC2::EIP"
    NAT_GATEWAY = "AWS::EC2::NatGateway"
    ROUTE_TABLE = "AWS::EC2::RouteTable"
    NETWORK_ROUTE = "AWS::EC2::Route"
    ROUTE_TABLE_ASSOCIATION = "AWS::EC2::SubnetRouteTableAssociation"
    SECURITY_GROUP = "AWS::EC2::SecurityGroup"
    SECURITY_GROUP_INGRESS = "AWS::EC2::SecurityGroupIngress"
    MESH = "AWS::AppMesh::Mesh"
    VIRTUAL_NODE = "AWS::AppMesh::VirtualNode"
    VIRTUAL_ROUTER = "AWS::AppMesh::VirtualRouter"
    MESH_ROUTE = "AWS::AppMesh::Route"
    VIRTUAL_SERVICE = "AWS::AppMesh::VirtualService"
    CLOUDMAP_NAMESPACE = "AWS::ServiceDiscovery::PrivateDnsNamespace"
    CLOUDMAP_SERVICE = "AWS::ServiceDiscovery::Service"
    HOSTED_ZONE = "AWS::Route53::HostedZone"
    RECORD_SET = "AWS::Route53::RecordSet"
    ECS_CLUSTER = "AWS::ECS::Cluster"
    TASK_DEFINITION = "AWS::ECS::TaskDefinition"
    FARGATE_SERVICE = "AWS::ECS::Service"
    IAM_ROLE = "AWS::IAM::Role"
    LOG_GROUP = "AWS::Logs::LogGroup"
    LOAD_BALANCER = "AWS::ElasticLoadBalancingV2::LoadBalancer"
    LISTENER = "AWS::ElasticLoadBalancingV2::Listener"
    TARGET_GROUP = "AWS::ElasticLoadBalancingV2::TargetGroup"


def ref(logical_id: str) -> dict[str, Any]:
    """Reference another resource in the same stack."""
    return {"Ref": logical_id}


def get_att(logical_id: str, attribute: str) -> dict[str, Any]:
    """Reference an attribute of another resource in the same stack."""
    return {"Fn::GetAtt": [logical_id, attribute]}


def logical_id(*parts: str) -> str:
    """Build a template logical id from construct path segments.

    Logical ids are alphanumeric only, so separators and punctuation are
    dropped: ``logical_id("AppMeshServiceB", "serviceB_v1")`` yields
    ``AppMeshServiceBserviceBv1``.
    """
    joined = "".join(re.sub(r"[^A-Za-z0-9]", "", part) for part in parts)
    if not joined:
        raise ValidationError(f"Cannot derive a logical id from {parts!r}")
    return joined


def scoped_logical_id(*parts: str) -> str:
    """Build a logical id that stays distinct for distinct construct paths.

    A single plain alphanumeric segment maps to itself. Anything else gets
    an eight character digest of the raw segments appended, so ``v_1`` and
    ``v1``, or group ``ab`` with replica ``c`` and group ``a`` with replica
    ``bc``, never share an id.
    """
    segments = [part for part in parts if part]
    base = logical_id(*segments)
    if len(segments) == 1 and base == segments[0]:
        return base
    digest = hashlib.sha256(json.dumps(segments).encode("utf-8")).hexdigest()[:8]
    return f"{base}{digest}"


@dataclass
class ResourceConfig:
    """One resource declaration in the stack."""

    logical_id: str
    type: ResourceType
    properties: dict[str, Any] = field(default_factory=dict)
    dependencies: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Render as a template resource entry."""
        entry: dict[str, Any] = {"Type": self.type.value, "Properties": self.properties}
        if self.dependencies:
            entry["DependsOn"] = sorted(set(self.dependencies))
        return entry


@dataclass
class StackOutput:
    """Named value surfaced to the operator once provisioning completes."""

    name: str
    value: Any
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        output: dict[str, Any] = {"Value": self.value}
        if self.description:
            output["Description"] = self.description
        return output


class InfrastructureStack:
    """Ordered resource graph deployed and torn down as one unit."""

    def __init__(self, name: str, description: str = ""):
        if not name:
            raise ValidationError("Stack name is required")
        self.name = name
        self.description = description
        self._resources: dict[str, ResourceConfig] = {}
        self._outputs: dict[str, StackOutput] = {}

    def add_resource(
        self,
        resource_id: str,
        resource_type: ResourceType,
        properties: dict[str, Any] | None = None,
        depends_on: list[str] | None = None,
    ) -> ResourceConfig:
        """Declare a resource. Logical ids are unique within the stack."""
        if resource_id in self._resources:
            raise DuplicateNameError(
                f"Resource {resource_id} is already declared in stack {self.name}",
                details={"logical_id": resource_id},
            )
        resource = ResourceConfig(
            logical_id=resource_id,
            type=resource_type,
            properties=properties or {},
        )
        self._resources[resource_id] = resource
        for dependency in depends_on or []:
            self.add_dependency(resource_id, dependency)
        logger.debug("Declared %s %s", resource_type.value, resource_id)
        return resource

    def add_dependency(self, resource_id: str, depends_on: str) -> None:
        """Record that ``resource_id`` must be created after ``depends_on``."""
        resource = self.get_resource(resource_id)
        if depends_on not in self._resources:
            raise ValidationError(
                f"Resource {resource_id} depends on undeclared resource {depends_on}"
            )
        if depends_on not in resource.dependencies:
            resource.dependencies.append(depends_on)

    def add_output(self, name: str, value: Any, description: str = "") -> StackOutput:
        if name in self._outputs:
            raise DuplicateNameError(f"Output {name} is already declared in stack {self.name}")
        output = StackOutput(name=name, value=value, description=description)
        self._outputs[name] = output
        return output

    def get_resource(self, resource_id: str) -> ResourceConfig:
        try:
            return self._resources[resource_id]
        except KeyError:
            raise ValidationError(f"Unknown resource {resource_id} in stack {self.name}") from None

    def has_resource(self, resource_id: str) -> bool:
        return resource_id in self._resources

    def resources_of_type(self, resource_type: ResourceType) -> list[ResourceConfig]:
        """Resources of one type, in declaration order."""
        return [r for r in self._resources.values() if r.type == resource_type]

    @property
    def resources(self) -> list[ResourceConfig]:
        return list(self._resources.values())

    @property
    def outputs(self) -> dict[str, StackOutput]:
        return dict(self._outputs)

    def resource_count(self) -> int:
        return len(self._resources)

    def to_template(self) -> dict[str, Any]:
        """Render the stack as a CloudFormation template mapping."""
        template: dict[str, Any] = {"AWSTemplateFormatVersion": TEMPLATE_FORMAT_VERSION}
        if self.description:
            template["Description"] = self.description
        template["Resources"] = {
            resource_id: resource.to_dict() for resource_id, resource in self._resources.items()
        }
        if self._outputs:
            template["Outputs"] = {
                name: output.to_dict() for name, output in self._outputs.items()
            }
        return template


class InfrastructureManager:
    """Synthesizes stacks to template files for the provisioning engine."""

    SUPPORTED_FORMATS = ("json", "yaml")

    def __init__(self, working_dir: Path):
        self.working_dir = Path(working_dir)

    def template_path(self, stack: InfrastructureStack, fmt: str = "json") -> Path:
        return self.working_dir / f"{stack.name}.template.{fmt}"

    def render(self, stack: InfrastructureStack, fmt: str = "json") -> str:
        if fmt not in self.SUPPORTED_FORMATS:
            raise ValueError(f"Unsupported template format: {fmt}")

        template = stack.to_template()
        if fmt == "yaml":
            return yaml.safe_dump(template, sort_keys=False, default_flow_style=False)
        return json.dumps(template, indent=2) + "\n"

    def write_stack(self, stack: InfrastructureStack, fmt: str = "json") -> Path:
        """Write the stack template and return its path."""
        content = self.render(stack, fmt)
        self.working_dir.mkdir(parents=True, exist_ok=True)

        path = self.template_path(stack, fmt)
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)

        logger.info(
            "Synthesized stack %s (%d resources) to %s",
            stack.name,
            stack.resource_count(),
            path,
        )
        return path
