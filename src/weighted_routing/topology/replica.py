"""
Replica units: one independently addressable, health-checked service version.

A replica is a Fargate service running the application container next to
an Envoy sidecar and an X-Ray daemon, registered in the shared Cloud Map
namespace and represented in the mesh by a virtual node of the same name.
"""

import logging
from typing import Any

from ..deployment.core import ContainerHealthCheck, HealthCheck, validate_port
from ..deployment.infrastructure import ResourceType, get_att, ref, scoped_logical_id
from ..errors import ValidationError
from ..service_mesh.core import MeshEnvironment, ensure_environment, namespace_id
from ..service_mesh.traffic_management import VirtualNode, VirtualService

logger = logging.getLogger(__name__)

ENVOY_IMAGE = "public.ecr.aws/appmesh/aws-appmesh-envoy:v1.17.2.0-prod"
XRAY_IMAGE = "amazon/aws-xray-daemon:3.3.2"

APP_CONTAINER = "app"
ENVOY_CONTAINER = "envoy"
XRAY_CONTAINER = "xray"

ENVOY_UID = 1337
PROXY_INGRESS_PORT = 15000
PROXY_EGRESS_PORT = 15001
XRAY_DAEMON_PORT = 2000
# task metadata endpoint and instance metadata service
EGRESS_IGNORED_IPS = ("169.254.170.2", "169.254.169.254")

TASK_CPU = "256"
TASK_MEMORY = "512"
ENVOY_MEMORY_MIB = 128

TASK_ROLE_POLICIES = (
    "AWSAppMeshEnvoyAccess",
    "CloudWatchLogsFullAccess",
    "AWSXRayDaemonWriteAccess",
)
EXECUTION_ROLE_POLICIES = (
    "AmazonEC2ContainerRegistryReadOnly",
    "service-role/AmazonECSTaskExecutionRolePolicy",
)


def managed_policy(name: str) -> dict[str, Any]:
    return {"Fn::Join": ["", ["arn:", ref("AWS::Partition"), f":iam::aws:policy/{name}"]]}


def container_image(name: str) -> dict[str, Any]:
    """ECR image built from ``containers/<name>``."""
    repository = name.lower().replace("_", "-")
    return {
        "Fn::Sub": "${AWS::AccountId}.dkr.ecr.${AWS::Region}.amazonaws.com/"
        f"{repository}:latest"
    }


class ReplicaUnit:
    """One replica of a service version and its mesh routing node.

    The name doubles as the Cloud Map service name and the virtual node name,
    so it must be unique across the whole topology; the shared namespace
    rejects a second registration.
    """

    def __init__(
        self,
        name: str,
        port: int,
        environment: MeshEnvironment,
        health_check: HealthCheck | None = None,
        scope_id: str = "",
    ):
        if not isinstance(name, str) or not name.strip():
            raise ValidationError(f"Replica name must be a non-empty string, got {name!r}")
        validate_port(port, f"replica {name}")
        self.environment = ensure_environment(environment)
        self.health_check = health_check or HealthCheck()
        self.health_check.validate()

        self.name = name
        self.port = port
        self.id_prefix = scoped_logical_id(scope_id, name)
        self.front_doors: list[Any] = []

        self.environment.namespace.register(name)

        self.task_role_id = self._create_role("TaskRole", TASK_ROLE_POLICIES)
        self.execution_role_id = self._create_role("TaskExecutionRole", EXECUTION_ROLE_POLICIES)
        self.log_group_id = self._create_log_group()
        self.task_definition_id = self._create_task_definition()
        self.security_group_id = self._create_security_group()
        self.cloudmap_service_id = self._create_cloudmap_service()
        self.fargate_service_id = self._create_fargate_service()
        self.virtual_node = self._create_virtual_node()

        logger.debug("Created replica unit %s on port %d", name, port)

    @property
    def stack(self):
        return self.environment.stack

    def _id(self, suffix: str) -> str:
        return f"{self.id_prefix}{suffix}"

    def _create_role(self, kind: str, policies: tuple[str, ...]) -> str:
        role_id = self._id(kind)
        self.stack.add_resource(
            role_id,
            ResourceType.IAM_ROLE,
            {
                "AssumeRolePolicyDocument": {
                    "Version": "2012-10-17",
                    "Statement": [
                        {
                            "Action": "sts:AssumeRole",
                            "Effect": "Allow",
                            "Principal": {"Service": "ecs-tasks.amazonaws.com"},
                        }
                    ],
                },
                "ManagedPolicyArns": [managed_policy(p) for p in policies],
            },
        )
        return role_id

    def _create_log_group(self) -> str:
        log_group_id = self._id("LogGroup")
        self.stack.add_resource(log_group_id, ResourceType.LOG_GROUP, {"RetentionInDays": 30})
        return log_group_id

    def _log_configuration(self, stream_prefix: str) -> dict[str, Any]:
        return {
            "LogDriver": "awslogs",
            "Options": {
                "awslogs-group": ref(self.log_group_id),
                "awslogs-stream-prefix": stream_prefix,
                "awslogs-region": self.environment.region,
            },
        }

    def _app_container(self) -> dict[str, Any]:
        health_check = ContainerHealthCheck(
            command=[f"curl -sf http://localhost:{self.port}{self.health_check.path}"]
        )
        return {
            "Name": APP_CONTAINER,
            "Image": container_image(self.name),
            "Essential": True,
            "Environment": [{"Name": "PORT", "Value": str(self.port)}],
            "HealthCheck": health_check.to_dict(),
            "PortMappings": [
                {"ContainerPort": self.port, "HostPort": self.port, "Protocol": "tcp"}
            ],
            "LogConfiguration": self._log_configuration(self.name),
        }

    def _envoy_container(self) -> dict[str, Any]:
        health_check = ContainerHealthCheck(
            command=["curl -s http://localhost:9901/server_info | grep state | grep -q LIVE"]
        )
        return {
            "Name": ENVOY_CONTAINER,
            "Image": ENVOY_IMAGE,
            "Essential": True,
            "Environment": [
                {
                    "Name": "APPMESH_VIRTUAL_NODE_NAME",
                    "Value": self.environment.mesh.virtual_node_path(self.name),
                },
                {"Name": "AWS_REGION", "Value": self.environment.region},
            ],
            "HealthCheck": health_check.to_dict(),
            "Memory": ENVOY_MEMORY_MIB,
            "User": str(ENVOY_UID),
            "LogConfiguration": self._log_configuration(f"{self.name}_envoy"),
        }

    def _xray_container(self) -> dict[str, Any]:
        return {
            "Name": XRAY_CONTAINER,
            "Image": XRAY_IMAGE,
            "Essential": True,
            "PortMappings": [
                {
                    "ContainerPort": XRAY_DAEMON_PORT,
                    "HostPort": XRAY_DAEMON_PORT,
                    "Protocol": "udp",
                }
            ],
            "LogConfiguration": self._log_configuration(f"{self.name}_xray"),
        }

    def _proxy_configuration(self) -> dict[str, Any]:
        properties = {
            "AppPorts": str(self.port),
            "ProxyEgressPort": str(PROXY_EGRESS_PORT),
            "ProxyIngressPort": str(PROXY_INGRESS_PORT),
            "IgnoredUID": str(ENVOY_UID),
            "EgressIgnoredIPs": ",".join(EGRESS_IGNORED_IPS),
        }
        return {
            "Type": "APPMESH",
            "ContainerName": ENVOY_CONTAINER,
            "ProxyConfigurationProperties": [
                {"Name": key, "Value": value} for key, value in properties.items()
            ],
        }

    def _create_task_definition(self) -> str:
        task_definition_id = self._id("TaskDefinition")
        self.stack.add_resource(
            task_definition_id,
            ResourceType.TASK_DEFINITION,
            {
                "Family": task_definition_id,
                "Cpu": TASK_CPU,
                "Memory": TASK_MEMORY,
                "NetworkMode": "awsvpc",
                "RequiresCompatibilities": ["FARGATE"],
                "TaskRoleArn": get_att(self.task_role_id, "Arn"),
                "ExecutionRoleArn": get_att(self.execution_role_id, "Arn"),
                "ProxyConfiguration": self._proxy_configuration(),
                "ContainerDefinitions": [
                    self._app_container(),
                    self._envoy_container(),
                    self._xray_container(),
                ],
            },
        )
        return task_definition_id

    def _create_security_group(self) -> str:
        security_group_id = self._id("SecurityGroup")
        self.stack.add_resource(
            security_group_id,
            ResourceType.SECURITY_GROUP,
            {
                "GroupDescription": f"{self.stack.name}/{self.name} service security group",
                "VpcId": ref(self.environment.network.vpc_id),
                "SecurityGroupEgress": [
                    {
                        "CidrIp": "0.0.0.0/0",
                        "IpProtocol": "-1",
                        "Description": "Allow all outbound traffic by default",
                    }
                ],
            },
        )
        return security_group_id

    def _create_cloudmap_service(self) -> str:
        cloudmap_id = self._id("CloudmapService")
        self.stack.add_resource(
            cloudmap_id,
            ResourceType.CLOUDMAP_SERVICE,
            {
                "Name": self.name,
                "NamespaceId": namespace_id(self.environment),
                "DnsConfig": {
                    "DnsRecords": [{"Type": "A", "TTL": 0}],
                    "RoutingPolicy": "MULTIVALUE",
                },
                "HealthCheckCustomConfig": {"FailureThreshold": 1},
            },
        )
        return cloudmap_id

    def _create_fargate_service(self) -> str:
        service_id = self._id("FargateService")
        self.stack.add_resource(
            service_id,
            ResourceType.FARGATE_SERVICE,
            {
                "Cluster": ref(self.environment.cluster.logical_id),
                "TaskDefinition": ref(self.task_definition_id),
                "DesiredCount": 1,
                "LaunchType": "FARGATE",
                "NetworkConfiguration": {
                    "AwsvpcConfiguration": {
                        "AssignPublicIp": "DISABLED",
                        "SecurityGroups": [get_att(self.security_group_id, "GroupId")],
                        "Subnets": self.environment.network.private_subnets(),
                    }
                },
                "ServiceRegistries": [{"RegistryArn": get_att(self.cloudmap_service_id, "Arn")}],
                "LoadBalancers": [],
            },
            depends_on=[self.task_role_id],
        )
        return service_id

    def _create_virtual_node(self) -> VirtualNode:
        return VirtualNode.declare(
            self.environment,
            self._id("VirtualNode"),
            name=self.name,
            port=self.port,
            health_check=self.health_check,
            cloudmap_service_name=self.name,
            depends_on=[self.cloudmap_service_id],
        )

    def add_backend(self, virtual_service: VirtualService) -> None:
        """Let this replica's routing node call ``virtual_service``."""
        self.virtual_node.add_backend(virtual_service)

    def allow_to(self, other: "ReplicaUnit", port: int, description: str = "") -> str:
        """Open ``other``'s security group to this replica on ``port``."""
        ingress_id = f"{other.security_group_id}From{self.security_group_id}{port}"
        self.stack.add_resource(
            ingress_id,
            ResourceType.SECURITY_GROUP_INGRESS,
            {
                "GroupId": get_att(other.security_group_id, "GroupId"),
                "SourceSecurityGroupId": get_att(self.security_group_id, "GroupId"),
                "IpProtocol": "tcp",
                "FromPort": port,
                "ToPort": port,
                "Description": description
                or f"Allow inbound traffic from {self.name} to {other.name} (TCP {port})",
            },
        )
        return ingress_id

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "port": self.port,
            "health_check": self.health_check.to_dict(),
            "backends": self.virtual_node.backends,
            "front_doors": len(self.front_doors),
        }

    def __repr__(self) -> str:
        return f"ReplicaUnit(name={self.name!r}, port={self.port})"

