"""
Edge exposure: an internet-facing load balancer in front of one replica.
"""

import logging
from dataclasses import dataclass
from typing import Any

from ..deployment.core import validate_port
from ..deployment.infrastructure import ResourceType, get_att, ref
from .replica import APP_CONTAINER, ReplicaUnit

logger = logging.getLogger(__name__)

DEFAULT_PUBLIC_PORT = 80


@dataclass(frozen=True)
class PublicEndpoint:
    """Descriptor of one front door, surfaced as a stack output."""

    replica: str
    load_balancer_id: str
    output_name: str
    public_port: int

    @property
    def address(self) -> dict[str, Any]:
        """Resolvable DNS name of the load balancer, known after provisioning."""
        return get_att(self.load_balancer_id, "DNSName")


class EdgeExposure:
    """Creates public front doors for replicas.

    ``attach`` is not idempotent: each call declares a new load balancer,
    listener and target group for the replica.
    """

    def __init__(self, public_port: int = DEFAULT_PUBLIC_PORT):
        self.public_port = validate_port(public_port, "the front door listener")

    def attach(self, replica: ReplicaUnit) -> PublicEndpoint:
        stack = replica.stack
        network = replica.environment.network

        ordinal = len(replica.front_doors)
        prefix = f"{replica.id_prefix}LoadBalancer{ordinal + 1 if ordinal else ''}"
        lb_security_group_id = f"{prefix}SecurityGroup"
        load_balancer_id = prefix
        listener_id = f"{prefix}Listener"
        target_group_id = f"{prefix}TargetGroup"

        stack.add_resource(
            lb_security_group_id,
            ResourceType.SECURITY_GROUP,
            {
                "GroupDescription": f"{stack.name}/{replica.name} load balancer security group",
                "VpcId": ref(network.vpc_id),
                "SecurityGroupIngress": [
                    {
                        "CidrIp": "0.0.0.0/0",
                        "IpProtocol": "tcp",
                        "FromPort": self.public_port,
                        "ToPort": self.public_port,
                        "Description": f"Allow from anyone on port {self.public_port}",
                    }
                ],
            },
        )

        stack.add_resource(
            load_balancer_id,
            ResourceType.LOAD_BALANCER,
            {
                "Type": "application",
                "Scheme": "internet-facing",
                "Subnets": network.public_subnets(),
                "SecurityGroups": [get_att(lb_security_group_id, "GroupId")],
            },
            # public subnets need their default route before the LB can serve
            depends_on=[f"{subnet}DefaultRoute" for subnet in network.public_subnet_ids],
        )

        stack.add_resource(
            target_group_id,
            ResourceType.TARGET_GROUP,
            {
                "Port": replica.port,
                "Protocol": "HTTP",
                "TargetType": "ip",
                "VpcId": ref(network.vpc_id),
                "HealthCheckPath": replica.health_check.path,
            },
        )

        stack.add_resource(
            listener_id,
            ResourceType.LISTENER,
            {
                "LoadBalancerArn": ref(load_balancer_id),
                "Port": self.public_port,
                "Protocol": "HTTP",
                "DefaultActions": [{"Type": "forward", "TargetGroupArn": ref(target_group_id)}],
            },
        )

        stack.add_resource(
            f"{replica.security_group_id}From{lb_security_group_id}{replica.port}",
            ResourceType.SECURITY_GROUP_INGRESS,
            {
                "GroupId": get_att(replica.security_group_id, "GroupId"),
                "SourceSecurityGroupId": get_att(lb_security_group_id, "GroupId"),
                "IpProtocol": "tcp",
                "FromPort": replica.port,
                "ToPort": replica.port,
                "Description": "Load balancer to target",
            },
        )

        service = stack.get_resource(replica.fargate_service_id)
        service.properties["LoadBalancers"].append(
            {
                "ContainerName": APP_CONTAINER,
                "ContainerPort": replica.port,
                "TargetGroupArn": ref(target_group_id),
            }
        )
        stack.add_dependency(replica.fargate_service_id, listener_id)

        endpoint = PublicEndpoint(
            replica=replica.name,
            load_balancer_id=load_balancer_id,
            output_name=f"ApiEndpoint{prefix}",
            public_port=self.public_port,
        )
        stack.add_output(
            endpoint.output_name,
            endpoint.address,
            description=f"Public endpoint of {replica.name}",
        )
        replica.front_doors.append(endpoint)

        logger.info("Exposed replica %s on public port %d", replica.name, self.public_port)
        return endpoint
