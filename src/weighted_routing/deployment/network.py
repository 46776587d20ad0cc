"""
Shared virtual network for the topology.

One VPC spread over ``max_azs`` availability zones. Every zone gets a public
subnet (internet gateway route, NAT gateway) and a private subnet whose
default route goes through that zone's NAT gateway. Tasks run in the private
subnets; front doors live in the public ones.
"""

import ipaddress
import logging
from dataclasses import dataclass, field

from ..errors import ValidationError
from .infrastructure import InfrastructureStack, ResourceType, get_att, ref

logger = logging.getLogger(__name__)

DEFAULT_CIDR = "10.0.0.0/16"
MAX_SUBNET_PREFIX = 28


@dataclass
class NetworkContext:
    """Handles to the network resources other components attach to."""

    vpc_id: str
    cidr: str
    public_subnet_ids: list[str] = field(default_factory=list)
    private_subnet_ids: list[str] = field(default_factory=list)

    def public_subnets(self) -> list[dict]:
        return [ref(subnet) for subnet in self.public_subnet_ids]

    def private_subnets(self) -> list[dict]:
        return [ref(subnet) for subnet in self.private_subnet_ids]


def create_network(
    stack: InfrastructureStack,
    name: str = "VPC",
    max_azs: int = 2,
    cidr: str = DEFAULT_CIDR,
) -> NetworkContext:
    """Declare the VPC and its per-zone subnets, gateways and routes."""
    if isinstance(max_azs, bool) or not isinstance(max_azs, int) or max_azs < 1:
        raise ValidationError(f"max_azs must be a positive integer, got {max_azs!r}")

    try:
        network = ipaddress.ip_network(cidr)
    except ValueError as e:
        raise ValidationError(f"Invalid VPC CIDR {cidr!r}: {e}") from e

    # one public and one private block per zone
    new_prefix = network.prefixlen + (2 * max_azs - 1).bit_length()
    if new_prefix > MAX_SUBNET_PREFIX:
        raise ValidationError(f"CIDR {cidr} is too small for {max_azs} availability zones")
    blocks = list(network.subnets(new_prefix=new_prefix))

    stack.add_resource(
        name,
        ResourceType.VPC,
        {
            "CidrBlock": cidr,
            "EnableDnsHostnames": True,
            "EnableDnsSupport": True,
            "Tags": [{"Key": "Name", "Value": f"{stack.name}/{name}"}],
        },
    )

    igw_id = f"{name}IGW"
    stack.add_resource(igw_id, ResourceType.INTERNET_GATEWAY, {})
    attachment_id = f"{name}VPCGW"
    stack.add_resource(
        attachment_id,
        ResourceType.GATEWAY_ATTACHMENT,
        {"VpcId": ref(name), "InternetGatewayId": ref(igw_id)},
    )

    context = NetworkContext(vpc_id=name, cidr=cidr)

    for az in range(max_azs):
        availability_zone = {"Fn::Select": [az, {"Fn::GetAZs": ""}]}
        public_id = f"{name}PublicSubnet{az + 1}"
        private_id = f"{name}PrivateSubnet{az + 1}"

        stack.add_resource(
            public_id,
            ResourceType.SUBNET,
            {
                "VpcId": ref(name),
                "CidrBlock": str(blocks[az]),
                "AvailabilityZone": availability_zone,
                "MapPublicIpOnLaunch": True,
            },
        )
        public_rt = f"{public_id}RouteTable"
        stack.add_resource(public_rt, ResourceType.ROUTE_TABLE, {"VpcId": ref(name)})
        stack.add_resource(
            f"{public_id}RouteTableAssociation",
            ResourceType.ROUTE_TABLE_ASSOCIATION,
            {"RouteTableId": ref(public_rt), "SubnetId": ref(public_id)},
        )
        stack.add_resource(
            f"{public_id}DefaultRoute",
            ResourceType.NETWORK_ROUTE,
            {
                "RouteTableId": ref(public_rt),
                "DestinationCidrBlock": "0.0.0.0/0",
                "GatewayId": ref(igw_id),
            },
            depends_on=[attachment_id],
        )

        eip_id = f"{public_id}EIP"
        nat_id = f"{public_id}NATGateway"
        stack.add_resource(eip_id, ResourceType.ELASTIC_IP, {"Domain": "vpc"})
        stack.add_resource(
            nat_id,
            ResourceType.NAT_GATEWAY,
            {"AllocationId": get_att(eip_id, "AllocationId"), "SubnetId": ref(public_id)},
        )

        stack.add_resource(
            private_id,
            ResourceType.SUBNET,
            {
                "VpcId": ref(name),
                "CidrBlock": str(blocks[max_azs + az]),
                "AvailabilityZone": availability_zone,
                "MapPublicIpOnLaunch": False,
            },
        )
        private_rt = f"{private_id}RouteTable"
        stack.add_resource(private_rt, ResourceType.ROUTE_TABLE, {"VpcId": ref(name)})
        stack.add_resource(
            f"{private_id}RouteTableAssociation",
            ResourceType.ROUTE_TABLE_ASSOCIATION,
            {"RouteTableId": ref(private_rt), "SubnetId": ref(private_id)},
        )
        stack.add_resource(
            f"{private_id}DefaultRoute",
            ResourceType.NETWORK_ROUTE,
            {
                "RouteTableId": ref(private_rt),
                "DestinationCidrBlock": "0.0.0.0/0",
                "NatGatewayId": ref(nat_id),
            },
        )

        context.public_subnet_ids.append(public_id)
        context.private_subnet_ids.append(private_id)

    logger.debug("Declared network %s across %d availability zones", name, max_azs)
    return context
