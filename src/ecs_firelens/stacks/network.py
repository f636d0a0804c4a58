"""
Network construct.

Declares the VPC and the two security groups that form the access boundary.
"""

from __future__ import annotations

from aws_cdk import aws_ec2 as ec2
from constructs import Construct

from ..config import NAT_GATEWAYS, PUBLIC_CIDR, NetworkConfig


class NetworkConstruct(Construct):
    """
    VPC and security groups.

    Creates:
    - VPC with public and isolated subnets, no NAT gateways
    - Load balancer security group open to the internet on the listener port
    - Service security group reachable only from the load balancer group
    """

    def __init__(
        self,
        scope: Construct,
        id: str,
        *,
        config: NetworkConfig,
        listener_port: int,
    ) -> None:
        super().__init__(scope, id)

        # =====================================================================
        # VPC
        # =====================================================================

        # Without NAT gateways only public and isolated subnets are valid.
        self.vpc = ec2.Vpc(
            self,
            "Vpc",
            max_azs=config.availability_zones,
            nat_gateways=NAT_GATEWAYS,
            ip_addresses=ec2.IpAddresses.cidr(config.vpc_cidr),
            subnet_configuration=[
                ec2.SubnetConfiguration(
                    name="Public",
                    subnet_type=ec2.SubnetType.PUBLIC,
                    cidr_mask=24,
                ),
                ec2.SubnetConfiguration(
                    name="Isolated",
                    subnet_type=ec2.SubnetType.PRIVATE_ISOLATED,
                    cidr_mask=24,
                ),
            ],
        )

        # =====================================================================
        # Security Groups
        # =====================================================================

        self.alb_security_group = ec2.SecurityGroup(
            self,
            "AlbSecurityGroup",
            vpc=self.vpc,
            description="Security group for Application Load Balancer",
            allow_all_outbound=True,
        )
        self.alb_security_group.add_ingress_rule(
            ec2.Peer.ipv4(PUBLIC_CIDR),
            ec2.Port.tcp(listener_port),
            "Allow HTTP from internet",
        )

        self.service_security_group = ec2.SecurityGroup(
            self,
            "ServiceSecurityGroup",
            vpc=self.vpc,
            description="Security group for ECS Fargate tasks",
            allow_all_outbound=True,
        )
        self.service_security_group.add_ingress_rule(
            self.alb_security_group,
            ec2.Port.all_traffic(),
            "Allow traffic from ALB",
        )
