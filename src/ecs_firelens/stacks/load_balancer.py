"""
Load balancer construct.

Declares the public entry point: ALB, HTTP listener and IP target group.
"""

from __future__ import annotations

from aws_cdk import aws_ec2 as ec2
from aws_cdk import aws_elasticloadbalancingv2 as elbv2
from constructs import Construct

from ..config import HEALTH_CHECK_PATH, HEALTHY_HTTP_CODES, LISTENER_PORT


class LoadBalancerConstruct(Construct):
    """Internet-facing ALB forwarding HTTP to a single target group."""

    def __init__(
        self,
        scope: Construct,
        id: str,
        *,
        vpc: ec2.IVpc,
        security_group: ec2.ISecurityGroup,
        target_port: int,
    ) -> None:
        super().__init__(scope, id)

        self.load_balancer = elbv2.ApplicationLoadBalancer(
            self,
            "Alb",
            vpc=vpc,
            security_group=security_group,
            internet_facing=True,
        )

        self.listener = self.load_balancer.add_listener(
            "Listener",
            protocol=elbv2.ApplicationProtocol.HTTP,
            port=LISTENER_PORT,
        )

        # Targets register by task IP, so Fargate tasks attach directly.
        self.target_group = elbv2.ApplicationTargetGroup(
            self,
            "TargetGroup",
            vpc=vpc,
            port=target_port,
            protocol=elbv2.ApplicationProtocol.HTTP,
            target_type=elbv2.TargetType.IP,
            health_check=elbv2.HealthCheck(
                path=HEALTH_CHECK_PATH,
                healthy_http_codes=HEALTHY_HTTP_CODES,
            ),
        )

        self.listener.add_target_groups(
            "AddTargetGroup",
            target_groups=[self.target_group],
        )

    @property
    def url(self) -> str:
        """Public HTTP URL of the load balancer."""
        return f"http://{self.load_balancer.load_balancer_dns_name}"
