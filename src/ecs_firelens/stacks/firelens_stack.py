"""
FireLens service stack.

Composes network, load balancer, log delivery and compute constructs
into a single deployable stack.
"""

from __future__ import annotations

from pathlib import Path

from aws_cdk import CfnOutput, Stack
from constructs import Construct

from ..config import LISTENER_PORT, DeploymentConfig
from .compute import ComputeConstruct
from .delivery import LogDeliveryConstruct
from .load_balancer import LoadBalancerConstruct
from .network import NetworkConstruct


class FirelensStack(Stack):
    """
    Container service behind an ALB with logs routed to Firehose.

    Creates:
    - VPC and security groups (Network)
    - Application Load Balancer, listener and target group (LoadBalancer)
    - Log bucket and Firehose delivery stream (Delivery)
    - ECS cluster, task role, FireLens task definition and service (Compute)
    """

    def __init__(
        self,
        scope: Construct,
        id: str,
        *,
        config: DeploymentConfig,
        project_root: Path,
        **kwargs,
    ) -> None:
        super().__init__(scope, id, **kwargs)

        self.config = config

        self.network = NetworkConstruct(
            self,
            "Network",
            config=config.network,
            listener_port=LISTENER_PORT,
        )

        self.load_balancer = LoadBalancerConstruct(
            self,
            "LoadBalancer",
            vpc=self.network.vpc,
            security_group=self.network.alb_security_group,
            target_port=config.application.container_port,
        )

        self.delivery = LogDeliveryConstruct(
            self,
            "Delivery",
            config=config.delivery,
        )

        self.compute = ComputeConstruct(
            self,
            "Compute",
            config=config,
            vpc=self.network.vpc,
            security_group=self.network.service_security_group,
            target_group=self.load_balancer.target_group,
            project_root=project_root,
        )

        # =====================================================================
        # Outputs
        # =====================================================================

        CfnOutput(
            self,
            "ServiceUrl",
            value=self.load_balancer.url,
            description="Application Load Balancer URL",
        )

        CfnOutput(
            self,
            "LogBucketName",
            value=self.delivery.bucket.bucket_name,
            description="Bucket receiving delivered logs",
        )

        CfnOutput(
            self,
            "DeliveryStreamName",
            value=self.delivery.delivery_stream.delivery_stream_name,
            description="Firehose delivery stream name",
        )

        CfnOutput(
            self,
            "ClusterName",
            value=self.compute.cluster.cluster_name,
            description="ECS cluster name",
        )

        CfnOutput(
            self,
            "RouterConfigUrl",
            value=self.compute.config_asset_url,
            description="S3 location of the Fluent Bit configuration",
        )
