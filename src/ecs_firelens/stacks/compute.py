"""
Compute construct.

Declares the ECS cluster, the task role, the FireLens task definition with
its uploaded router configuration, and the Fargate service.
"""

from __future__ import annotations

import logging
from pathlib import Path

from aws_cdk import aws_ec2 as ec2
from aws_cdk import aws_ecs as ecs
from aws_cdk import aws_elasticloadbalancingv2 as elbv2
from aws_cdk import aws_iam as iam
from aws_cdk import aws_s3_assets as s3_assets
from constructs import Construct

from ..config import (
    APP_CONTAINER_NAME,
    LOG_ROUTER_CONFIG_ENV,
    LOG_ROUTER_CONTAINER_NAME,
    LOG_ROUTER_STREAM_PREFIX,
    TASK_PRINCIPAL,
    TASK_ROLE_ACTIONS,
    DeploymentConfig,
)
from ..errors import ConfigError

logger = logging.getLogger(__name__)


def s3_object_arn(bucket_name: str, object_key: str) -> str:
    """Build the S3 object ARN Fluent Bit init expects for a config file."""
    return f"arn:aws:s3:::{bucket_name}/{object_key}"


class ComputeConstruct(Construct):
    """
    ECS Fargate service with a FireLens log router sidecar.

    Creates:
    - ECS cluster in the given VPC
    - Task role trusted by ECS tasks with the log routing permissions
    - S3 asset holding the Fluent Bit configuration
    - Task definition with a log router and an application container
    - Fargate service registered in the load balancer target group
    """

    def __init__(
        self,
        scope: Construct,
        id: str,
        *,
        config: DeploymentConfig,
        vpc: ec2.IVpc,
        security_group: ec2.ISecurityGroup,
        target_group: elbv2.ApplicationTargetGroup,
        project_root: Path,
    ) -> None:
        super().__init__(scope, id)

        compute = config.compute
        app_config = config.application

        # =====================================================================
        # Router configuration asset
        # =====================================================================

        router_config = config.log_router.resolve_config_file(project_root)
        if not router_config.is_file():
            raise ConfigError("Log router configuration file not found", path=router_config)

        logger.debug("Uploading log router configuration from %s", router_config)
        self.config_asset = s3_assets.Asset(
            self,
            "RouterConfigAsset",
            path=str(router_config),
        )
        self.config_asset_url = s3_object_arn(
            self.config_asset.s3_bucket_name,
            self.config_asset.s3_object_key,
        )

        # =====================================================================
        # Cluster and task role
        # =====================================================================

        self.cluster = ecs.Cluster(self, "Cluster", vpc=vpc)

        self.task_role = iam.Role(
            self,
            "TaskRole",
            assumed_by=iam.ServicePrincipal(TASK_PRINCIPAL),
        )
        self.task_role.add_to_policy(
            iam.PolicyStatement(
                actions=list(TASK_ROLE_ACTIONS),
                resources=["*"],
                effect=iam.Effect.ALLOW,
            )
        )

        # =====================================================================
        # Task definition
        # =====================================================================

        self.task_definition = ecs.FargateTaskDefinition(
            self,
            "TaskDefinition",
            cpu=compute.cpu,
            memory_limit_mib=compute.memory,
            task_role=self.task_role,
        )

        self.log_router = self.task_definition.add_firelens_log_router(
            "FirelensLogRouter",
            container_name=LOG_ROUTER_CONTAINER_NAME,
            firelens_config=ecs.FirelensConfig(
                type=ecs.FirelensLogRouterType.FLUENTBIT,
            ),
            environment={
                LOG_ROUTER_CONFIG_ENV: self.config_asset_url,
            },
            image=ecs.ContainerImage.from_registry(config.log_router.image),
            logging=ecs.LogDrivers.aws_logs(
                stream_prefix=LOG_ROUTER_STREAM_PREFIX,
            ),
        )

        # Application output goes through the router, never straight to awslogs.
        self.app_container = self.task_definition.add_container(
            "AppContainer",
            container_name=APP_CONTAINER_NAME,
            image=ecs.ContainerImage.from_registry(app_config.image),
            logging=ecs.LogDrivers.firelens(options={}),
            port_mappings=[ecs.PortMapping(container_port=app_config.container_port)],
        )

        # =====================================================================
        # Service
        # =====================================================================

        self.service = ecs.FargateService(
            self,
            "Service",
            cluster=self.cluster,
            task_definition=self.task_definition,
            desired_count=compute.desired_count,
            assign_public_ip=True,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC),
            security_groups=[security_group],
        )

        target_group.add_target(
            self.service.load_balancer_target(
                container_name=APP_CONTAINER_NAME,
                container_port=app_config.container_port,
            )
        )
