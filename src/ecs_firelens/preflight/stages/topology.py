"""
Topology stage.

Verifies that the synthesized template still describes the deployment this
project is meant to produce: load balancer in front of a Fargate service
whose logs leave through a FireLens sidecar into a Firehose stream. Every
violation is CRITICAL, since such a template does not deploy the intended
system whatever its security posture.
"""

from __future__ import annotations

import re
from typing import Any

from ...assembly import (
    AssetRecord,
    referenced_logical_id,
    render_value,
    resources_of_type,
)
from ...config import (
    HEALTH_CHECK_PATH,
    HEALTHY_HTTP_CODES,
    LOG_ROUTER_CONFIG_ENV,
    TASK_PRINCIPAL,
    TASK_ROLE_ACTIONS,
)
from ..models import Severity
from .base import PreflightStage

# code -> what a passing template guarantees, in report order
TOPOLOGY_CHECKS = {
    "TOPOLOGY_SERVICE_SG_OPEN": "Service only reachable from the load balancer",
    "TOPOLOGY_HEALTH_CHECK": f"Health check on {HEALTH_CHECK_PATH} expects {HEALTHY_HTTP_CODES}",
    "TOPOLOGY_CONTAINERS": "One application container and one log router",
    "TOPOLOGY_APP_LOG_DRIVER": "Application logs go through FireLens",
    "TOPOLOGY_ASSET_REFERENCE": "Log router reads the uploaded configuration",
    "TOPOLOGY_TASK_ROLE_ACTIONS": "Task role can deliver logs and read its configuration",
    "TOPOLOGY_RESOURCE_COUNT": "One of each core resource, one uploaded file",
}

# (CloudFormation type, expected count)
EXPECTED_SINGLETONS = [
    ("AWS::EC2::VPC", 1),
    ("AWS::ECS::Cluster", 1),
    ("AWS::ECS::Service", 1),
    ("AWS::ElasticLoadBalancingV2::LoadBalancer", 1),
    ("AWS::ElasticLoadBalancingV2::Listener", 1),
    ("AWS::ElasticLoadBalancingV2::TargetGroup", 1),
    ("AWS::S3::Bucket", 1),
    ("AWS::KinesisFirehose::DeliveryStream", 1),
]

FIRELENS_LOG_DRIVER = "awsfirelens"


def _asset_arn_pattern(asset: AssetRecord) -> re.Pattern[str]:
    """
    Build a pattern for the ARN of an asset as it appears in a template.

    The asset manifest keeps the account and region placeholders while a
    stack with a concrete environment renders them as literals.
    """
    pattern = re.escape(asset.s3_arn)
    pattern = pattern.replace(re.escape("${AWS::AccountId}"), r"(?:\$\{AWS::AccountId\}|\d{12})")
    pattern = pattern.replace(re.escape("${AWS::Region}"), r"(?:\$\{AWS::Region\}|[a-z0-9-]+)")
    return re.compile(f"^{pattern}$")


class TopologyStage(PreflightStage):
    name = "topology"
    needs_templates = True

    def check(self) -> None:
        uploaded = self._uploaded_files()

        for stack_name, template in self.context.templates.items():
            self._check_service_security_group(stack_name, template)
            self._check_health_check(stack_name, template)
            self._check_task_definition(stack_name, template, uploaded)
            self._check_task_role(stack_name, template)
            self._check_resource_counts(stack_name, template)

        if len(uploaded) != 1:
            self._violation(
                "TOPOLOGY_RESOURCE_COUNT",
                f"Expected 1 uploaded file asset, found {len(uploaded)}",
                remediation="Only the log router configuration should be uploaded as a file",
            )

    def _violation(
        self, code: str, message: str, resource: str | None = None, remediation: str | None = None
    ) -> None:
        self.flag(code, Severity.CRITICAL, message, resource=resource, remediation=remediation)

    def _uploaded_files(self) -> list[AssetRecord]:
        """Uploaded file assets, one record per asset hash."""
        seen: dict[str, AssetRecord] = {}
        for asset in self.context.assets:
            if asset.is_uploaded_file:
                seen.setdefault(asset.asset_hash, asset)
        return list(seen.values())

    # --- Security groups ---

    def _check_service_security_group(self, stack_name: str, template: dict[str, Any]) -> None:
        """The service group must only admit traffic from the load balancer group."""
        service_groups: set[str] = set()
        for service in resources_of_type(template, "AWS::ECS::Service").values():
            awsvpc = (
                service.get("Properties", {})
                .get("NetworkConfiguration", {})
                .get("AwsvpcConfiguration", {})
            )
            for group in awsvpc.get("SecurityGroups", []):
                logical_id = referenced_logical_id(group)
                if logical_id:
                    service_groups.add(logical_id)

        lb_groups: set[str] = set()
        lbs = resources_of_type(template, "AWS::ElasticLoadBalancingV2::LoadBalancer")
        for lb in lbs.values():
            for group in lb.get("Properties", {}).get("SecurityGroups", []):
                logical_id = referenced_logical_id(group)
                if logical_id:
                    lb_groups.add(logical_id)

        if not service_groups or not lb_groups:
            self._violation(
                "TOPOLOGY_SERVICE_SG_OPEN",
                "Could not resolve the service and load balancer security groups",
                remediation="Attach explicit security groups to the service and load balancer",
            )
            return

        resources = template.get("Resources", {})
        admitted_from_lb = False

        for group_id in sorted(service_groups):
            group = resources.get(group_id, {})
            for rule in group.get("Properties", {}).get("SecurityGroupIngress", []):
                if not self._rule_from(rule, lb_groups):
                    self._violation(
                        "TOPOLOGY_SERVICE_SG_OPEN",
                        "Service security group has an inline ingress rule "
                        "not sourced from the load balancer group",
                        resource=f"{stack_name}/{group_id}",
                    )
                else:
                    admitted_from_lb = True

        for logical_id, ingress in resources_of_type(
            template, "AWS::EC2::SecurityGroupIngress"
        ).items():
            properties = ingress.get("Properties", {})
            if referenced_logical_id(properties.get("GroupId")) not in service_groups:
                continue
            if self._rule_from(properties, lb_groups):
                admitted_from_lb = True
            else:
                self._violation(
                    "TOPOLOGY_SERVICE_SG_OPEN",
                    "Service security group admits traffic not sourced from the "
                    "load balancer group",
                    resource=f"{stack_name}/{logical_id}",
                    remediation="Only allow ingress from the load balancer security group",
                )

        if not admitted_from_lb:
            self._violation(
                "TOPOLOGY_SERVICE_SG_OPEN",
                "Service security group has no ingress from the load balancer group",
                resource=stack_name,
            )

    @staticmethod
    def _rule_from(rule: dict[str, Any], groups: set[str]) -> bool:
        if rule.get("CidrIp") or rule.get("CidrIpv6") or rule.get("SourcePrefixListId"):
            return False
        return referenced_logical_id(rule.get("SourceSecurityGroupId")) in groups

    # --- Load balancer ---

    def _check_health_check(self, stack_name: str, template: dict[str, Any]) -> None:
        target_groups = resources_of_type(template, "AWS::ElasticLoadBalancingV2::TargetGroup")
        for logical_id, target_group in target_groups.items():
            properties = target_group.get("Properties", {})
            path = properties.get("HealthCheckPath")
            codes = properties.get("Matcher", {}).get("HttpCode")

            if path != HEALTH_CHECK_PATH or codes != HEALTHY_HTTP_CODES:
                self._violation(
                    "TOPOLOGY_HEALTH_CHECK",
                    f"Health check is path={path!r} codes={codes!r}, expected "
                    f"path={HEALTH_CHECK_PATH!r} codes={HEALTHY_HTTP_CODES!r}",
                    resource=f"{stack_name}/{logical_id}",
                )

    # --- Task definition ---

    def _check_task_definition(
        self, stack_name: str, template: dict[str, Any], uploaded: list[AssetRecord]
    ) -> None:
        task_definitions = resources_of_type(template, "AWS::ECS::TaskDefinition")
        for logical_id, task_definition in task_definitions.items():
            resource_id = f"{stack_name}/{logical_id}"
            containers = task_definition.get("Properties", {}).get("ContainerDefinitions", [])

            routers = [c for c in containers if c.get("FirelensConfiguration")]
            apps = [c for c in containers if not c.get("FirelensConfiguration")]

            if len(routers) != 1 or len(apps) != 1:
                self._violation(
                    "TOPOLOGY_CONTAINERS",
                    f"Expected 1 log router and 1 application container, found "
                    f"{len(routers)} and {len(apps)}",
                    resource=resource_id,
                )

            for app in apps:
                driver = app.get("LogConfiguration", {}).get("LogDriver")
                if driver != FIRELENS_LOG_DRIVER:
                    self._violation(
                        "TOPOLOGY_APP_LOG_DRIVER",
                        f"Container '{app.get('Name', 'unknown')}' logs with "
                        f"{driver!r} instead of {FIRELENS_LOG_DRIVER!r}",
                        resource=resource_id,
                        remediation="Route application logs through the FireLens sidecar",
                    )

            for router in routers:
                self._check_router_config_reference(resource_id, router, uploaded)

    def _check_router_config_reference(
        self, resource_id: str, router: dict[str, Any], uploaded: list[AssetRecord]
    ) -> None:
        values = [
            env.get("Value")
            for env in router.get("Environment", [])
            if env.get("Name") == LOG_ROUTER_CONFIG_ENV
        ]
        if not values:
            self._violation(
                "TOPOLOGY_ASSET_REFERENCE",
                f"Log router has no {LOG_ROUTER_CONFIG_ENV} environment variable",
                resource=resource_id,
            )
            return

        rendered = render_value(values[0])
        if not any(_asset_arn_pattern(asset).match(rendered) for asset in uploaded):
            self._violation(
                "TOPOLOGY_ASSET_REFERENCE",
                f"{LOG_ROUTER_CONFIG_ENV}={rendered} does not point at an uploaded file asset",
                resource=resource_id,
            )

    # --- IAM ---

    def _check_task_role(self, stack_name: str, template: dict[str, Any]) -> None:
        resources = template.get("Resources", {})

        task_roles: set[str] = set()
        for task_definition in resources_of_type(template, "AWS::ECS::TaskDefinition").values():
            role_id = referenced_logical_id(
                task_definition.get("Properties", {}).get("TaskRoleArn")
            )
            if role_id:
                task_roles.add(role_id)

        for role_id in sorted(task_roles):
            resource_id = f"{stack_name}/{role_id}"
            role = resources.get(role_id, {}).get("Properties", {})

            if not self._trusts_task_principal(role):
                self._violation(
                    "TOPOLOGY_TASK_ROLE_ACTIONS",
                    f"Task role is not trusted by {TASK_PRINCIPAL}",
                    resource=resource_id,
                )

            granted = self._granted_actions(template, role_id, role)
            missing = [a for a in TASK_ROLE_ACTIONS if a not in granted]
            if missing:
                self._violation(
                    "TOPOLOGY_TASK_ROLE_ACTIONS",
                    f"Task role is missing actions: {', '.join(missing)}",
                    resource=resource_id,
                )

        if not task_roles:
            self._violation(
                "TOPOLOGY_TASK_ROLE_ACTIONS",
                "Task definition has no task role",
                resource=stack_name,
            )

    @staticmethod
    def _trusts_task_principal(role: dict[str, Any]) -> bool:
        for statement in role.get("AssumeRolePolicyDocument", {}).get("Statement", []):
            service = statement.get("Principal", {}).get("Service")
            services = [service] if isinstance(service, str) else service or []
            if TASK_PRINCIPAL in services:
                return True
        return False

    @staticmethod
    def _granted_actions(template: dict[str, Any], role_id: str, role: dict[str, Any]) -> set[str]:
        documents = [p.get("PolicyDocument", {}) for p in role.get("Policies", [])]
        for policy in resources_of_type(template, "AWS::IAM::Policy").values():
            properties = policy.get("Properties", {})
            attached = {referenced_logical_id(r) for r in properties.get("Roles", [])}
            if role_id in attached:
                documents.append(properties.get("PolicyDocument", {}))

        granted: set[str] = set()
        for document in documents:
            for statement in document.get("Statement", []):
                if statement.get("Effect", "Allow") != "Allow":
                    continue
                actions = statement.get("Action", [])
                granted.update([actions] if isinstance(actions, str) else actions)
        return granted

    # --- Counts ---

    def _check_resource_counts(self, stack_name: str, template: dict[str, Any]) -> None:
        for resource_type, expected in EXPECTED_SINGLETONS:
            found = len(resources_of_type(template, resource_type))
            if found != expected:
                self._violation(
                    "TOPOLOGY_RESOURCE_COUNT",
                    f"Expected {expected} {resource_type}, found {found}",
                    resource=stack_name,
                )

        deploy_config = self.context.deploy_config
        desired = deploy_config.compute.desired_count if deploy_config else 1
        for logical_id, service in resources_of_type(template, "AWS::ECS::Service").items():
            count = service.get("Properties", {}).get("DesiredCount", 1)
            if count != desired:
                self._violation(
                    "TOPOLOGY_RESOURCE_COUNT",
                    f"Service desired count is {count}, configured {desired}",
                    resource=f"{stack_name}/{logical_id}",
                )

        buckets = set(resources_of_type(template, "AWS::S3::Bucket"))
        streams = resources_of_type(template, "AWS::KinesisFirehose::DeliveryStream")
        for logical_id, stream in streams.items():
            properties = stream.get("Properties", {})
            destinations = [k for k in properties if k.endswith("DestinationConfiguration")]
            if len(destinations) != 1:
                self._violation(
                    "TOPOLOGY_RESOURCE_COUNT",
                    f"Delivery stream has {len(destinations)} destinations, expected 1",
                    resource=f"{stack_name}/{logical_id}",
                )
                continue

            bucket_id = referenced_logical_id(properties[destinations[0]].get("BucketARN"))
            if bucket_id not in buckets:
                self._violation(
                    "TOPOLOGY_RESOURCE_COUNT",
                    "Delivery stream destination is not the log bucket",
                    resource=f"{stack_name}/{logical_id}",
                )
