"""
Assertions stage: security posture of the synthesized stack.

The stack exposes one port to the internet, keeps logs in a private bucket
that goes away with the stack, and gives the task role a fixed action set.
These rules catch drift from that posture; the deployment shape itself is
checked by the topology stage.
"""

from __future__ import annotations

from typing import Any

from ...assembly import resources_of_type
from ...config import LISTENER_PORT
from ..models import Severity
from .base import PreflightStage

WORLD_CIDRS = {"0.0.0.0/0", "::/0"}

PUBLIC_ACCESS_FLAGS = (
    "BlockPublicAcls",
    "BlockPublicPolicy",
    "IgnorePublicAcls",
    "RestrictPublicBuckets",
)

SECRET_MARKERS = ("PASSWORD", "SECRET", "TOKEN", "CREDENTIAL", "API_KEY")


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


def _opens_only_listener(rule: dict[str, Any]) -> bool:
    return (
        str(rule.get("IpProtocol")) == "tcp"
        and rule.get("FromPort") == LISTENER_PORT
        and rule.get("ToPort") == LISTENER_PORT
    )


class AssertionsStage(PreflightStage):
    name = "assertions"
    needs_templates = True

    def check(self) -> None:
        for stack_name, template in self.context.templates.items():
            self._check_ingress(stack_name, template)
            self._check_buckets(stack_name, template)
            self._check_containers(stack_name, template)
            self._check_roles(stack_name, template)
            self._check_streams(stack_name, template)

    def _check_ingress(self, stack_name: str, template: dict[str, Any]) -> None:
        """Only the listener port may be reachable from the whole internet."""
        rules: list[tuple[str, dict[str, Any]]] = []
        for logical_id, group in resources_of_type(template, "AWS::EC2::SecurityGroup").items():
            for rule in group.get("Properties", {}).get("SecurityGroupIngress", []):
                rules.append((logical_id, rule))
        for logical_id, ingress in resources_of_type(
            template, "AWS::EC2::SecurityGroupIngress"
        ).items():
            rules.append((logical_id, ingress.get("Properties", {})))

        for logical_id, rule in rules:
            source = rule.get("CidrIp") or rule.get("CidrIpv6")
            if source not in WORLD_CIDRS or _opens_only_listener(rule):
                continue
            ports = (
                "all traffic"
                if str(rule.get("IpProtocol")) == "-1"
                else f"{rule.get('IpProtocol')} {rule.get('FromPort')}-{rule.get('ToPort')}"
            )
            self.flag(
                "SG_WORLD_INGRESS",
                Severity.HIGH,
                f"{source} may reach {ports}; only tcp {LISTENER_PORT} should be public",
                resource=f"{stack_name}/{logical_id}",
                remediation="Remove the rule or narrow its source",
            )

    def _check_buckets(self, stack_name: str, template: dict[str, Any]) -> None:
        for logical_id, bucket in resources_of_type(template, "AWS::S3::Bucket").items():
            resource = f"{stack_name}/{logical_id}"
            properties = bucket.get("Properties", {})

            block = properties.get("PublicAccessBlockConfiguration", {})
            open_flags = [flag for flag in PUBLIC_ACCESS_FLAGS if block.get(flag) is not True]
            if open_flags:
                self.flag(
                    "S3_PUBLIC_ACCESS",
                    Severity.HIGH,
                    f"Public access is not blocked: {', '.join(open_flags)}",
                    resource=resource,
                    remediation="Use BlockPublicAccess.BLOCK_ALL on the log bucket",
                )

            if not properties.get("BucketEncryption"):
                self.flag(
                    "S3_NOT_ENCRYPTED",
                    Severity.WARN,
                    "Bucket has no default encryption",
                    resource=resource,
                )

            if bucket.get("DeletionPolicy", "Delete") != "Delete":
                self.flag(
                    "S3_RETAINED",
                    Severity.WARN,
                    f"DeletionPolicy is {bucket['DeletionPolicy']}; the bucket outlives cdk destroy",
                    resource=resource,
                    remediation="Use RemovalPolicy.DESTROY with auto_delete_objects",
                )

    def _check_containers(self, stack_name: str, template: dict[str, Any]) -> None:
        """Plain-text environment values are visible in the task definition."""
        task_definitions = resources_of_type(template, "AWS::ECS::TaskDefinition")
        for logical_id, task_definition in task_definitions.items():
            containers = task_definition.get("Properties", {}).get("ContainerDefinitions", [])
            for container in containers:
                for env in container.get("Environment", []):
                    name = env.get("Name", "")
                    if not isinstance(env.get("Value"), str) or not env["Value"]:
                        continue
                    if any(marker in name.upper() for marker in SECRET_MARKERS):
                        self.flag(
                            "ECS_SECRET_IN_ENV",
                            Severity.CRITICAL,
                            f"Container {container.get('Name')} sets {name} in plain text",
                            resource=f"{stack_name}/{logical_id}",
                            remediation="Pass it with ecs.Secret from Secrets Manager",
                        )

    def _check_roles(self, stack_name: str, template: dict[str, Any]) -> None:
        documents: list[tuple[str, dict[str, Any]]] = []

        for logical_id, role in resources_of_type(template, "AWS::IAM::Role").items():
            properties = role.get("Properties", {})
            for statement in properties.get("AssumeRolePolicyDocument", {}).get("Statement", []):
                principal = statement.get("Principal")
                if principal == "*" or "*" in _as_list(
                    principal.get("AWS") if isinstance(principal, dict) else None
                ):
                    self.flag(
                        "IAM_WILDCARD_PRINCIPAL",
                        Severity.CRITICAL,
                        "Role can be assumed by any principal",
                        resource=f"{stack_name}/{logical_id}",
                    )
            for policy in properties.get("Policies", []):
                documents.append((logical_id, policy.get("PolicyDocument", {})))

        for logical_id, policy in resources_of_type(template, "AWS::IAM::Policy").items():
            documents.append((logical_id, policy.get("Properties", {}).get("PolicyDocument", {})))

        for logical_id, document in documents:
            for statement in document.get("Statement", []):
                if statement.get("Effect") != "Allow":
                    continue
                self._check_statement(f"{stack_name}/{logical_id}", statement)

    def _check_statement(self, resource: str, statement: dict[str, Any]) -> None:
        actions = [str(a) for a in _as_list(statement.get("Action"))]
        if "*" not in _as_list(statement.get("Resource")):
            return

        wildcard_actions = [a for a in actions if "*" in a]
        if wildcard_actions:
            self.flag(
                "IAM_WILDCARD_ACTION",
                Severity.HIGH,
                f"{', '.join(wildcard_actions)} allowed on every resource",
                resource=resource,
                remediation="List the actions the log router needs",
            )
            return

        # The task role's log routing grant is declared this way on purpose
        self.flag(
            "IAM_WILDCARD_RESOURCE",
            Severity.INFO,
            f"{len(actions)} action(s) on every resource: {', '.join(sorted(actions))}",
            resource=resource,
            remediation="Scope the statement to the bucket, object and stream ARNs",
        )

    def _check_streams(self, stack_name: str, template: dict[str, Any]) -> None:
        streams = resources_of_type(template, "AWS::KinesisFirehose::DeliveryStream")
        for logical_id, stream in streams.items():
            if not stream.get("Properties", {}).get("DeliveryStreamEncryptionConfigurationInput"):
                self.flag(
                    "FIREHOSE_NOT_ENCRYPTED",
                    Severity.INFO,
                    "Delivery stream has no server-side encryption",
                    resource=f"{stack_name}/{logical_id}",
                )
