"""Shared pytest fixtures for ecs-firelens tests."""

from pathlib import Path
from typing import Any

import pytest

from ecs_firelens.assembly import AssetRecord
from ecs_firelens.config import TASK_ROLE_ACTIONS

ASSET_BUCKET = "cdk-hnb659fds-assets-${AWS::AccountId}-${AWS::Region}"


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Return a project directory with a minimal firelens.toml."""
    (tmp_path / "firelens.toml").write_text(
        """
[project]
name = "Orders API"

[deploy]
environment = "dev"
region = "eu-west-1"
"""
    )
    return tmp_path


@pytest.fixture
def router_assets() -> list[AssetRecord]:
    """Asset records as found in a cdk.out asset manifest."""
    return [
        AssetRecord(
            asset_hash="abc123",
            source_path="asset.abc123.conf",
            packaging="file",
            bucket_name=ASSET_BUCKET,
            object_key="abc123.conf",
        ),
        AssetRecord(
            asset_hash="tpl456",
            source_path="orders-api-dev.template.json",
            packaging="file",
            bucket_name=ASSET_BUCKET,
            object_key="tpl456.json",
        ),
        AssetRecord(
            asset_hash="zip789",
            source_path="asset.zip789",
            packaging="zip",
            bucket_name=ASSET_BUCKET,
            object_key="zip789.zip",
        ),
    ]


@pytest.fixture
def valid_template() -> dict[str, Any]:
    """A hand-built template with the expected service topology."""
    return {
        "Resources": {
            "Vpc": {"Type": "AWS::EC2::VPC", "Properties": {"CidrBlock": "10.0.0.0/16"}},
            "AlbSg": {
                "Type": "AWS::EC2::SecurityGroup",
                "Properties": {
                    "SecurityGroupIngress": [
                        {
                            "CidrIp": "0.0.0.0/0",
                            "IpProtocol": "tcp",
                            "FromPort": 80,
                            "ToPort": 80,
                        }
                    ]
                },
            },
            "ServiceSg": {"Type": "AWS::EC2::SecurityGroup", "Properties": {}},
            "ServiceSgFromAlb": {
                "Type": "AWS::EC2::SecurityGroupIngress",
                "Properties": {
                    "GroupId": {"Fn::GetAtt": ["ServiceSg", "GroupId"]},
                    "SourceSecurityGroupId": {"Fn::GetAtt": ["AlbSg", "GroupId"]},
                    "IpProtocol": "-1",
                },
            },
            "Alb": {
                "Type": "AWS::ElasticLoadBalancingV2::LoadBalancer",
                "Properties": {"SecurityGroups": [{"Fn::GetAtt": ["AlbSg", "GroupId"]}]},
            },
            "Listener": {"Type": "AWS::ElasticLoadBalancingV2::Listener", "Properties": {}},
            "TargetGroup": {
                "Type": "AWS::ElasticLoadBalancingV2::TargetGroup",
                "Properties": {
                    "HealthCheckPath": "/",
                    "Matcher": {"HttpCode": "200"},
                    "TargetType": "ip",
                },
            },
            "LogBucket": {
                "Type": "AWS::S3::Bucket",
                "Properties": {
                    "BucketEncryption": {
                        "ServerSideEncryptionConfiguration": [
                            {"ServerSideEncryptionByDefault": {"SSEAlgorithm": "AES256"}}
                        ]
                    },
                    "PublicAccessBlockConfiguration": {
                        "BlockPublicAcls": True,
                        "BlockPublicPolicy": True,
                        "IgnorePublicAcls": True,
                        "RestrictPublicBuckets": True,
                    },
                },
            },
            "Stream": {
                "Type": "AWS::KinesisFirehose::DeliveryStream",
                "Properties": {
                    "DeliveryStreamName": "log-delivery-stream",
                    "ExtendedS3DestinationConfiguration": {
                        "BucketARN": {"Fn::GetAtt": ["LogBucket", "Arn"]},
                    },
                },
            },
            "Cluster": {"Type": "AWS::ECS::Cluster", "Properties": {}},
            "TaskRole": {
                "Type": "AWS::IAM::Role",
                "Properties": {
                    "AssumeRolePolicyDocument": {
                        "Statement": [
                            {
                                "Action": "sts:AssumeRole",
                                "Effect": "Allow",
                                "Principal": {"Service": "ecs-tasks.amazonaws.com"},
                            }
                        ]
                    }
                },
            },
            "TaskRolePolicy": {
                "Type": "AWS::IAM::Policy",
                "Properties": {
                    "PolicyDocument": {
                        "Statement": [
                            {
                                "Action": list(TASK_ROLE_ACTIONS),
                                "Effect": "Allow",
                                "Resource": "*",
                            }
                        ]
                    },
                    "Roles": [{"Ref": "TaskRole"}],
                },
            },
            "TaskDef": {
                "Type": "AWS::ECS::TaskDefinition",
                "Properties": {
                    "TaskRoleArn": {"Fn::GetAtt": ["TaskRole", "Arn"]},
                    "ContainerDefinitions": [
                        {
                            "Name": "log_router",
                            "Essential": True,
                            "FirelensConfiguration": {"Type": "fluentbit"},
                            "Environment": [
                                {
                                    "Name": "aws_fluent_bit_init_s3_1",
                                    "Value": {
                                        "Fn::Join": [
                                            "",
                                            [
                                                "arn:aws:s3:::",
                                                {"Fn::Sub": ASSET_BUCKET},
                                                "/abc123.conf",
                                            ],
                                        ]
                                    },
                                }
                            ],
                            "LogConfiguration": {"LogDriver": "awslogs"},
                        },
                        {
                            "Name": "app",
                            "Essential": True,
                            "LogConfiguration": {"LogDriver": "awsfirelens"},
                        },
                    ],
                },
            },
            "Service": {
                "Type": "AWS::ECS::Service",
                "Properties": {
                    "DesiredCount": 1,
                    "NetworkConfiguration": {
                        "AwsvpcConfiguration": {
                            "AssignPublicIp": "ENABLED",
                            "SecurityGroups": [{"Fn::GetAtt": ["ServiceSg", "GroupId"]}],
                        }
                    },
                },
            },
        }
    }
