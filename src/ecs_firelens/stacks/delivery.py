"""
Log delivery construct.

Declares the log bucket and the Firehose delivery stream writing into it.
"""

from __future__ import annotations

from aws_cdk import Duration, RemovalPolicy
from aws_cdk import aws_kinesisfirehose as firehose
from aws_cdk import aws_s3 as s3
from constructs import Construct

from ..config import DeliveryConfig


class LogDeliveryConstruct(Construct):
    """
    S3 bucket plus a delivery stream with that bucket as its only destination.

    The bucket and its objects are removed on stack teardown.
    """

    def __init__(self, scope: Construct, id: str, *, config: DeliveryConfig) -> None:
        super().__init__(scope, id)

        lifecycle_rules = None
        if config.log_expiration_days:
            lifecycle_rules = [
                s3.LifecycleRule(
                    expiration=Duration.days(config.log_expiration_days),
                ),
            ]

        self.bucket = s3.Bucket(
            self,
            "LogBucket",
            encryption=s3.BucketEncryption.S3_MANAGED,
            block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
            removal_policy=RemovalPolicy.DESTROY,
            auto_delete_objects=True,
            lifecycle_rules=lifecycle_rules,
        )

        self.delivery_stream = firehose.DeliveryStream(
            self,
            "LogDeliveryStream",
            delivery_stream_name=config.stream_name,
            destination=firehose.S3Bucket(self.bucket),
        )
