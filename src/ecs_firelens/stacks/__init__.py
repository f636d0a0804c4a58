"""
CDK constructs for the FireLens service.

Each module declares one part of the topology:
- network: VPC, security groups
- load_balancer: ALB, listener, target group
- delivery: log bucket, Firehose delivery stream
- compute: ECS cluster, task role, task definition, service
- firelens_stack: the stack composing all of the above
"""

from .compute import ComputeConstruct
from .delivery import LogDeliveryConstruct
from .firelens_stack import FirelensStack
from .load_balancer import LoadBalancerConstruct
from .network import NetworkConstruct

__all__ = [
    "NetworkConstruct",
    "LoadBalancerConstruct",
    "LogDeliveryConstruct",
    "ComputeConstruct",
    "FirelensStack",
]
