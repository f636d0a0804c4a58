"""
ecs-firelens - ECS Fargate service with FireLens log delivery.

Declares, with the AWS CDK, a container service behind an Application Load
Balancer whose logs leave through a Fluent Bit sidecar into a Kinesis Data
Firehose stream backed by S3:
- VPC and security groups
- ALB, HTTP listener, IP target group
- S3 log bucket, Firehose delivery stream
- ECS cluster, task role, FireLens task definition, Fargate service

Usage:
    ecs-firelens synth        # Synthesize the cloud assembly
    ecs-firelens plan         # Preview resources
    ecs-firelens status       # Check configuration and toolchain
    ecs-firelens preflight    # Pre-flight validation
"""

from . import preflight
from ._version import get_version
from .app import build_app
from .config import DeploymentConfig, load_deployment_config, load_project_config
from .errors import ConfigError, FirelensError, SynthError
from .runner import DeploymentResult, DeploymentRunner
from .stacks import FirelensStack

__version__ = get_version()

__all__ = [
    # Configuration
    "DeploymentConfig",
    "load_deployment_config",
    "load_project_config",
    # Errors
    "FirelensError",
    "ConfigError",
    "SynthError",
    # CDK
    "build_app",
    "FirelensStack",
    # Orchestration
    "DeploymentRunner",
    "DeploymentResult",
    # Preflight (module)
    "preflight",
    "__version__",
]
