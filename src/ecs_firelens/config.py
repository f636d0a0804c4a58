"""
Deployment configuration models for ecs-firelens.

Configuration is loaded from the firelens.toml [deploy] section. Values that
form the topology contract (listener port, health check, log routing
variable, task role actions) are module constants and cannot be overridden.
"""

from __future__ import annotations

import ipaddress
import logging
import tomllib
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "firelens.toml"

# Public entry point
LISTENER_PORT = 80
HEALTH_CHECK_PATH = "/"
HEALTHY_HTTP_CODES = "200"

# Network
NAT_GATEWAYS = 0
PUBLIC_CIDR = "0.0.0.0/0"

# Log routing
LOG_ROUTER_CONFIG_ENV = "aws_fluent_bit_init_s3_1"
LOG_ROUTER_STREAM_PREFIX = "log-router"
LOG_ROUTER_CONTAINER_NAME = "log_router"
APP_CONTAINER_NAME = "app"
TASK_PRINCIPAL = "ecs-tasks.amazonaws.com"

TASK_ROLE_ACTIONS: tuple[str, ...] = (
    "logs:CreateLogStream",
    "logs:CreateLogGroup",
    "logs:DescribeLogStreams",
    "logs:PutLogEvents",
    "s3:GetObject",
    "s3:GetBucketLocation",
    "firehose:PutRecordBatch",
)

DEFAULT_LOG_ROUTER_IMAGE = "public.ecr.aws/aws-observability/aws-for-fluent-bit:init-latest"
DEFAULT_APP_IMAGE = "public.ecr.aws/nginx/nginx:latest"
DEFAULT_DELIVERY_STREAM_NAME = "log-delivery-stream"

BUNDLED_ROUTER_CONFIG = Path(__file__).parent / "assets" / "extra.conf"


class AWSRegion(str, Enum):
    """Supported AWS regions."""

    US_EAST_1 = "us-east-1"
    US_EAST_2 = "us-east-2"
    US_WEST_1 = "us-west-1"
    US_WEST_2 = "us-west-2"
    EU_WEST_1 = "eu-west-1"
    EU_WEST_2 = "eu-west-2"
    EU_CENTRAL_1 = "eu-central-1"
    AP_SOUTHEAST_1 = "ap-southeast-1"
    AP_SOUTHEAST_2 = "ap-southeast-2"
    AP_NORTHEAST_1 = "ap-northeast-1"


class ComputeSize(str, Enum):
    """ECS Fargate task sizes."""

    SMALL = "small"  # 0.25 vCPU, 512MB
    MEDIUM = "medium"  # 0.5 vCPU, 1GB
    LARGE = "large"  # 1 vCPU, 2GB
    XLARGE = "xlarge"  # 2 vCPU, 4GB


# =============================================================================
# Sub-configuration Models
# =============================================================================


class NetworkConfig(BaseModel):
    """VPC configuration. NAT gateways are always zero."""

    vpc_cidr: str = "10.0.0.0/16"
    availability_zones: int = Field(default=2, ge=1, le=3)

    @field_validator("vpc_cidr")
    @classmethod
    def _check_cidr(cls, value: str) -> str:
        network = ipaddress.ip_network(value, strict=True)
        if network.version != 4:
            raise ValueError("vpc_cidr must be an IPv4 range")
        # Room for a public and an isolated /24 in each of up to three AZs
        if not 16 <= network.prefixlen <= 21:
            raise ValueError("vpc_cidr prefix must be between /16 and /21")
        return value


class ComputeConfig(BaseModel):
    """ECS Fargate task and service configuration."""

    size: ComputeSize = ComputeSize.MEDIUM
    desired_count: int = Field(default=1, ge=0)

    @property
    def cpu(self) -> int:
        """Get Fargate CPU units."""
        return {
            ComputeSize.SMALL: 256,
            ComputeSize.MEDIUM: 512,
            ComputeSize.LARGE: 1024,
            ComputeSize.XLARGE: 2048,
        }[self.size]

    @property
    def memory(self) -> int:
        """Get Fargate memory in MiB."""
        return {
            ComputeSize.SMALL: 512,
            ComputeSize.MEDIUM: 1024,
            ComputeSize.LARGE: 2048,
            ComputeSize.XLARGE: 4096,
        }[self.size]


class LogRouterConfig(BaseModel):
    """FireLens (Fluent Bit) sidecar configuration."""

    image: str = Field(default=DEFAULT_LOG_ROUTER_IMAGE, min_length=1)
    config_file: Path | None = None

    def resolve_config_file(self, project_root: Path) -> Path:
        """
        Get the Fluent Bit configuration file to upload.

        Relative paths are resolved against the project root; without an
        explicit path the bundled extra.conf is used.
        """
        if self.config_file is None:
            return BUNDLED_ROUTER_CONFIG
        if self.config_file.is_absolute():
            return self.config_file
        return project_root / self.config_file


class ApplicationConfig(BaseModel):
    """Application container configuration."""

    image: str = Field(default=DEFAULT_APP_IMAGE, min_length=1)
    container_port: int = Field(default=80, ge=1, le=65535)


class DeliveryConfig(BaseModel):
    """Firehose delivery stream and log bucket configuration."""

    stream_name: str = Field(
        default=DEFAULT_DELIVERY_STREAM_NAME,
        min_length=1,
        max_length=64,
        pattern=r"^[a-zA-Z0-9_.-]+$",
    )
    log_expiration_days: int | None = Field(default=None, ge=1)


class OutputConfig(BaseModel):
    """Output configuration."""

    directory: str = "cdk.out"
    stack_name_prefix: str = ""

    def get_output_path(self, project_root: Path) -> Path:
        """Get the absolute cloud assembly path."""
        return project_root / self.directory


# =============================================================================
# Main Configuration Model
# =============================================================================


class DeploymentConfig(BaseModel):
    """Complete deployment configuration."""

    app_name: str = "ecs-firelens"
    environment: str = "staging"
    region: AWSRegion = AWSRegion.US_EAST_1

    network: NetworkConfig = Field(default_factory=NetworkConfig)
    compute: ComputeConfig = Field(default_factory=ComputeConfig)
    log_router: LogRouterConfig = Field(default_factory=LogRouterConfig)
    application: ApplicationConfig = Field(default_factory=ApplicationConfig)
    delivery: DeliveryConfig = Field(default_factory=DeliveryConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    def get_stack_name(self) -> str:
        """Get the full stack name with prefix and environment."""
        prefix = self.output.stack_name_prefix or self.sanitized_app_name()
        return f"{prefix}-{self.environment}"

    def sanitized_app_name(self) -> str:
        """Get the application name reduced to lowercase letters, digits and hyphens."""
        name = self.app_name.lower()
        name = "".join(c if c.isalnum() else "-" for c in name)
        while "--" in name:
            name = name.replace("--", "-")
        return name.strip("-") or "ecs-firelens"


# =============================================================================
# Configuration Loading
# =============================================================================


def load_deployment_config(toml_path: Path) -> DeploymentConfig:
    """
    Load deployment configuration from firelens.toml.

    Args:
        toml_path: Path to firelens.toml file

    Returns:
        DeploymentConfig with values from file or defaults

    Raises:
        ConfigError: If the file is not valid TOML or fails validation
    """
    if not toml_path.exists():
        logger.debug("No %s found, using default configuration", toml_path)
        return DeploymentConfig()

    try:
        with open(toml_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML: {e}", path=toml_path) from e

    deploy_section = data.get("deploy", {})
    project_section = data.get("project", {})
    if not deploy_section and not project_section:
        return DeploymentConfig()

    try:
        return _parse_config(deploy_section, project_section)
    except ValidationError as e:
        raise ConfigError(f"Invalid [deploy] configuration:\n{e}", path=toml_path) from e


def _parse_config(data: dict[str, Any], project: dict[str, Any]) -> DeploymentConfig:
    """Parse config dicts into DeploymentConfig."""
    config_data: dict[str, Any] = {}

    if "name" in project:
        config_data["app_name"] = project["name"]

    # Top-level fields
    for field in ["environment", "region"]:
        if field in data:
            config_data[field] = data[field]

    # Nested config sections
    nested_sections = [
        "network",
        "compute",
        "log_router",
        "application",
        "delivery",
        "output",
    ]

    for section in nested_sections:
        if section in data:
            config_data[section] = data[section]

    unknown = set(data) - {"environment", "region", *nested_sections}
    for key in sorted(unknown):
        logger.warning("Ignoring unknown [deploy] key: %s", key)

    return DeploymentConfig.model_validate(config_data)


def load_project_config(project_root: Path) -> DeploymentConfig:
    """Load configuration from the project's firelens.toml."""
    return load_deployment_config(project_root / CONFIG_FILE_NAME)
