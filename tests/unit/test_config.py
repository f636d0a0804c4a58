"""Tests for deployment configuration models."""

from pathlib import Path
from tempfile import TemporaryDirectory

import pytest
from pydantic import ValidationError

from ecs_firelens.config import (
    BUNDLED_ROUTER_CONFIG,
    TASK_ROLE_ACTIONS,
    AWSRegion,
    ComputeConfig,
    ComputeSize,
    DeliveryConfig,
    DeploymentConfig,
    LogRouterConfig,
    NetworkConfig,
    OutputConfig,
    load_deployment_config,
    load_project_config,
)
from ecs_firelens.errors import ConfigError


class TestDeploymentConfig:
    """Tests for DeploymentConfig model."""

    def test_default_values(self):
        """Test default configuration values."""
        config = DeploymentConfig()

        assert config.app_name == "ecs-firelens"
        assert config.environment == "staging"
        assert config.region == AWSRegion.US_EAST_1

    def test_compute_defaults(self):
        """Test default compute configuration matches 512 CPU / 1024 MiB."""
        config = DeploymentConfig()

        assert config.compute.size == ComputeSize.MEDIUM
        assert config.compute.desired_count == 1
        assert config.compute.cpu == 512
        assert config.compute.memory == 1024

    def test_delivery_defaults(self):
        """Test default delivery configuration."""
        config = DeploymentConfig()

        assert config.delivery.stream_name == "log-delivery-stream"
        assert config.delivery.log_expiration_days is None

    def test_stack_name(self):
        """Test stack name generation."""
        config = DeploymentConfig(app_name="Orders API", environment="prod")

        assert config.get_stack_name() == "orders-api-prod"

    def test_stack_name_with_prefix(self):
        """Test stack name uses the configured prefix."""
        config = DeploymentConfig(output=OutputConfig(stack_name_prefix="logs"))

        assert config.get_stack_name() == "logs-staging"

    def test_sanitized_app_name_fallback(self):
        """Test an app name with no usable characters falls back to the default."""
        config = DeploymentConfig(app_name="___")

        assert config.sanitized_app_name() == "ecs-firelens"


class TestComputeConfig:
    """Tests for ComputeConfig model."""

    @pytest.mark.parametrize(
        "size,cpu,memory",
        [
            (ComputeSize.SMALL, 256, 512),
            (ComputeSize.MEDIUM, 512, 1024),
            (ComputeSize.LARGE, 1024, 2048),
            (ComputeSize.XLARGE, 2048, 4096),
        ],
    )
    def test_size_mapping(self, size, cpu, memory):
        """Test Fargate size to CPU/memory mapping."""
        config = ComputeConfig(size=size)

        assert config.cpu == cpu
        assert config.memory == memory

    def test_negative_desired_count_rejected(self):
        """Test desired count cannot be negative."""
        with pytest.raises(ValidationError):
            ComputeConfig(desired_count=-1)


class TestNetworkConfig:
    """Tests for NetworkConfig model."""

    def test_defaults(self):
        config = NetworkConfig()

        assert config.vpc_cidr == "10.0.0.0/16"
        assert config.availability_zones == 2

    @pytest.mark.parametrize("cidr", ["10.0.0.0/8", "10.0.0.0/24", "not-a-cidr", "fd00::/48"])
    def test_invalid_cidr(self, cidr):
        """Test CIDR ranges that cannot hold the subnets are rejected."""
        with pytest.raises(ValidationError):
            NetworkConfig(vpc_cidr=cidr)

    def test_az_bounds(self):
        """Test availability zone count is between 1 and 3."""
        with pytest.raises(ValidationError):
            NetworkConfig(availability_zones=0)
        with pytest.raises(ValidationError):
            NetworkConfig(availability_zones=4)


class TestDeliveryConfig:
    """Tests for DeliveryConfig model."""

    def test_invalid_stream_name(self):
        with pytest.raises(ValidationError):
            DeliveryConfig(stream_name="has spaces")

    def test_stream_name_too_long(self):
        with pytest.raises(ValidationError):
            DeliveryConfig(stream_name="a" * 65)


class TestLogRouterConfig:
    """Tests for LogRouterConfig.resolve_config_file."""

    def test_bundled_default(self, tmp_path: Path):
        config = LogRouterConfig()

        assert config.resolve_config_file(tmp_path) == BUNDLED_ROUTER_CONFIG
        assert BUNDLED_ROUTER_CONFIG.is_file()

    def test_relative_path(self, tmp_path: Path):
        config = LogRouterConfig(config_file=Path("fluent/extra.conf"))

        assert config.resolve_config_file(tmp_path) == tmp_path / "fluent" / "extra.conf"

    def test_absolute_path(self, tmp_path: Path):
        absolute = tmp_path / "elsewhere.conf"
        config = LogRouterConfig(config_file=absolute)

        assert config.resolve_config_file(Path("/unused")) == absolute


class TestTaskRoleActions:
    """Tests for the fixed task role action set."""

    def test_action_set(self):
        assert set(TASK_ROLE_ACTIONS) == {
            "logs:CreateLogStream",
            "logs:CreateLogGroup",
            "logs:DescribeLogStreams",
            "logs:PutLogEvents",
            "s3:GetObject",
            "s3:GetBucketLocation",
            "firehose:PutRecordBatch",
        }


class TestLoadDeploymentConfig:
    """Tests for load_deployment_config function."""

    def test_load_nonexistent_file(self):
        """Test loading from nonexistent file returns defaults."""
        config = load_deployment_config(Path("/nonexistent/firelens.toml"))

        assert config.environment == "staging"
        assert config.region == AWSRegion.US_EAST_1

    def test_load_empty_file(self):
        """Test loading a file without [deploy] returns defaults."""
        with TemporaryDirectory() as tmpdir:
            toml_path = Path(tmpdir) / "firelens.toml"
            toml_path.write_text("")

            config = load_deployment_config(toml_path)

            assert config == DeploymentConfig()

    def test_load_full_config(self):
        """Test loading every section."""
        with TemporaryDirectory() as tmpdir:
            toml_path = Path(tmpdir) / "firelens.toml"
            toml_path.write_text(
                """
[project]
name = "billing"

[deploy]
environment = "prod"
region = "eu-west-1"

[deploy.network]
vpc_cidr = "10.1.0.0/16"
availability_zones = 3

[deploy.compute]
size = "large"
desired_count = 3

[deploy.log_router]
config_file = "conf/extra.conf"

[deploy.application]
image = "example/app:1.2"
container_port = 8080

[deploy.delivery]
stream_name = "billing-logs"
log_expiration_days = 30

[deploy.output]
directory = "build/cdk.out"
stack_name_prefix = "bill"
"""
            )

            config = load_deployment_config(toml_path)

            assert config.app_name == "billing"
            assert config.environment == "prod"
            assert config.region == AWSRegion.EU_WEST_1
            assert config.network.availability_zones == 3
            assert config.compute.size == ComputeSize.LARGE
            assert config.compute.desired_count == 3
            assert config.log_router.config_file == Path("conf/extra.conf")
            assert config.application.container_port == 8080
            assert config.delivery.stream_name == "billing-logs"
            assert config.delivery.log_expiration_days == 30
            assert config.get_stack_name() == "bill-prod"
            assert config.output.get_output_path(Path(tmpdir)) == Path(tmpdir) / "build/cdk.out"

    def test_invalid_toml(self):
        """Test malformed TOML raises ConfigError with the file path."""
        with TemporaryDirectory() as tmpdir:
            toml_path = Path(tmpdir) / "firelens.toml"
            toml_path.write_text("[deploy\nenvironment = ")

            with pytest.raises(ConfigError) as exc_info:
                load_deployment_config(toml_path)

            assert exc_info.value.path == toml_path
            assert str(toml_path) in str(exc_info.value)

    def test_invalid_values(self):
        """Test schema violations raise ConfigError."""
        with TemporaryDirectory() as tmpdir:
            toml_path = Path(tmpdir) / "firelens.toml"
            toml_path.write_text('[deploy]\nregion = "mars-north-1"\n')

            with pytest.raises(ConfigError, match="Invalid"):
                load_deployment_config(toml_path)

    def test_unknown_key_warns(self, caplog):
        """Test unknown [deploy] keys are logged and ignored."""
        with TemporaryDirectory() as tmpdir:
            toml_path = Path(tmpdir) / "firelens.toml"
            toml_path.write_text('[deploy]\nenvironment = "dev"\nautoscaling = true\n')

            with caplog.at_level("WARNING", logger="ecs_firelens.config"):
                config = load_deployment_config(toml_path)

            assert config.environment == "dev"
            assert "autoscaling" in caplog.text

    def test_load_project_config(self, project_dir: Path):
        """Test loading from a project directory."""
        config = load_project_config(project_dir)

        assert config.app_name == "Orders API"
        assert config.get_stack_name() == "orders-api-dev"
        assert config.region == AWSRegion.EU_WEST_1
