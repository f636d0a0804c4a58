"""Tests for CLI commands."""

from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from ecs_firelens.cli import app
from ecs_firelens.preflight import (
    Finding,
    PreflightMode,
    PreflightReport,
    Severity,
    StageResult,
    StageStatus,
)
from ecs_firelens.runner import DeploymentResult


@pytest.fixture
def cli_runner():
    """Return a CLI test runner."""
    return CliRunner()


def preflight_report(*findings: Finding) -> PreflightReport:
    failed = any(f.severity == Severity.CRITICAL for f in findings)
    stage = StageResult(
        name="topology",
        status=StageStatus.FAILED if failed else StageStatus.PASSED,
        findings=list(findings),
    )
    return PreflightReport(
        run_id="pf-cli",
        created_at="2024-01-01T00:00:00+00:00",
        mode=PreflightMode.STATIC_ONLY,
        stack_name="orders-api-dev",
        environment="dev",
        region="eu-west-1",
        version="0.1.0",
        stages=[stage],
    )


class TestVersion:
    def test_version(self, cli_runner):
        result = cli_runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert "ecs-firelens version" in result.output
        assert "Python:" in result.output


class TestStatusCommand:
    """Tests for the status command."""

    def test_status(self, cli_runner, project_dir: Path):
        result = cli_runner.invoke(app, ["status", "--project", str(project_dir)])

        assert result.exit_code == 0
        assert "Stack: orders-api-dev" in result.output
        assert "Not synthesized" in result.output

    def test_invalid_config(self, cli_runner, tmp_path: Path):
        (tmp_path / "firelens.toml").write_text("[deploy\n")

        result = cli_runner.invoke(app, ["status", "--project", str(tmp_path)])

        assert result.exit_code == 1
        assert "Configuration error" in result.output


class TestSynthCommand:
    """Tests for the synth command."""

    def test_synth(self, cli_runner, project_dir: Path):
        result = cli_runner.invoke(app, ["synth", "--project", str(project_dir)])

        assert result.exit_code == 0, result.output
        assert "Synthesized 1 stack(s)" in result.output
        assert (project_dir / "cdk.out" / "orders-api-dev.template.json").exists()

    def test_invalid_config(self, cli_runner, tmp_path: Path):
        (tmp_path / "firelens.toml").write_text('[deploy]\nregion = "mars-1"\n')

        result = cli_runner.invoke(app, ["synth", "--project", str(tmp_path)])

        assert result.exit_code == 1
        assert "Configuration error" in result.output

    def test_synth_failure(self, cli_runner, project_dir: Path):
        failed = DeploymentResult(errors=["CDK synthesis failed: boom"])

        with patch("ecs_firelens.runner.DeploymentRunner.synth", return_value=failed):
            result = cli_runner.invoke(app, ["synth", "--project", str(project_dir)])

        assert result.exit_code == 1
        assert "Synthesis failed" in result.output
        assert "boom" in result.output


class TestPlanCommand:
    def test_plan(self, cli_runner, project_dir: Path):
        result = cli_runner.invoke(app, ["plan", "--project", str(project_dir)])

        assert result.exit_code == 0, result.output
        assert "Stack: orders-api-dev" in result.output
        assert "AWS::ECS::Service" in result.output
        assert "Uploaded files: 1" in result.output


class TestPreflightCommand:
    """Tests for the preflight command."""

    def test_invalid_mode(self, cli_runner, project_dir: Path):
        result = cli_runner.invoke(
            app, ["preflight", "--project", str(project_dir), "--mode", "yolo"]
        )

        assert result.exit_code == 1
        assert "Invalid mode" in result.output

    def test_passing_report(self, cli_runner, project_dir: Path, tmp_path: Path):
        report = preflight_report(
            Finding("TEMPLATE_LOADED", Severity.INFO, "42 resources, 1 uploaded file(s)")
        )
        reports = tmp_path / "out"

        with patch("ecs_firelens.preflight.runner.PreflightRunner.run", return_value=report):
            result = cli_runner.invoke(
                app,
                ["preflight", "--project", str(project_dir), "--output", str(reports)],
            )

        assert result.exit_code == 0, result.output
        assert "PASSED" in result.output
        assert (reports / "preflight-pf-cli.json").exists()
        assert (reports / "preflight-pf-cli.md").exists()

    def test_critical_findings_exit_nonzero(self, cli_runner, project_dir: Path):
        report = preflight_report(
            Finding(
                severity=Severity.CRITICAL,
                code="TOPOLOGY_HEALTH_CHECK",
                message="Health check is path='/health'",
            )
        )

        with patch("ecs_firelens.preflight.runner.PreflightRunner.run", return_value=report):
            result = cli_runner.invoke(
                app,
                ["preflight", "--project", str(project_dir), "--format", "none"],
            )

        assert result.exit_code == 1
        assert "TOPOLOGY_HEALTH_CHECK" in result.output
        assert not (project_dir / "reports").exists()

    def test_invalid_format(self, cli_runner, project_dir: Path):
        result = cli_runner.invoke(
            app, ["preflight", "--project", str(project_dir), "--format", "html"]
        )

        assert result.exit_code == 1
        assert "Invalid format" in result.output
