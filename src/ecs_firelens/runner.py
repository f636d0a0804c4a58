"""
Deployment runner for synthesizing the FireLens stack.

The DeploymentRunner loads configuration, builds the CDK app in-process and
synthesizes the cloud assembly that `cdk deploy` consumes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from aws_cdk import cx_api

from .app import build_app
from .assembly import AssetRecord, load_asset_manifests, resource_counts
from .config import DeploymentConfig, load_project_config
from .errors import FirelensError, SynthError

logger = logging.getLogger(__name__)


# =============================================================================
# Deployment Result
# =============================================================================


@dataclass
class DeploymentResult:
    """Result from a synthesis run."""

    output_dir: Path | None = None
    files_created: list[Path] = field(default_factory=list)
    stacks_generated: list[str] = field(default_factory=list)
    templates: dict[str, dict[str, Any]] = field(default_factory=dict)
    assets: list[AssetRecord] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Check if synthesis was successful."""
        return len(self.errors) == 0

    @property
    def uploaded_files(self) -> list[AssetRecord]:
        """File assets uploaded alongside the stack (templates excluded)."""
        return [a for a in self.assets if a.is_uploaded_file]

    def add_error(self, error: str) -> None:
        """Add an error message."""
        self.errors.append(error)

    def add_warning(self, warning: str) -> None:
        """Add a warning message."""
        self.warnings.append(warning)

    def raise_for_errors(self) -> None:
        """Raise SynthError if synthesis reported errors."""
        if self.errors:
            raise SynthError("; ".join(self.errors), path=self.output_dir)

    def summary(self) -> dict[str, Any]:
        """Get a summary of the synthesis result."""
        return {
            "success": self.success,
            "output_dir": str(self.output_dir) if self.output_dir else None,
            "files_created": len(self.files_created),
            "stacks_generated": self.stacks_generated,
            "uploaded_files": len(self.uploaded_files),
            "errors": self.errors,
            "warnings": self.warnings,
        }


# =============================================================================
# Deployment Runner
# =============================================================================


class DeploymentRunner:
    """
    Synthesizes the FireLens stack into a cloud assembly.

    Usage:
        runner = DeploymentRunner(project_root)
        result = runner.synth()
    """

    def __init__(
        self,
        project_root: Path,
        config: DeploymentConfig | None = None,
    ):
        self.project_root = project_root.resolve()

        if config is None:
            config = load_project_config(self.project_root)

        self.config = config
        self.output_dir = config.output.get_output_path(self.project_root)

    def synth(self, output_dir: Path | None = None) -> DeploymentResult:
        """
        Synthesize the stack.

        Args:
            output_dir: Cloud assembly directory (defaults to the configured one)

        Returns:
            DeploymentResult with templates, assets and any synthesis messages
        """
        outdir = output_dir or self.output_dir
        result = DeploymentResult(output_dir=outdir)

        try:
            app, _ = build_app(self.project_root, self.config, outdir)
            assembly = app.synth()
        except FirelensError as e:
            result.add_error(str(e))
            return result
        except Exception as e:
            # jsii surfaces construct validation failures as RuntimeError
            logger.debug("Synthesis raised", exc_info=True)
            result.add_error(f"CDK synthesis failed: {e}")
            return result

        for artifact in assembly.stacks:
            result.stacks_generated.append(artifact.stack_name)
            result.templates[artifact.stack_name] = artifact.template
            result.files_created.append(outdir / artifact.template_file)

            for message in artifact.messages:
                text = f"{message.id}: {message.entry.data}"
                if message.level == cx_api.SynthesisMessageLevel.ERROR:
                    result.add_error(text)
                elif message.level == cx_api.SynthesisMessageLevel.WARNING:
                    result.add_warning(text)

        # cdk.out may hold manifests of stacks from earlier synths
        result.assets = load_asset_manifests(
            outdir, [artifact.id for artifact in assembly.stacks]
        )

        logger.info(
            "Synthesized %s into %s (%d uploaded files)",
            ", ".join(result.stacks_generated),
            outdir,
            len(result.uploaded_files),
        )
        return result

    def plan(self, output_dir: Path | None = None) -> dict[str, Any]:
        """
        Get a plan of what would be deployed.

        Synthesizes the stack and summarises configuration and resource counts.

        Returns:
            Dictionary with infrastructure plan
        """
        result = self.synth(output_dir)

        resources: dict[str, int] = {}
        for template in result.templates.values():
            for resource_type, count in resource_counts(template).items():
                resources[resource_type] = resources.get(resource_type, 0) + count

        return {
            "app_name": self.config.sanitized_app_name(),
            "environment": self.config.environment,
            "region": self.config.region.value,
            "stack_name": self.config.get_stack_name(),
            "success": result.success,
            "errors": result.errors,
            "warnings": result.warnings,
            "resources": resources,
            "uploaded_files": len(result.uploaded_files),
            "config": {
                "compute": {
                    "size": self.config.compute.size.value,
                    "cpu": self.config.compute.cpu,
                    "memory": self.config.compute.memory,
                    "desired_count": self.config.compute.desired_count,
                },
                "network": {
                    "vpc_cidr": self.config.network.vpc_cidr,
                    "availability_zones": self.config.network.availability_zones,
                },
                "containers": {
                    "log_router": self.config.log_router.image,
                    "application": self.config.application.image,
                    "container_port": self.config.application.container_port,
                },
                "delivery": {
                    "stream_name": self.config.delivery.stream_name,
                    "log_expiration_days": self.config.delivery.log_expiration_days,
                },
            },
        }


__all__ = [
    "DeploymentResult",
    "DeploymentRunner",
]
