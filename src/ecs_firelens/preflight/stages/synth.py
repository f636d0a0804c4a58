"""
Synth stage: build the stack in-process and load what the analysis stages read.
"""

from __future__ import annotations

from ...runner import DeploymentRunner
from ..models import Severity
from .base import PreflightStage

# Substring of a synthesis error -> (code, remediation)
SYNTH_ERRORS = [
    ("ModuleNotFoundError", "MISSING_DEPENDENCY", "pip install -e ."),
    ("jsii", "JSII_ERROR", "Check the Node.js installation aws-cdk-lib runs on"),
    ("ValidationError", "CONSTRUCT_ERROR", "Fix the construct properties named in the error"),
    ("not found", "ASSET_NOT_FOUND", "Check [deploy.log_router] config_file"),
]


def _headline(error: str) -> str:
    """The line of a (possibly multi-line) error that names the problem."""
    lines = [line.strip() for line in error.splitlines() if line.strip()]
    for line in lines:
        if "error:" in line.lower():
            return line[:200]
    return lines[-1][:200] if lines else "Synthesis failed"


class SynthStage(PreflightStage):
    name = "synth"

    def skip_reason(self) -> str | None:
        if self.context.deploy_config is None:
            return "No deployment configuration"
        return super().skip_reason()

    def check(self) -> None:
        runner = DeploymentRunner(self.context.project_root, self.context.deploy_config)
        output_dir = self.context.config.synth_dir or runner.output_dir

        result = runner.synth(output_dir)

        for error in result.errors:
            code, remediation = next(
                ((code, fix) for marker, code, fix in SYNTH_ERRORS if marker in error),
                ("SYNTH_FAILED", None),
            )
            self.flag(code, Severity.CRITICAL, _headline(error), remediation=remediation)
        for warning in result.warnings:
            self.flag("SYNTH_WARNING", Severity.WARN, warning[:200])

        if not result.success:
            return

        self.context.synth_output_dir = output_dir
        self.context.templates.update(result.templates)
        self.context.assets = result.assets

        for stack_name, template in result.templates.items():
            resources = template.get("Resources") or {}
            if not resources:
                self.flag(
                    "NO_RESOURCES",
                    Severity.HIGH,
                    f"Template {stack_name} declares no resources",
                    resource=stack_name,
                )
                continue
            self.flag(
                "TEMPLATE_LOADED",
                Severity.INFO,
                f"{len(resources)} resources, {len(result.uploaded_files)} uploaded file(s)",
                resource=stack_name,
            )
