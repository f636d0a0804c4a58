"""
Diff stage: what a deploy would change in the account (plan_only mode).

Runs `cdk diff` against the cloud assembly the synth stage wrote, so it
needs the cdk CLI and AWS credentials.
"""

from __future__ import annotations

import re
import shutil
import subprocess

from ..models import PreflightMode, Severity
from .base import PreflightStage

ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*m")
CHANGE_LINE = re.compile(r"^\[(?P<kind>[+\-~])\]\s+(?P<type>\S+)\s+(?P<logical_id>\S+)")


class DiffStage(PreflightStage):
    name = "diff"

    def skip_reason(self) -> str | None:
        if self.context.config.mode != PreflightMode.PLAN_ONLY:
            return "Diff only runs in plan_only mode"
        if not self.context.synth_output_dir:
            return "No synth output available"
        if not shutil.which("cdk"):
            return "cdk CLI not installed"
        return super().skip_reason()

    def check(self) -> None:
        command = ["cdk", "diff", "--app", str(self.context.synth_output_dir), "--no-color"]
        if self.context.stack_name:
            command.append(self.context.stack_name)

        try:
            result = subprocess.run(
                command,
                cwd=self.context.project_root,
                capture_output=True,
                text=True,
                timeout=300,
            )
        except subprocess.TimeoutExpired:
            self.flag("DIFF_TIMEOUT", Severity.HIGH, "cdk diff timed out")
            return

        # cdk writes the diff to stderr
        output = ANSI_ESCAPE.sub("", result.stdout + result.stderr)

        if result.returncode != 0:
            lines = [line for line in output.splitlines() if line.strip()]
            self.flag(
                "DIFF_FAILED",
                Severity.HIGH,
                lines[-1][:200] if lines else "cdk diff failed",
                remediation="Check AWS credentials and that the environment is bootstrapped",
            )
            return

        self._parse_diff(output)

    def _parse_diff(self, output: str) -> None:
        counts = {"+": 0, "-": 0, "~": 0}

        for line in output.splitlines():
            match = CHANGE_LINE.match(line.strip())
            if not match:
                continue

            kind = match.group("kind")
            counts[kind] += 1
            resource_type = match.group("type")

            if kind == "-":
                self.flag(
                    "DIFF_RESOURCE_REMOVED",
                    Severity.WARN,
                    f"Deploy would remove {resource_type}",
                    resource=match.group("logical_id"),
                )
            elif "replace" in line.lower():
                self.flag(
                    "DIFF_RESOURCE_REPLACED",
                    Severity.WARN,
                    f"Deploy would replace {resource_type}",
                    resource=match.group("logical_id"),
                )

        if "IAM Statement Changes" in output:
            self.flag("DIFF_IAM_CHANGES", Severity.INFO, "Deploy changes IAM statements")

        if any(counts.values()):
            message = f"{counts['+']} to add, {counts['~']} to modify, {counts['-']} to remove"
        else:
            message = "No differences from the deployed stack"
        self.flag("DIFF_SUMMARY", Severity.INFO, message)
