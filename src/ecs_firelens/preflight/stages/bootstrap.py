"""
Bootstrap stage: toolchain and project configuration.

aws-cdk-lib drives a Node.js process, so Node.js is required even for an
in-process synth. The cdk CLI is only needed for `cdk diff` and deploys.
"""

from __future__ import annotations

import logging
import platform
import shutil
import subprocess

from ...config import CONFIG_FILE_NAME, load_project_config
from ...errors import ConfigError
from ..models import PreflightMode, Severity
from .base import PreflightStage

logger = logging.getLogger(__name__)

# tool -> (version command, install hint)
TOOLS = {
    "node": (["node", "--version"], "Install Node.js 18 or newer"),
    "cdk": (["cdk", "--version"], "npm install -g aws-cdk"),
    "aws": (["aws", "--version"], "https://aws.amazon.com/cli/"),
}


def tool_version(command: list[str]) -> str | None:
    """First word of a tool's version output, without a leading 'v' or 'aws-cli/'."""
    try:
        completed = subprocess.run(command, capture_output=True, text=True, timeout=30)
    except (OSError, subprocess.SubprocessError):
        logger.debug("%s failed", " ".join(command), exc_info=True)
        return None

    words = (completed.stdout or completed.stderr).split()
    if not words:
        return None
    return words[0].split("/")[-1].lstrip("v")


class BootstrapStage(PreflightStage):
    name = "bootstrap"

    def check(self) -> None:
        self.context.toolchain["python"] = platform.python_version()
        self._check_tools()
        self._load_config()

    def _check_tools(self) -> None:
        plan_mode = self.context.config.mode == PreflightMode.PLAN_ONLY
        missing_severity = {
            "node": Severity.CRITICAL,
            "cdk": Severity.CRITICAL if plan_mode else Severity.INFO,
            "aws": Severity.INFO,
        }

        for tool, (command, hint) in TOOLS.items():
            if not shutil.which(tool):
                self.flag(
                    f"{tool.upper()}_NOT_FOUND",
                    missing_severity[tool],
                    f"{tool} is not on PATH",
                    remediation=hint,
                )
                continue

            version = tool_version(command)
            if version:
                self.context.toolchain[tool] = version

    def _load_config(self) -> None:
        root = self.context.project_root

        try:
            config = load_project_config(root)
        except ConfigError as e:
            self.flag(
                "CONFIG_INVALID",
                Severity.CRITICAL,
                e.message,
                resource=str(e.path) if e.path else CONFIG_FILE_NAME,
            )
            return

        if not (root / CONFIG_FILE_NAME).exists():
            self.flag(
                "CONFIG_DEFAULTS",
                Severity.INFO,
                f"No {CONFIG_FILE_NAME}; using the default configuration",
            )
        if not (root / "cdk.json").exists():
            self.flag(
                "CDK_JSON_MISSING",
                Severity.WARN,
                "No cdk.json; `cdk deploy` will not find the app",
                remediation='Add cdk.json with "app": "python3 app.py"',
            )

        router_config = config.log_router.resolve_config_file(root)
        if not router_config.is_file():
            self.flag(
                "ROUTER_CONFIG_NOT_FOUND",
                Severity.CRITICAL,
                f"Log router configuration {router_config} does not exist",
                remediation="Point [deploy.log_router] config_file at an existing file",
            )

        self.context.deploy_config = config
        self.context.stack_name = config.get_stack_name()
        self.context.region = config.region.value
