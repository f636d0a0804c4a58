"""
Pre-flight runner: runs the stages in order over one shared context.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from pathlib import Path

from .._version import get_version
from .models import PreflightConfig, PreflightMode, PreflightReport
from .stages import (
    AssertionsStage,
    BootstrapStage,
    DiffStage,
    SynthStage,
    TopologyStage,
)
from .stages.base import PreflightStage, StageContext

logger = logging.getLogger(__name__)


class PreflightRunner:
    """
    Runs bootstrap, synth, assertions, topology and, in plan_only mode, diff.

    Each stage reads what the earlier ones left in the context, so once a
    stage fails the rest are recorded as skipped.
    """

    def __init__(self, project_root: Path, config: PreflightConfig | None = None):
        self.project_root = project_root.resolve()
        self.config = config or PreflightConfig()
        self.run_id = f"pf-{uuid.uuid4().hex[:8]}"
        self.context = StageContext(project_root=self.project_root, config=self.config)

    def stages(self) -> list[PreflightStage]:
        stages: list[PreflightStage] = [
            BootstrapStage(self.context),
            SynthStage(self.context),
            AssertionsStage(self.context),
            TopologyStage(self.context),
        ]
        if self.config.mode == PreflightMode.PLAN_ONLY:
            stages.append(DiffStage(self.context))
        return stages

    def run(self) -> PreflightReport:
        report = PreflightReport(
            run_id=self.run_id,
            created_at=datetime.now(UTC).isoformat(timespec="seconds"),
            mode=self.config.mode,
            version=get_version(),
        )

        blocked_by: str | None = None
        for stage in self.stages():
            if blocked_by:
                report.stages.append(stage.skipped(f"{blocked_by} failed"))
                continue

            logger.info("Running preflight stage %s", stage.name)
            result = stage.run()
            report.stages.append(result)
            if result.failed:
                blocked_by = stage.name

        deploy_config = self.context.deploy_config
        report.stack_name = self.context.stack_name
        report.environment = deploy_config.environment if deploy_config else "staging"
        report.region = self.context.region
        report.toolchain = self.context.toolchain
        return report


def run_preflight(
    project_root: Path,
    mode: PreflightMode = PreflightMode.STATIC_ONLY,
    skip_stages: list[str] | None = None,
    fail_on_high: bool = True,
    fail_on_warn: bool = False,
    synth_dir: Path | None = None,
) -> PreflightReport:
    """Run pre-flight on a project with the given options."""
    config = PreflightConfig(
        mode=mode,
        synth_dir=synth_dir,
        skip_stages=skip_stages or [],
        fail_on_high=fail_on_high,
        fail_on_warn=fail_on_warn,
    )
    return PreflightRunner(project_root, config).run()
