"""
Stage base class and the context the stages share.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, ClassVar

from ..models import Finding, Severity, StageResult, StageStatus

if TYPE_CHECKING:
    from ...assembly import AssetRecord
    from ...config import DeploymentConfig
    from ..models import PreflightConfig

logger = logging.getLogger(__name__)


@dataclass
class StageContext:
    """
    State handed from stage to stage.

    Bootstrap fills in the configuration and stack identity, synth adds
    the templates and asset records the analysis stages read.
    """

    project_root: Path
    config: PreflightConfig
    deploy_config: DeploymentConfig | None = None
    stack_name: str = ""
    region: str = ""
    toolchain: dict[str, str] = field(default_factory=dict)
    synth_output_dir: Path | None = None
    templates: dict[str, dict[str, Any]] = field(default_factory=dict)
    assets: list[AssetRecord] = field(default_factory=list)


class PreflightStage(ABC):
    """A named step that inspects the context and records findings."""

    name: ClassVar[str]
    needs_templates: ClassVar[bool] = False

    def __init__(self, context: StageContext):
        self.context = context
        self.result = StageResult(name=self.name)

    def skip_reason(self) -> str | None:
        """Why this stage cannot run now, or None when it can."""
        if self.name in self.context.config.skip_stages:
            return "Skipped with --skip"
        if self.needs_templates and not self.context.templates:
            return "No synthesized templates"
        return None

    def skipped(self, reason: str) -> StageResult:
        """Mark the stage skipped without running it."""
        self.result.status = StageStatus.SKIPPED
        self.result.note = reason
        logger.debug("Stage %s skipped: %s", self.name, reason)
        return self.result

    def run(self) -> StageResult:
        self.result = StageResult(name=self.name)

        reason = self.skip_reason()
        if reason:
            return self.skipped(reason)

        started = time.perf_counter()
        try:
            self.check()
        except Exception as e:
            logger.debug("Stage %s aborted", self.name, exc_info=True)
            self.result.status = StageStatus.FAILED
            self.result.note = f"{type(e).__name__}: {e}"
        else:
            fails = self.context.config.fails_stage
            if any(fails(f.severity) for f in self.result.findings):
                self.result.status = StageStatus.FAILED
        finally:
            self.result.duration_ms = int((time.perf_counter() - started) * 1000)

        return self.result

    @abstractmethod
    def check(self) -> None:
        """Inspect the context and call flag() for every problem found."""

    def flag(
        self,
        code: str,
        severity: Severity,
        message: str,
        resource: str | None = None,
        remediation: str | None = None,
    ) -> None:
        self.result.findings.append(
            Finding(
                code=code,
                severity=severity,
                message=message,
                resource=resource,
                remediation=remediation,
            )
        )
