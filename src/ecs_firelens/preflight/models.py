"""
Result types shared by the pre-flight stages, the runner and the reports.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any


class PreflightMode(StrEnum):
    """How far pre-flight reaches."""

    STATIC_ONLY = "static_only"  # templates only, no credentials
    PLAN_ONLY = "plan_only"  # also `cdk diff` against the deployed stack


class Severity(StrEnum):
    INFO = "info"
    WARN = "warn"
    HIGH = "high"
    CRITICAL = "critical"


# Most severe first
SEVERITY_ORDER = (Severity.CRITICAL, Severity.HIGH, Severity.WARN, Severity.INFO)


class StageStatus(StrEnum):
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class Finding:
    """One problem (or observation) about the stack or the toolchain."""

    code: str
    severity: Severity
    message: str
    resource: str | None = None
    remediation: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "severity": self.severity.value,
            "message": self.message,
            "resource": self.resource,
            "remediation": self.remediation,
        }


@dataclass
class StageResult:
    """Outcome of one stage."""

    name: str
    status: StageStatus = StageStatus.PASSED
    findings: list[Finding] = field(default_factory=list)
    duration_ms: int = 0
    note: str | None = None  # skip reason or the exception that aborted the stage

    @property
    def failed(self) -> bool:
        return self.status == StageStatus.FAILED

    def codes(self) -> list[str]:
        return [f.code for f in self.findings]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "duration_ms": self.duration_ms,
            "note": self.note,
            "findings": [f.to_dict() for f in self.findings],
        }


@dataclass
class PreflightConfig:
    """Options for one pre-flight run."""

    mode: PreflightMode = PreflightMode.STATIC_ONLY
    synth_dir: Path | None = None
    output_dir: Path | None = None
    fail_on_high: bool = True
    fail_on_warn: bool = False
    skip_stages: list[str] = field(default_factory=list)

    def fails_stage(self, severity: Severity) -> bool:
        """Whether a finding of this severity fails the stage that raised it."""
        if severity == Severity.CRITICAL:
            return True
        if severity == Severity.HIGH:
            return self.fail_on_high
        if severity == Severity.WARN:
            return self.fail_on_warn
        return False

    def get_output_dir(self, project_root: Path) -> Path:
        """Directory the reports are written to."""
        return self.output_dir or project_root / "reports"


@dataclass
class Summary:
    """Roll-up of a report, derived from its stages."""

    status: str  # passed, blocked or failed
    counts: dict[Severity, int]
    stages_failed: int
    stages_skipped: int
    next_actions: list[str]

    @property
    def can_proceed(self) -> bool:
        blocking = self.counts[Severity.CRITICAL] + self.counts[Severity.HIGH]
        return blocking == 0 and self.stages_failed == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "can_proceed": self.can_proceed,
            "findings": {s.value: n for s, n in self.counts.items()},
            "stages_failed": self.stages_failed,
            "stages_skipped": self.stages_skipped,
            "next_actions": self.next_actions,
        }


@dataclass
class PreflightReport:
    """Everything one run produced."""

    run_id: str
    created_at: str
    mode: PreflightMode
    stack_name: str = ""
    environment: str = ""
    region: str = ""
    version: str = ""
    toolchain: dict[str, str] = field(default_factory=dict)
    stages: list[StageResult] = field(default_factory=list)

    def findings(self, severity: Severity | None = None) -> list[Finding]:
        """All findings, most severe first, optionally of one severity."""
        found = [f for stage in self.stages for f in stage.findings]
        if severity is not None:
            return [f for f in found if f.severity == severity]
        return sorted(found, key=lambda f: SEVERITY_ORDER.index(f.severity))

    def stage(self, name: str) -> StageResult | None:
        return next((s for s in self.stages if s.name == name), None)

    @property
    def summary(self) -> Summary:
        tally = Counter(f.severity for f in self.findings())
        counts = {severity: tally[severity] for severity in SEVERITY_ORDER}
        failed = sum(1 for s in self.stages if s.status == StageStatus.FAILED)
        skipped = sum(1 for s in self.stages if s.status == StageStatus.SKIPPED)

        if failed or counts[Severity.CRITICAL]:
            status = "failed"
        elif counts[Severity.HIGH]:
            status = "blocked"
        else:
            status = "passed"

        actions = [
            f"Resolve {counts[severity]} {severity.value.upper()} finding(s)"
            for severity in (Severity.CRITICAL, Severity.HIGH)
            if counts[severity]
        ]
        if status == "passed":
            actions.append(f"Deploy with: cdk deploy {self.stack_name}".rstrip())

        return Summary(
            status=status,
            counts=counts,
            stages_failed=failed,
            stages_skipped=skipped,
            next_actions=actions,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "created_at": self.created_at,
            "mode": self.mode.value,
            "version": self.version,
            "stack": {
                "name": self.stack_name,
                "environment": self.environment,
                "region": self.region,
            },
            "toolchain": self.toolchain,
            "summary": self.summary.to_dict(),
            "stages": [s.to_dict() for s in self.stages],
        }
