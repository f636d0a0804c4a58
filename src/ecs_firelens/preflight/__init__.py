"""
Pre-flight validation for the FireLens stack.

Synthesizes the stack in-process and checks the templates before anything
reaches AWS. static_only needs no credentials; plan_only adds `cdk diff`
against the deployed stack.
"""

from .models import (
    Finding,
    PreflightConfig,
    PreflightMode,
    PreflightReport,
    Severity,
    StageResult,
    StageStatus,
    Summary,
)
from .report import render_json, render_markdown, write_reports
from .runner import PreflightRunner, run_preflight

__all__ = [
    "Finding",
    "PreflightConfig",
    "PreflightMode",
    "PreflightReport",
    "Severity",
    "StageResult",
    "StageStatus",
    "Summary",
    "PreflightRunner",
    "run_preflight",
    "render_json",
    "render_markdown",
    "write_reports",
]
