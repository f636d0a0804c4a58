"""
JSON and Markdown renderings of a pre-flight report.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path

from .models import PreflightReport, StageStatus
from .stages.topology import TOPOLOGY_CHECKS

logger = logging.getLogger(__name__)

STATUS_ICONS = {"passed": "✅", "blocked": "⚠️", "failed": "❌"}

SEVERITY_ICONS = {"critical": "🔴", "high": "🟠", "warn": "🟡", "info": "🔵"}


def _cell(text: str | None) -> str:
    # Pipes would end the table cell
    return (text or "-").replace("|", "\\|")


def render_json(report: PreflightReport) -> str:
    return json.dumps(report.to_dict(), indent=2)


def render_markdown(report: PreflightReport) -> str:
    summary = report.summary
    lines = [
        f"# Pre-flight: {report.stack_name or 'unknown stack'}",
        "",
        f"**{STATUS_ICONS[summary.status]} {summary.status.upper()}** "
        f"({report.environment}, {report.region or 'no region'}, {report.mode.value})",
        "",
        f"Run `{report.run_id}` at {report.created_at}",
        "",
    ]

    topology = report.stage("topology")
    if topology and topology.status != StageStatus.SKIPPED:
        failing = set(topology.codes())
        lines += ["## Topology", ""]
        for code, description in TOPOLOGY_CHECKS.items():
            lines.append(f"- {'❌' if code in failing else '✅'} {description}")
        lines.append("")

    findings = report.findings()
    if findings:
        lines += [
            "## Findings",
            "",
            "| Severity | Code | Message | Resource | Fix |",
            "|---|---|---|---|---|",
        ]
        for finding in findings:
            severity = finding.severity.value
            lines.append(
                f"| {SEVERITY_ICONS[severity]} {severity} | `{finding.code}` "
                f"| {_cell(finding.message)} | {_cell(finding.resource)} "
                f"| {_cell(finding.remediation)} |"
            )
        lines.append("")

    lines += ["## Stages", "", "| Stage | Status | Duration | Note |", "|---|---|---|---|"]
    for stage in report.stages:
        lines.append(
            f"| {stage.name} | {stage.status.value} | {stage.duration_ms} ms "
            f"| {_cell(stage.note)} |"
        )
    lines.append("")

    if summary.next_actions:
        lines += ["## Next", ""]
        lines += [f"- {action}" for action in summary.next_actions]
        lines.append("")

    if report.toolchain:
        tools = ", ".join(f"{tool} {version}" for tool, version in report.toolchain.items())
        lines += [f"Toolchain: {tools}", ""]

    lines.append(f"*ecs-firelens pre-flight v{report.version}*")
    return "\n".join(lines) + "\n"


def write_reports(
    report: PreflightReport,
    output_dir: Path,
    formats: Iterable[str] = ("json", "md"),
) -> dict[str, Path]:
    """Write preflight-<run_id>.<format> files and return their paths by format."""
    renderers = {"json": render_json, "md": render_markdown}
    output_dir.mkdir(parents=True, exist_ok=True)

    written: dict[str, Path] = {}
    for fmt in formats:
        path = output_dir / f"preflight-{report.run_id}.{fmt}"
        path.write_text(renderers[fmt](report), encoding="utf-8")
        written[fmt] = path

    logger.info("Wrote preflight reports to %s", output_dir)
    return written
