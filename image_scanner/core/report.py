"""Markdown reports and the plain-text run summary."""

import json
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..models.scan_result import (
    ImageCategory,
    OutcomeStatus,
    RunResult,
    ScanOutcome,
    SeverityCounts,
)
from ..utils.logging import get_logger

logger = get_logger(__name__)

CRITICAL_MARKER = "🚨"
WARNING_MARKER = "⚠️"
# High findings tolerated before an image without criticals gets the warning marker
HIGH_WARNING_THRESHOLD = 3
RULE = "=" * 50
DATE_FORMAT = "%a %b %d %H:%M:%S %Y"


def sanitize_filename(name: str) -> str:
    """Convert an image name to a safe file name."""
    return name.replace("/", "_").replace(":", "_").replace("@", "_")


def _cell(value: Optional[str]) -> str:
    return (value or "").replace("|", "\\|")


def status_marker(counts: SeverityCounts) -> str:
    """Glyph shown next to an image in the summary."""
    if counts.critical > 0:
        return CRITICAL_MARKER
    if counts.high > HIGH_WARNING_THRESHOLD:
        return WARNING_MARKER
    return ""


def render_markdown(
    outcome: ScanOutcome,
    scanner_title: str,
    scanned_at: Optional[datetime] = None,
) -> str:
    """
    Render the findings report for one scanned image.

    Args:
        outcome: Scan outcome with counts and deduplicated findings
        scanner_title: Display name of the scanner (``Grype``, ``Trivy``)
        scanned_at: Scan timestamp (default: now)

    Returns:
        Markdown document
    """
    scanned_at = scanned_at or datetime.now()
    target = outcome.target

    lines = [
        f"## {scanner_title} Vulnerability Scan - {target.name}",
        "",
        f"**Image:** `{target.reference}`",
        f"**Digest:** `{outcome.digest}`",
        f"**Category:** {target.category.value}",
        f"**Scan Date:** {scanned_at.strftime(DATE_FORMAT)}",
        "",
    ]

    if outcome.counts.total > 0:
        lines.append(f"### Vulnerabilities Found: {outcome.counts.total}")
        lines.append("")
        lines.append("| Package | CVE | Severity | Installed Version | Fixed Version |")
        lines.append("|---------|-----|----------|-------------------|---------------|")
        for finding in outcome.findings:
            lines.append(
                f"| {_cell(finding.package)} "
                f"| {_cell(finding.vulnerability_id)} "
                f"| {_cell(finding.severity_label)} "
                f"| {_cell(finding.installed_version)} "
                f"| {_cell(finding.fixed_version or 'N/A')} |"
            )
    else:
        lines.append("### No Vulnerabilities Found")

    return "\n".join(lines) + "\n"


def write_report(
    outcome: ScanOutcome,
    scanner_title: str,
    scanned_at: Optional[datetime] = None,
) -> Path:
    """Write ``<category>/reports/<name>-report.md`` and return its path."""
    reports_dir = outcome.target.reports_dir
    reports_dir.mkdir(parents=True, exist_ok=True)
    report_file = reports_dir / f"{sanitize_filename(outcome.target.name)}-report.md"
    report_file.write_text(render_markdown(outcome, scanner_title, scanned_at), encoding="utf-8")
    return report_file


def format_summary_entry(outcome: ScanOutcome) -> str:
    """Plain-text block describing one outcome in the run summary."""
    target = outcome.target
    heading = f"{target.name} ({target.category.value})"

    if outcome.status == OutcomeStatus.PULL_FAILED:
        return f"{heading}: Pull failed or access denied\n\n"
    if outcome.status == OutcomeStatus.SCAN_FAILED:
        return f"{heading}: Scan failed - {outcome.error or 'unknown error'}\n\n"

    counts = outcome.counts
    marker = status_marker(counts)
    return (
        f"{heading}:{' ' + marker if marker else ''}\n"
        f"  Digest:   {outcome.digest}\n"
        f"  Critical: {counts.critical}\n"
        f"  High:     {counts.high}\n"
        f"  Medium:   {counts.medium}\n"
        f"  Low:      {counts.low}\n"
        "\n"
    )


class SummaryWriter:
    """
    Append-only writer for ``<scanner>-summary.txt``.

    Writes are serialized, but ordering is the caller's job: the
    orchestrator feeds outcomes in planned order.
    """

    def __init__(self, path: Path, scanner_title: str, fail_severity: str):
        self.path = Path(path)
        self.scanner_title = scanner_title
        self.fail_severity = fail_severity
        self._lock = threading.Lock()

    def _append(self, text: str) -> None:
        with self._lock:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(text)

    def write_header(self, organization: str, started_at: Optional[datetime] = None) -> None:
        """Create the file with the run header, truncating any previous content."""
        started_at = started_at or datetime.now()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        header = (
            f"{self.scanner_title} Vulnerability Scan Summary\n"
            f"Organization    : {organization}\n"
            f"Scan Date       : {started_at.strftime(DATE_FORMAT)}\n"
            f"Fail Severity   : {self.fail_severity}\n"
            f"{RULE}\n"
            "\n"
        )
        with self._lock:
            self.path.write_text(header, encoding="utf-8")

    def write_section(self, category: ImageCategory) -> None:
        self._append(f"### {category.title} ###\n\n")

    def write_entry(self, outcome: ScanOutcome) -> None:
        self._append(format_summary_entry(outcome))

    def write_footer(self, threshold_exceeded: bool) -> None:
        if threshold_exceeded:
            verdict = f"{self.fail_severity}+ vulnerabilities detected!"
        else:
            verdict = f"No {self.fail_severity}+ vulnerabilities found"
        self._append(f"{RULE}\n{verdict}\n")

    def write_aborted(self, reason: str) -> None:
        self._append(f"{RULE}\nRun aborted: {reason}\n")


def write_json_summary(
    path: Path,
    run_result: RunResult,
    entries: List[Dict[str, Any]],
    scanner: str,
    fail_severity: str,
    aborted: Optional[str] = None,
) -> None:
    """
    Write the machine-readable ``scan-summary.json``.

    ``aborted`` carries the abort reason when the run stopped early; ``entries``
    then covers only the images processed before the abort.
    """
    data = {
        "scan_summary": {
            "timestamp": datetime.now().isoformat(),
            "scanner": scanner,
            "fail_severity": fail_severity,
            "total_images_attempted": run_result.total_images_attempted,
            "pull_failures": run_result.pull_failures,
            "scan_failures": run_result.scan_failures,
            "threshold_exceeded": run_result.threshold_exceeded,
            "aborted": aborted,
        },
        "images": entries,
    }
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    logger.debug(f"JSON summary written to {path}")
