"""Parsing and aggregation of scanner JSON reports."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from ..errors import ScannerError
from ..models.scan_result import Finding, Severity, SeverityCounts
from ..utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class AggregatedResult:
    """Counts over the raw matches plus the deduplicated, ordered findings."""
    counts: SeverityCounts = field(default_factory=SeverityCounts)
    findings: List[Finding] = field(default_factory=list)


def load_report(report_file: Path) -> Dict[str, Any]:
    """
    Read a scanner JSON report.

    Raises:
        ScannerError: If the file is missing, not UTF-8 or not valid JSON
    """
    try:
        with open(report_file, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ScannerError(f"Scanner report not found: {report_file}") from e
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ScannerError(f"Failed to parse scanner report {report_file}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ScannerError(f"Unexpected scanner report layout in {report_file}")
    return data


def _finding(
    package: Any,
    vulnerability_id: Any,
    severity: Any,
    installed_version: Any,
    fixed_version: Optional[Any],
) -> Finding:
    label = str(severity) if severity else Severity.UNKNOWN.value
    return Finding(
        package=str(package or ""),
        vulnerability_id=str(vulnerability_id or ""),
        severity=Severity.from_string(label),
        severity_label=label,
        installed_version=str(installed_version or ""),
        fixed_version=str(fixed_version) if fixed_version else None,
    )


def _entries(value: Any, what: str) -> List[Dict[str, Any]]:
    """A report collection as a list of objects; null counts as empty."""
    if value is None:
        return []
    if not isinstance(value, list):
        raise ScannerError(f"Unexpected scanner report layout: {what} is not a list")
    for entry in value:
        if not isinstance(entry, dict):
            raise ScannerError(f"Unexpected scanner report layout: {what} entry is not an object")
    return value


def _section(value: Any, what: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ScannerError(f"Unexpected scanner report layout: {what} is not an object")
    return value


def parse_grype_findings(report: Dict[str, Any]) -> List[Finding]:
    """Extract findings from a Grype ``-o json`` report (``matches[]``)."""
    findings = []
    for match in _entries(report.get("matches"), "matches"):
        artifact = _section(match.get("artifact"), "artifact")
        vulnerability = _section(match.get("vulnerability"), "vulnerability")
        fix_versions = _section(vulnerability.get("fix"), "fix").get("versions") or []
        if not isinstance(fix_versions, list):
            raise ScannerError("Unexpected scanner report layout: fix versions is not a list")
        findings.append(_finding(
            artifact.get("name"),
            vulnerability.get("id"),
            vulnerability.get("severity"),
            artifact.get("version"),
            fix_versions[0] if fix_versions else None,
        ))
    return findings


def parse_trivy_findings(report: Dict[str, Any]) -> List[Finding]:
    """Extract findings from a Trivy ``--format json`` report."""
    findings = []
    for result in _entries(report.get("Results"), "Results"):
        for vuln in _entries(result.get("Vulnerabilities"), "Vulnerabilities"):
            findings.append(_finding(
                vuln.get("PkgName"),
                vuln.get("VulnerabilityID"),
                vuln.get("Severity"),
                vuln.get("InstalledVersion"),
                vuln.get("FixedVersion"),
            ))
    return findings


PARSERS = {
    "grype": parse_grype_findings,
    "trivy": parse_trivy_findings,
}


def count_severities(findings: Iterable[Finding]) -> SeverityCounts:
    """
    Count findings per tracked severity.

    Untracked levels (Negligible, Unknown...) only add to the total.
    """
    buckets = {
        Severity.CRITICAL: 0,
        Severity.HIGH: 0,
        Severity.MEDIUM: 0,
        Severity.LOW: 0,
    }
    total = 0
    for finding in findings:
        total += 1
        if finding.severity in buckets:
            buckets[finding.severity] += 1

    return SeverityCounts(
        critical=buckets[Severity.CRITICAL],
        high=buckets[Severity.HIGH],
        medium=buckets[Severity.MEDIUM],
        low=buckets[Severity.LOW],
        total=total,
    )


def deduplicate(findings: Iterable[Finding]) -> List[Finding]:
    """Drop repeated (vulnerability id, package) pairs; the first one wins."""
    seen = set()
    unique = []
    for finding in findings:
        if finding.key in seen:
            continue
        seen.add(finding.key)
        unique.append(finding)
    return unique


def sort_by_severity(findings: Iterable[Finding]) -> List[Finding]:
    """Order Critical > High > Medium > Low > everything else, stable within a tier."""
    return sorted(findings, key=lambda f: f.severity.rank, reverse=True)


def aggregate_findings(findings: List[Finding]) -> AggregatedResult:
    """Count the raw findings, then deduplicate and order them for display."""
    return AggregatedResult(
        counts=count_severities(findings),
        findings=sort_by_severity(deduplicate(findings)),
    )


def aggregate(report: Dict[str, Any], scanner: str = "grype") -> AggregatedResult:
    """
    Aggregate one scanner report.

    Args:
        report: Decoded JSON report
        scanner: Which scanner produced it (``grype`` or ``trivy``)

    Returns:
        AggregatedResult; an absent or empty match collection gives zero
        counts and no findings

    Raises:
        ScannerError: If the report does not have the scanner's JSON layout
    """
    try:
        parser = PARSERS[scanner]
    except KeyError:
        raise ValueError(f"No report parser for scanner '{scanner}'") from None

    findings = parser(report)
    logger.debug(f"Parsed {len(findings)} raw findings from {scanner} report")
    return aggregate_findings(findings)
